import httpx
import pytest

from backend.exceptions import MissingCredentialError, MissingModelError, SessionBusyError
from backend.models.database_models import SavedChat
from backend.models.schemas import Sender
from backend.services.model_catalog import ModelCatalog
from backend.services.session_controller import SessionController
from backend.services.usage_reconciler import NO_GENERATION_ID_NOTE
from tests.fakes import delta, sse_lines


@pytest.fixture
def catalog(test_settings, openrouter_client):
    return ModelCatalog(test_settings, openrouter_client)


@pytest.fixture
def controller(openrouter_client, catalog, recorded_sleep):
    c = SessionController(openrouter_client, catalog, sleep=recorded_sleep)
    c.set_credential("sk-or-test")
    c.select_model("openai/gpt-4o")
    return c


def _assistant_entries(controller):
    return [m for m in controller.transcript.messages if m.sender == Sender.ASSISTANT]


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_full_turn_reconciles_cost(self, controller, fake_openrouter):
        await controller.send_message("Hi")

        messages = controller.transcript.messages
        assert [m.sender for m in messages] == [Sender.USER, Sender.ASSISTANT]
        assert messages[0].text == "Hi"
        reply = messages[1]
        assert reply.id == "gen-abc"
        assert reply.correlation_id == "gen-abc"
        assert reply.text == "Hello world"
        assert reply.cost.total == pytest.approx(0.00042)
        assert reply.tokens.total_tokens == 17
        assert controller.total_cost == pytest.approx(0.00042)
        assert controller.busy is False

        body = fake_openrouter.completion_requests[0]
        assert body["model"] == "openai/gpt-4o"
        assert body["stream"] is True
        assert body["messages"] == [{"role": "user", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_system_prompt_goes_first(self, controller, fake_openrouter):
        controller.system_prompt = "Be terse."
        await controller.send_message("Hi")
        sent = fake_openrouter.completion_requests[0]["messages"]
        assert sent[0] == {"role": "system", "content": "Be terse."}
        assert sent[1] == {"role": "user", "content": "Hi"}

    @pytest.mark.asyncio
    async def test_history_includes_earlier_turns(self, controller, fake_openrouter):
        await controller.send_message("First")
        fake_openrouter.chunks = [sse_lines(delta("Second reply", gen_id="gen-2"))]
        await controller.send_message("Second")

        sent = fake_openrouter.completion_requests[1]["messages"]
        assert sent == [
            {"role": "user", "content": "First"},
            {"role": "assistant", "content": "Hello world"},
            {"role": "user", "content": "Second"},
        ]
        assert len(_assistant_entries(controller)) == 2
        assert controller.total_cost == pytest.approx(0.00084)

    @pytest.mark.asyncio
    async def test_chunk_boundaries_do_not_matter(self, controller, fake_openrouter):
        body = sse_lines(delta("Hé"), delta("llo 👋"))
        fake_openrouter.chunks = [body[i:i + 3] for i in range(0, len(body), 3)]
        await controller.send_message("Hi")
        assert _assistant_entries(controller)[0].text == "Héllo 👋"

    @pytest.mark.asyncio
    async def test_stops_reading_at_done(self, controller, fake_openrouter):
        fake_openrouter.chunks = [
            sse_lines(delta("Hi"), done=False) + b"data: [DONE]",
            sse_lines(delta(" late")),
        ]
        await controller.send_message("Hi")
        reply = _assistant_entries(controller)[0]
        assert reply.text == "Hi"
        assert reply.cost is not None

    @pytest.mark.asyncio
    async def test_missing_generation_id(self, controller, fake_openrouter):
        fake_openrouter.chunks = [sse_lines({"choices": [{"delta": {"content": "anon"}}]})]
        await controller.send_message("Hi")

        reply = _assistant_entries(controller)[0]
        assert reply.id.startswith("no-gen-id-")
        assert reply.text == "anon"
        assert reply.cost is None
        assert reply.reasoning_note == NO_GENERATION_ID_NOTE
        assert fake_openrouter.generation_polls == 0

    @pytest.mark.asyncio
    async def test_error_status_closes_entry_without_reconcile(self, controller, fake_openrouter):
        fake_openrouter.completion_status = 500
        await controller.send_message("Hi")

        reply = _assistant_entries(controller)[0]
        assert reply.is_error is True
        assert reply.text == "Error: HTTP error! status: 500"
        assert reply.cost is None
        assert fake_openrouter.generation_polls == 0
        assert controller.busy is False

    @pytest.mark.asyncio
    async def test_transport_error_keeps_partial_text(self, controller, fake_openrouter):
        fake_openrouter.chunks = [sse_lines(delta("Partial"), done=False)]
        fake_openrouter.completion_error = httpx.ReadError("connection reset")
        await controller.send_message("Hi")

        reply = _assistant_entries(controller)[0]
        assert reply.is_error is True
        assert reply.text == "Partial\n\nError: connection reset"
        assert fake_openrouter.generation_polls == 0

    @pytest.mark.asyncio
    async def test_done_literal_in_reply_text_survives_split(self, controller, fake_openrouter):
        text = "End with data: [DONE] then stop"
        body = sse_lines(delta(text, gen_id="gen-1"))
        cut = body.index(b"[DONE]") + len(b"[DONE]")
        fake_openrouter.chunks = [body[:cut], body[cut:]]
        await controller.send_message("Hi")

        reply = _assistant_entries(controller)[0]
        assert reply.text == text
        assert reply.id == "gen-1"
        assert reply.cost.total == pytest.approx(0.00042)

    @pytest.mark.asyncio
    async def test_end_of_stream_without_done_still_reconciles(self, controller, fake_openrouter):
        fake_openrouter.chunks = [sse_lines(delta("cut"), done=False)]
        await controller.send_message("Hi")
        reply = _assistant_entries(controller)[0]
        assert reply.text == "cut"
        assert reply.cost is not None


class TestPreconditions:
    @pytest.mark.asyncio
    async def test_missing_key(self, openrouter_client, fake_openrouter):
        controller = SessionController(openrouter_client)
        controller.select_model("openai/gpt-4o")
        with pytest.raises(MissingCredentialError):
            await controller.send_message("Hi")
        assert len(controller.transcript) == 0
        assert fake_openrouter.requests == []

    @pytest.mark.asyncio
    async def test_missing_model(self, openrouter_client, fake_openrouter):
        controller = SessionController(openrouter_client)
        controller.set_credential("sk-or-test")
        with pytest.raises(MissingModelError) as exc_info:
            await controller.send_message("Hi")
        assert exc_info.value.message == "Please select a model."
        assert fake_openrouter.requests == []

    @pytest.mark.asyncio
    async def test_blank_message_is_ignored(self, controller, fake_openrouter):
        await controller.send_message("   ")
        assert len(controller.transcript) == 0
        assert fake_openrouter.requests == []

    @pytest.mark.asyncio
    async def test_busy_session_rejects_new_turn(self, controller):
        controller.is_reconciling = True
        with pytest.raises(SessionBusyError):
            await controller.send_message("Hi")
        with pytest.raises(SessionBusyError):
            controller.reset()


class TestSessionState:
    @pytest.mark.asyncio
    async def test_snapshot_and_reset(self, controller):
        controller.system_prompt = "Be kind."
        await controller.send_message("Hi")

        chat = controller.snapshot()
        assert chat.name == "openai/gpt-4o Chat"
        assert chat.system_prompt == "Be kind."
        assert chat.selected_model_id == "openai/gpt-4o"
        assert chat.selected_provider_id == "openai"
        assert chat.total_cost == pytest.approx(0.00042)
        assert [m["id"] for m in chat.messages][1] == "gen-abc"

        controller.reset()
        assert len(controller.transcript) == 0
        assert controller.system_prompt == ""
        assert controller.total_cost == 0.0
        assert controller.model_id == "openai/gpt-4o"

    @pytest.mark.asyncio
    async def test_load_restores_available_model(self, controller, catalog):
        await catalog.refresh("sk-or-test")
        chat = SavedChat(
            id=7,
            name="Saved",
            messages=[
                {"id": "u1", "sender": "user", "text": "Hi"},
                {"id": "gen-1", "sender": "assistant", "text": "Yo", "cost": {"total": 0.25}},
            ],
            system_prompt="Stay brief.",
            model="Claude 3 Haiku",
            provider="anthropic",
            total_cost=0.25,
            timestamp=1700000000000,
            selected_model_id="anthropic/claude-3-haiku",
            selected_provider_id="anthropic",
        )
        controller.load(chat)

        assert controller.saved_chat_id == 7
        assert controller.model_id == "anthropic/claude-3-haiku"
        assert controller.provider == "anthropic"
        assert controller.system_prompt == "Stay brief."
        assert controller.total_cost == pytest.approx(0.25)
        assert controller.chat_info.model == "Claude 3 Haiku"

    @pytest.mark.asyncio
    async def test_load_clears_unavailable_model(self, controller, catalog):
        await catalog.refresh("sk-or-test")
        chat = SavedChat(
            id=3, name="Old", messages=[], system_prompt="", model="", provider="",
            total_cost=0.0, timestamp=1, selected_model_id="gone/model",
            selected_provider_id="gone",
        )
        controller.load(chat)
        assert controller.model_id == ""
        assert controller.provider == ""
        assert controller.chat_info.model == "N/A"

    def test_forget_saved_chat_resets_only_when_loaded(self, controller):
        controller.saved_chat_id = 4
        controller.system_prompt = "x"
        controller.forget_saved_chat(5)
        assert controller.saved_chat_id == 4
        controller.forget_saved_chat(4)
        assert controller.saved_chat_id is None
        assert controller.system_prompt == ""

    @pytest.mark.asyncio
    async def test_clear_credential_resets_session(self, controller):
        await controller.send_message("Hi")
        controller.clear_credential()
        assert controller.api_key is None
        assert controller.model_id == ""
        assert len(controller.transcript) == 0

    def test_clear_credential_while_busy_keeps_session(self, controller):
        controller.system_prompt = "Stay."
        controller.is_loading = True
        controller.clear_credential()
        assert controller.api_key is None
        assert controller.model_id == "openai/gpt-4o"
        assert controller.system_prompt == "Stay."
