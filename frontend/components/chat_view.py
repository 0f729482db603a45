import streamlit as st

from frontend.api_client import error_detail
from frontend.components.cost_display import render_message_usage

ROLE_FOR_SENDER = {"user": "user", "assistant": "assistant"}


def _render_message(msg: dict):
    with st.chat_message(ROLE_FOR_SENDER.get(msg["sender"], "assistant")):
        if msg.get("is_error"):
            st.error(msg["text"])
        else:
            st.markdown(msg["text"] or "...")
        if msg["sender"] == "assistant":
            render_message_usage(msg)


def render_chat():
    """Render the transcript and handle new input."""
    session = st.session_state.session
    info = session.get("chat_info") or {}

    if info.get("model"):
        st.caption(f"Chatting with {info.get('provider', '')}/{info['model']}")
    if not session["messages"]:
        st.markdown("### Start a conversation")
        st.caption("Pick a model in the sidebar and type a message below.")

    for msg in session["messages"]:
        _render_message(msg)

    busy = session["is_loading"] or session["is_reconciling"]
    if busy:
        st.info("A response is still in progress...")

    ready = bool(session.get("model_id"))
    placeholder_text = "Type your message..." if ready else "Select a model to start chatting"
    if prompt := st.chat_input(placeholder_text, disabled=busy or not ready):
        _handle_user_message(prompt)


def _handle_user_message(prompt: str):
    """Send one turn and render its updates as they arrive."""
    with st.chat_message("user"):
        st.markdown(prompt)

    with st.chat_message("assistant"):
        response_placeholder = st.empty()
        status_area = st.empty()
        response_placeholder.markdown("*Thinking...*")

        try:
            for event in st.session_state.api_client.stream_chat(prompt):
                evt_type = event["event"]
                data = event["data"]
                touched = data.get("messages", []) if isinstance(data, dict) else []
                assistant = next(
                    (m for m in touched if m.get("sender") == "assistant"), None
                )

                if evt_type == "text_updated" and assistant:
                    response_placeholder.markdown(assistant["text"] + " |")

                elif evt_type == "stream_failed" and assistant:
                    response_placeholder.error(assistant["text"])

                elif evt_type in ("usage_finalized", "usage_unavailable") and assistant:
                    response_placeholder.markdown(assistant["text"] or "...")
                    with status_area.container():
                        render_message_usage(assistant)

                elif evt_type == "error":
                    st.error(f"Error: {data.get('error', 'Unknown error')}")
                    return

                elif evt_type == "done":
                    break

        except Exception as e:
            st.error(error_detail(e))
            return

    st.rerun()
