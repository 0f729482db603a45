from datetime import datetime

import streamlit as st

from frontend.api_client import error_detail
from frontend.components.cost_display import render_cost_display


def _format_timestamp(ms: int) -> str:
    try:
        return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")
    except (OverflowError, OSError, ValueError):
        return ""


def _load_models(refresh: bool = False):
    """Fetch the model listing for the current key into session state."""
    api = st.session_state.api_client
    try:
        listing = api.list_models(refresh=refresh)
    except Exception as e:
        st.session_state.models = []
        st.session_state.providers = []
        st.session_state.notice = f"Failed to fetch models: {error_detail(e)}"
        return
    st.session_state.models = listing["models"]
    st.session_state.providers = listing["providers"]
    st.session_state.session = api.get_session()


def _render_api_key(busy: bool) -> bool:
    api = st.session_state.api_client
    has_key = api.has_api_key()

    st.markdown("**OpenRouter API Key**")
    if not has_key:
        key = st.text_input(
            "API key", type="password", placeholder="sk-or-...",
            label_visibility="collapsed",
        )
        if st.button("Save Key", use_container_width=True, disabled=not key.strip()):
            api.set_api_key(key.strip())
            _load_models(refresh=True)
            st.rerun()
        st.caption("Your key is stored by the local backend only.")
        return False

    if st.button("Clear Key", use_container_width=True, disabled=busy):
        api.clear_api_key()
        st.session_state.models = []
        st.session_state.providers = []
        st.rerun()
    return True


def _render_model_picker(session: dict, busy: bool):
    api = st.session_state.api_client
    if not st.session_state.models:
        _load_models()
        session = st.session_state.session
    if not st.session_state.models:
        if st.session_state.notice:
            st.error(st.session_state.notice)
            st.session_state.notice = None
        return

    providers = st.session_state.providers
    current_provider = session.get("provider") or (providers[0] if providers else "")
    provider = st.selectbox(
        "Provider",
        providers,
        index=providers.index(current_provider) if current_provider in providers else 0,
        disabled=busy,
    )

    models = [m for m in st.session_state.models if m["id"].startswith(provider + "/")]
    model_ids = [m["id"] for m in models]
    labels = {m["id"]: m.get("name") or m["id"] for m in models}
    current_model = session.get("model_id", "")
    model_id = st.selectbox(
        "Model",
        model_ids,
        index=model_ids.index(current_model) if current_model in model_ids else 0,
        format_func=lambda i: labels.get(i, i),
        disabled=busy or not model_ids,
    )

    if model_id and (model_id != current_model or provider != session.get("provider")):
        st.session_state.session = api.select_model(model_id, provider)

    selected = next((m for m in models if m["id"] == model_id), None)
    if selected:
        pricing = selected.get("pricing", {})
        st.caption(
            f"${pricing.get('prompt', 0) * 1_000_000:.2f} / "
            f"${pricing.get('completion', 0) * 1_000_000:.2f} per 1M tokens (in / out)"
        )
        if selected.get("description"):
            with st.expander("About this model"):
                st.markdown(selected["description"])


def _render_saved_chats(session: dict, busy: bool):
    api = st.session_state.api_client

    col1, col2 = st.columns(2)
    with col1:
        if st.button("New Chat", use_container_width=True, type="primary", disabled=busy):
            st.session_state.session = api.new_session()
            st.rerun()
    with col2:
        can_save = bool(session["messages"]) or session.get("saved_chat_id") is not None
        if st.button("Save Chat", use_container_width=True, disabled=busy or not can_save):
            try:
                saved = api.save_chat(st.session_state.get("chat_name", ""))
                st.toast(f'Chat "{saved["name"]}" saved.')
            except Exception as e:
                st.error(f"Failed to save chat: {error_detail(e)}")
            st.rerun()

    st.text_input("Chat name (optional)", key="chat_name")

    try:
        chats = api.list_chats()
    except Exception as e:
        st.caption(f"Saved chats unavailable: {error_detail(e)}")
        return
    if not chats:
        st.caption("No saved chats yet.")
        return

    st.markdown("**Saved Chats**")
    active_id = session.get("saved_chat_id")
    for chat in chats:
        is_active = chat["id"] == active_id
        c1, c2 = st.columns([5, 1])
        with c1:
            label = f"**{chat['name'][:40]}**" if is_active else chat["name"][:40]
            if st.button(label, key=f"chat_{chat['id']}", use_container_width=True,
                         disabled=is_active or busy):
                st.session_state.session = api.load_chat(chat["id"])
                st.rerun()
            meta = [_format_timestamp(chat["timestamp"])]
            if chat.get("provider") and chat.get("model"):
                meta.append(f"{chat['provider']}/{chat['model']}")
            meta.append(f"${chat.get('total_cost', 0):.6f}")
            st.caption(" · ".join(p for p in meta if p))
        with c2:
            if st.button("X", key=f"del_{chat['id']}", disabled=busy):
                api.delete_chat(chat["id"])
                st.rerun()


def render_sidebar():
    st.title("RouterChat")
    st.caption("Streaming chat over OpenRouter, with per-message costs")

    session = st.session_state.session
    busy = session["is_loading"] or session["is_reconciling"]

    if not _render_api_key(busy):
        return

    st.divider()
    _render_model_picker(session, busy)
    session = st.session_state.session

    st.divider()
    with st.expander("System Prompt", expanded=bool(session["system_prompt"])):
        new_prompt = st.text_area(
            "System prompt",
            value=session["system_prompt"],
            height=100,
            label_visibility="collapsed",
        )
        if new_prompt != session["system_prompt"]:
            st.session_state.session = st.session_state.api_client.update_system_prompt(new_prompt)

    st.divider()
    _render_saved_chats(st.session_state.session, busy)

    st.divider()
    render_cost_display()
