import streamlit as st


def render_message_usage(msg: dict):
    """Cost and token caption under a reconciled assistant message."""
    cost = msg.get("cost")
    tokens = msg.get("tokens")
    if cost is not None:
        parts = [f"Cost: ${cost.get('total', 0):.6f}"]
        if tokens:
            parts.append(
                f"Tokens: {tokens.get('prompt_tokens', 0):,} in / "
                f"{tokens.get('completion_tokens', 0):,} out"
            )
        st.caption(" | ".join(parts))
    elif msg.get("reasoning_note") and not msg.get("is_error"):
        st.caption(f"Usage unavailable: {msg['reasoning_note']}")
    if cost is not None and msg.get("reasoning_note"):
        with st.expander("Usage details"):
            st.code(msg["reasoning_note"], language=None)


def render_cost_display():
    """Show session cost metrics in the sidebar."""
    st.markdown("**Cost Tracker**")

    try:
        summary = st.session_state.api_client.get_cost_summary()
    except Exception:
        st.caption("Cost data unavailable")
        return

    st.metric("This Chat", f"${summary.get('total_cost_usd', 0):.6f}")
    st.caption(
        f"{summary.get('total_prompt_tokens', 0):,} in / "
        f"{summary.get('total_completion_tokens', 0):,} out"
    )
    unpriced = summary.get("unpriced_messages", 0)
    if unpriced:
        st.caption(f"{unpriced} response(s) without usage data")
