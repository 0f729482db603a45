from pathlib import Path

from dotenv import load_dotenv

# Load .env so the Streamlit process sees the same env vars as the backend
load_dotenv(Path(__file__).parent.parent / ".env")

import streamlit as st
from frontend.api_client import APIClient, error_detail
from frontend.components.sidebar import render_sidebar
from frontend.components.chat_view import render_chat

st.set_page_config(
    page_title="RouterChat",
    layout="wide",
    initial_sidebar_state="expanded",
)

# --- Custom CSS ---
st.markdown("""
<style>
    /* Chat message styling */
    .stChatMessage { border-radius: 12px; margin-bottom: 8px; }

    /* Per-message cost captions */
    .cost-note { color: #888; font-size: 0.8em; }

    /* Hide Streamlit branding */
    #MainMenu { visibility: hidden; }
    footer { visibility: hidden; }
</style>
""", unsafe_allow_html=True)

# --- Initialize session state ---
if "api_client" not in st.session_state:
    st.session_state.api_client = APIClient()
if "models" not in st.session_state:
    st.session_state.models = []
if "providers" not in st.session_state:
    st.session_state.providers = []
if "notice" not in st.session_state:
    st.session_state.notice = None

# The backend owns the conversation; mirror it once per rerun.
try:
    st.session_state.session = st.session_state.api_client.get_session()
except Exception as e:
    st.error(f"Backend not available ({error_detail(e)}). Start the FastAPI server.")
    st.stop()

# --- Sidebar ---
with st.sidebar:
    render_sidebar()

# --- Main area ---
render_chat()
