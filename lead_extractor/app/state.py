"""
Session state management for the Streamlit application.

Centralizes session state initialization and access. The QueueStore lives
in the session so the queue survives reruns; ``is_processing`` is the gate
that keeps a second batch run from starting while one is active.
"""

import os
from typing import Optional

import streamlit as st

from lead_extractor.extractors import ProfileExtractor
from lead_extractor.work_queue import QueueStore


def get_secret(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get secret from Streamlit secrets or environment."""
    try:
        if key in st.secrets:
            return st.secrets[key]
    except Exception:
        # No secrets.toml: fall back to the environment
        pass
    return os.environ.get(key, default)


def init_session_state() -> None:
    """Initialize all session state variables."""
    defaults = {
        # Queue
        "queue_store": None,
        "upload_key_counter": 0,  # Counter to reset file uploader widget

        # Processing state
        "is_processing": False,
        "last_run": None,  # RunResult of the latest batch
        "run_error": None,

        # API
        "api_key": get_secret("OPENAI_API_KEY"),
        "extractor": None,
    }

    for key, default in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = default


def get_store() -> QueueStore:
    """Get or create the session's QueueStore."""
    if st.session_state.queue_store is None:
        st.session_state.queue_store = QueueStore()
    return st.session_state.queue_store


def get_extractor() -> ProfileExtractor:
    """Get or create the profile extractor for this session."""
    if st.session_state.extractor is None:
        from lead_extractor.clients import VisionClient

        client = VisionClient(api_key=st.session_state.api_key)
        st.session_state.extractor = ProfileExtractor(client=client)
    return st.session_state.extractor


def reset_queue() -> None:
    """Drop the current queue and start over."""
    st.session_state.queue_store = QueueStore()
    st.session_state.last_run = None
    st.session_state.run_error = None
    st.session_state.upload_key_counter += 1
