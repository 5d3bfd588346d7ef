"""
Lead Extractor - Streamlit Application

Upload profile screenshots, extract handles and emails with a Vision LLM,
and download the results as an Excel workbook.

Features:
- Batch upload appended to a persistent queue
- Sequential processing with per-item status
- Excel download of successfully extracted profiles

Run with: streamlit run lead_extractor/app/main.py
"""

import sys
from pathlib import Path

import streamlit as st

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from lead_extractor.app.async_helpers import run_async
from lead_extractor.app.state import get_extractor, get_store, init_session_state, reset_queue
from lead_extractor.export import EXCEL_MIME, EXPORT_FILENAME, export_to_excel, project_rows
from lead_extractor.pipeline import BatchRunner
from lead_extractor.work_queue import ItemStatus, WorkItem


# =============================================================================
# PAGE CONFIGURATION
# =============================================================================

st.set_page_config(
    page_title="Lead Extractor",
    page_icon="📇",
    layout="centered",
)

init_session_state()


STATUS_BADGES = {
    ItemStatus.PENDING: ":gray[PENDING]",
    ItemStatus.IN_FLIGHT: ":blue[Scanning...]",
    ItemStatus.DONE: ":green[✔ SAVED]",
    ItemStatus.FAILED: ":red[FAILED]",
}


# =============================================================================
# SECTIONS
# =============================================================================

def render_upload() -> None:
    """Render the uploader and queue newly selected screenshots."""
    upload_key = f"image_upload_{st.session_state.upload_key_counter}"
    uploaded_files = st.file_uploader(
        "Upload profile screenshots",
        type=["png", "jpg", "jpeg", "webp", "gif", "heic"],
        accept_multiple_files=True,
        help="Supports batch upload",
        key=upload_key,
        disabled=st.session_state.is_processing,
    )

    if uploaded_files:
        get_store().append((f.name, f.getvalue()) for f in uploaded_files)
        # New widget key clears the selection so files are queued once
        st.session_state.upload_key_counter += 1
        st.rerun()


def render_item(item: WorkItem) -> None:
    """Render one queue row."""
    col_name, col_status = st.columns([3, 1])
    with col_name:
        st.markdown(f"**{item.source_label}**")
        if item.status == ItemStatus.DONE:
            handle = item.result.username or "?"
            st.caption(f"@{handle} • {len(item.result.emails)} emails")
        elif item.status == ItemStatus.FAILED and item.error:
            st.caption(item.error)
    with col_status:
        st.markdown(STATUS_BADGES[item.status])


def render_queue(placeholder) -> None:
    """Render the whole queue into a placeholder container."""
    items = get_store().snapshot()
    with placeholder.container():
        if not items:
            st.info("👆 Upload screenshots to start.")
            return
        for item in items:
            render_item(item)


def run_batch(queue_placeholder) -> None:
    """Run one batch over the pending items, refreshing the queue view."""
    store = get_store()
    st.session_state.run_error = None
    try:
        extractor = get_extractor()
    except ValueError as e:
        # Missing API key
        st.session_state.run_error = str(e)
        return

    st.session_state.is_processing = True

    progress_bar = st.progress(0.0, text="Starting extraction...")

    def on_progress(current: int, total: int, item: WorkItem) -> None:
        progress_bar.progress(current / total, text=f"{item.source_label} ({current}/{total})")

    def on_change(item: WorkItem) -> None:
        render_queue(queue_placeholder)

    store.add_listener(on_change)
    try:
        runner = BatchRunner(store, extractor, progress_callback=on_progress)
        st.session_state.last_run = run_async(runner.run())
        progress_bar.progress(1.0, text="Extraction complete!")
    finally:
        store.remove_listener(on_change)
        st.session_state.is_processing = False


def render_summary() -> None:
    """Render the result of the latest run, if any."""
    if st.session_state.run_error:
        st.error(st.session_state.run_error)

    last_run = st.session_state.last_run
    if last_run is None or last_run.total == 0:
        return

    if last_run.failed == 0:
        st.success(f"✅ {last_run.done} profile(s) extracted")
    else:
        st.warning(f"⚠️ {last_run.done} extracted, {last_run.failed} failed")


def render_actions(queue_placeholder) -> None:
    """Render the process and download buttons."""
    store = get_store()
    counts = store.counts()
    pending = counts[ItemStatus.PENDING]

    if pending:
        label = "Processing..." if st.session_state.is_processing else f"Process {pending} Images"
        if st.button(
            label,
            type="primary",
            use_container_width=True,
            disabled=st.session_state.is_processing,
        ):
            run_batch(queue_placeholder)
            st.rerun()

    if counts[ItemStatus.DONE]:
        st.download_button(
            label="Download Excel (.xlsx)",
            data=export_to_excel(project_rows(store)),
            file_name=EXPORT_FILENAME,
            mime=EXCEL_MIME,
            use_container_width=True,
        )

    if len(store) and st.button("Clear queue", disabled=st.session_state.is_processing):
        reset_queue()
        st.rerun()


# =============================================================================
# MAIN
# =============================================================================

def main() -> None:
    st.title("Lead Extractor")
    st.caption("Upload screenshots to extract leads.")

    if not st.session_state.api_key:
        st.warning("OPENAI_API_KEY is not configured.")

    render_upload()
    render_summary()
    queue_placeholder = st.empty()
    render_queue(queue_placeholder)
    render_actions(queue_placeholder)


main()
