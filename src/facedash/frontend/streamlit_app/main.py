from __future__ import annotations

import time

import streamlit as st

from facedash.core.config import settings
from facedash.core.logging_config import setup_logging
from facedash.frontend.streamlit_app.services.tracker import TrackerRuntime
from facedash.frontend.streamlit_app.ui.jobs import render_job, render_jobs, render_result, render_toasts
from facedash.frontend.streamlit_app.ui.layout import hide_sidebar_nav, page_frame
from facedash.domain.jobs.errors import FailedToStartJob

REFRESH_SECONDS = 1.0


@st.cache_resource
def get_runtime() -> TrackerRuntime:
    setup_logging(settings.LOG_LEVEL)
    return TrackerRuntime(settings)


def _open_flows() -> list:
    return st.session_state.setdefault("open_flows", [])


def start_panel(runtime: TrackerRuntime) -> None:
    with st.sidebar.form("start_job"):
        person_id = st.text_input("Person ID")
        person_name = st.text_input("Person name")
        find_more = st.form_submit_button("Find more suggestions")
        centroids = st.form_submit_button("Compute centroids")

    if st.sidebar.button("Run face detection"):
        try:
            _open_flows().append(runtime.detect_faces())
        except FailedToStartJob as e:
            st.sidebar.error(str(e))

    if not (find_more or centroids):
        return
    if not person_id:
        st.sidebar.error("Person ID is required.")
        return
    try:
        if find_more:
            flow = runtime.find_more(person_id, person_name or person_id)
        else:
            flow = runtime.compute_centroids(person_id, person_name or person_id)
    except FailedToStartJob as e:
        st.sidebar.error(str(e))
        return
    _open_flows().append(flow)


def open_dialogs(runtime: TrackerRuntime) -> None:
    flows = _open_flows()
    for i, flow in enumerate(list(flows)):
        with st.container(border=True):
            st.subheader(f"{type(flow).__name__.removesuffix('Flow')}: {flow.handle.context_name}")
            view = runtime.flow_view(flow)
            if view is not None:
                render_job(view)
            render_result(flow)
            if st.button("Close", key=f"close_{flow.job_id}_{i}"):
                # stop watching; the job keeps running server-side
                runtime.close_flow(flow)
                flows.remove(flow)
                st.rerun()


def main() -> None:
    st.set_page_config(page_title="Face jobs", layout="wide")
    hide_sidebar_nav()
    runtime = get_runtime()

    views = runtime.views()
    running = sum(1 for v in views if not v.is_terminal)
    page_frame("Background jobs", running=running, api_base_url=settings.API_BASE_URL)

    start_panel(runtime)
    render_toasts(runtime.toasts)
    open_dialogs(runtime)

    st.header("All tracked jobs")
    render_jobs(views)

    if runtime.has_running_jobs() or len(runtime.toasts):
        time.sleep(REFRESH_SECONDS)
        st.rerun()


if __name__ == "__main__":
    main()
