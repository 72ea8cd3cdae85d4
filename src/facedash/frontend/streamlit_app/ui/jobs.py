from __future__ import annotations

import streamlit as st

from facedash.application.features.base import FlowState, JobFlow
from facedash.application.jobs.dto import JobView
from facedash.infrastructure.notifications.toasts import ToastCenter

TOAST_ICONS = {"info": "ℹ️", "success": "✅", "error": "⚠️"}


def render_toasts(toasts: ToastCenter) -> None:
    for toast in toasts.drain():
        st.toast(toast.text, icon=TOAST_ICONS.get(toast.level))


def render_job(view: JobView) -> None:
    label = f"{view.context_name or view.job_id} · {view.message}"
    if view.error_message:
        st.error(f"{label}: {view.error_message}")
    elif view.indeterminate:
        # no total yet: text only, no numeric bar
        st.caption(f"⏳ {label}")
    else:
        st.progress(view.percent, text=f"{label} ({view.percent}%)")
        if view.eta_seconds is not None:
            st.caption(f"about {int(view.eta_seconds)}s left")


def render_jobs(views: list[JobView]) -> None:
    if not views:
        st.info("No jobs tracked in this session.")
        return
    for view in views:
        render_job(view)


def render_result(flow: JobFlow) -> None:
    if flow.state is FlowState.COMPLETED:
        st.success("Finished")
        st.json(dict(flow.result or {}))
    elif flow.state is FlowState.FAILED:
        st.error(flow.error or "Job failed")
    elif flow.state is FlowState.DETACHED:
        st.caption("Running in the background; you will be notified when it finishes.")
