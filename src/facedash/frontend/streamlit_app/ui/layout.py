from __future__ import annotations

import streamlit as st


def hide_sidebar_nav() -> None:
    st.markdown(
        "<style>[data-testid='stSidebarNav']{display:none;}</style>",
        unsafe_allow_html=True,
    )


def top_bar(*, running: int, api_base_url: str) -> None:
    cols = st.columns([6, 2])

    with cols[0]:
        st.caption(api_base_url)

    with cols[1]:
        label = f"{running} job running" if running == 1 else f"{running} jobs running"
        st.caption(label)


def page_frame(title: str, *, running: int, api_base_url: str) -> None:
    top_bar(running=running, api_base_url=api_base_url)
    st.divider()
    st.title(title)
