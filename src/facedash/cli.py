import argparse
import asyncio
import subprocess
import sys
from typing import Optional, Sequence

import anyio

from facedash.application.jobs.dto import JobView
from facedash.application.jobs.projection import LiveJobView
from facedash.application.jobs.registry import JobRegistry
from facedash.core.config import settings
from facedash.core.logging_config import setup_logging
from facedash.domain.jobs.value_objects import Completed, JobOutcome
from facedash.frontend.streamlit_app.runner import run as ui_run
from facedash.infrastructure.api.client import FacesApi
from facedash.infrastructure.channels.factory import AdaptiveChannelFactory


def _print_view(view: Optional[JobView]) -> None:
    if view is None:
        return
    if view.indeterminate:
        print(f"[{view.status}] {view.message}")
    else:
        print(f"[{view.status}] {view.percent:3d}% {view.message}")


async def watch(
    job_id: str,
    progress_key: str,
    *,
    context_name: str = "",
    timeout: Optional[float] = None,
    api: Optional[FacesApi] = None,
) -> int:
    """Follow one job until it settles. Returns a process exit code."""
    api = api or FacesApi(
        settings.API_BASE_URL,
        prefix=settings.API_PREFIX,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )
    registry = JobRegistry(
        AdaptiveChannelFactory(
            api,
            max_sse_connections=settings.MAX_SSE_CONNECTIONS,
            poll_interval=settings.POLL_INTERVAL_SECONDS,
        ),
        idle_timeout_seconds=settings.IDLE_TIMEOUT_SECONDS,
    )
    settled = asyncio.Event()
    outcomes: list[JobOutcome] = []

    def _on_outcome(outcome: JobOutcome) -> None:
        outcomes.append(outcome)
        settled.set()

    registry.track_job(job_id, progress_key, context_name=context_name, on_outcome=_on_outcome)
    live = LiveJobView(registry, job_id, on_change=_print_view)
    try:
        with anyio.fail_after(timeout):
            await settled.wait()
    except TimeoutError:
        print(f"Gave up waiting after {timeout:g}s; the job keeps running on the server.", file=sys.stderr)
        return 2
    finally:
        live.close()
        registry.close()
        await api.aclose()

    outcome = outcomes[0]
    if isinstance(outcome, Completed):
        print(f"Job {job_id} completed: {outcome.job.result or {}}")
        return 0
    print(f"Job {job_id} failed: {outcome.message}", file=sys.stderr)
    return 1


def _run_ui(port: int) -> int:
    ui_proc = ui_run(port)
    try:
        # Wait until UI exits (or Ctrl+C in this terminal)
        return ui_proc.wait()
    except KeyboardInterrupt:
        print("\n Ctrl+C received, shutting down...")
    finally:
        if ui_proc.poll() is None:
            ui_proc.terminate()
            try:
                ui_proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                ui_proc.kill()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="facedash")
    sub = parser.add_subparsers(dest="command", required=True)

    ui = sub.add_parser("ui", help="Start the Streamlit dashboard")
    ui.add_argument("--port", type=int, default=settings.UI_PORT)

    w = sub.add_parser("watch", help="Follow a running job until it finishes")
    w.add_argument("--job-id", required=True)
    w.add_argument("--progress-key", required=True)
    w.add_argument("--context-name", default="")
    w.add_argument("--timeout", type=float, default=None, help="Seconds to wait before giving up")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(settings.LOG_LEVEL)

    if args.command == "ui":
        return _run_ui(args.port)
    return asyncio.run(
        watch(
            args.job_id,
            args.progress_key,
            context_name=args.context_name,
            timeout=args.timeout,
        )
    )


if __name__ == "__main__":
    sys.exit(main())
