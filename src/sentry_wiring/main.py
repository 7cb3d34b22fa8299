# src/sentry_wiring/main.py
from __future__ import annotations

from typing import Any, Dict


def run(
        build_payload: Dict[str, Any],
        dry_run: bool = False,
        *,
        payload_src: str = "unknown",
) -> Dict[str, Any]:
    """
    Core entrypoint used by sentry_wiring.cli.

    sentry_wiring.workflow owns the full run
    (load build -> resolve sentry-cli -> wire variants -> execute requested tasks -> emit result).
    With dry_run the variants are wired and reported but nothing is executed.
    """
    from sentry_wiring.workflow import run_wiring_graph

    # Let WiringStageError bubble up so the CLI can render stage-aware JSON.
    return run_wiring_graph(
        payload=build_payload,
        payload_src=payload_src,
        dry_run=dry_run,
    )
