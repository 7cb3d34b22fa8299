# sentry_wiring/workflow.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, TypedDict

from sentry_wiring.build import BuildDescriptor
from sentry_wiring.host import HostProject
from sentry_wiring.local_graph import ExecutionReport, LocalTaskGraph, build_local_host
from sentry_wiring.paths import resolve_cli_executable
from sentry_wiring.plugin import WiringReport, apply
from sentry_wiring.settings import SentryExtension

try:
    from langgraph.graph import END, StateGraph
except Exception as e:  # pragma: no cover
    raise RuntimeError("LangGraph is required. Install 'langgraph'.") from e


# -----------------------------
# Stages (canonical)
# -----------------------------
STAGE_INIT = "init"
STAGE_PARSE_BUILD = "parse_build"
STAGE_RESOLVE_CLI = "resolve_cli"
STAGE_WIRE_VARIANTS = "wire_variants"
STAGE_EXECUTE_TASKS = "execute_tasks"
STAGE_EMIT_RESULT = "emit_result"
STAGE_DONE = "done"
STAGE_DONE_DRY_RUN = "done_dry_run"


class WiringStageError(RuntimeError):
    def __init__(self, stage: str, inner: Exception):
        super().__init__(str(inner))
        self.stage = stage
        self.inner = inner


@dataclass(frozen=True)
class RuntimeConfig:
    dry_run: bool


class WorkflowState(TypedDict, total=False):
    payload: dict[str, Any]
    payload_src: str
    config: RuntimeConfig
    stage: str

    descriptor: BuildDescriptor
    extension: SentryExtension
    host: HostProject

    cli_executable: str
    wiring: WiringReport
    execution: Optional[ExecutionReport]

    result: dict[str, Any]


def node_load_build(state: WorkflowState) -> WorkflowState:
    stage = STAGE_PARSE_BUILD
    try:
        descriptor = BuildDescriptor.model_validate(state["payload"]).finalize()
        state["stage"] = stage
        state["descriptor"] = descriptor
        state["extension"] = descriptor.sentry.with_env_overrides()
        state["host"] = build_local_host(descriptor)
        return state
    except Exception as e:
        raise WiringStageError(stage, e) from e


def node_resolve_cli(state: WorkflowState) -> WorkflowState:
    stage = STAGE_RESOLVE_CLI
    try:
        state["cli_executable"] = resolve_cli_executable(state["extension"].cli_executable)
        state["stage"] = stage
        return state
    except Exception as e:
        raise WiringStageError(stage, e) from e


def node_wire_variants(state: WorkflowState) -> WorkflowState:
    stage = STAGE_WIRE_VARIANTS
    try:
        state["wiring"] = apply(state["host"], state["extension"], cli_executable=state["cli_executable"])
        state["stage"] = stage
        return state
    except Exception as e:
        raise WiringStageError(stage, e) from e


def node_execute_tasks(state: WorkflowState) -> WorkflowState:
    stage = STAGE_EXECUTE_TASKS
    try:
        requested = state["descriptor"].run
        graph = state["host"].graph
        if state["config"].dry_run or not requested:
            state["execution"] = None
        else:
            assert isinstance(graph, LocalTaskGraph)
            state["execution"] = graph.execute(requested)
        state["stage"] = stage
        return state
    except Exception as e:
        raise WiringStageError(stage, e) from e


def node_emit_result(state: WorkflowState) -> WorkflowState:
    stage = STAGE_EMIT_RESULT
    try:
        cfg = state["config"]
        wiring = state["wiring"]
        execution = state.get("execution")

        if execution is not None and not execution.ok:
            ok = False
            final_stage = STAGE_EXECUTE_TASKS
        else:
            ok = True
            final_stage = STAGE_DONE_DRY_RUN if cfg.dry_run else STAGE_DONE

        state["result"] = {
            "ok": ok,
            "stage": final_stage,
            "build_payload_source": state.get("payload_src", "unknown"),
            "cli_executable": wiring.cli_executable,
            "variants": [v.as_dict() for v in wiring.variants],
            "execution": execution.as_dict() if execution is not None else None,
        }
        state["stage"] = stage
        return state
    except Exception as e:
        raise WiringStageError(stage, e) from e


def build_wiring_graph():
    g = StateGraph(WorkflowState)

    g.add_node("load_build", node_load_build)
    g.add_node("resolve_cli", node_resolve_cli)
    g.add_node("wire_variants", node_wire_variants)
    g.add_node("execute_tasks", node_execute_tasks)
    g.add_node("emit_result", node_emit_result)

    g.set_entry_point("load_build")
    g.add_edge("load_build", "resolve_cli")
    g.add_edge("resolve_cli", "wire_variants")
    g.add_edge("wire_variants", "execute_tasks")
    g.add_edge("execute_tasks", "emit_result")
    g.add_edge("emit_result", END)

    return g.compile()


def run_wiring_graph(
        *,
        payload: dict[str, Any],
        payload_src: str,
        dry_run: bool,
) -> dict[str, Any]:
    app = build_wiring_graph()
    state: WorkflowState = {
        "payload": payload,
        "payload_src": payload_src,
        "config": RuntimeConfig(dry_run=dry_run),
        "stage": STAGE_INIT,
    }
    final_state = app.invoke(state)
    return final_state["result"]
