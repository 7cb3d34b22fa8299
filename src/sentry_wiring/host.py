# sentry_wiring/host.py
# Adapter seam between the wiring core and the build system hosting it. The core only
# talks to a TaskGraph and a SourceSets; local_graph.py is the in-process implementation.
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Union, runtime_checkable

from sentry_wiring.build import BuildVariant


class EdgeKind(str, Enum):
    # from-task must finish before to-task starts
    MUST_COMPLETE_BEFORE = "must-complete-before"
    # to-task runs after from-task, whether from-task succeeded or not
    IS_FINALIZED_BY = "is-finalized-by"


@dataclass(frozen=True)
class TaskHandle:
    name: str


@dataclass(frozen=True)
class TaskSpec:
    """What gets registered with the host: a named action plus declared inputs/outputs."""

    name: str
    action: Optional[Callable[[], Any]] = None
    description: str = ""
    inputs: Dict[str, Any] = field(default_factory=dict)
    outputs: List[str] = field(default_factory=list)


TaskRef = Union[TaskHandle, str]


def task_name(ref: TaskRef) -> str:
    return ref.name if isinstance(ref, TaskHandle) else ref


@runtime_checkable
class TaskGraph(Protocol):
    def register(self, spec: TaskSpec) -> TaskHandle:
        ...

    def add_edge(self, from_task: TaskRef, to_task: TaskRef, kind: EdgeKind) -> None:
        ...

    def has_task(self, name: str) -> bool:
        ...


@runtime_checkable
class SourceSets(Protocol):
    def add_asset_dir(self, variant_name: str, path: Path) -> None:
        ...


@dataclass
class HostProject:
    """Everything the orchestrator reads from the host for one configuration pass.

    ``ambient`` is the host's extra-properties store; ``None`` when the host never
    registered one.
    """

    root_dir: Path
    project_dir: Path
    build_dir: Path
    graph: TaskGraph
    source_sets: SourceSets
    variants: Sequence[BuildVariant] = ()
    ambient: Optional[Mapping[str, Any]] = None
