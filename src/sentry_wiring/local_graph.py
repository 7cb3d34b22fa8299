# sentry_wiring/local_graph.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Set

import networkx as nx

from sentry_wiring.build import BuildDescriptor
from sentry_wiring.host import EdgeKind, HostProject, TaskHandle, TaskRef, TaskSpec, task_name

logger = logging.getLogger(__name__)


class TaskOutcome(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ExecutionReport:
    order: List[str] = field(default_factory=list)
    outcomes: Dict[str, TaskOutcome] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def executed(self) -> List[str]:
        return [n for n in self.order if self.outcomes.get(n) in (TaskOutcome.SUCCESS, TaskOutcome.FAILED)]

    def as_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "order": list(self.order),
            "outcomes": {k: v.value for k, v in self.outcomes.items()},
            "errors": dict(self.errors),
        }


class LocalTaskGraph:
    """
    Implements :class:`sentry_wiring.host.TaskGraph` in memory, on top of a networkx
    DiGraph. Every edge points from the task that runs first to the task that runs
    after it and carries the set of EdgeKinds that put it there.

    Execution follows the usual build-tool conventions:

    - a requested task pulls in its dependencies;
    - finalizers of planned tasks run after their anchor, even when the anchor failed,
      and at most once however many anchors they hang off;
    - after the first failure no further regular task starts, finalizers still run;
    - a task whose dependency did not succeed is skipped.
    """

    def __init__(self) -> None:
        self._graph = nx.DiGraph()

    # -- registration -----------------------------------------------------

    def register(self, spec: TaskSpec) -> TaskHandle:
        if spec.name in self._graph:
            raise ValueError(f"Task {spec.name!r} is already registered")
        self._graph.add_node(spec.name, spec=spec, index=self._graph.number_of_nodes())
        return TaskHandle(spec.name)

    def add_edge(self, from_task: TaskRef, to_task: TaskRef, kind: EdgeKind) -> None:
        if not isinstance(kind, EdgeKind):  # pragma: no cover
            raise ValueError(f"Unknown edge kind: {kind!r}")
        src = self._require(task_name(from_task))
        dst = self._require(task_name(to_task))
        data = self._graph.get_edge_data(src, dst)
        if data is None:
            self._graph.add_edge(src, dst, kinds={kind})
        else:
            data["kinds"].add(kind)

    def has_task(self, name: str) -> bool:
        return name in self._graph

    def task_names(self) -> List[str]:
        return list(self._graph.nodes)

    def dependencies_of(self, name: str) -> List[str]:
        return self._linked(self._graph.pred[self._require(name)], EdgeKind.MUST_COMPLETE_BEFORE)

    def finalizers_of(self, name: str) -> List[str]:
        return self._linked(self._graph.succ[self._require(name)], EdgeKind.IS_FINALIZED_BY)

    def anchors_of(self, name: str) -> List[str]:
        return self._linked(self._graph.pred[self._require(name)], EdgeKind.IS_FINALIZED_BY)

    @staticmethod
    def _linked(adjacency: Dict[str, Dict[str, Any]], kind: EdgeKind) -> List[str]:
        return [n for n, data in adjacency.items() if kind in data["kinds"]]

    def _require(self, name: str) -> str:
        if name not in self._graph:
            raise KeyError(f"Task {name!r} not found")
        return name

    # -- planning / execution ---------------------------------------------

    def _dependency_view(self) -> nx.DiGraph:
        return nx.subgraph_view(
            self._graph,
            filter_edge=lambda u, v: EdgeKind.MUST_COMPLETE_BEFORE in self._graph[u][v]["kinds"],
        )

    def plan(self, requested: Iterable[str]) -> List[str]:
        deps = self._dependency_view()

        planned: Set[str] = set()
        pending = [self._require(n) for n in requested]
        while pending:
            name = pending.pop()
            if name in planned:
                continue
            closure = {name} | nx.ancestors(deps, name)
            planned |= closure
            for member in closure:
                pending.extend(self.finalizers_of(member))

        finalizers = {n for n in planned if any(a in planned for a in self.anchors_of(n))}
        ordering = self._graph.subgraph(planned)
        index = nx.get_node_attributes(self._graph, "index")

        # Among runnable tasks: regular work first, then finalizers, each in registration order.
        try:
            return list(nx.lexicographical_topological_sort(ordering, key=lambda n: (n in finalizers, index[n])))
        except nx.NetworkXUnfeasible:
            try:
                cycle = nx.find_cycle(ordering)
                cycle_str = " -> ".join(f"{edge[0]}" for edge in cycle)
                raise ValueError(f"Task graph contains a cycle: {cycle_str}") from None
            except nx.NetworkXNoCycle:
                raise ValueError("Task graph contains a cycle") from None

    def execute(self, requested: Iterable[str]) -> ExecutionReport:
        report = ExecutionReport(order=self.plan(requested))

        ran = (TaskOutcome.SUCCESS, TaskOutcome.FAILED)
        halted = False
        for name in report.order:
            finalizing = any(report.outcomes.get(a) in ran for a in self.anchors_of(name))
            deps_ok = all(report.outcomes.get(d) is TaskOutcome.SUCCESS for d in self.dependencies_of(name))
            if (halted and not finalizing) or not deps_ok:
                report.outcomes[name] = TaskOutcome.SKIPPED
                continue

            spec: TaskSpec = self._graph.nodes[name]["spec"]
            try:
                if spec.action is not None:
                    spec.action()
                report.outcomes[name] = TaskOutcome.SUCCESS
            except Exception as e:  # noqa: BLE001 - scheduler records and reports task failures
                logger.error("Task %s failed: %s", name, e)
                report.outcomes[name] = TaskOutcome.FAILED
                report.errors[name] = str(e)
                halted = True
        return report


class LocalSourceSets:
    """Implements :class:`sentry_wiring.host.SourceSets`; keeps additions in order."""

    def __init__(self) -> None:
        self._assets: Dict[str, List[Path]] = {}

    def add_asset_dir(self, variant_name: str, path: Path) -> None:
        self._assets.setdefault(variant_name, []).append(Path(path))

    def asset_dirs(self, variant_name: str) -> List[Path]:
        return list(self._assets.get(variant_name, []))


def build_local_host(descriptor: BuildDescriptor) -> HostProject:
    """
    Build a HostProject from a finalized descriptor.

    Host tasks are no-ops. Unless host_tasks lists them explicitly, every variant gets
    merge<V>Assets, assemble<V> and bundle<V>; assemble/bundle depend on merge assets
    whenever both are registered.
    """
    graph = LocalTaskGraph()

    if descriptor.host_tasks is None:
        names: List[str] = []
        for v in descriptor.variants:
            names.extend([v.merge_assets_task, v.assemble_task, v.bundle_task])
    else:
        names = list(descriptor.host_tasks)

    for name in names:
        if not graph.has_task(name):
            graph.register(TaskSpec(name=name, description="host task"))

    for v in descriptor.variants:
        if not graph.has_task(v.merge_assets_task):
            continue
        for consumer in (v.assemble_task, v.bundle_task):
            if graph.has_task(consumer):
                graph.add_edge(v.merge_assets_task, consumer, EdgeKind.MUST_COMPLETE_BEFORE)

    assert descriptor.project_dir is not None and descriptor.build_dir is not None
    return HostProject(
        root_dir=descriptor.root_dir,
        project_dir=descriptor.project_dir,
        build_dir=descriptor.build_dir,
        graph=graph,
        source_sets=LocalSourceSets(),
        variants=list(descriptor.variants),
        ambient=descriptor.ext,
    )
