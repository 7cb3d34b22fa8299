# sentry_wiring/wiring.py
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from sentry_wiring.build import BuildVariant, UploadStepConfig
from sentry_wiring.gate import ConfigurationGate
from sentry_wiring.host import EdgeKind, HostProject, TaskGraph, TaskHandle, TaskRef, TaskSpec, task_name
from sentry_wiring.paths import assets_directory, native_libs_directory, properties_file_path
from sentry_wiring.settings import StepKind
from sentry_wiring.tasks import (
    MappingUploadTask,
    NativeSymbolsUploadTask,
    deferred_failure_task,
    mapping_task_name,
    native_symbols_task_name,
)

logger = logging.getLogger(__name__)


class WiringState(str, Enum):
    NOT_CONSIDERED = "not_considered"
    # mapping: node registered but dormant (no edges); native symbols: no node at all
    INELIGIBLE = "ineligible"
    WIRED = "wired"


@dataclass(frozen=True)
class Anchor:
    """A host-owned task an upload step can hang off, if the host registered it."""

    name: str
    exists: Callable[[TaskGraph], bool]


def present(name: str) -> Anchor:
    return Anchor(name, lambda graph: graph.has_task(name))


def native_symbol_anchors(variant: BuildVariant) -> list[Anchor]:
    # App bundles may be built without ever running assemble, so both are hooked.
    return [present(variant.assemble_task), present(variant.bundle_task)]


@dataclass
class VariantWiring:
    variant: str
    mapping: WiringState = WiringState.NOT_CONSIDERED
    native_symbols: WiringState = WiringState.NOT_CONSIDERED
    tasks: list[str] = field(default_factory=list)
    edges: list[tuple[str, str, str]] = field(default_factory=list)
    asset_dirs: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["mapping"] = self.mapping.value
        d["native_symbols"] = self.native_symbols.value
        d["edges"] = [list(e) for e in self.edges]
        return d


def step_config(
        project: HostProject,
        variant: BuildVariant,
        gate: ConfigurationGate,
        cli_executable: str,
        step: StepKind,
) -> UploadStepConfig:
    return UploadStepConfig(
        cli_executable=cli_executable,
        properties_file=properties_file_path(project.project_dir, project.root_dir, variant),
        organization=gate.organization.value,
        project=gate.project.value,
        auto_upload=gate.auto_upload(step),
        include_native_sources=gate.include_native_sources,
        working_dir=str(project.root_dir),
    )


def _add_edge(
        graph: TaskGraph,
        from_task: TaskRef,
        to_task: TaskRef,
        kind: EdgeKind,
        report: VariantWiring,
) -> None:
    graph.add_edge(from_task, to_task, kind)
    report.edges.append((task_name(from_task), task_name(to_task), kind.value))


def _build_specs(
        project: HostProject,
        variant: BuildVariant,
        gate: ConfigurationGate,
        cli_executable: str,
        wire_native: bool,
) -> tuple[TaskSpec, Optional[TaskSpec]]:
    mapping = MappingUploadTask(
        name=mapping_task_name(variant),
        variant_name=variant.name,
        mapping_files=variant.mapping_files,
        output_directory=assets_directory(project.build_dir, variant.name),
        config=step_config(project, variant, gate, cli_executable, "mapping"),
    )
    if not wire_native:
        return mapping.to_task_spec(), None

    native = NativeSymbolsUploadTask(
        name=native_symbols_task_name(variant),
        variant_name=variant.name,
        native_libs_directory=native_libs_directory(project.build_dir, variant.name),
        config=step_config(project, variant, gate, cli_executable, "native_symbols"),
    )
    return mapping.to_task_spec(), native.to_task_spec()


def wire_variant(
        project: HostProject,
        variant: BuildVariant,
        gate: ConfigurationGate,
        cli_executable: str,
        report: Optional[VariantWiring] = None,
) -> VariantWiring:
    """
    Register the upload steps of one variant and hook them into the host graph.

    - The mapping upload is always registered; it only gets edges (and contributes its
      output directory to the variant's assets) when the variant is minified.
    - The native symbol upload exists only when opted in, and finalizes every present
      anchor (assemble, bundle). Running it once per invocation is the host's job.

    If resolving a step's configuration fails, placeholders that raise
    VariantWiringError are registered under the same names and edges, so the failure
    surfaces only if the host actually schedules them.

    Entries land on `report` as the graph is mutated, so a caller passing its own
    report still sees what was wired if this raises halfway.
    """
    graph = project.graph
    if report is None:
        report = VariantWiring(variant=variant.name)

    wire_mapping = gate.should_wire_mapping_upload(variant)
    wire_native = gate.should_wire_native_symbol_upload(variant)

    try:
        mapping_spec, native_spec = _build_specs(project, variant, gate, cli_executable, wire_native)
    except Exception as e:
        logger.warning("[sentry] variant %s: upload configuration failed: %s", variant.name, e)
        report.error = str(e)
        mapping_spec = deferred_failure_task(mapping_task_name(variant), variant.name, e)
        native_spec = (
            deferred_failure_task(native_symbols_task_name(variant), variant.name, e) if wire_native else None
        )

    mapping: TaskHandle = graph.register(mapping_spec)
    report.tasks.append(mapping.name)

    if wire_mapping:
        assets_dir = assets_directory(project.build_dir, variant.name)
        project.source_sets.add_asset_dir(variant.name, assets_dir)
        report.asset_dirs.append(str(assets_dir))

        merge = present(variant.merge_assets_task)
        if merge.exists(graph):
            _add_edge(graph, mapping, merge.name, EdgeKind.MUST_COMPLETE_BEFORE, report)
        else:
            logger.info("[sentry] %s not registered; %s is not ordered before it", merge.name, mapping.name)
        report.mapping = WiringState.WIRED
    else:
        report.mapping = WiringState.INELIGIBLE

    if wire_native and native_spec is not None:
        native = graph.register(native_spec)
        report.tasks.append(native.name)
        for anchor in native_symbol_anchors(variant):
            if anchor.exists(graph):
                _add_edge(graph, anchor.name, native, EdgeKind.IS_FINALIZED_BY, report)
            else:
                logger.debug("[sentry] %s not registered for variant %s", anchor.name, variant.name)
        report.native_symbols = WiringState.WIRED
    else:
        logger.info(
            "[sentry] %s won't be executed: native symbol upload is disabled",
            native_symbols_task_name(variant),
        )
        report.native_symbols = WiringState.INELIGIBLE

    return report


def wire_variants(project: HostProject, gate: ConfigurationGate, cli_executable: str) -> list[VariantWiring]:
    # Variants are independent; one variant blowing up never stops the others.
    out: list[VariantWiring] = []
    for variant in project.variants:
        report = VariantWiring(variant=variant.name)
        out.append(report)
        try:
            wire_variant(project, variant, gate, cli_executable, report)
        except Exception as e:
            logger.warning("[sentry] variant %s could not be wired: %s", variant.name, e)
            report.error = str(e) if report.error is None else f"{report.error}; {e}"
    return out
