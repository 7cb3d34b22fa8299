import os
import stat
from pathlib import Path

import pytest

from sentry_wiring.build import BuildVariant
from sentry_wiring.host import HostProject, TaskHandle, TaskSpec, task_name


class FakeGraph:
    """Records registrations and edges; host tasks are pre-registered by name."""

    def __init__(self, host_tasks=()):
        self.specs = {n: TaskSpec(name=n) for n in host_tasks}
        self.host_tasks = set(host_tasks)
        self.edges = []

    def register(self, spec):
        if spec.name in self.specs:
            raise ValueError(f"Task {spec.name!r} is already registered")
        self.specs[spec.name] = spec
        return TaskHandle(spec.name)

    def add_edge(self, from_task, to_task, kind):
        self.edges.append((task_name(from_task), task_name(to_task), kind))

    def has_task(self, name):
        return name in self.specs

    def created(self):
        return sorted(n for n in self.specs if n not in self.host_tasks)


class FakeSourceSets:
    def __init__(self):
        self.assets = {}

    def add_asset_dir(self, variant_name, path):
        self.assets.setdefault(variant_name, []).append(Path(path))


def standard_host_tasks(*variants: BuildVariant, bundle: bool = True) -> list[str]:
    out = []
    for v in variants:
        out.extend([v.merge_assets_task, v.assemble_task])
        if bundle:
            out.append(v.bundle_task)
    return out


@pytest.fixture
def fake_cli(tmp_path: Path) -> str:
    p = tmp_path / "bin" / "sentry-cli"
    p.parent.mkdir(parents=True)
    p.write_text("#!/bin/sh\nexit 0\n", encoding="utf-8")
    p.chmod(p.stat().st_mode | stat.S_IXUSR)
    return str(p)


@pytest.fixture
def make_project(tmp_path: Path):
    def _make(variants, *, host_tasks=None, ambient=None, bundle=True):
        root = tmp_path / "proj"
        root.mkdir(exist_ok=True)
        if host_tasks is None:
            host_tasks = standard_host_tasks(*variants, bundle=bundle)
        return HostProject(
            root_dir=root,
            project_dir=root,
            build_dir=root / "build",
            graph=FakeGraph(host_tasks),
            source_sets=FakeSourceSets(),
            variants=list(variants),
            ambient=ambient,
        )

    return _make


@pytest.fixture
def clean_env(monkeypatch):
    for k in list(os.environ):
        if k.startswith("SENTRY_WIRING_"):
            monkeypatch.delenv(k, raising=False)
    return monkeypatch
