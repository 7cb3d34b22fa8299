import subprocess
from pathlib import Path

import pytest

from sentry_wiring.build import BuildDescriptor, BuildVariant
from sentry_wiring.host import EdgeKind, TaskSpec
from sentry_wiring.local_graph import LocalTaskGraph, TaskOutcome, build_local_host
from sentry_wiring.plugin import apply
from sentry_wiring.settings import SentryExtension


def _graph(*names, calls=None, fail=()):
    g = LocalTaskGraph()
    for n in names:
        def action(n=n):
            if calls is not None:
                calls.append(n)
            if n in fail:
                raise RuntimeError(f"{n} broke")

        g.register(TaskSpec(name=n, action=action))
    return g


def test_dependencies_run_first_and_once():
    calls = []
    g = _graph("a", "b", "c", calls=calls)
    g.add_edge("a", "b", EdgeKind.MUST_COMPLETE_BEFORE)
    g.add_edge("a", "c", EdgeKind.MUST_COMPLETE_BEFORE)
    g.add_edge("b", "c", EdgeKind.MUST_COMPLETE_BEFORE)

    report = g.execute(["c", "b"])
    assert calls == ["a", "b", "c"]
    assert report.ok


def test_finalizer_shared_by_two_anchors_runs_once_after_both():
    calls = []
    g = _graph("assemble", "bundle", "upload", calls=calls)
    g.add_edge("assemble", "upload", EdgeKind.IS_FINALIZED_BY)
    g.add_edge("bundle", "upload", EdgeKind.IS_FINALIZED_BY)

    g.execute(["assemble", "bundle"])
    assert calls == ["assemble", "bundle", "upload"]


def test_finalizer_runs_even_if_anchor_fails():
    calls = []
    g = _graph("assemble", "upload", "later", calls=calls, fail={"assemble"})
    g.add_edge("assemble", "upload", EdgeKind.IS_FINALIZED_BY)

    report = g.execute(["assemble", "later"])
    assert calls == ["assemble", "upload"]
    assert report.outcomes == {
        "assemble": TaskOutcome.FAILED,
        "later": TaskOutcome.SKIPPED,
        "upload": TaskOutcome.SUCCESS,
    }
    assert not report.ok
    assert report.errors == {"assemble": "assemble broke"}
    assert report.executed() == ["assemble", "upload"]


def test_unreferenced_task_is_never_planned():
    g = _graph("assemble", "dormant")
    assert g.plan(["assemble"]) == ["assemble"]


def test_dependent_of_failed_task_is_skipped():
    g = _graph("upload", "merge", fail={"upload"})
    g.add_edge("upload", "merge", EdgeKind.MUST_COMPLETE_BEFORE)
    report = g.execute(["merge"])
    assert report.outcomes["merge"] is TaskOutcome.SKIPPED


def test_cycles_and_unknown_tasks_are_rejected():
    g = _graph("a", "b")
    g.add_edge("a", "b", EdgeKind.MUST_COMPLETE_BEFORE)
    g.add_edge("b", "a", EdgeKind.MUST_COMPLETE_BEFORE)
    with pytest.raises(ValueError):
        g.plan(["a"])
    with pytest.raises(KeyError):
        g.add_edge("a", "zzz", EdgeKind.MUST_COMPLETE_BEFORE)
    with pytest.raises(ValueError):
        g.register(TaskSpec(name="a"))


def test_build_local_host_defaults(tmp_path):
    d = BuildDescriptor(
        root_dir=tmp_path,
        variants=[BuildVariant(name="release")],
        ext={"sentryOrg": "acme"},
    ).finalize()
    host = build_local_host(d)

    assert host.graph.task_names() == ["mergeReleaseAssets", "assembleRelease", "bundleRelease"]
    assert host.graph.dependencies_of("assembleRelease") == ["mergeReleaseAssets"]
    assert host.graph.dependencies_of("bundleRelease") == ["mergeReleaseAssets"]
    assert host.build_dir == tmp_path / "build"
    assert host.ambient == {"sentryOrg": "acme"}


def test_symbol_upload_runs_once_when_assemble_and_bundle_both_run(tmp_path, fake_cli, monkeypatch):
    calls = []

    def fake_run(cmd, cwd=None, env=None, capture_output=False, text=False):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, "", "")

    monkeypatch.setattr("sentry_wiring.tasks.subprocess.run", fake_run)

    mapping = tmp_path / "mapping.txt"
    mapping.write_text("a -> b:\n", encoding="utf-8")
    d = BuildDescriptor(
        root_dir=tmp_path,
        variants=[BuildVariant(name="release", isMinifyEnabled=True, mappingFiles=[str(mapping)])],
    ).finalize()
    host = build_local_host(d)
    apply(host, SentryExtension(cli_executable=fake_cli, upload_native_symbols=True))

    report = host.graph.execute(["assembleRelease", "bundleRelease"])

    assert report.ok
    assert report.order == [
        "uploadSentryProguardMappingsRelease",
        "mergeReleaseAssets",
        "assembleRelease",
        "bundleRelease",
        "uploadNativeSymbolsForRelease",
    ]
    subcommands = [c[1] for c in calls]
    assert subcommands == ["upload-proguard", "upload-dif"]
    assert (Path(d.build_dir) / "generated" / "assets" / "sentryrelease" / "sentry-debug-meta.properties").is_file()
    assert host.source_sets.asset_dirs("release") == [Path(d.build_dir) / "generated" / "assets" / "sentryrelease"]


def test_finalizer_requested_before_its_anchor_still_runs_after_it():
    calls = []
    g = _graph("assemble", "upload", calls=calls)
    g.add_edge("assemble", "upload", EdgeKind.IS_FINALIZED_BY)

    report = g.execute(["upload", "assemble"])
    assert calls == ["assemble", "upload"]
    assert report.order == ["assemble", "upload"]


def test_finalizer_dependencies_are_planned_before_it():
    g = _graph("assemble", "prepare", "upload")
    g.add_edge("assemble", "upload", EdgeKind.IS_FINALIZED_BY)
    g.add_edge("prepare", "upload", EdgeKind.MUST_COMPLETE_BEFORE)

    assert g.plan(["assemble"]) == ["assemble", "prepare", "upload"]
    assert g.finalizers_of("assemble") == ["upload"]
    assert g.anchors_of("upload") == ["assemble"]


def test_cycle_error_names_the_tasks():
    g = _graph("a", "b")
    g.add_edge("a", "b", EdgeKind.MUST_COMPLETE_BEFORE)
    g.add_edge("b", "a", EdgeKind.MUST_COMPLETE_BEFORE)
    with pytest.raises(ValueError, match="cycle: (a -> b|b -> a)"):
        g.plan(["b"])
