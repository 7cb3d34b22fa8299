# sentry_wiring/plugin.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from sentry_wiring.gate import ConfigurationGate
from sentry_wiring.host import HostProject
from sentry_wiring.paths import resolve_cli_executable
from sentry_wiring.settings import SentryExtension
from sentry_wiring.wiring import VariantWiring, wire_variants


@dataclass
class WiringReport:
    cli_executable: str
    variants: list[VariantWiring] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "cli_executable": self.cli_executable,
            "variants": [v.as_dict() for v in self.variants],
        }


def apply(
        project: HostProject,
        extension: SentryExtension,
        *,
        cli_executable: Optional[str] = None,
) -> WiringReport:
    """
    Configuration-phase entrypoint.

    sentry-cli is located once, before any variant is touched (callers that already
    resolved it pass cli_executable); if it can't be found CliNotFoundError propagates
    and nothing is wired.
    """
    if cli_executable is None:
        cli_executable = resolve_cli_executable(extension.cli_executable)
    gate = ConfigurationGate(extension, project.ambient)
    return WiringReport(
        cli_executable=cli_executable,
        variants=wire_variants(project, gate, cli_executable),
    )
