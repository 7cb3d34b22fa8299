# sentry_wiring/paths.py
from __future__ import annotations

import logging
import platform
import shutil
from pathlib import Path
from typing import Callable, Optional

from sentry_wiring.build import BuildVariant

logger = logging.getLogger(__name__)

SENTRY_CLI_NAME = "sentry-cli"
SENTRY_PROPERTIES_NAME = "sentry.properties"

BUNDLED_BIN_DIR = Path(__file__).resolve().parent / "bin"


class CliNotFoundError(RuntimeError):
    def __init__(self, tried: list[str]):
        super().__init__(f"Could not locate {SENTRY_CLI_NAME}. Tried: {', '.join(tried) or '(nothing)'}")
        self.tried = tried


def bundled_cli_name(system: str | None = None, machine: str | None = None) -> str:
    # Matches the sentry-cli release asset names, e.g. "sentry-cli-Linux-x86_64".
    system = system or platform.system()
    machine = machine or platform.machine()
    if system == "Darwin":
        return f"{SENTRY_CLI_NAME}-Darwin-universal"
    if system == "Windows":
        return f"{SENTRY_CLI_NAME}-Windows-{machine or 'x86_64'}.exe"
    return f"{SENTRY_CLI_NAME}-{system}-{machine}"


def resolve_cli_executable(
        override: Optional[str] = None,
        *,
        bundled_dir: Path | None = None,
        which: Optional[Callable[[str], Optional[str]]] = None,
) -> str:
    """
    Locate sentry-cli once per build.

    Search order:
      1) explicit override (extension setting / env)
      2) binary bundled with this package (<package>/bin/sentry-cli-<System>-<machine>)
      3) `sentry-cli` on PATH

    A configured override that doesn't exist is reported and skipped. Raises
    CliNotFoundError only when no candidate exists at all.
    """
    tried: list[str] = []

    if override:
        candidate = Path(override).expanduser()
        tried.append(str(candidate))
        if candidate.is_file():
            return str(candidate)
        logger.warning("[sentry] cli executable override %s does not exist, falling back", candidate)

    bundled = (bundled_dir or BUNDLED_BIN_DIR) / bundled_cli_name()
    tried.append(str(bundled))
    if bundled.is_file():
        return str(bundled)

    tried.append(f"PATH:{SENTRY_CLI_NAME}")
    found = (which or shutil.which)(SENTRY_CLI_NAME)
    if found:
        return found

    raise CliNotFoundError(tried)


def properties_file_candidates(project_dir: Path, root_dir: Path, variant: BuildVariant) -> list[Path]:
    """
    Lookup order, most specific first:
      src/<variant>/, src/<buildType>/<flavor>/, src/<flavor>/<buildType>/,
      src/<flavor>/, src/<buildType>/, <project_dir>/, <root_dir>/
    """
    src = project_dir / "src"
    build_type = variant.build_type_name
    flavor = variant.flavor_name

    dirs: list[Path] = [src / variant.name]
    if flavor:
        dirs.append(src / build_type / flavor)
        dirs.append(src / flavor / build_type)
        dirs.append(src / flavor)
    dirs.append(src / build_type)
    dirs.append(project_dir)
    dirs.append(root_dir)

    out: list[Path] = []
    for d in dirs:
        p = d / SENTRY_PROPERTIES_NAME
        if p not in out:
            out.append(p)
    return out


def properties_file_path(project_dir: Path, root_dir: Path, variant: BuildVariant) -> Optional[str]:
    # Path only; the file is read by sentry-cli through SENTRY_PROPERTIES.
    for p in properties_file_candidates(project_dir, root_dir, variant):
        if p.is_file():
            return str(p)
    return None


def assets_directory(build_dir: Path, variant_name: str) -> Path:
    return build_dir / "generated" / "assets" / f"sentry{variant_name}"


def native_libs_directory(build_dir: Path, variant_name: str) -> Path:
    return build_dir / "intermediates" / "merged_native_libs" / variant_name
