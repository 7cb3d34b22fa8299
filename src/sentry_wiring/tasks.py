# sentry_wiring/tasks.py
from __future__ import annotations

import logging
import os
import subprocess
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from sentry_wiring.build import BuildVariant, UploadStepConfig
from sentry_wiring.host import TaskSpec

logger = logging.getLogger(__name__)

DEBUG_META_FILENAME = "sentry-debug-meta.properties"
PROGUARD_UUIDS_KEY = "io.sentry.ProguardUuids"


class UploadCommandError(RuntimeError):
    def __init__(self, cmd: list[str], returncode: int, stdout: str, stderr: str):
        super().__init__(
            f"Command failed ({returncode}): {' '.join(cmd)}\nSTDOUT:\n{stdout}\nSTDERR:\n{stderr}"
        )
        self.cmd = cmd
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class VariantWiringError(RuntimeError):
    def __init__(self, variant: str, inner: Exception):
        super().__init__(f"[sentry] variant {variant!r} could not be configured: {inner}")
        self.variant = variant
        self.inner = inner


def mapping_task_name(variant: BuildVariant) -> str:
    return f"uploadSentryProguardMappings{variant.task_suffix}"


def native_symbols_task_name(variant: BuildVariant) -> str:
    return f"uploadNativeSymbolsFor{variant.task_suffix}"


def run_cli(cmd: list[str], config: UploadStepConfig) -> str:
    """
    Run sentry-cli from the project root.

    stdout/stderr are relayed unchanged; a non-zero exit raises UploadCommandError
    with the exit code and both streams. No retries.
    """
    env = os.environ.copy()
    if config.properties_file:
        env["SENTRY_PROPERTIES"] = config.properties_file

    logger.debug("[sentry] running %s (cwd=%s)", " ".join(cmd), config.working_dir)
    p = subprocess.run(cmd, cwd=config.working_dir, env=env, capture_output=True, text=True)
    if p.stdout:
        logger.info("%s", p.stdout.rstrip())
    if p.stderr:
        logger.info("%s", p.stderr.rstrip())
    if p.returncode != 0:
        raise UploadCommandError(cmd, p.returncode, p.stdout, p.stderr)
    return p.stdout


def _base_args(config: UploadStepConfig, subcommand: str) -> list[str]:
    args = [config.cli_executable]
    if logger.isEnabledFor(logging.DEBUG):
        args.append("--log-level=debug")
    args.append(subcommand)
    return args


def _identity_args(config: UploadStepConfig) -> list[str]:
    args: list[str] = []
    if config.organization:
        args.extend(["--org", config.organization])
    if config.project:
        args.extend(["--project", config.project])
    return args


@dataclass(frozen=True)
class MappingUploadTask:
    """Uploads the ProGuard/R8 mapping and writes its UUID into the generated assets."""

    name: str
    variant_name: str
    mapping_files: tuple[str, ...]
    output_directory: Path
    config: UploadStepConfig

    def mapping_file(self) -> Optional[Path]:
        for f in self.mapping_files:
            p = Path(f)
            if p.is_file():
                return p
        return None

    def command(self, mapping_file: Path, mapping_uuid: str) -> list[str]:
        args = _base_args(self.config, "upload-proguard")
        args.extend(["--uuid", mapping_uuid, str(mapping_file)])
        if not self.config.auto_upload:
            args.append("--no-upload")
        args.extend(_identity_args(self.config))
        return args

    def write_debug_meta(self, mapping_uuid: str) -> Path:
        self.output_directory.mkdir(parents=True, exist_ok=True)
        meta = self.output_directory / DEBUG_META_FILENAME
        meta.write_text(f"{PROGUARD_UUIDS_KEY}={mapping_uuid}\n", encoding="utf-8")
        return meta

    def run(self) -> Optional[str]:
        mapping = self.mapping_file()
        if mapping is None:
            logger.info("[sentry] %s: no mapping file for variant %s, nothing to upload", self.name, self.variant_name)
            return None

        mapping_uuid = str(uuid.uuid4())
        self.write_debug_meta(mapping_uuid)
        run_cli(self.command(mapping, mapping_uuid), self.config)
        return mapping_uuid

    def to_task_spec(self) -> TaskSpec:
        return TaskSpec(
            name=self.name,
            action=self.run,
            description=f"Uploads the mapping file of variant {self.variant_name} to Sentry",
            inputs={
                "mapping_files": list(self.mapping_files),
                "cli_executable": self.config.cli_executable,
                "properties_file": self.config.properties_file,
                "auto_upload": self.config.auto_upload,
                "organization": self.config.organization,
                "project": self.config.project,
            },
            outputs=[str(self.output_directory)],
        )


@dataclass(frozen=True)
class NativeSymbolsUploadTask:
    """Uploads the merged native libraries' debug information. Declares no outputs."""

    name: str
    variant_name: str
    native_libs_directory: Path
    config: UploadStepConfig

    def command(self) -> list[str]:
        args = _base_args(self.config, "upload-dif")
        args.extend(_identity_args(self.config))
        if not self.config.auto_upload:
            args.append("--no-upload")
        if self.config.include_native_sources:
            args.append("--include-sources")
        args.append(str(self.native_libs_directory))
        return args

    def run(self) -> str:
        return run_cli(self.command(), self.config)

    def to_task_spec(self) -> TaskSpec:
        return TaskSpec(
            name=self.name,
            action=self.run,
            description=f"Uploads native symbols of variant {self.variant_name} to Sentry",
            inputs={
                "variant_name": self.variant_name,
                "include_native_sources": self.config.include_native_sources,
                "cli_executable": self.config.cli_executable,
                "properties_file": self.config.properties_file,
                "auto_upload": self.config.auto_upload,
                "organization": self.config.organization,
                "project": self.config.project,
            },
        )


def deferred_failure_task(name: str, variant_name: str, error: Exception) -> TaskSpec:
    # Registered in place of a step whose configuration failed; fails only if scheduled.
    def _fail() -> None:
        raise VariantWiringError(variant_name, error) from error

    return TaskSpec(
        name=name,
        action=_fail,
        description=f"Placeholder for {name}: configuration failed ({error})",
        inputs={"variant_name": variant_name},
    )
