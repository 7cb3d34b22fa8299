# sentry_wiring/build.py
from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from sentry_wiring.settings import SentryExtension
from sentry_wiring.utils import capitalize_us


class BuildVariant(BaseModel):
    """
    One build flavor/type combination, as enumerated by the host.

    The core only reads variants. Task names of the host-owned anchors are derived
    from the variant name the same way the host names them.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    build_type: str | None = Field(default=None, alias="buildType")
    flavor_name: str | None = Field(default=None, alias="flavorName")
    minify_enabled: bool = Field(default=False, alias="isMinifyEnabled")
    # mapping-file producer output; may be empty when R8/ProGuard produced nothing
    mapping_files: tuple[str, ...] = Field(default=(), alias="mappingFiles")

    @property
    def build_type_name(self) -> str:
        return self.build_type or self.name

    @property
    def task_suffix(self) -> str:
        return capitalize_us(self.name)

    @property
    def merge_assets_task(self) -> str:
        return f"merge{self.task_suffix}Assets"

    @property
    def assemble_task(self) -> str:
        return f"assemble{self.task_suffix}"

    @property
    def bundle_task(self) -> str:
        return f"bundle{self.task_suffix}"


class UploadStepConfig(BaseModel):
    """
    Parameters shared by both upload steps of one variant.

    Every field is resolved without running sentry-cli. organization/project stay None
    when the ambient parameters are missing; sentry-cli then falls back to the
    properties file or its own environment.
    """

    model_config = ConfigDict(frozen=True)

    cli_executable: str
    properties_file: str | None = None
    organization: str | None = None
    project: str | None = None
    auto_upload: bool = True
    include_native_sources: bool = False
    working_dir: str


class BuildDescriptor(BaseModel):
    """
    CLI payload: the host project, its variants and what to run.

    host_tasks=None means "the standard per-variant tasks" (merge assets, assemble, bundle).
    ext=None means the ambient extra-properties store is not registered at all.
    """

    model_config = ConfigDict(populate_by_name=True)

    root_dir: Path
    project_dir: Path | None = None
    build_dir: Path | None = None
    ext: dict[str, Any] | None = None
    sentry: SentryExtension = Field(default_factory=SentryExtension)
    variants: list[BuildVariant] = Field(default_factory=list)
    host_tasks: list[str] | None = None
    run: list[str] = Field(default_factory=list)

    def finalize(self) -> "BuildDescriptor":
        """
        Contract:
        - project_dir defaults to root_dir, build_dir to <project_dir>/build.
        - Variant names are unique within one build.
        """
        if self.project_dir is None:
            self.project_dir = self.root_dir
        if self.build_dir is None:
            self.build_dir = self.project_dir / "build"

        seen: set[str] = set()
        for v in self.variants:
            if v.name in seen:
                raise ValueError(f"Duplicate variant name: {v.name!r}")
            seen.add(v.name)
        return self
