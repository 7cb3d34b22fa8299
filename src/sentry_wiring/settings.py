# sentry_wiring/settings.py
from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel

from sentry_wiring.utils import parse_bool

SENTRY_ORG_PARAMETER = "sentryOrg"
SENTRY_PROJECT_PARAMETER = "sentryProject"

ENV_AUTO_UPLOAD = "SENTRY_WIRING_AUTO_UPLOAD"
ENV_UPLOAD_NATIVE_SYMBOLS = "SENTRY_WIRING_UPLOAD_NATIVE_SYMBOLS"
ENV_INCLUDE_NATIVE_SOURCES = "SENTRY_WIRING_INCLUDE_NATIVE_SOURCES"
ENV_CLI_EXECUTABLE = "SENTRY_WIRING_CLI_EXECUTABLE"

StepKind = Literal["mapping", "native_symbols"]


class SentryExtension(BaseModel):
    """
    Build-wide plugin settings (the `sentry { ... }` block of the host build).

    Per-step auto_upload overrides default to None, which inherits auto_upload.
    """

    auto_upload: bool = True
    upload_native_symbols: bool = False
    include_native_sources: bool = False
    cli_executable: str | None = None

    mapping_auto_upload: bool | None = None
    native_symbols_auto_upload: bool | None = None

    def auto_upload_for(self, step: StepKind) -> bool:
        override = self.mapping_auto_upload if step == "mapping" else self.native_symbols_auto_upload
        return self.auto_upload if override is None else override

    def with_env_overrides(self, environ: Mapping[str, str] | None = None) -> "SentryExtension":
        """
        Env wins over payload values. Blank env values are ignored so an exported-but-empty
        variable doesn't flip a flag.
        """
        env = os.environ if environ is None else environ
        updates: dict[str, object] = {}

        for env_name, field in (
            (ENV_AUTO_UPLOAD, "auto_upload"),
            (ENV_UPLOAD_NATIVE_SYMBOLS, "upload_native_symbols"),
            (ENV_INCLUDE_NATIVE_SOURCES, "include_native_sources"),
        ):
            raw = env.get(env_name, "").strip()
            if raw:
                updates[field] = parse_bool(raw, name=env_name)

        cli = env.get(ENV_CLI_EXECUTABLE, "").strip()
        if cli:
            updates["cli_executable"] = cli

        if not updates:
            return self
        return self.model_copy(update=updates)
