# sentry_wiring/gate.py
from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Optional

from sentry_wiring.build import BuildVariant
from sentry_wiring.settings import (
    SENTRY_ORG_PARAMETER,
    SENTRY_PROJECT_PARAMETER,
    SentryExtension,
    StepKind,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AmbientValue:
    key: str
    value: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.value is not None


def lookup_ambient(store: Optional[Mapping[str, Any]], key: str) -> AmbientValue:
    """
    Best-effort read from the host's extra-properties store.

    A missing store, a missing key and a None value all come back as "not found".
    """
    if store is None:
        return AmbientValue(key)
    raw = store.get(key)
    if raw is None:
        return AmbientValue(key)
    return AmbientValue(key, str(raw))


class ConfigurationGate:
    """Eligibility and identity decisions consumed by the variant wiring."""

    def __init__(self, extension: SentryExtension, ambient: Optional[Mapping[str, Any]] = None):
        self.extension = extension
        self.ambient = ambient

    def should_wire_mapping_upload(self, variant: BuildVariant) -> bool:
        # mapping files only exist for minified build types
        return variant.minify_enabled

    def should_wire_native_symbol_upload(self, variant: BuildVariant) -> bool:
        return self.extension.upload_native_symbols

    def auto_upload(self, step: StepKind) -> bool:
        return self.extension.auto_upload_for(step)

    @property
    def include_native_sources(self) -> bool:
        return self.extension.include_native_sources

    @cached_property
    def organization(self) -> AmbientValue:
        return self._identity(SENTRY_ORG_PARAMETER)

    @cached_property
    def project(self) -> AmbientValue:
        return self._identity(SENTRY_PROJECT_PARAMETER)

    def _identity(self, key: str) -> AmbientValue:
        v = lookup_ambient(self.ambient, key)
        if not v.found:
            where = "no extra properties registered" if self.ambient is None else "key not set"
            logger.info("[sentry] %s unavailable (%s); sentry-cli will resolve it itself", key, where)
        return v
