# sentry_wiring/utils.py
from __future__ import annotations

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def capitalize_us(name: str) -> str:
    # "release" -> "Release", "freeDebug" -> "FreeDebug"
    return name[:1].upper() + name[1:]


def parse_bool(raw: str, *, name: str) -> bool:
    v = (raw or "").strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean (1/0, true/false, yes/no, on/off), got {raw!r}")

