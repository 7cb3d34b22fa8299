# src/sentry_wiring/cli.py
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from . import __version__
from . import main as main_module
from .logging_utils import configure_logging

BUILD_JSON_ENV = "SENTRY_WIRING_BUILD_JSON"
STAGE_PARSE_BUILD = "parse_build"


def _unquote(v: str) -> str:
    if len(v) >= 2 and v[0] == v[-1] and v[0] in ("'", '"'):
        return v[1:-1]
    return v


def _parse_dotenv_line(line: str) -> tuple[str, str] | None:
    """
    KEY=VALUE lines, optionally prefixed with `export `.
    Full-line comments and blank lines are ignored; unquoted values lose trailing
    ` #...` comments. No variable expansion.
    """
    s = line.strip()
    if not s or s.startswith("#"):
        return None
    if s.startswith("export "):
        s = s[len("export "):].lstrip()

    key, sep, value = s.partition("=")
    key = key.strip()
    if not sep or not key:
        return None

    value = value.strip()
    if value[:1] in ("'", '"'):
        return key, _unquote(value)
    if " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return key, value


def _load_dotenv_file(path: str, *, override: bool = False) -> bool:
    """Copies KEY=VALUE pairs from `path` into os.environ. False if the file is missing."""
    p = Path(path)
    if not p.is_file():
        return False

    for raw_line in p.read_text(encoding="utf-8").splitlines():
        parsed = _parse_dotenv_line(raw_line)
        if parsed is None:
            continue
        k, v = parsed
        if override or k not in os.environ:
            os.environ[k] = v
    return True


def _read_build_payload_required(payload_src_hint: str | None) -> tuple[dict[str, Any], str]:
    """
    The build descriptor is a JSON object in SENTRY_WIRING_BUILD_JSON (possibly set
    from --dotenv). Returns (payload_dict, payload_src_string).
    """
    raw = os.environ.get(BUILD_JSON_ENV)
    if not raw or not raw.strip():
        raise RuntimeError(f"Missing required build payload: set {BUILD_JSON_ENV} to a JSON object string.")

    payload = json.loads(raw)
    if not isinstance(payload, dict):
        raise TypeError(f"{BUILD_JSON_ENV} must decode to a JSON object (dict).")

    return payload, payload_src_hint or f"env:{BUILD_JSON_ENV}"


def _print_result(obj: dict[str, Any]) -> None:
    print(json.dumps(obj, separators=(",", ":")), file=sys.stdout)


def _print_failure(stage: str, err: Exception) -> None:
    _print_result(
        {
            "ok": False,
            "stage": stage,
            "error_code": f"SENTRY_WIRING_FAILED_{stage.upper()}",
            "error_message": str(err),
        }
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="sentry-wiring",
        description="Wire Sentry mapping / native symbol uploads into a build task graph",
    )
    parser.add_argument(
        "--dotenv",
        nargs="?",
        const=".env",
        default=None,
        metavar="PATH",
        help="Optional: load env vars from a local .env file (default: ./.env).",
    )
    parser.add_argument(
        "--dotenv-override",
        action="store_true",
        help="Optional: allow .env values to override already-set environment variables.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Wire and report, but do not execute any task.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for stderr diagnostics (default: WARNING).",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"sentry-wiring {__version__}",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(getattr(logging, args.log_level))

    payload_src_hint: str | None = None
    had_payload_before = bool(os.environ.get(BUILD_JSON_ENV, "").strip())

    if args.dotenv:
        loaded = _load_dotenv_file(str(args.dotenv), override=bool(args.dotenv_override))
        if loaded and not had_payload_before and os.environ.get(BUILD_JSON_ENV, "").strip():
            payload_src_hint = f"dotenv:{args.dotenv}#{BUILD_JSON_ENV}"

    try:
        payload, payload_src = _read_build_payload_required(payload_src_hint)
        result = main_module.run(
            build_payload=payload,
            dry_run=bool(args.dry_run),
            payload_src=payload_src,
        )
        _print_result(result)
        return 0 if result.get("ok") else 1

    except Exception as e:  # noqa: BLE001 - top-level CLI error handler
        from sentry_wiring.workflow import WiringStageError

        if isinstance(e, WiringStageError):
            _print_failure(e.stage, e)
            return 1

        if isinstance(e, (json.JSONDecodeError, RuntimeError, TypeError)):
            _print_failure(STAGE_PARSE_BUILD, e)
            return 1

        _print_failure("unknown", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
