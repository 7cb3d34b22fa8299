import logging

import pytest

from sentry_wiring.build import BuildVariant
from sentry_wiring.gate import ConfigurationGate, lookup_ambient
from sentry_wiring.settings import SentryExtension


def test_lookup_tolerates_missing_store_and_key():
    assert lookup_ambient(None, "sentryOrg").found is False
    assert lookup_ambient({}, "sentryOrg").value is None
    assert lookup_ambient({"sentryOrg": None}, "sentryOrg").found is False


def test_lookup_stringifies_values():
    v = lookup_ambient({"sentryProject": 42}, "sentryProject")
    assert v.found is True
    assert v.value == "42"


def test_mapping_upload_eligibility_follows_minify():
    gate = ConfigurationGate(SentryExtension())
    assert gate.should_wire_mapping_upload(BuildVariant(name="release", isMinifyEnabled=True)) is True
    assert gate.should_wire_mapping_upload(BuildVariant(name="debug")) is False


def test_native_symbol_upload_is_opt_in():
    v = BuildVariant(name="release")
    assert ConfigurationGate(SentryExtension()).should_wire_native_symbol_upload(v) is False
    assert ConfigurationGate(SentryExtension(upload_native_symbols=True)).should_wire_native_symbol_upload(v) is True


def test_auto_upload_per_step_override():
    gate = ConfigurationGate(SentryExtension(auto_upload=True, native_symbols_auto_upload=False))
    assert gate.auto_upload("mapping") is True
    assert gate.auto_upload("native_symbols") is False


def test_identity_from_ambient_store():
    gate = ConfigurationGate(SentryExtension(), {"sentryOrg": "acme", "sentryProject": "android"})
    assert gate.organization.value == "acme"
    assert gate.project.value == "android"


def test_missing_identity_is_unset_and_logged_once(caplog):
    caplog.set_level(logging.INFO, logger="sentry_wiring.gate")
    gate = ConfigurationGate(SentryExtension(), None)

    for _ in range(3):
        assert gate.organization.found is False
        assert gate.project.value is None

    msgs = [r.message for r in caplog.records if "unavailable" in r.message]
    assert len(msgs) == 2
    assert all(r.levelno == logging.INFO for r in caplog.records)


def test_env_overrides_win_over_payload(clean_env):
    clean_env.setenv("SENTRY_WIRING_UPLOAD_NATIVE_SYMBOLS", "yes")
    clean_env.setenv("SENTRY_WIRING_AUTO_UPLOAD", "0")
    clean_env.setenv("SENTRY_WIRING_CLI_EXECUTABLE", "/opt/sentry-cli")

    ext = SentryExtension(upload_native_symbols=False, auto_upload=True).with_env_overrides()
    assert ext.upload_native_symbols is True
    assert ext.auto_upload is False
    assert ext.cli_executable == "/opt/sentry-cli"
    assert ext.include_native_sources is False


def test_env_override_rejects_garbage():
    with pytest.raises(ValueError):
        SentryExtension().with_env_overrides({"SENTRY_WIRING_AUTO_UPLOAD": "maybe"})


def test_blank_env_values_are_ignored():
    ext = SentryExtension(auto_upload=False)
    assert ext.with_env_overrides({"SENTRY_WIRING_AUTO_UPLOAD": "  "}) is ext
