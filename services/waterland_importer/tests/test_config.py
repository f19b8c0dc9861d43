from pathlib import Path
import sys

import pytest
from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[3]
SVC_DIR = ROOT / "services" / "waterland_importer"
if str(SVC_DIR) not in sys.path:
    sys.path.insert(0, str(SVC_DIR))

from config import Settings


def test_defaults_match_import_policy() -> None:
    cfg = Settings(WATERLAND_API_BASE_URL="http://waterland.test", DASHBOARD_INGRESS_URL="http://d.test")

    fetcher = cfg.fetcher_config()
    importer = cfg.importer_config()

    assert fetcher.timeout == 30.0
    assert importer.timeout == 30.0
    assert importer.retry_attempts == 3
    assert importer.retry_delay == 1.0
    assert importer.envelope_field == "sensorInfo"


def test_settings_read_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("WATERLAND_API_BASE_URL", "http://env.test")
    monkeypatch.setenv("WATERLAND_API_ACCESS_TOKEN", "secret")
    monkeypatch.setenv("REQUEST_TIMEOUT", "5")
    monkeypatch.setenv("OUTBOUND_PROXY_URL", "http://proxy.local:3128")
    monkeypatch.setenv("IMPORT_RETRY_ATTEMPTS", "5")

    cfg = Settings()
    fetcher = cfg.fetcher_config()
    importer = cfg.importer_config()

    assert fetcher.base_url == "http://env.test"
    assert fetcher.access_token == "secret"
    assert fetcher.timeout == 5.0
    assert fetcher.proxy == importer.proxy == "http://proxy.local:3128"
    assert importer.retry_attempts == 5


def test_empty_optional_values_are_disabled(monkeypatch) -> None:
    monkeypatch.setenv("INGRESS_ENVELOPE_FIELD", "")
    monkeypatch.setenv("OUTBOUND_PROXY_URL", "")
    monkeypatch.setenv("SENSOR_PAYLOAD_KEY", "")

    cfg = Settings()

    assert cfg.importer_config().envelope_field is None
    assert cfg.importer_config().proxy is None
    assert cfg.fetcher_config().payload_key is None


def test_unknown_source_timezone_is_rejected_at_startup() -> None:
    with pytest.raises(ValidationError):
        Settings(SOURCE_TIMEZONE="Asia/Hong_Kongg")

    assert Settings(SOURCE_TIMEZONE="utc").SOURCE_TIMEZONE == "utc"
