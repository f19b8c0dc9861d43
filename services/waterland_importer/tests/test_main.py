from pathlib import Path
import asyncio
import json
import sys

import httpx

ROOT = Path(__file__).resolve().parents[3]
SVC_DIR = ROOT / "services" / "waterland_importer"
if str(SVC_DIR) not in sys.path:
    sys.path.insert(0, str(SVC_DIR))

from config import Settings
from main import run_import_cycle


def make_settings(**overrides) -> Settings:
    values = dict(
        WATERLAND_API_BASE_URL="http://waterland.test",
        WATERLAND_API_ACCESS_TOKEN="tok",
        DASHBOARD_INGRESS_URL="http://dashboard.test/ingress",
        DASHBOARD_INGRESS_USERNAME="user",
        DASHBOARD_INGRESS_PASSWORD="pass",
        INGRESS_ENVELOPE_FIELD="sensorInfo",
        SOURCE_TIMEZONE="UTC",
        IMPORT_RETRY_DELAY=0.0,
    )
    values.update(overrides)
    return Settings(**values)


SITES = {
    "sites": [
        {
            "site_name": "RK005 (Lin Shing Road 2)",
            "position_latitude": "22.3364",
            "position_longitude": "114.1503",
            "project_site_id": "PS-005",
        },
        {
            "site_name": "RK006",
            "position_latitude": "",
            "position_longitude": "",
            "project_site_id": "PS-006",
        },
    ]
}


def test_full_cycle_imports_valid_records() -> None:
    posted = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            posted.append(json.loads(request.content))
            return httpx.Response(200, json={"status": "ok"})
        if request.url.path == "/api/tok":
            return httpx.Response(200, json=SITES)
        if "RK005" in request.url.path:
            return httpx.Response(
                200,
                json={
                    "device_name": "RK005",
                    "timestamp": "2024-05-01 12:00:00",
                    "water_depth": "0.8",
                    "voltage": "365",
                },
            )
        # RK006 без timestamp — будет отброшена валидацией
        return httpx.Response(200, json={"device_name": "RK006"})

    exit_code = asyncio.run(run_import_cycle(make_settings(), transport=httpx.MockTransport(handler)))

    assert exit_code == 0
    assert len(posted) == 1
    records = posted[0]["sensorInfo"]
    assert [r["stationID"] for r in records] == ["RK005"]
    assert json.loads(records[0]["objectJSON"])["ac"] == 3


def test_index_failure_exits_with_error_code() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    exit_code = asyncio.run(run_import_cycle(make_settings(), transport=httpx.MockTransport(handler)))

    assert exit_code == 1


def test_exhausted_import_exits_with_error_code() -> None:
    posts = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            posts.append(request)
            return httpx.Response(503)
        if request.url.path == "/api/tok":
            return httpx.Response(200, json={"sites": SITES["sites"][:1]})
        return httpx.Response(
            200, json={"device_name": "RK005", "timestamp": "2024-05-01 12:00:00"}
        )

    exit_code = asyncio.run(run_import_cycle(make_settings(), transport=httpx.MockTransport(handler)))

    assert exit_code == 1
    assert len(posts) == 3


def test_nothing_to_import_is_success() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.method)
        return httpx.Response(200, json={"sites": []})

    exit_code = asyncio.run(run_import_cycle(make_settings(), transport=httpx.MockTransport(handler)))

    assert exit_code == 0
    assert calls == ["GET"]


def test_malformed_site_entry_does_not_fail_the_cycle() -> None:
    posted = []
    sites = {"sites": [SITES["sites"][0], {"site_name": ["RK009"]}, "garbage"]}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            posted.append(json.loads(request.content))
            return httpx.Response(200, json={"status": "ok"})
        if request.url.path == "/api/tok":
            return httpx.Response(200, json=sites)
        return httpx.Response(
            200,
            json={"device_name": "RK005", "timestamp": "2024-05-01 12:00:00", "water_level": "1.1"},
        )

    exit_code = asyncio.run(run_import_cycle(make_settings(), transport=httpx.MockTransport(handler)))

    assert exit_code == 0
    assert [r["stationID"] for r in posted[0]["sensorInfo"]] == ["RK005"]
