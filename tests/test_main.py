"""Tests for the startup sequence (connect, bootstrap, serve)."""

import json
from unittest.mock import AsyncMock, patch

from conftest import FakeStore
from fastapi import FastAPI

import app.database as db_mod
import app.main as main_mod
from app.services.bootstrap import BOOTSTRAP_DATABASES


async def test_startup_connects_and_bootstraps(tmp_path):
    for filename in BOOTSTRAP_DATABASES.values():
        (tmp_path / filename).write_text("id\n1\n", encoding="utf-8")
    store = FakeStore()
    test_app = FastAPI()

    with (
        patch.object(main_mod, "connect_store", AsyncMock(return_value=store)),
        patch.object(main_mod, "BOOTSTRAP_ON_STARTUP", True),
        patch.object(main_mod, "PATIENT_DATA_DIR", str(tmp_path)),
    ):
        async with main_mod.lifespan(test_app):
            assert test_app.state.store is store
            report = test_app.state.bootstrap_report
            assert report.failed == []
            assert report.total_imported == len(BOOTSTRAP_DATABASES)

    assert store.closed is True


async def test_startup_without_connection_still_serves():
    test_app = FastAPI()
    with patch.object(main_mod, "connect_store", AsyncMock(return_value=None)):
        async with main_mod.lifespan(test_app):
            assert test_app.state.store is None
            assert test_app.state.bootstrap_report is None


async def test_startup_bootstrap_disabled():
    store = FakeStore()
    test_app = FastAPI()
    with (
        patch.object(main_mod, "connect_store", AsyncMock(return_value=store)),
        patch.object(main_mod, "BOOTSTRAP_ON_STARTUP", False),
    ):
        async with main_mod.lifespan(test_app):
            assert test_app.state.store is store
            assert test_app.state.bootstrap_report is None
    assert store.created == []


async def test_startup_bootstrap_failure_does_not_block(tmp_path):
    store = FakeStore()
    store.fail_create.update(BOOTSTRAP_DATABASES)
    test_app = FastAPI()
    with (
        patch.object(main_mod, "connect_store", AsyncMock(return_value=store)),
        patch.object(main_mod, "BOOTSTRAP_ON_STARTUP", True),
        patch.object(main_mod, "PATIENT_DATA_DIR", str(tmp_path)),
    ):
        async with main_mod.lifespan(test_app):
            assert test_app.state.store is store
            assert len(test_app.state.bootstrap_report.failed) == len(BOOTSTRAP_DATABASES)


async def test_startup_survives_bad_credentials_file(tmp_path):
    path = tmp_path / "credentials.json"
    path.write_text(json.dumps({"url": "https://user:pw@acct.cloudant.com:notaport"}))
    test_app = FastAPI()
    with (
        patch.object(db_mod, "CLOUDANT_URL", ""),
        patch.object(db_mod, "CLOUDANT_APIKEY", ""),
        patch.object(db_mod, "CREDENTIALS_PATH", str(path)),
    ):
        async with main_mod.lifespan(test_app):
            assert test_app.state.store is None
            assert test_app.state.bootstrap_report is None


def test_routes_registered():
    paths = set(main_mod.app.openapi()["paths"])
    for path in (
        "/api/patients",
        "/api/login/user",
        "/api/getInfo/patients/{patient_id}",
        "/api/getInfo/prescription/{patient_id}",
        "/api/appointments/list/{patient_id}",
        "/api/listObs/{patient_id}",
    ):
        assert path in paths
