import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# No Cloudant credentials and no startup import in tests
os.environ["CLOUDANT_URL"] = ""
os.environ["CLOUDANT_APIKEY"] = ""
os.environ["CREDENTIALS_PATH"] = "/nonexistent/credentials.json"
os.environ["BOOTSTRAP_ON_STARTUP"] = "false"

from app.database import DocumentStore, DocumentStoreError
from app.main import app


class FakeStore(DocumentStore):
    """In-memory stand-in for Cloudant with the same failure semantics."""

    engine = "memory"

    def __init__(self, databases: dict[str, list[dict]] | None = None):
        self.databases: dict[str, list[dict]] = {
            name: [self._with_metadata(doc) for doc in docs]
            for name, docs in (databases or {}).items()
        }
        self.fail_create: set[str] = set()
        self.fail_bulk: set[str] = set()
        self.fail_query: set[str] = set()
        self.bulk_calls: list[tuple[str, list[dict]]] = []
        self.created: list[str] = []
        self.closed = False

    @staticmethod
    def _with_metadata(doc: dict) -> dict:
        return {"_id": uuid.uuid4().hex, "_rev": "1-967a00dff5e02add41819138abb3284d", **doc}

    async def put_database(self, db: str) -> dict:
        if db in self.fail_create:
            raise DocumentStoreError("PUT failed", status_code=500, error="internal_server_error")
        if db in self.databases:
            raise DocumentStoreError(
                "PUT returned HTTP 412", status_code=412, error="file_exists",
                reason="The database could not be created, the file already exists.",
            )
        self.databases[db] = []
        self.created.append(db)
        return {"ok": True}

    async def post_bulk_docs(self, db: str, docs: list[dict]) -> list[dict]:
        if db in self.fail_bulk:
            raise DocumentStoreError("bulk insert failed", status_code=500)
        self.bulk_calls.append((db, docs))
        stored = [self._with_metadata(doc) for doc in docs]
        self.databases.setdefault(db, []).extend(stored)
        return [{"ok": True, "id": d["_id"], "rev": d["_rev"]} for d in stored]

    async def post_find(self, db: str, selector: dict) -> list[dict]:
        if db in self.fail_query:
            raise DocumentStoreError("query failed", status_code=500)
        if db not in self.databases:
            raise DocumentStoreError("Database does not exist.", status_code=404, error="not_found")
        return [
            doc for doc in self.databases[db]
            if all(doc.get(k) == v for k, v in selector.items())
        ]

    async def post_all_docs(self, db: str, include_docs: bool = True) -> list[dict]:
        if db in self.fail_query:
            raise DocumentStoreError("query failed", status_code=500)
        return list(self.databases.get(db, []))

    async def close(self) -> None:
        self.closed = True


SAMPLE_DATABASES = {
    "patients": [
        {
            "patient_id": "0001", "user_id": "p001", "first_name": "Jane", "last_name": "Doe",
            "address": "12 Maple Street", "city": "Springfield", "postcode": "01101",
            "birthdate": "1985-04-12", "gender": "F",
        },
        {
            "patient_id": "0002", "user_id": "p002", "first_name": "Ralph", "last_name": "Ortiz",
            "address": "410 Harbor Road", "city": "Lakeview", "postcode": "60614",
            "birthdate": "1959-11-03", "gender": "M",
        },
    ],
    "prescriptions": [
        {
            "patient_id": "0001", "medication_id": "m-100",
            "drug_name": "Lisinopril 10 MG Oral Tablet", "reason": "Hypertension", "start": "2021-02-01",
        },
        {
            "patient_id": "0001", "medication_id": "m-101",
            "drug_name": "Metformin 500 MG Oral Tablet", "reason": "Diabetes", "start": "2022-06-15",
        },
    ],
    "appointments": [
        {"patient_id": "0001", "date": "2026-11-02", "time": "09:30", "provider_id": "pr-01"},
        {"patient_id": "0001", "date": "2026-12-14", "time": "14:00", "provider_id": "pr-02"},
    ],
    "observations": [
        {
            "id": "ob-1", "patient_id": "0001", "date": "2026-01-10", "code": "8480-6",
            "description": "Systolic Blood Pressure", "numeric_value": "132",
            "character_value": "", "units": "mm[Hg]",
        },
        {
            "id": "ob-2", "patient_id": "0001", "date": "2026-01-10", "code": "72166-2",
            "description": "Tobacco smoking status", "numeric_value": "",
            "character_value": "Never smoker", "units": "",
        },
        {
            "id": "ob-3", "patient_id": "0001", "date": "2026-01-10", "code": "0000-0",
            "description": "Pending result", "numeric_value": "",
            "character_value": "", "units": "",
        },
    ],
}


@pytest.fixture
def store():
    """Provide a fake store seeded with a few records per database."""
    return FakeStore(SAMPLE_DATABASES)


@pytest_asyncio.fixture
async def async_client(store):
    """Provide an async httpx client against the app with ``store`` injected."""
    app.state.store = store
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.state.store = None


@pytest_asyncio.fixture
async def disconnected_client():
    """Provide an async client for an app that never connected to Cloudant."""
    app.state.store = None
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
