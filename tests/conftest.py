"""Shared fixtures: an in-memory json-server emulation behind httpx.MockTransport."""
import asyncio
import copy
import json

import httpx
import pytest

from library_admin.async_client import AsyncLibraryStoreClient
from library_admin.controller import BookManagementController
from library_admin.models import User
from library_admin.session import Session

BASE_URL = "http://library.test"

SEED = {
    "users": [
        {"id": "1", "email": "admin@library.test", "role": "Admin", "name": "Ada"},
        {"id": "2", "email": "reader@library.test", "role": "User"},
    ],
    "books": [
        {
            "id": "1",
            "title": "Dune",
            "author": "Frank Herbert",
            "description": "Desert planet",
            "year": 1965,
            "copies": 3,
            "borrowedBy": ["1"],
            "cover": "dune.jpg",
        },
        {
            "id": "2",
            "title": "Solaris",
            "author": "Stanislaw Lem",
            "description": "Sentient ocean",
            "year": 1961,
            "copies": 1,
            "borrowedBy": [],
        },
    ],
    "borrowings": [
        {"id": "1", "bookId": "1", "userId": "2", "borrowDate": "2026-09-01T10:00:00.000Z", "dueDate": "2026-09-15"},
        {"id": "2", "bookId": "99", "userId": "2", "borrowDate": "2026-09-02T10:00:00.000Z"},
    ],
    "logs": [],
}

ADMIN = Session(User(id="1", email="admin@library.test", role="Admin"))
READER = Session(User(id="2", email="reader@library.test", role="User"))


class FakeLibraryAPI:
    """Minimal json-server: string ids, full replacement on PUT."""

    def __init__(self, data=None):
        self.data = copy.deepcopy(data if data is not None else SEED)
        self.requests = []
        self.failures = {}
        self.replies = {}
        self.next_id = 100

    def fail(self, method, path, status=500):
        """Make ``method path`` answer with ``status``; status None drops the connection."""
        self.failures[(method, path)] = status

    def serve(self, method, path, status=200, **kwargs):
        """Answer ``method path`` with a fixed reply, e.g. ``text=...`` or ``json=...``."""
        self.replies[(method, path)] = (status, kwargs)

    def requests_for(self, method, path=None):
        return [r for r in self.requests if r[0] == method and (path is None or r[1] == path)]

    def _find(self, collection, record_id):
        return next((r for r in self.data[collection] if str(r["id"]) == record_id), None)

    def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        body = json.loads(request.content) if request.content else None
        self.requests.append((method, path, body))

        if (method, path) in self.failures:
            status = self.failures[(method, path)]
            if status is None:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(status, text="boom")

        if (method, path) in self.replies:
            status, kwargs = self.replies[(method, path)]
            return httpx.Response(status, **kwargs)

        parts = path.strip("/").split("/")
        collection = parts[0]
        if collection not in self.data:
            return httpx.Response(404, json={})
        records = self.data[collection]

        if len(parts) == 1:
            if method == "GET":
                return httpx.Response(200, json=records)
            if method == "POST":
                record = dict(body)
                record.setdefault("id", str(self.next_id))
                self.next_id += 1
                records.append(record)
                return httpx.Response(201, json=record)
            return httpx.Response(405)

        record_id = parts[1]
        record = self._find(collection, record_id)
        if record is None:
            return httpx.Response(404, json={})

        if method == "GET":
            return httpx.Response(200, json=record)
        if method == "PUT":
            replacement = dict(body)
            replacement["id"] = record["id"]
            records[records.index(record)] = replacement
            return httpx.Response(200, json=replacement)
        if method == "DELETE":
            records.remove(record)
            return httpx.Response(200, json={})
        return httpx.Response(405)


@pytest.fixture
def api():
    return FakeLibraryAPI()


@pytest.fixture
def screen(api):
    """Run ``scenario(controller)`` against the fake API and return its result."""
    def _run(scenario, session=ADMIN, **kwargs):
        async def main():
            async with AsyncLibraryStoreClient(
                base_url=BASE_URL,
                transport=httpx.MockTransport(api.handler)
            ) as client:
                controller = BookManagementController(client, session, **kwargs)
                return await scenario(controller)
        return asyncio.run(main())
    return _run
