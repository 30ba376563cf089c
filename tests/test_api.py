"""Tests for API functionality."""

import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from scholia.adapters.json_codec import NoteCodec
from scholia.adapters.sqlite_store import SQLiteNoteStore
from scholia.api.app import create_app, generate_token
from scholia.config import AuthConfig, LogConfig, ScholiaConfig, ServerConfig, StoreConfig
from scholia.core.model import BacklinkReference, Note
from scholia.runtime import Runtime


@pytest.fixture
def runtime():
    """Create a runtime with a temporary store."""
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "notes.db"
        codec = NoteCodec()
        store = SQLiteNoteStore(db_path, codec=codec)
        config = ScholiaConfig(
            store=StoreConfig(path=db_path),
            server=ServerConfig(),
            auth=AuthConfig(default_user="U1"),
            log=LogConfig(),
        )

        rt = Runtime(store=store, codec=codec, config=config)
        yield rt
        rt.close()


@pytest.fixture
def client(runtime):
    return TestClient(create_app(runtime, token=None))


def test_health_endpoint(client):
    """Test /health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["schema_version"] == "1"


def test_auth_required(runtime):
    """Test that endpoints require authentication when token is set."""
    token = generate_token()
    client = TestClient(create_app(runtime, token=token))

    # Without token should get 401
    response = client.get("/api/notes")
    assert response.status_code == 401
    assert response.json() == {"error": "Invalid or missing token"}

    # With token should work
    response = client.get("/api/notes", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200


def test_me_uses_header_or_default(client):
    assert client.get("/api/auth/me").json() == {"id": "U1"}
    assert client.get("/api/auth/me", headers={"X-User-Id": "U9"}).json() == {"id": "U9"}


def test_create_and_search_scenario(client):
    """Create for U1; search finds it for U1 and not for U2."""
    response = client.post("/api/notes", json={"content": "hello #world", "tags": ["a", "b"]})

    assert response.status_code == 201
    assert '"content":"hello #world"' in response.text
    created = response.json()
    assert created["id"]
    assert created["tags"] == ["a", "b"]
    assert created["content"] == "hello #world"

    found = client.get("/api/notes/search", params={"query": "world"}).json()
    assert found["total"] == 1
    assert found["notes"][0]["id"] == created["id"]

    other = client.get("/api/notes/search", params={"query": "world"}, headers={"X-User-Id": "U2"}).json()
    assert other == {"notes": [], "total": 0}


def test_create_ignores_client_id(client):
    response = client.post("/api/notes", json={"id": "chosen", "content": "x"})

    assert response.status_code == 201
    assert response.json()["id"] != "chosen"


def test_create_malformed_body(client):
    response = client.post("/api/notes", content="not json", headers={"Content-Type": "application/json"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid note data"}


def test_create_rejects_text_that_is_not_utf8(client):
    response = client.post(
        "/api/notes", content=b'{"content":"x\\ud800y"}', headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid note data"}
    assert client.get("/api/notes").json()["total"] == 0


def test_list_pagination(client):
    for i in range(25):
        client.post("/api/notes", json={"content": f"note {i}", "last_modified": f"2024-01-01T00:00:{i:02d}"})

    data = client.get("/api/notes", params={"page": 2, "pageSize": 10}).json()

    assert data["total"] == 25
    assert data["currentPage"] == 2
    assert data["totalPages"] == 3
    assert [n["content"] for n in data["notes"]] == [f"note {i}" for i in range(14, 4, -1)]


def test_list_with_query_filters(client):
    client.post("/api/notes", json={"content": "alpha"})
    client.post("/api/notes", json={"content": "beta"})

    data = client.get("/api/notes", params={"query": "alp"}).json()

    assert data["total"] == 1
    assert data["notes"][0]["content"] == "alpha"


def test_search_requires_query(client):
    response = client.get("/api/notes/search")

    assert response.status_code == 400
    assert response.json() == {"error": "Query parameter is required"}


def test_get_note_not_found(client):
    response = client.get("/api/notes/nonexistent")

    assert response.status_code == 404
    assert response.json() == {"error": "Note not found"}


def test_update_note(client):
    created = client.post("/api/notes", json={"content": "v1"}).json()

    response = client.put(
        f"/api/notes/{created['id']}",
        json={"id": "ignored", "content": "v2", "tags": ["t"], "last_modified": "2030-01-01"},
    )

    assert response.status_code == 200
    updated = response.json()
    assert updated["id"] == created["id"]
    assert updated["content"] == "v2"
    assert updated["last_modified"] == "2030-01-01"
    assert client.get(f"/api/notes/{created['id']}").json() == updated


def test_update_stamps_missing_last_modified(client):
    created = client.post("/api/notes", json={"content": "v1", "last_modified": "2000-01-01"}).json()

    updated = client.put(f"/api/notes/{created['id']}", json={"content": "v2"}).json()

    assert updated["last_modified"] > "2000-01-01"


def test_update_other_users_note_is_not_found(client):
    created = client.post("/api/notes", json={"content": "mine"}).json()

    response = client.put(f"/api/notes/{created['id']}", json={"content": "x"}, headers={"X-User-Id": "U2"})

    assert response.status_code == 404


def test_delete_note(client):
    created = client.post("/api/notes", json={"content": "bye"}).json()

    assert client.delete(f"/api/notes/{created['id']}").status_code == 204
    assert client.delete(f"/api/notes/{created['id']}").status_code == 404


def test_delete_all(client):
    client.post("/api/notes", json={"content": "1"})
    client.post("/api/notes", json={"content": "2"})
    client.post("/api/notes", json={"content": "keep"}, headers={"X-User-Id": "U2"})

    assert client.delete("/api/notes/all/confirm").status_code == 204
    assert client.get("/api/notes").json()["total"] == 0
    assert client.get("/api/notes", headers={"X-User-Id": "U2"}).json()["total"] == 1


def test_suggestion_flow(runtime, client):
    target = runtime.store.create(Note(content="target"), "U1")
    other = runtime.store.create(Note(content="other"), "U1")
    source = runtime.store.create(
        Note(
            content="source",
            suggested_links=[
                BacklinkReference(note_id=target.id, context="ctx", relevance=0.9),
                BacklinkReference(note_id=other.id, relevance=0.2),
            ],
        ),
        "U1",
    )

    pending = client.get(f"/api/notes/{source.id}/suggestions").json()
    assert [s["noteId"] for s in pending] == [target.id, other.id]

    accepted = client.post(f"/api/notes/{source.id}/suggestions/{target.id}/accept").json()
    assert accepted["references"] == [target.id]
    backlinks = client.get(f"/api/notes/{target.id}").json()["backlinks"]
    assert backlinks[0]["noteId"] == source.id
    assert backlinks[0]["accepted"] is True

    rejected = client.post(f"/api/notes/{source.id}/suggestions/{other.id}/reject").json()
    assert [s["noteId"] for s in rejected["suggested_links"]] == [target.id]

    assert client.get(f"/api/notes/{source.id}/suggestions").json() == []


def test_store_unavailable_maps_to_503(runtime, client):
    runtime.store.close()

    response = client.get("/api/notes")

    assert response.status_code == 503
    assert response.json() == {"error": "Note store unavailable"}
