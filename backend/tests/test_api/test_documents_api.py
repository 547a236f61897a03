"""Tests for the document API endpoints."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from framepatch.config import Settings
from framepatch.main import create_app
from framepatch.models.clipboard import ClipboardPayload
from framepatch.models.persisted import dump_persisted
from tests.conftest import leaf, sample_document


@pytest.fixture
def client():
    return TestClient(create_app())


@pytest.fixture
def opened(client):
    response = client.post("/api/documents", json={"persisted": dump_persisted(sample_document())})
    assert response.status_code == 200
    return client


def test_health(client):
    """Health should report ok and no open documents."""
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["documents"] == 0


def test_health_reports_environment():
    """Health should report the configured environment."""
    client = TestClient(create_app(Settings(framepatch_env="ci")))
    assert client.get("/api/health").json()["environment"] == "ci"


def test_create_empty_document(client):
    """Creating a document should register an empty one."""
    response = client.post("/api/documents", json={"document_id": "blank"})
    data = response.json()
    assert data["ok"]
    assert data["document_id"] == "blank"
    assert data["document"]["nodes"] == {}
    assert client.get("/api/health").json()["documents"] == 1


def test_create_duplicate_id(opened):
    """Reusing an open document id should return 400."""
    response = opened.post("/api/documents", json={"document_id": "doc_test"})
    assert response.status_code == 400
    assert response.json()["error"]["kind"] == "validation_error"


def test_create_from_invalid_persisted(client):
    """An unreadable persisted document should return 400."""
    response = client.post("/api/documents", json={"persisted": {"type": "document", "version": 42}})
    assert response.status_code == 400
    assert not response.json()["ok"]


def test_get_document(opened):
    """Fetching a document should return its content and version."""
    data = opened.get("/api/documents/doc_test").json()
    assert data["ok"]
    assert data["document"]["nodes"]["C"]["childIds"] == ["A", "B", "D"]
    assert data["version"] == 0


def test_unknown_document(client):
    """An unknown document should return 404."""
    response = client.get("/api/documents/nope")
    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "not_found"


def test_apply_patches_and_undo_redo(opened):
    """Patches should apply as one step that undo and redo reverse."""
    ops = [
        {"op": "SetProp", "id": "A1", "path": "/props/text", "value": "Hello"},
        {"op": "MoveNode", "id": "D", "newParentId": "C", "index": 0},
    ]
    data = opened.post("/api/documents/doc_test/patches", json={"ops": ops}).json()
    assert data["ok"]
    assert data["version"] == 1
    assert data["can_undo"]
    assert data["document"]["nodes"]["A1"]["props"]["text"] == "Hello"
    assert data["document"]["nodes"]["C"]["childIds"] == ["D", "A", "B"]

    undone = opened.post("/api/documents/doc_test/undo").json()
    assert undone["document"]["nodes"]["C"]["childIds"] == ["A", "B", "D"]
    assert undone["document"]["nodes"]["A1"]["props"]["text"] == "Title"
    assert undone["can_redo"]

    redone = opened.post("/api/documents/doc_test/redo").json()
    assert redone["document"]["nodes"]["C"]["childIds"] == ["D", "A", "B"]


def test_failed_batch_reports_op_index(opened):
    """A failing batch should report the op index and leave the document untouched."""
    ops = [
        {"op": "SetProp", "id": "A1", "path": "/props/text", "value": "Hello"},
        {"op": "MoveNode", "id": "B", "newParentId": "B1"},
    ]
    response = opened.post("/api/documents/doc_test/patches", json={"ops": ops})
    assert response.status_code == 200
    data = response.json()
    assert not data["ok"]
    assert data["error"]["kind"] == "structural_error"
    assert data["error"]["opIndex"] == 1
    assert data["version"] == 0
    fresh = opened.get("/api/documents/doc_test").json()
    assert fresh["document"]["nodes"]["A1"]["props"]["text"] == "Title"


def test_malformed_op(opened):
    """A malformed op should be reported as a validation error."""
    data = opened.post("/api/documents/doc_test/patches", json={"ops": [{"op": "Explode"}]}).json()
    assert not data["ok"]
    assert data["error"]["kind"] == "validation_error"


def test_delete_frame(opened):
    """Deleting a frame should remove its subtree, and a second delete should report not found."""
    data = opened.delete("/api/documents/doc_test/frames/F1").json()
    assert data["ok"]
    assert "F1" not in data["document"]["frames"]
    assert "A1" not in data["document"]["nodes"]
    missing = opened.delete("/api/documents/doc_test/frames/F1").json()
    assert missing["error"]["kind"] == "not_found"


def test_copy_and_paste(opened):
    """A copied payload should paste at the cursor."""
    copied = opened.post("/api/documents/doc_test/copy", json={"selection": ["G"]}).json()
    assert copied["ok"]
    assert copied["root_ids"] == ["G"]
    pasted = opened.post(
        "/api/documents/doc_test/paste",
        json={"payload": copied["payload"], "frame_id": "F2", "cursor_x": 200, "cursor_y": 20},
    ).json()
    assert pasted["ok"]
    children = pasted["document"]["nodes"]["R2"]["childIds"]
    assert len(children) == 4
    new_node = pasted["document"]["nodes"][children[-1]]
    assert new_node["layout"]["position"]["x"] == 200.0


def test_paste_foreign_text(opened):
    """Pasting text that is not a payload should report a clipboard error."""
    data = opened.post(
        "/api/documents/doc_test/paste", json={"payload": "plain text", "frame_id": "F2"}
    ).json()
    assert not data["ok"]
    assert data["error"]["kind"] == "clipboard_error"


def test_paste_external_payload(opened):
    """An external payload should paste into the selected container."""
    payload = ClipboardPayload(root_ids=("X",), nodes=(leaf("X"),))
    data = opened.post(
        "/api/documents/doc_test/paste",
        json={"payload": payload.to_json(), "frame_id": "F1", "selection": ["B"]},
    ).json()
    assert data["ok"]
    assert len(data["document"]["nodes"]["B"]["childIds"]) == 3


def test_duplicate(opened):
    """Duplicate should add a copy next to the original."""
    data = opened.post("/api/documents/doc_test/duplicate", json={"selection": ["D"]}).json()
    assert data["ok"]
    assert len(data["document"]["nodes"]["C"]["childIds"]) == 4


def test_copy_unknown_node(opened):
    """Copying an unknown node should return 404."""
    response = opened.post("/api/documents/doc_test/copy", json={"selection": ["ghost"]})
    assert response.status_code == 404
    assert not response.json()["ok"]
