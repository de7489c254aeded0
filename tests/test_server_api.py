"""HTTP API tests using FastAPI's TestClient."""

from __future__ import annotations

from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from logic.safety import FALLBACK_REPLY
from server.api import create_app
from tools.assistant_client import MockAssistantClient
from wardrobe_app.app import WardrobeAssistantApp
from wardrobe_app.config import WardrobeConfig
from wardrobe_app.errors import CollaboratorFailure, DeleteFailed


def _wardrobe_app(tmp_path: Path, assistant: MockAssistantClient | None = None) -> WardrobeAssistantApp:
    config = WardrobeConfig(storage_dir=str(tmp_path / "store"), assistant_backend="mock")
    return WardrobeAssistantApp(config, assistant=assistant or MockAssistantClient(), configure_logs=False)


PHOTO = ("Picked.JPG", b"jpeg-bytes", "image/jpeg")


def _add(client: TestClient, description: str):
    return client.post("/wardrobe", files={"photo": PHOTO}, data={"description": description})


@pytest.fixture()
def client(tmp_path: Path) -> TestClient:
    return TestClient(create_app(_wardrobe_app(tmp_path)))


def test_healthcheck(client: TestClient) -> None:
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["assistant_backend"] == "mock"


def test_add_list_image_and_delete(client: TestClient) -> None:
    assert client.get("/wardrobe").json() == {"items": []}

    created = _add(client, " red shirt ")
    assert created.status_code == 201
    entry = created.json()
    assert entry["description"] == "red shirt"

    items = client.get("/wardrobe").json()["items"]
    assert items == [entry]

    image = client.get(f"/wardrobe/{entry['id']}/image")
    assert image.status_code == 200
    assert image.content == b"jpeg-bytes"

    deleted = client.delete(f"/wardrobe/{entry['id']}")
    assert deleted.json() == {"status": "ok", "deleted": entry}
    assert client.get("/wardrobe").json() == {"items": []}


def test_add_with_blank_description_is_bad_request(client: TestClient) -> None:
    response = _add(client, "  ")
    assert response.status_code == 400
    assert client.get("/wardrobe").json() == {"items": []}


def test_add_without_photo_is_rejected(client: TestClient) -> None:
    response = client.post("/wardrobe", data={"description": "red shirt"})
    assert response.status_code == 422
    assert client.get("/wardrobe").json() == {"items": []}


def test_add_does_not_read_server_paths(client: TestClient, tmp_path: Path) -> None:
    secret = tmp_path / "secret.txt"
    secret.write_text("TOP-SECRET", encoding="utf-8")

    response = client.post("/wardrobe", json={"source_path": str(secret), "description": "x"})

    assert response.status_code == 422
    assert client.get("/wardrobe").json() == {"items": []}


def test_uploaded_photo_keeps_extension(client: TestClient) -> None:
    entry = _add(client, "red shirt").json()
    assert entry["blob_ref"].endswith(".jpg")


def test_delete_unknown_entry_is_not_found(client: TestClient) -> None:
    assert client.delete("/wardrobe/nope.jpg").status_code == 404


def test_partial_delete_is_reported_not_failed(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    wardrobe = _wardrobe_app(tmp_path)
    client = TestClient(create_app(wardrobe))
    entry = _add(client, "red shirt").json()

    def _locked(_blob_ref: str) -> None:
        raise DeleteFailed("locked")

    monkeypatch.setattr(wardrobe.blob_store, "delete", _locked)
    response = client.delete(f"/wardrobe/{entry['id']}")

    assert response.status_code == 200
    assert response.json()["status"] == "partial"
    assert response.json()["orphan_blob"] == entry["blob_ref"]
    assert client.get("/wardrobe").json() == {"items": []}

    monkeypatch.undo()
    consistency = client.get("/wardrobe/consistency").json()
    assert consistency["orphan_blobs"] == [entry["blob_ref"]]

    repaired = client.post("/wardrobe/repair").json()
    assert repaired["deleted_blobs"] == [entry["blob_ref"]]
    assert client.get("/wardrobe/consistency").json()["consistent"] is True


def test_chat_and_history(tmp_path: Path) -> None:
    assistant = MockAssistantClient(["Wear the red shirt.", CollaboratorFailure("timeout")])
    client = TestClient(create_app(_wardrobe_app(tmp_path, assistant)))
    _add(client, "red shirt")

    first = client.post("/chat", json={"message": "suggest an outfit"})
    second = client.post("/chat", json={"message": "another one?"})

    assert first.json()["reply"] == "Wear the red shirt."
    assert second.status_code == 200
    assert second.json()["reply"] == FALLBACK_REPLY

    turns = client.get("/chat/history").json()["turns"]
    assert [turn["role"] for turn in turns] == ["system", "user", "assistant", "user", "assistant"]
    assert turns[1]["content"] == "suggest an outfit"


def test_blank_chat_message_is_bad_request(client: TestClient) -> None:
    assert client.post("/chat", json={"message": ""}).status_code == 400


def test_corrupt_metadata_blocks_until_reset(tmp_path: Path) -> None:
    store = tmp_path / "store"
    store.mkdir()
    (store / "wardrobe.json").write_text('[{"blobRef": 5}]', encoding="utf-8")

    client = TestClient(create_app(_wardrobe_app(tmp_path)))

    assert client.get("/healthz").json()["status"] == "degraded"
    assert client.get("/wardrobe").status_code == 503

    reset = client.post("/wardrobe/reset")
    assert reset.status_code == 200
    assert reset.json()["quarantined"].startswith("wardrobe.json.corrupt-")
    assert client.get("/wardrobe").json() == {"items": []}
    assert client.get("/healthz").json()["status"] == "ok"


def test_reset_is_refused_while_metadata_is_healthy(client: TestClient) -> None:
    entry = _add(client, "red shirt").json()

    assert client.post("/wardrobe/reset").status_code == 409
    assert client.post("/wardrobe/repair").json()["deleted_blobs"] == []
    assert client.get("/wardrobe").json() == {"items": [entry]}
    assert client.get(f"/wardrobe/{entry['id']}/image").content == b"jpeg-bytes"
