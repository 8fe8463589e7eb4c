from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from bson.objectid import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import OperationFailure

from conftest import BARE_JPEG, CORRUPT_COUNT_TIFF, gps_ifd, make_jpeg
from geophoto.main import app


def _upload(client: TestClient, data: bytes, **fields):
    return client.post("/", files={"photo": ("field.jpg", data, "image/jpeg")}, data=fields)


def _only_id(store) -> str:
    (oid,) = store.blobs.keys()
    return str(oid)


def test_root_without_params_is_placeholder(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_upload_returns_201_with_empty_body(client, store):
    response = _upload(client, make_jpeg(gps_ifd()), name="Bridge", description="foggy morning")
    assert response.status_code == 201
    assert response.content == b""
    assert store.create_calls == 1


def test_upload_without_file(client, store):
    response = client.post("/", data={"name": "nothing"})
    assert response.status_code == 400
    assert response.text == "No file"
    assert store.create_calls == 0


def test_upload_plain_text(client, store):
    response = _upload(client, b"this is definitely not an image")
    assert response.status_code == 400
    assert response.text == "File is not JPEG"
    assert store.create_calls == 0


def test_upload_jpeg_without_gps(client, store):
    response = _upload(client, BARE_JPEG)
    assert response.status_code == 400
    assert response.text == "File has no geolocation tag"
    assert store.create_calls == 0


def test_upload_over_limit_rejected_before_parsing(client, store):
    response = _upload(client, make_jpeg(gps_ifd()) + b"\x00" * 600_000)
    assert response.status_code == 413
    assert response.text == "File too large"
    assert store.create_calls == 0


def test_upload_just_over_limit_rejected_while_reading(client, store):
    data = make_jpeg(gps_ifd())
    data += b"\x00" * (500_001 - len(data))
    response = _upload(client, data)
    assert response.status_code == 413
    assert store.create_calls == 0


def test_retrieve_returns_exact_bytes_and_type(client, store):
    original = make_jpeg(gps_ifd()) + bytes(range(256)) * 10
    assert _upload(client, original).status_code == 201

    response = client.get(f"/{_only_id(store)}")
    assert response.status_code == 200
    assert response.content == original
    assert response.headers["content-type"].startswith("image/jpeg")


def test_retrieve_malformed_id_is_client_error(client):
    response = client.get("/not-a-valid-id")
    assert response.status_code == 400
    assert response.text == "Invalid photo id"


def test_retrieve_unknown_id_is_client_error(client):
    response = client.get(f"/{ObjectId()}")
    assert response.status_code == 400
    assert response.text == "Photo not found"


def test_text_query(client):
    _upload(client, make_jpeg(gps_ifd()), name="Lighthouse", description="north coast")
    _upload(client, make_jpeg(gps_ifd()), name="Pier", description="sunset")

    response = client.get("/", params={"text": "LIGHTHOUSE"})
    assert response.status_code == 200
    body = response.json()
    assert [p["name"] for p in body] == ["Lighthouse"]
    assert set(body[0]) == {"id", "contentType", "coordinates", "name", "description"}
    assert body[0]["coordinates"]["latitude"] == pytest.approx(37.775)


def test_proximity_query_nearest_first(client):
    _upload(client, make_jpeg(gps_ifd(lat=(48, 51, 30), lat_ref=b"N", lon=(2, 17, 40), lon_ref=b"E")), name="Paris")
    _upload(client, make_jpeg(gps_ifd()), name="San Francisco")

    response = client.get("/", params={"coordinates[longitude]": 2.35, "coordinates[latitude]": 48.85})
    assert response.status_code == 200
    assert [p["name"] for p in response.json()] == ["Paris", "San Francisco"]


def test_text_and_coordinates_together_rejected(client):
    response = client.get(
        "/", params={"text": "x", "coordinates[longitude]": 1.0, "coordinates[latitude]": 1.0}
    )
    assert response.status_code == 400


def test_store_not_ready_is_503():
    client = TestClient(app)
    response = client.get("/", params={"text": "x"})
    assert response.status_code == 503


def test_health_without_store():
    client = TestClient(app)
    assert client.get("/health").json() == {"status": "ok", "db": "skip"}


def test_upload_exactly_at_limit_is_accepted(client, store):
    data = make_jpeg(gps_ifd())
    data += b"\x00" * (500_000 - len(data))
    assert len(data) == 500_000
    response = _upload(client, data, name="Edge")
    assert response.status_code == 201
    assert store.create_calls == 1


def test_upload_with_corrupt_exif_count_has_no_geolocation(client, store):
    response = client.post("/", files={"photo": ("scan.tif", CORRUPT_COUNT_TIFF, "image/tiff")})
    assert response.status_code == 400
    assert response.text == "File has no geolocation tag"
    assert store.create_calls == 0


def test_chunked_upload_over_limit_rejected(client, store):
    # Content-Length 없이 흘려보내는 multipart 본문
    boundary = "geophotoboundary"

    def body():
        yield (
            f"--{boundary}\r\n"
            'Content-Disposition: form-data; name="photo"; filename="big.jpg"\r\n'
            "Content-Type: image/jpeg\r\n\r\n"
        ).encode()
        yield make_jpeg(gps_ifd())
        for _ in range(10):
            yield b"\x00" * 64 * 1024
        yield f"\r\n--{boundary}--\r\n".encode()

    response = client.post(
        "/",
        content=body(),
        headers={"content-type": f"multipart/form-data; boundary={boundary}"},
    )
    assert response.status_code == 413
    assert response.text == "File too large"
    assert store.create_calls == 0


def test_health_reports_db_error():
    store = MagicMock()
    store.ping = AsyncMock(side_effect=OperationFailure("not authorized"))
    app.state.store = store
    try:
        response = TestClient(app).get("/health")
    finally:
        app.state.store = None
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["db"].startswith("error:")
    assert "not authorized" in body["db"]
