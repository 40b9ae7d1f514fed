from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from birefnet_service import api, config
from birefnet_service.config import Settings
from birefnet_service.pipeline import BackgroundRemover

from conftest import FakeBackend


@pytest.fixture
def client_factory():
    def make(backend, settings):
        api.app.dependency_overrides[api.get_remover] = lambda: BackgroundRemover(backend)
        api.app.dependency_overrides[config.get_settings] = lambda: settings
        return TestClient(api.app)

    yield make
    api.app.dependency_overrides.clear()


def test_health(client_factory, settings):
    client = client_factory(FakeBackend(), settings)
    assert client.get("/health").json() == {"status": "ok"}


def test_remove_bg_returns_remote_result(client_factory, settings):
    backend = FakeBackend()
    client = client_factory(backend, settings)
    resp = client.post(
        "/remove-bg",
        json={
            "imageUrl": "https://example.com/cat.jpg",
            "model": "Matting",
            "operatingResolution": "2048x2048",
            "refineForeground": True,
        },
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["outputUrl"] == "https://fal.media/files/out.png"
    assert body["model"] == "Matting"
    assert body["operatingResolution"] == "2048x2048"
    assert body["width"] == 4
    arguments = backend.requests[0].to_arguments()
    assert arguments["refine_foreground"] is True
    assert arguments["image_url"] == "https://example.com/cat.jpg"
    assert backend.downloads == []


def test_remove_bg_rejects_unknown_model(client_factory, settings):
    client = client_factory(FakeBackend(), settings)
    resp = client.post("/remove-bg", json={"imageUrl": "https://example.com/cat.jpg", "model": "Huge"})
    assert resp.status_code == 422


def test_remote_failure_maps_to_bad_gateway(client_factory, settings):
    client = client_factory(FakeBackend(result={"image": {}}), settings)
    resp = client.post("/remove-bg", json={"imageUrl": "https://example.com/cat.jpg"})
    assert resp.status_code == 502


def test_result_mirrored_to_r2_when_configured(client_factory, monkeypatch):
    settings = Settings(
        fal_key="k",
        r2_endpoint="https://r2.example.com",
        r2_access_key_id="id",
        r2_secret_access_key="secret",
        r2_bucket_name="cutouts",
        r2_public_base_url="https://cdn.example.com",
    )
    s3 = MagicMock()
    monkeypatch.setattr(api, "_get_s3_client", lambda _settings: s3)
    backend = FakeBackend()
    client = client_factory(backend, settings)

    resp = client.post("/remove-bg", json={"imageUrl": "https://example.com/cat.jpg"})

    assert resp.status_code == 200
    assert resp.json()["outputUrl"].startswith("https://cdn.example.com/birefnet/")
    assert backend.downloads == ["https://fal.media/files/out.png"]
    kwargs = s3.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "cutouts"
    assert kwargs["ContentType"] == "image/png"
    assert kwargs["Body"] == backend.png


def test_missing_key_is_server_error():
    with pytest.raises(HTTPException) as excinfo:
        api.get_remover(Settings(fal_key=None))
    assert excinfo.value.status_code == 500


def _r2_settings():
    return Settings(
        fal_key="k",
        r2_endpoint="https://r2.example.com",
        r2_access_key_id="id",
        r2_secret_access_key="secret",
        r2_bucket_name="cutouts",
    )


def test_r2_failure_is_storage_error(client_factory, monkeypatch, caplog):
    s3 = MagicMock()
    s3.put_object.side_effect = RuntimeError("bucket unreachable")
    monkeypatch.setattr(api, "_get_s3_client", lambda _settings: s3)
    client = client_factory(FakeBackend(), _r2_settings())

    resp = client.post("/remove-bg", json={"imageUrl": "https://example.com/cat.jpg"})

    assert resp.status_code == 500
    assert resp.json()["detail"] == "Upload to storage failed"
    assert "Failed to mirror cutout to R2" in caplog.text


def test_unexpected_pipeline_error_not_reported_as_r2_failure(client_factory, monkeypatch, caplog):
    class BrokenBackend(FakeBackend):
        def submit(self, request, on_log=None):
            raise RuntimeError("unexpected bug")

    mirror = MagicMock()
    monkeypatch.setattr(api, "mirror_to_r2", mirror)
    client = client_factory(BrokenBackend(), _r2_settings())

    with pytest.raises(RuntimeError, match="unexpected bug"):
        client.post("/remove-bg", json={"imageUrl": "https://example.com/cat.jpg"})

    mirror.assert_not_called()
    assert "Failed to mirror cutout to R2" not in caplog.text
