from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from birefnet_service import fal_backend
from birefnet_service.errors import DownloadError, MissingCredentialError, ModelError, UploadError
from birefnet_service.fal_backend import FalBackend
from birefnet_service.schemas import JobRequest, RemovalOptions


@pytest.fixture
def backend(monkeypatch):
    client_cls = MagicMock()
    monkeypatch.setattr(fal_backend.fal_client, "SyncClient", client_cls)
    backend = FalBackend(api_key="test-key", timeout_seconds=15, max_upload_bytes=16)
    client_cls.assert_called_once_with(key="test-key", default_timeout=15)
    return backend


def _request():
    options = RemovalOptions(model="Matting", operating_resolution="2048x2048", refine_foreground=True)
    return JobRequest.from_options("https://fal.media/in.jpg", options)


def test_empty_key_rejected():
    with pytest.raises(MissingCredentialError):
        FalBackend(api_key="")


def test_upload_returns_url(backend):
    backend._client.upload.return_value = "https://fal.media/files/abc.png"
    assert backend.upload(b"png-bytes", "image/png") == "https://fal.media/files/abc.png"
    backend._client.upload.assert_called_once_with(b"png-bytes", "image/png")


def test_upload_oversized_payload_never_sent(backend):
    with pytest.raises(UploadError):
        backend.upload(b"x" * 17, "image/jpeg")
    backend._client.upload.assert_not_called()


def test_upload_failure_is_upload_error(backend):
    backend._client.upload.side_effect = RuntimeError("network down")
    with pytest.raises(UploadError) as excinfo:
        backend.upload(b"abc", "image/jpeg")
    assert "network down" in str(excinfo.value)
    assert backend._client.upload.call_count == 1


def test_submit_streams_new_log_lines_and_returns_result(backend):
    handle = MagicMock(request_id="req-9")
    handle.iter_events.return_value = [
        SimpleNamespace(position=2),
        SimpleNamespace(logs=[{"message": "loading", "timestamp": "t1"}]),
        SimpleNamespace(
            logs=[
                {"message": "loading", "timestamp": "t1"},
                {"message": "segmenting", "timestamp": "t2"},
            ]
        ),
        SimpleNamespace(logs=None),
    ]
    handle.get.return_value = {"image": {"url": "https://fal.media/out.png"}}
    backend._client.submit.return_value = handle

    messages = []
    result, request_id = backend.submit(_request(), on_log=messages.append)

    assert messages == ["loading", "segmenting"]
    assert result == {"image": {"url": "https://fal.media/out.png"}}
    assert request_id == "req-9"
    backend._client.submit.assert_called_once_with(
        "fal-ai/birefnet/v2",
        arguments={
            "image_url": "https://fal.media/in.jpg",
            "model": "Matting",
            "operating_resolution": "2048x2048",
            "refine_foreground": True,
            "output_format": "png",
        },
    )
    handle.iter_events.assert_called_once_with(with_logs=True)


def test_submit_remote_failure_is_model_error(backend):
    backend._client.submit.side_effect = RuntimeError("422 invalid model")
    with pytest.raises(ModelError):
        backend.submit(_request())


def test_submit_non_dict_result_is_model_error(backend):
    handle = MagicMock(request_id="req-1")
    handle.iter_events.return_value = []
    handle.get.return_value = ["unexpected"]
    backend._client.submit.return_value = handle
    with pytest.raises(ModelError):
        backend.submit(_request())


def test_download_returns_bytes(backend, monkeypatch):
    response = MagicMock(content=b"png")
    get = MagicMock(return_value=response)
    monkeypatch.setattr(fal_backend.requests, "get", get)
    assert backend.download("https://fal.media/out.png") == b"png"
    get.assert_called_once_with("https://fal.media/out.png", timeout=(5, 15))


def test_download_failure_is_download_error(backend, monkeypatch):
    monkeypatch.setattr(
        fal_backend.requests, "get", MagicMock(side_effect=requests.ConnectionError("reset"))
    )
    with pytest.raises(DownloadError):
        backend.download("https://fal.media/out.png")


def test_download_http_error_is_download_error(backend, monkeypatch):
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("404")
    monkeypatch.setattr(fal_backend.requests, "get", MagicMock(return_value=response))
    with pytest.raises(DownloadError):
        backend.download("https://fal.media/out.png")
