from io import BytesIO

import pytest
from PIL import Image

from birefnet_service.config import Settings
from birefnet_service.errors import UploadError


def make_png(width: int = 4, height: int = 3) -> bytes:
    buf = BytesIO()
    Image.new("RGBA", (width, height), (255, 0, 0, 128)).save(buf, format="PNG")
    return buf.getvalue()


class FakeBackend:
    """Stands in for FalBackend; records every call and never touches the network."""

    def __init__(self, result=None, png=None, bad_payloads=()):
        self.result = result if result is not None else {
            "image": {
                "url": "https://fal.media/files/out.png",
                "width": 4,
                "height": 3,
                "content_type": "image/png",
                "file_name": "out.png",
            }
        }
        self.png = png if png is not None else make_png()
        self.bad_payloads = set(bad_payloads)
        self.uploads = []
        self.requests = []
        self.downloads = []

    def upload(self, data, content_type):
        self.uploads.append((data, content_type))
        if data in self.bad_payloads:
            raise UploadError("storage rejected the payload")
        return f"https://fal.media/files/upload-{len(self.uploads)}.bin"

    def submit(self, request, on_log=None):
        self.requests.append(request)
        if on_log is not None:
            on_log("Processing image")
        return self.result, "req-123"

    def download(self, url):
        self.downloads.append(url)
        return self.png


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def settings():
    return Settings(fal_key="test-key", r2_endpoint=None, r2_bucket_name=None)
