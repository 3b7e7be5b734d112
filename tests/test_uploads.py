import pytest
import requests

import uploads
from errors import UpstreamError


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self.ok = status_code < 400
        self._payload = payload or {}
        self.text = text

    def json(self):
        return self._payload


@pytest.fixture
def cloudinary(monkeypatch):
    monkeypatch.setattr(uploads.config, "CLOUDINARY_CLOUD_NAME", "bazaar")
    monkeypatch.setattr(uploads.config, "CLOUDINARY_UPLOAD_PRESET", "unsigned")
    calls = []

    def install(response=None, error=None):
        def fake_post(url, data=None, files=None, timeout=None):
            calls.append({"url": url, "data": data, "files": files, "timeout": timeout})
            if error is not None:
                raise error
            return response
        monkeypatch.setattr(uploads.requests, "post", fake_post)
        return calls
    return install


def test_image_upload(cloudinary):
    calls = cloudinary(FakeResponse(payload={"secure_url": "https://res.cloudinary.com/bazaar/a.jpg"}))
    url = uploads.upload(b"jpeg-bytes", "a.jpg")

    assert url == "https://res.cloudinary.com/bazaar/a.jpg"
    assert calls[0]["url"] == "https://api.cloudinary.com/v1_1/bazaar/image/upload"
    assert calls[0]["data"] == {"upload_preset": "unsigned"}
    assert calls[0]["files"] == {"file": ("a.jpg", b"jpeg-bytes")}


def test_video_upload(cloudinary):
    calls = cloudinary(FakeResponse(payload={"secure_url": "https://res.cloudinary.com/bazaar/v.mp4"}))
    uploads.upload(b"mp4", "v.mp4", kind="video")
    assert calls[0]["url"] == "https://api.cloudinary.com/v1_1/bazaar/video/upload"
    assert calls[0]["data"]["resource_type"] == "video"


def test_missing_configuration(monkeypatch):
    monkeypatch.setattr(uploads.config, "CLOUDINARY_CLOUD_NAME", None)
    with pytest.raises(UpstreamError, match="configuration"):
        uploads.upload(b"x", "a.jpg")


def test_rejected_upload(cloudinary):
    cloudinary(FakeResponse(status_code=400, text="Invalid image file"))
    with pytest.raises(UpstreamError, match="Invalid image file"):
        uploads.upload(b"x", "a.jpg")


def test_response_without_url(cloudinary):
    cloudinary(FakeResponse(payload={}))
    with pytest.raises(UpstreamError):
        uploads.upload(b"x", "a.jpg")


def test_network_failure(cloudinary):
    cloudinary(error=requests.ConnectionError("connection reset"))
    with pytest.raises(UpstreamError, match="connection reset"):
        uploads.upload(b"x", "a.jpg")


def test_unknown_kind(cloudinary):
    cloudinary(FakeResponse())
    with pytest.raises(ValueError):
        uploads.upload(b"x", "a.pdf", kind="document")
