"""
Tests for the HTTP API using Flask's test client.
"""

import base64
from io import BytesIO
from urllib.parse import quote

import numpy as np
import pytest
from PIL import Image as PILImage

from border_trim.api_server import app


@pytest.fixture
def client():
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


def upload(client, url, data, filename="photo.png", **form):
    payload = {"image": (BytesIO(data), filename)}
    payload.update(form)
    return client.post(url, data=payload, content_type="multipart/form-data")


class TestTrimEndpoint:
    """Test POST /api/trim."""

    def test_trim_success(self, client, padded_image, png_bytes):
        response = upload(client, "/api/trim", png_bytes(padded_image.pixels), tolerance="10")
        assert response.status_code == 200

        body = response.get_json()
        assert body["success"] is True
        assert body["bounds"] == {"x": 15, "y": 12, "width": 20, "height": 10}
        assert body["original_size"] == [60, 40]
        assert body["trimmed_size"] == [20, 10]
        assert body["meta"] == "20 × 10px / trimmed"
        assert body["filename"] == "photo--trim.png"
        assert body["background"] == {"transparent": False, "color": [255, 255, 255]}

        encoded = body["data_url"].split(",", 1)[1]
        with PILImage.open(BytesIO(base64.b64decode(encoded))) as png:
            assert png.size == (20, 10)

    def test_non_ascii_filename_keeps_stem(self, client, padded_image, png_bytes):
        response = upload(client, "/api/trim", png_bytes(padded_image.pixels),
                          filename="画像.png", tolerance="10")
        assert response.status_code == 200
        assert response.get_json()["filename"] == "画像--trim.png"

    def test_watermark_flag(self, client, pixels_factory, watermarked_pixels, png_bytes):
        framed = pixels_factory(260, 240, (255, 255, 255))
        framed[20:220, 30:230] = watermarked_pixels
        data = png_bytes(framed)

        removed = upload(client, "/api/trim", data, tolerance="5").get_json()
        kept = upload(client, "/api/trim", data, tolerance="5", remove_watermark="false").get_json()
        assert removed["watermark_removed"] is True
        assert kept["watermark_removed"] is False

    def test_entirely_background(self, client, pixels_factory, png_bytes):
        response = upload(client, "/api/trim", png_bytes(pixels_factory(10, 10)), tolerance="0")
        assert response.status_code == 422
        body = response.get_json()
        assert body["success"] is False
        assert "tolerance" in body["message"]

    def test_missing_image(self, client):
        response = client.post("/api/trim", data={}, content_type="multipart/form-data")
        assert response.status_code == 400
        assert response.get_json()["message"] == "No image provided"

    @pytest.mark.parametrize("tolerance", ["abc", "-1", "101"])
    def test_bad_tolerance(self, client, padded_image, png_bytes, tolerance):
        response = upload(client, "/api/trim", png_bytes(padded_image.pixels), tolerance=tolerance)
        assert response.status_code == 400

    def test_bad_flag(self, client, padded_image, png_bytes):
        response = upload(client, "/api/trim", png_bytes(padded_image.pixels), remove_watermark="maybe")
        assert response.status_code == 400

    def test_unsupported_extension(self, client, padded_image, png_bytes):
        response = upload(client, "/api/trim", png_bytes(padded_image.pixels), filename="photo.exe")
        assert response.status_code == 400

    def test_undecodable_upload(self, client):
        response = upload(client, "/api/trim", b"definitely not a png")
        assert response.status_code == 400
        assert response.get_json()["success"] is False


class TestDownloadEndpoint:
    """Test POST /api/trim/download."""

    def test_attachment(self, client, padded_image, png_bytes):
        response = upload(client, "/api/trim/download", png_bytes(padded_image.pixels),
                          filename="My Logo.png", tolerance="10")
        assert response.status_code == 200
        assert response.mimetype == "image/png"
        assert "My Logo--trim.png" in response.headers["Content-Disposition"]
        with PILImage.open(BytesIO(response.data)) as png:
            assert png.size == (20, 10)
            assert np.all(np.asarray(png)[..., :3] == (20, 30, 120))

    def test_non_ascii_attachment_name(self, client, padded_image, png_bytes):
        response = upload(client, "/api/trim/download", png_bytes(padded_image.pixels),
                          filename="ロゴ.png", tolerance="10")
        assert response.status_code == 200
        assert quote("ロゴ--trim.png") in response.headers["Content-Disposition"]

    def test_blank_download(self, client, pixels_factory, png_bytes):
        response = upload(client, "/api/trim/download", png_bytes(pixels_factory(10, 10)))
        assert response.status_code == 422


class TestUploadLimit:
    """Test the upload size limit."""

    def test_oversized_upload(self, client, monkeypatch, padded_image, png_bytes):
        monkeypatch.setitem(app.config, "MAX_CONTENT_LENGTH", 64)
        response = upload(client, "/api/trim", png_bytes(padded_image.pixels))
        assert response.status_code == 413
        assert "File too large" in response.get_json()["error"]


class TestHealth:
    """Test GET /api/health."""

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"
