"""Tests for decoding and gAMA PNG encoding."""

import struct
from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

from dualpng.models.errors import DecodeFailureError
from dualpng.repositories.image_repository import ImageRepository
from tests.conftest import png_bytes, random_image, solid_image


def test_encode_writes_gama_chunk() -> None:
    data = ImageRepository.encode_png(solid_image((1, 2, 3, 255), 4, 4), gamma=2300)

    assert b"gAMA" + struct.pack(">I", 2300) in data
    assert data.index(b"gAMA") < data.index(b"IDAT")
    with PILImage.open(BytesIO(data)) as decoded:
        assert decoded.info["gamma"] == pytest.approx(0.023)


def test_encode_without_gamma_is_plain_png() -> None:
    data = ImageRepository.encode_png(solid_image((1, 2, 3, 255), 4, 4))

    assert b"gAMA" not in data
    with PILImage.open(BytesIO(data)) as decoded:
        assert "gamma" not in decoded.info


def test_encode_rejects_out_of_range_gamma() -> None:
    with pytest.raises(ValueError):
        ImageRepository.encode_png(solid_image((0, 0, 0, 255), 1, 1), gamma=2 ** 32)


def test_decode_png_keeps_pixels() -> None:
    img = random_image(5, 3, seed=1, opaque=False)

    decoded = ImageRepository().decode(ImageRepository.encode_png(img, gamma=1000))

    np.testing.assert_array_equal(decoded.pixels, img.pixels)


def test_decode_jpeg_and_gif_to_rgba() -> None:
    repo = ImageRepository()
    img = solid_image((200, 10, 10, 255), 8, 8)

    jpeg = repo.decode(png_bytes(img, "JPEG"))
    gif = repo.decode(png_bytes(img, "GIF"))

    assert jpeg.pixels.shape == (8, 8, 4)
    assert np.all(jpeg.pixels[..., 3] == 255)
    assert gif.size == (8, 8)


def test_decode_rejects_garbage() -> None:
    with pytest.raises(DecodeFailureError):
        ImageRepository().decode(b"definitely not an image")


def test_decode_rejects_unsupported_format() -> None:
    repo = ImageRepository(formats=["PNG"])

    with pytest.raises(DecodeFailureError):
        repo.decode(png_bytes(solid_image((0, 0, 0, 255), 2, 2), "GIF"))


def test_create_uniform_adds_opaque_alpha() -> None:
    img = ImageRepository.create_uniform((9, 8, 7), 3, 2)

    assert img.size == (3, 2)
    assert np.all(img.pixels == [9, 8, 7, 255])


def test_save_and_load(tmp_path) -> None:
    img = random_image(4, 4, seed=2)
    repo = ImageRepository()

    path = repo.save(img, tmp_path / "out.png", gamma=2300)
    loaded = repo.load(path)

    np.testing.assert_array_equal(loaded.pixels, img.pixels)
    assert loaded.path == path


def test_load_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        ImageRepository().load(tmp_path / "missing.png")


def test_decode_rejects_images_over_pixel_limit(monkeypatch) -> None:
    data = png_bytes(solid_image((0, 0, 0, 255), 8, 8))
    monkeypatch.setattr(PILImage, "MAX_IMAGE_PIXELS", 10)

    with pytest.raises(DecodeFailureError):
        ImageRepository().decode(data)
