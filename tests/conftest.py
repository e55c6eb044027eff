"""Shared test fixtures."""

from io import BytesIO

import numpy as np
import pytest
from PIL import Image as PILImage

from dualpng.api_server import create_app
from dualpng.models.image import Image
from dualpng.repositories.image_repository import ImageRepository
from dualpng.repositories.session_repository import SessionRepository
from dualpng.services.session_service import SessionService

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)

_ENV_VARS = (
    "MAX_SESSIONS",
    "SESSION_LIMIT_POLICY",
    "BOOTSTRAP_SESSION_IDS",
    "AUTO_CREATE_SESSIONS",
    "DEFAULT_GAMMA",
    "DEFAULT_RANGE1",
    "DEFAULT_RANGE2",
    "RESIZE_INTERPOLATION",
    "SUPPORTED_FORMATS",
    "PLACEHOLDER_SIZE",
    "STATIC_DIR",
    "MAX_UPLOAD_SIZE_MB",
)


def solid_image(color, width: int, height: int) -> Image:
    pixels = np.empty((height, width, 4), dtype=np.uint8)
    pixels[:, :] = color
    return Image(pixels)


def random_image(width: int, height: int, seed: int = 0, opaque: bool = True) -> Image:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    if opaque:
        pixels[..., 3] = 255
    return Image(pixels)


def png_bytes(image: Image, fmt: str = "PNG") -> bytes:
    pil_img = PILImage.fromarray(image.pixels)
    if fmt == "JPEG":
        pil_img = pil_img.convert("RGB")
    buffer = BytesIO()
    pil_img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def session_repository() -> SessionRepository:
    return SessionRepository(max_sessions=0, limit_policy="reject")


@pytest.fixture
def session_service(session_repository) -> SessionService:
    return SessionService(
        session_repository=session_repository,
        image_repository=ImageRepository(),
        auto_create=False,
    )


@pytest.fixture
def app(session_service):
    app = create_app(session_service)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
