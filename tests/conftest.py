"""
Shared fixtures for image snapshot tests
"""

import io

import pytest
from PIL import Image

from image_snapshot.core.config import reset_settings


def _png(size=(10, 10), color=(255, 255, 255, 255), marks=()) -> bytes:
    img = Image.new("RGBA", size, color)
    for x, y, mark in marks:
        img.putpixel((x, y), mark)
    buffer = io.BytesIO()
    img.save(buffer, "PNG")
    return buffer.getvalue()


@pytest.fixture
def png_factory():
    """
    Build PNG bytes.

    Usage: png_factory(size=(w, h), color=(r, g, b, a), marks=[(x, y, (r, g, b, a)), ...])
    """
    return _png


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isolate tests from the caller's environment and the settings singleton"""
    for name in ("CI", "TERM_PROGRAM", "ENABLE_INLINE_DIFF"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("IMAGE_SNAPSHOT_INTERACTIVE_REVIEW", "false")
    reset_settings()
    yield
    reset_settings()
