# tests/conftest.py
from __future__ import annotations

import io
import sys
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

SVG_NS = "http://www.w3.org/2000/svg"


def solid(w: int, h: int, rgba=(10, 20, 30, 255)) -> np.ndarray:
    arr = np.zeros((h, w, 4), np.uint8)
    arr[...] = rgba
    return arr


def noise(w: int, h: int, seed: int = 0, opaque: bool = False) -> np.ndarray:
    rng = np.random.default_rng(seed)
    arr = rng.integers(0, 256, size=(h, w, 4), dtype=np.uint8)
    if opaque:
        arr[..., 3] = 255
    return arr


def encode_as(arr: np.ndarray, fmt: str) -> bytes:
    img = Image.fromarray(arr, "RGBA")
    if fmt in ("JPEG", "BMP"):
        img = img.convert("RGB")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def open_rgba(raw: bytes) -> tuple[str, np.ndarray]:
    with Image.open(io.BytesIO(raw)) as img:
        return img.format, np.array(img.convert("RGBA"))


@pytest.fixture()
def png_100() -> bytes:
    return encode_as(noise(100, 100, seed=1), "PNG")


@pytest.fixture()
def svg_doc() -> bytes:
    return (
        b'<svg xmlns="http://www.w3.org/2000/svg" width="100" height="50">'
        b"<!-- header -->"
        b'<rect x="0" y="0" width="10" height="10" fill="red"/>'
        b"\n  loose text\n"
        b'<g id="inner"><!-- kept --><circle r="4"/></g>'
        b"</svg>"
    )
