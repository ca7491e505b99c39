"""
formats.py — decode bytes → RGBA pixel buffer, and encode it back.

The source format is always sniffed from the bytes themselves. Output is
restricted to PNG / JPEG / GIF: anything else that decodes (BMP, TIFF, WebP,
HEIF, ...) is written back as PNG.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

from config import DEFAULT_CONFIG, EngineConfig
from errors import DecodeFailure, EncodeFailure, UnknownFormat

try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
except Exception:
    pass

log = logging.getLogger("imagefx.formats")

__all__ = ["SourceFormat", "DecodedImage", "sniff", "resolve", "coerce_output", "encode"]


class SourceFormat(str, Enum):
    PNG = "PNG"
    JPEG = "JPEG"
    GIF = "GIF"
    OTHER = "Other"


# Magic numbers we can name even when the body is too broken for Pillow to open.
_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "PNG"),
    (b"\xff\xd8\xff", "JPEG"),
    (b"GIF87a", "GIF"),
    (b"GIF89a", "GIF"),
    (b"BM", "BMP"),
    (b"II*\x00", "TIFF"),
    (b"MM\x00*", "TIFF"),
    (b"\x00\x00\x01\x00", "ICO"),
    (b"qoif", "QOI"),
)


@dataclass
class DecodedImage:
    pixels: np.ndarray      # (H, W, 4) uint8, RGBA
    source: SourceFormat
    detected: str           # Pillow's format name, e.g. "BMP"

    @property
    def size(self) -> tuple[int, int]:
        h, w = self.pixels.shape[:2]
        return w, h


def sniff(raw: bytes) -> Optional[str]:
    head = bytes(raw[:12])
    for magic, name in _SIGNATURES:
        if head.startswith(magic):
            return name
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "WEBP"
    return None


def _to_source(detected: str) -> SourceFormat:
    try:
        return SourceFormat(detected.upper())
    except ValueError:
        return SourceFormat.OTHER


def _to_8bit(img: Image.Image) -> Image.Image:
    """Scale 16-bit / 32-bit integer and float gray modes down to 'L'; other modes pass through."""
    if img.mode.startswith("I;16") or img.mode == "I":
        # Pillow clips these on convert() instead of scaling
        arr = np.clip(np.asarray(img).astype(np.int64), 0, 65535) >> 8
    elif img.mode == "F":
        arr = np.rint(np.clip(np.nan_to_num(np.asarray(img, dtype=np.float64)), 0.0, 1.0) * 255.0)
    else:
        return img
    return Image.fromarray(arr.astype(np.uint8), "L")


def resolve(raw: bytes, config: EngineConfig = DEFAULT_CONFIG) -> DecodedImage:
    """Decode `raw` to RGBA and report the format it was sniffed as."""
    try:
        img = Image.open(io.BytesIO(raw))
    except UnidentifiedImageError as e:
        named = sniff(raw)
        if named is None:
            raise UnknownFormat("input does not match any known image signature") from e
        raise DecodeFailure(f"{named} signature found but the data could not be parsed: {e}") from e
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise DecodeFailure(f"could not read image header: {e}") from e

    with img:
        detected = (img.format or sniff(raw) or "unknown").upper()
        w, h = img.size
        if w * h > config.max_pixels:
            raise DecodeFailure(f"image too large: {w}x{h} exceeds {config.max_pixels} pixels")
        try:
            img.load()
            rgba = _to_8bit(img).convert("RGBA")
        except Image.DecompressionBombError as e:
            raise DecodeFailure(f"image too large: {e}") from e
        except (OSError, ValueError, SyntaxError, EOFError) as e:
            raise DecodeFailure(f"could not decode {detected} data: {e}") from e

    pixels = np.array(rgba, dtype=np.uint8)
    source = _to_source(detected)
    log.debug("Decoded %s (%dx%d) as %s", detected, w, h, source.value)
    return DecodedImage(pixels=pixels, source=source, detected=detected)


def coerce_output(source: SourceFormat) -> SourceFormat:
    """PNG/JPEG/GIF pass through; every other source format is written as PNG."""
    if source in (SourceFormat.PNG, SourceFormat.JPEG, SourceFormat.GIF):
        return source
    log.debug("No encoder policy for source format %s, falling back to PNG", source.value)
    return SourceFormat.PNG


def encode(pixels: np.ndarray, fmt: SourceFormat, config: EngineConfig = DEFAULT_CONFIG) -> bytes:
    if fmt not in (SourceFormat.PNG, SourceFormat.JPEG, SourceFormat.GIF):
        raise EncodeFailure(f"unsupported output format: {fmt.value}")
    if pixels.ndim != 3 or pixels.shape[2] != 4 or pixels.shape[0] == 0 or pixels.shape[1] == 0:
        raise EncodeFailure(f"cannot encode pixel buffer of shape {pixels.shape}")

    img = Image.fromarray(np.ascontiguousarray(pixels, dtype=np.uint8), "RGBA")
    kwargs = {}
    if fmt is SourceFormat.JPEG:
        # JPEG has no alpha channel
        img = img.convert("RGB")
        kwargs["quality"] = int(config.jpeg_quality)

    buf = io.BytesIO()
    try:
        img.save(buf, format=fmt.value, **kwargs)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeFailure(f"could not write {fmt.value} data: {e}") from e
    return buf.getvalue()
