"""
vector.py — effect implementations for SVG documents (registers itself).

Instead of touching pixels, each effect injects one <filter id="EngineFilter">
holding a primitive chain, wraps the root's existing child elements in a group
that references it, and leaves rendering to whoever displays the document:

    <svg>                        <svg>
      <rect/>                      <filter id="EngineFilter">...</filter>
      <!-- note -->      →         <g filter="url(#EngineFilter)">
      <circle/>                      <rect/><circle/>
    </svg>                         </g>
                                 </svg>

Non-element top-level nodes (comments, text) are dropped. Crop is the odd one
out: it only rewrites the root's viewBox.
"""
from __future__ import annotations

import logging
import math
from typing import Callable, Optional

import numpy as np
from lxml import etree

from effects import REGISTRY, Param
from errors import MalformedArgument, MalformedDocument, SerializationFailure

log = logging.getLogger("imagefx.vector")

__all__ = [
    "FILTER_ID", "GRAYSCALE_MATRIX", "parse", "serialize", "format_number", "apply_filter",
    "grayscale", "blur", "transparency", "invert", "brighten", "huerotate", "crop",
]

FILTER_ID = "EngineFilter"
SRGB_STYLE = "color-interpolation-filters:sRGB"
# 1/3 per channel on the R, G, B rows; alpha row is identity
GRAYSCALE_MATRIX = "0.3333 0.3333 0.3333 0 0 0.3333 0.3333 0.3333 0 0 0.3333 0.3333 0.3333 0 0 0 0 0 1 0"

_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=False)


# ============================ document I/O ============================

def parse(raw: bytes) -> etree._Element:
    try:
        return etree.fromstring(bytes(raw), parser=_PARSER)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise MalformedDocument(f"could not parse SVG data: {e}") from e


def serialize(root: etree._Element) -> bytes:
    try:
        return etree.tostring(root.getroottree(), xml_declaration=True, encoding="UTF-8")
    except (etree.SerialisationError, ValueError, TypeError) as e:
        raise SerializationFailure(f"could not write SVG bytes: {e}") from e


def format_number(value: float) -> str:
    """Shortest text that reads back as the same float32 (2.5 → '2.5', 2.0 → '2')."""
    return np.format_float_positional(np.float32(value), trim="-")


def _finite(name: str, value: float) -> float:
    if not math.isfinite(value):
        raise MalformedArgument(f"{name} must be a finite number, got {value}")
    return value


def _tag(root: etree._Element, local: str) -> str:
    ns = etree.QName(root).namespace
    return f"{{{ns}}}{local}" if ns else local


# ============================ filter injection ============================

def apply_filter(root: etree._Element, build: Callable[[etree._Element], None],
                 style: Optional[str] = None) -> etree._Element:
    """Rebuild root's children as [filter, group(existing elements)]; `build` fills the filter."""
    kept = [child for child in root if isinstance(child.tag, str)]

    filt = root.makeelement(_tag(root, "filter"), {"id": FILTER_ID})
    if style:
        filt.set("style", style)
    build(filt)

    group = root.makeelement(_tag(root, "g"), {"filter": f"url(#{FILTER_ID})"})
    for child in kept:
        child.tail = None
    group.extend(kept)

    # whatever is left in root now is comments, PIs and text
    root.text = None
    root[:] = [filt, group]
    log.debug("Injected filter with %d primitive(s), wrapped %d element(s)", len(filt), len(kept))
    return root


def _component_transfer(filt: etree._Element, channels: str, **attrib: str) -> None:
    transfer = etree.SubElement(filt, _tag(filt, "feComponentTransfer"))
    for ch in channels:
        func = etree.SubElement(transfer, _tag(filt, f"feFunc{ch}"))
        for k, v in attrib.items():
            func.set(k, v)


# ============================ effects ============================

def grayscale(root: etree._Element) -> etree._Element:
    def build(filt: etree._Element) -> None:
        m = etree.SubElement(filt, _tag(filt, "feColorMatrix"))
        m.set("type", "matrix")
        m.set("values", GRAYSCALE_MATRIX)
    return apply_filter(root, build, style=SRGB_STYLE)


def blur(root: etree._Element, sigma: float) -> etree._Element:
    sigma = _finite("sigma", float(sigma))
    if sigma < 0:
        raise MalformedArgument(f"sigma must be >= 0, got {sigma}")

    def build(filt: etree._Element) -> None:
        g = etree.SubElement(filt, _tag(filt, "feGaussianBlur"))
        g.set("stdDeviation", format_number(sigma))
    return apply_filter(root, build)


def transparency(root: etree._Element, alpha: float) -> etree._Element:
    """Scale alpha by `alpha` (a fraction, used as the slope of a linear transfer)."""
    alpha = _finite("alpha", float(alpha))
    return apply_filter(
        root,
        lambda filt: _component_transfer(filt, "A", type="linear", slope=format_number(alpha), intercept="0"),
    )


def invert(root: etree._Element) -> etree._Element:
    return apply_filter(
        root,
        lambda filt: _component_transfer(filt, "RGB", type="table", tableValues="1 0"),
        style=SRGB_STYLE,
    )


def brighten(root: etree._Element, amount: float) -> etree._Element:
    amount = _finite("amount", float(amount))
    return apply_filter(
        root,
        lambda filt: _component_transfer(filt, "RGB", type="linear", slope="1", intercept=format_number(amount)),
        style=SRGB_STYLE,
    )


def huerotate(root: etree._Element, degrees: float) -> etree._Element:
    degrees = _finite("degrees", float(degrees))

    def build(filt: etree._Element) -> None:
        m = etree.SubElement(filt, _tag(filt, "feColorMatrix"))
        m.set("type", "hueRotate")
        m.set("values", format_number(degrees))
    return apply_filter(root, build, style=SRGB_STYLE)


def crop(root: etree._Element, x: float, y: float, width: float, height: float) -> etree._Element:
    """Replace (or add) the root viewBox; the drawing itself is untouched."""
    values = [_finite(n, float(v)) for n, v in (("x", x), ("y", y), ("width", width), ("height", height))]
    if values[2] < 0 or values[3] < 0:
        raise MalformedArgument(f"viewBox size must be non-negative, got {values[2]}x{values[3]}")
    root.set("viewBox", " ".join(format_number(v) for v in values))
    return root


# ---- Register with the shared registry ----
REGISTRY.register_vector("grayscale", grayscale)
REGISTRY.register_vector("blur", blur, (Param("sigma", "f32"),))
REGISTRY.register_vector("transparency", transparency, (Param("alpha", "f32", help="fraction 0..1"),))
REGISTRY.register_vector("invert", invert)
REGISTRY.register_vector("brighten", brighten, (Param("amount", "f32", help="fraction of full scale"),))
REGISTRY.register_vector("huerotate", huerotate, (Param("degrees", "f32"),))
REGISTRY.register_vector(
    "crop",
    crop,
    (Param("x", "f32"), Param("y", "f32"), Param("width", "f32"), Param("height", "f32")),
)
