# raster.py — pixel implementations of the effect catalogue (registers itself)
# -----------------------------------------------------------------------------
# Every function takes an (H, W, 4) uint8 RGBA array and returns a new one; the
# input is never modified. Registration at the bottom wires each function into
# the shared effects.REGISTRY under its host-facing name and wire parameters.
# -----------------------------------------------------------------------------
from __future__ import annotations

import math

import numpy as np

from effects import REGISTRY, Param
from errors import MalformedArgument, OutOfBounds

__all__ = [
    "grayscale", "invert", "brighten", "huerotate", "blur", "crop", "transparency",
    "flip_vertical", "flip_horizontal", "rotate90", "rotate180", "rotate270", "convert",
    "rgb_to_hsv", "hsv_to_rgb", "gaussian_kernel",
]

CROP_ABSOLUTE = 0
CROP_RATIO = 1


# ============================ low-level helpers ============================

def _with_rgb(pixels: np.ndarray, rgb: np.ndarray) -> np.ndarray:
    """New RGBA array: rounded/clipped `rgb` plus the untouched alpha of `pixels`."""
    out = pixels.copy()
    out[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    return out


def _finite(name: str, value: float) -> float:
    if not math.isfinite(value):
        raise MalformedArgument(f"{name} must be a finite number, got {value}")
    return value


def rgb_to_hsv(rgb01: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """RGB in [0,1] → (hue degrees [0,360), saturation, value)."""
    r, g, b = rgb01[..., 0], rgb01[..., 1], rgb01[..., 2]
    mx = rgb01.max(axis=-1)
    mn = rgb01.min(axis=-1)
    d = mx - mn
    with np.errstate(divide="ignore", invalid="ignore"):
        hr = np.mod((g - b) / d, 6.0)
        hg = (b - r) / d + 2.0
        hb = (r - g) / d + 4.0
        h = np.select([d == 0, mx == r, mx == g], [0.0, hr, hg], hb) * 60.0
        s = np.where(mx > 0, d / mx, 0.0)
    return h, s, mx


def hsv_to_rgb(h: np.ndarray, s: np.ndarray, v: np.ndarray) -> np.ndarray:
    h6 = np.mod(h / 60.0, 6.0)
    i = np.clip(np.floor(h6).astype(np.int64), 0, 5)
    f = h6 - i
    p = v * (1.0 - s)
    q = v * (1.0 - s * f)
    t = v * (1.0 - s * (1.0 - f))
    r = np.choose(i, [v, q, p, p, t, v])
    g = np.choose(i, [t, v, v, q, p, p])
    b = np.choose(i, [p, p, t, v, v, q])
    return np.stack([r, g, b], axis=-1)


def gaussian_kernel(sigma: float, limit: int | None = None) -> np.ndarray:
    r = max(1, int(math.ceil(3.0 * sigma)))
    if limit is not None:
        r = max(1, min(r, limit))
    x = np.arange(-r, r + 1, dtype=np.float64)
    k = np.exp(-(x * x) / (2.0 * sigma * sigma))
    return k / k.sum()


def _convolve_axis(arr: np.ndarray, kernel: np.ndarray, axis: int) -> np.ndarray:
    """1D convolution along `axis` with edge-replicated borders; output keeps the shape."""
    r = len(kernel) // 2
    pad = [(0, 0)] * arr.ndim
    pad[axis] = (r, r)
    fp = np.pad(arr, pad, mode="edge")
    n = arr.shape[axis]
    out = np.zeros_like(arr)
    sl = [slice(None)] * arr.ndim
    for i, w in enumerate(kernel):
        sl[axis] = slice(i, i + n)
        out += w * fp[tuple(sl)]
    return out


# ============================ color effects ============================

def grayscale(pixels: np.ndarray) -> np.ndarray:
    """Equal 1/3 weights per channel, same coefficients as the vector color matrix."""
    rgb = pixels[..., :3].astype(np.float64)
    gray = rgb.sum(axis=-1, keepdims=True) / 3.0
    return _with_rgb(pixels, np.repeat(gray, 3, axis=-1))


def invert(pixels: np.ndarray) -> np.ndarray:
    out = pixels.copy()
    out[..., :3] = 255 - pixels[..., :3]
    return out


def brighten(pixels: np.ndarray, amount: int) -> np.ndarray:
    rgb = pixels[..., :3].astype(np.int64) + int(amount)
    return _with_rgb(pixels, rgb)


def huerotate(pixels: np.ndarray, degrees: int) -> np.ndarray:
    shift = float(int(degrees) % 360)
    if shift == 0:
        return pixels.copy()
    h, s, v = rgb_to_hsv(pixels[..., :3].astype(np.float64) / 255.0)
    rgb = hsv_to_rgb(np.mod(h + shift, 360.0), s, v)
    return _with_rgb(pixels, rgb * 255.0)


def transparency(pixels: np.ndarray, alpha: int) -> np.ndarray:
    """Replace every pixel's alpha with `alpha` (0..255)."""
    if not 0 <= int(alpha) <= 255:
        raise MalformedArgument(f"alpha must be in 0..255, got {alpha}")
    out = pixels.copy()
    out[..., 3] = int(alpha)
    return out


# ============================ spatial effects ============================

def blur(pixels: np.ndarray, sigma: float) -> np.ndarray:
    """Separable Gaussian blur over all four channels, alpha included."""
    sigma = _finite("sigma", float(sigma))
    if sigma < 0:
        raise MalformedArgument(f"sigma must be >= 0, got {sigma}")
    if sigma == 0:
        return pixels.copy()
    H, W = pixels.shape[:2]
    arr = pixels.astype(np.float64)
    arr = _convolve_axis(arr, gaussian_kernel(sigma, limit=W), axis=1)
    arr = _convolve_axis(arr, gaussian_kernel(sigma, limit=H), axis=0)
    return np.clip(np.rint(arr), 0, 255).astype(np.uint8)


def crop(pixels: np.ndarray, x: int, y: int, width: float, height: float,
         mode: int = CROP_ABSOLUTE) -> np.ndarray:
    """
    Cut out (x, y, w, h). In ratio mode w/h are fractions of the source size;
    both modes truncate to whole pixels. Rectangles that leave the image are rejected.
    """
    H, W = pixels.shape[:2]
    width = _finite("width", float(width))
    height = _finite("height", float(height))
    if width < 0 or height < 0:
        raise MalformedArgument(f"crop size must be non-negative, got {width}x{height}")

    if mode == CROP_RATIO:
        w, h = int(width * W), int(height * H)
    elif mode == CROP_ABSOLUTE:
        w, h = int(width), int(height)
    else:
        raise MalformedArgument(f"unknown crop mode {mode}")

    if w == 0 or h == 0:
        raise OutOfBounds(
            f"empty crop rectangle {w}x{h} from width={width:g}, height={height:g} "
            f"(width and height are f32 in both modes)"
        )
    if x + w > W or y + h > H:
        raise OutOfBounds(f"crop rectangle ({x}, {y}, {w}, {h}) exceeds image bounds {W}x{H}")
    return pixels[y:y + h, x:x + w].copy()


def flip_vertical(pixels: np.ndarray) -> np.ndarray:
    return pixels[::-1].copy()


def flip_horizontal(pixels: np.ndarray) -> np.ndarray:
    return pixels[:, ::-1].copy()


def rotate90(pixels: np.ndarray) -> np.ndarray:
    # clockwise
    return np.rot90(pixels, k=-1, axes=(0, 1)).copy()


def rotate180(pixels: np.ndarray) -> np.ndarray:
    return pixels[::-1, ::-1].copy()


def rotate270(pixels: np.ndarray) -> np.ndarray:
    return np.rot90(pixels, k=1, axes=(0, 1)).copy()


def convert(pixels: np.ndarray) -> np.ndarray:
    return pixels


# ---- Register with the shared registry ----
REGISTRY.register_raster("grayscale", grayscale, help="Equal-weight gray")
REGISTRY.register_raster("invert", invert, help="255 - value on RGB")
REGISTRY.register_raster("brighten", brighten, (Param("amount", "i32"),), help="Add amount to RGB, saturating")
REGISTRY.register_raster("huerotate", huerotate, (Param("degrees", "i32"),), help="Rotate hue in HSV space")
REGISTRY.register_raster("blur", blur, (Param("sigma", "f32"),), help="Gaussian blur")
REGISTRY.register_raster(
    "crop",
    crop,
    (
        Param("x", "u32"),
        Param("y", "u32"),
        Param("width", "f32"),
        Param("height", "f32"),
        Param("mode", "flag", optional=True, help="0 = absolute pixels, 1 = ratio of source size"),
    ),
    help="Cut out a rectangle",
)
REGISTRY.register_raster("transparency", transparency, (Param("alpha", "u32"),), output="png",
                         help="Set alpha everywhere")
REGISTRY.register_raster("flip_vertical", flip_vertical)
REGISTRY.register_raster("flip_horizontal", flip_horizontal)
REGISTRY.register_raster("rotate90", rotate90)
REGISTRY.register_raster("rotate180", rotate180)
REGISTRY.register_raster("rotate270", rotate270)
REGISTRY.register_raster("convert", convert, help="Re-encode only")
