from __future__ import annotations

import numpy as np
from PIL import Image

from effects import REGISTRY, Param

__all__ = ["mask", "luma", "resize_nearest", "LUMA_WEIGHTS"]

# Rec. 709, in units of 1/10000
LUMA_WEIGHTS = np.array([2126, 7152, 722], dtype=np.int64)


def luma(pixels: np.ndarray) -> np.ndarray:
    """8-bit perceptual brightness of an RGBA array; the weighted sum is truncated."""
    return ((pixels[..., :3].astype(np.int64) @ LUMA_WEIGHTS) // 10000).astype(np.uint8)


def resize_nearest(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    img = Image.fromarray(np.ascontiguousarray(pixels), "RGBA")
    return np.array(img.resize((width, height), Image.Resampling.NEAREST), dtype=np.uint8)


def mask(pixels: np.ndarray, mask: np.ndarray, use_alpha: bool = False) -> np.ndarray:
    """
    Multiply the target's alpha by the mask value: the mask's alpha channel when
    `use_alpha`, otherwise its luma. A mask of another size is resampled
    (nearest neighbor) to the target first. RGB is copied from the target.
    """
    H, W = pixels.shape[:2]
    if mask.shape[:2] != (H, W):
        mask = resize_nearest(mask, W, H)

    target_a = pixels[..., 3].astype(np.float64) / 255.0
    if use_alpha:
        mask_v = mask[..., 3].astype(np.float64) / 255.0
    else:
        mask_v = luma(mask).astype(np.float64) / 255.0

    out = pixels.copy()
    out[..., 3] = np.clip(np.floor(target_a * mask_v * 255.0 + 0.5), 0, 255).astype(np.uint8)
    return out


# ---- Register with the shared registry ----
REGISTRY.register_raster(
    "mask",
    mask,
    (Param("mask", "image"), Param("use_alpha", "bool")),
    output="png",
    help="Scale target alpha by mask luma (or mask alpha)",
)
