from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

ENCODINGS = ("binary", "text")


@dataclass(frozen=True)
class EngineConfig:
    argument_encoding: str = "binary"   # 'binary' (fixed-width LE) | 'text' (UTF-8 decimal)
    jpeg_quality: int = 75              # 1..95, only used when the output is JPEG
    max_pixels: int = 100_000_000       # width * height guard on decode

    def __post_init__(self) -> None:
        if self.argument_encoding not in ENCODINGS:
            raise ValueError(
                f"argument_encoding must be one of {', '.join(ENCODINGS)}, got {self.argument_encoding!r}"
            )
        if not 1 <= int(self.jpeg_quality) <= 95:
            raise ValueError("jpeg_quality must be in 1..95")
        if int(self.max_pixels) <= 0:
            raise ValueError("max_pixels must be positive")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Build a config from IMAGEFX_* variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()
        try:
            quality = int(env.get("IMAGEFX_JPEG_QUALITY", defaults.jpeg_quality))
            max_pixels = int(env.get("IMAGEFX_MAX_PIXELS", defaults.max_pixels))
        except ValueError as e:
            raise ValueError(f"Invalid IMAGEFX_* setting: {e}") from e
        return cls(
            argument_encoding=env.get("IMAGEFX_ARG_ENCODING", defaults.argument_encoding).strip().lower(),
            jpeg_quality=quality,
            max_pixels=max_pixels,
        )


DEFAULT_CONFIG = EngineConfig()
