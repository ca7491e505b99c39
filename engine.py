"""
engine.py — the host-facing call boundary.

A call is an operation name plus an ordered list of byte buffers: the input
(encoded image, or SVG for `svg_*` operations) followed by that operation's
parameters. It returns the re-encoded bytes, or a one-line error string.
Nothing survives between calls.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

# Import effect modules (registration happens at import time)
import masking  # noqa: F401
import raster  # noqa: F401
import vector
from argcodec import decode_bool, decode_flag, decode_number
from config import DEFAULT_CONFIG, EngineConfig
from effects import REGISTRY, Backend, Param
from errors import EngineError, MalformedArgument, MissingArgument, UnknownOperation
from formats import SourceFormat, coerce_output, encode, resolve

log = logging.getLogger("imagefx.engine")

__all__ = ["CallResult", "call", "invoke", "decode_arguments", "operations"]


@dataclass(frozen=True)
class CallResult:
    data: Optional[bytes] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def operations() -> list[str]:
    return REGISTRY.operations()


def _decode_param(p: Param, raw: bytes, config: EngineConfig) -> Any:
    try:
        if p.kind == "bool":
            return decode_bool(raw)
        if p.kind == "flag":
            return decode_flag(raw, p.name)
        if p.kind == "image":
            return resolve(raw, config).pixels
        return decode_number(raw, p.kind, config.argument_encoding)
    except EngineError as e:
        raise type(e)(f"argument '{p.name}': {e.message}", stage=e.stage) from e


def decode_arguments(backend: Backend, buffers: Sequence[bytes],
                     config: EngineConfig = DEFAULT_CONFIG) -> Dict[str, Any]:
    """Typed keyword arguments for `backend.fn`, in parameter order."""
    n = len(buffers)
    if n < backend.required:
        missing = [p.name for p in backend.params[n:] if not p.optional]
        raise MissingArgument(f"expected {backend.required} argument(s) after the input, got {n} "
                              f"(missing: {', '.join(missing)})")
    if n > len(backend.params):
        raise MalformedArgument(f"expected at most {len(backend.params)} argument(s) after the input, got {n}")
    return {p.name: _decode_param(p, raw, config) for p, raw in zip(backend.params, buffers)}


def invoke(operation: str, args: Sequence[bytes], config: Optional[EngineConfig] = None) -> bytes:
    """Run one operation; raises EngineError on any failure."""
    config = config or DEFAULT_CONFIG
    try:
        _effect, kind, backend = REGISTRY.lookup(operation)
    except KeyError as e:
        raise UnknownOperation(str(e.args[0])) from e
    if len(args) == 0:
        raise MissingArgument("no input buffer")

    source, rest = args[0], args[1:]
    params = decode_arguments(backend, rest, config)

    if kind == "vector":
        root = backend.fn(vector.parse(source), **params)
        return vector.serialize(root)

    decoded = resolve(source, config)
    pixels = backend.fn(decoded.pixels, **params)
    fmt = SourceFormat.PNG if backend.output == "png" else coerce_output(decoded.source)
    log.debug("%s: %s %dx%d -> %s", operation, decoded.detected, *decoded.size, fmt.value)
    return encode(pixels, fmt, config)


def call(operation: str, args: Sequence[bytes], config: Optional[EngineConfig] = None) -> CallResult:
    """Like invoke(), but reports engine failures as a descriptive string instead of raising."""
    log.debug("Call %s with %d buffer(s): %s", operation, len(args), [len(a) for a in args])
    try:
        return CallResult(data=invoke(operation, args, config))
    except EngineError as e:
        msg = e.describe(operation)
        log.info("%s (%s)", msg, e.code)
        return CallResult(error=msg)
