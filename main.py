from __future__ import annotations

import argparse
import logging
import mimetypes
import os
import sys
import time
from pathlib import Path
from typing import Any, List, Optional, Sequence, Tuple
from urllib.parse import unquote, urlparse

import requests

import engine
from argcodec import encode_bool, encode_flag, encode_number
from config import EngineConfig
from effects import REGISTRY, Param

# =============== Logging ===============
log = logging.getLogger("imagefx")


def setup_logging(verbosity: int = 0) -> None:
    level = [logging.WARNING, logging.INFO, logging.DEBUG][min(verbosity, 2)]
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(message)s",
        datefmt="%H:%M:%S",
    )


# =============== Core: Fetcher ===============
class FileFetcher:
    """Fetch bytes from http(s) / file:// / local path."""

    def __init__(self, timeout: float = 20.0) -> None:
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({"User-Agent": "imagefx/1.0"})

    def fetch(self, src: str) -> Tuple[bytes, Optional[str]]:
        parsed = urlparse(src)
        scheme = (parsed.scheme or "").lower()
        if scheme in ("http", "https"):
            return self._fetch_http(src)
        if scheme == "file":
            local_path = unquote(parsed.path)
            if os.name == "nt" and local_path.startswith("/"):
                local_path = local_path[1:]
            return self._fetch_local(local_path)
        if scheme == "" or (os.name == "nt" and len(scheme) == 1):
            return self._fetch_local(src)
        raise ValueError(f"Unsupported URL scheme: {scheme}")

    def _fetch_http(self, url: str) -> Tuple[bytes, Optional[str]]:
        log.info("Fetching: %s", url)
        r = self._session.get(url, timeout=self.timeout)
        r.raise_for_status()
        return r.content, r.headers.get("Content-Type")

    def _fetch_local(self, path_str: str) -> Tuple[bytes, Optional[str]]:
        p = Path(path_str)
        if not p.exists() or not p.is_file():
            raise FileNotFoundError(f"Input file not found: {p}")
        return p.read_bytes(), mimetypes.guess_type(p.name)[0]


# =============== Small CLI helpers ===============
def _coerce(v: str) -> Any:
    if v.isdigit():
        return int(v)
    try:
        return float(v)
    except ValueError:
        low = v.lower()
        if low in ("true", "false"):
            return low == "true"
    return v


def _encode_cli_arg(p: Param, text: str, config: EngineConfig, fetcher: FileFetcher) -> bytes:
    """Turn one --arg string into the wire buffer the operation expects for `p`."""
    if p.kind == "image":
        raw, _ctype = fetcher.fetch(text)
        return raw
    v = _coerce(text.strip())
    if p.kind == "bool":
        if isinstance(v, str):
            raise ValueError(f"{p.name}: expected true/false or 0/1, got {text!r}")
        return encode_bool(bool(v))
    if p.kind == "flag":
        modes = {"absolute": 0, "ratio": 1}
        value = modes.get(str(v).lower(), v)
        if value not in (0, 1) or isinstance(value, bool):
            raise ValueError(f"{p.name}: expected 0/1 (absolute/ratio), got {text!r}")
        return encode_flag(int(value))
    if isinstance(v, (str, bool)):
        raise ValueError(f"{p.name}: expected a number, got {text!r}")
    if p.kind == "f32":
        return encode_number(float(v), "f32", config.argument_encoding)
    if isinstance(v, float) and not v.is_integer():
        raise ValueError(f"{p.name}: expected an integer, got {text!r}")
    return encode_number(int(v), p.kind, config.argument_encoding)


def _build_call(args: argparse.Namespace, config: EngineConfig) -> List[bytes]:
    _effect, _kind, backend = REGISTRY.lookup(args.op)
    values: Sequence[str] = args.arg or []
    if len(values) > len(backend.params):
        raise ValueError(f"{args.op} takes at most {len(backend.params)} argument(s), got {len(values)}")
    fetcher = FileFetcher()
    raw, _ctype = fetcher.fetch(args.url)
    buffers = [raw]
    buffers.extend(_encode_cli_arg(p, text, config, fetcher) for p, text in zip(backend.params, values))
    return buffers


def _config_from_args(args: argparse.Namespace) -> EngineConfig:
    base = EngineConfig.from_env()
    return EngineConfig(
        argument_encoding=args.arg_encoding or base.argument_encoding,
        jpeg_quality=args.jpeg_quality or base.jpeg_quality,
        max_pixels=base.max_pixels,
    )


# =============== CLI ===============
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Raster / SVG image effects engine")
    p.add_argument("-v", "--verbose", action="count", default=0, help="Increase verbosity (-v, -vv).")

    sub = p.add_subparsers(dest="cmd", required=True)

    lp = sub.add_parser("list", help="List operations and their arguments.")
    lp.set_defaults(func=cmd_list)

    def add_call_args(sp: argparse.ArgumentParser) -> None:
        sp.add_argument("--url", required=True, help="HTTP(S) URL, file:// URL, or local path of the input.")
        sp.add_argument("--op", required=True, choices=REGISTRY.operations(), help="Operation name.")
        sp.add_argument("--arg", nargs="*", help="Operation arguments in order (image arguments are paths/URLs).")
        sp.add_argument("--arg-encoding", choices=("binary", "text"), default=None,
                        help="Wire encoding for numeric arguments (default: IMAGEFX_ARG_ENCODING or binary).")
        sp.add_argument("--jpeg-quality", type=int, default=None, help="Quality for JPEG output (1..95).")

    rp = sub.add_parser("run", help="Apply one operation and write the result.")
    add_call_args(rp)
    rp.add_argument("--out", type=Path, required=True, help="Output file.")
    rp.set_defaults(func=cmd_run)

    bp = sub.add_parser("bench", help="Micro-benchmark one operation.")
    add_call_args(bp)
    bp.add_argument("--runs", type=int, default=3)
    bp.set_defaults(func=cmd_bench)

    return p


# =============== Commands ===============
def cmd_list(_args: argparse.Namespace) -> int:
    print("Available operations:")
    for line in REGISTRY.describe():
        print("  " + line)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    try:
        config = _config_from_args(args)
        buffers = _build_call(args, config)
        result = engine.call(args.op, buffers, config)
        if not result.ok:
            log.error("%s", result.error)
            return 1
        args.out.parent.mkdir(parents=True, exist_ok=True)
        args.out.write_bytes(result.data)
        log.info("Saved %s (%d bytes)", args.out, len(result.data))
        return 0
    except Exception as e:
        log.exception("Failed: %s", e)
        return 1


def cmd_bench(args: argparse.Namespace) -> int:
    try:
        config = _config_from_args(args)
        buffers = _build_call(args, config)
        times = []
        for _ in range(max(1, args.runs)):
            t0 = time.perf_counter()
            result = engine.call(args.op, buffers, config)
            times.append(time.perf_counter() - t0)
            if not result.ok:
                log.error("%s", result.error)
                return 1
        avg = sum(times) / len(times)
        print(
            f"{args.op}: {len(times)} run(s), avg {avg*1000:.2f} ms, "
            f"min {min(times)*1000:.2f} ms, max {max(times)*1000:.2f} ms"
        )
        return 0
    except Exception as e:
        log.exception("Bench failed: %s", e)
        return 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
