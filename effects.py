from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

__all__ = ["Param", "Backend", "Effect", "EffectRegistry", "REGISTRY", "VECTOR_PREFIX"]

VECTOR_PREFIX = "svg_"
PARAM_KINDS = ("u32", "i32", "f32", "bool", "flag", "image")


@dataclass(frozen=True)
class Param:
    name: str
    kind: str                 # one of PARAM_KINDS
    optional: bool = False    # trailing arguments only
    help: str = ""

    def __post_init__(self) -> None:
        if self.kind not in PARAM_KINDS:
            raise ValueError(f"Unknown parameter kind '{self.kind}' for '{self.name}'")


@dataclass(frozen=True)
class Backend:
    fn: Callable
    params: Tuple[Param, ...] = ()
    output: str = "source"    # raster: 'source' (fallback policy) | 'png'; vector: 'svg'

    @property
    def required(self) -> int:
        return sum(1 for p in self.params if not p.optional)


@dataclass
class Effect:
    """One visual effect with up to two implementations (pixels / filter graph)."""
    name: str
    raster: Optional[Backend] = None
    vector: Optional[Backend] = None
    help: str = ""

    def backends(self) -> List[str]:
        return [k for k in ("raster", "vector") if getattr(self, k) is not None]


# =============== Registry ===============
class EffectRegistry:
    def __init__(self) -> None:
        self._by_name: Dict[str, Effect] = {}

    def _entry(self, name: str) -> Effect:
        key = name.strip().lower()
        if key.startswith(VECTOR_PREFIX):
            raise ValueError(f"Effect names may not start with '{VECTOR_PREFIX}': {name}")
        return self._by_name.setdefault(key, Effect(name=key))

    def register_raster(self, name: str, fn: Callable, params: Tuple[Param, ...] = (),
                        output: str = "source", help: str = "") -> None:
        if output not in ("source", "png"):
            raise ValueError(f"Unknown raster output policy '{output}'")
        _check_optional_tail(name, params)
        entry = self._entry(name)
        entry.raster = Backend(fn=fn, params=tuple(params), output=output)
        entry.help = entry.help or help

    def register_vector(self, name: str, fn: Callable, params: Tuple[Param, ...] = (), help: str = "") -> None:
        _check_optional_tail(name, params)
        entry = self._entry(name)
        entry.vector = Backend(fn=fn, params=tuple(params), output="svg")
        entry.help = entry.help or help

    def names(self) -> list[str]:
        return sorted(self._by_name.keys())

    def get(self, name: str) -> Effect:
        key = name.strip().lower()
        if key not in self._by_name:
            raise KeyError(f"Unknown effect '{name}'. Available: {', '.join(self.names()) or '(none)'}")
        return self._by_name[key]

    def operations(self) -> list[str]:
        """Host-facing operation names: '<effect>' for raster, 'svg_<effect>' for vector."""
        ops: list[str] = []
        for name in self.names():
            eff = self._by_name[name]
            if eff.raster is not None:
                ops.append(name)
            if eff.vector is not None:
                ops.append(VECTOR_PREFIX + name)
        return ops

    def lookup(self, operation: str) -> Tuple[Effect, str, Backend]:
        """Map an operation name to (effect, backend kind, backend). Raises KeyError."""
        key = operation.strip().lower()
        kind = "raster"
        if key.startswith(VECTOR_PREFIX):
            key, kind = key[len(VECTOR_PREFIX):], "vector"
        eff = self._by_name.get(key)
        backend = getattr(eff, kind) if eff is not None else None
        if backend is None:
            raise KeyError(f"Unknown operation '{operation}'. Available: {', '.join(self.operations()) or '(none)'}")
        return eff, kind, backend

    def describe(self) -> list[str]:
        lines = []
        for op in self.operations():
            _, _, backend = self.lookup(op)
            args = " ".join(f"[{p.name}:{p.kind}]" if p.optional else f"{p.name}:{p.kind}" for p in backend.params)
            lines.append(f"{op} {args}".rstrip())
        return lines


def _check_optional_tail(name: str, params: Tuple[Param, ...]) -> None:
    seen_optional = False
    for p in params:
        if p.optional:
            seen_optional = True
        elif seen_optional:
            raise ValueError(f"{name}: required parameter '{p.name}' follows an optional one")


REGISTRY = EffectRegistry()
