from __future__ import annotations

import pytest

import engine  # noqa: F401  (populates REGISTRY)
from effects import REGISTRY, EffectRegistry, Param


def test_lookup_splits_prefix():
    eff, kind, backend = REGISTRY.lookup("svg_blur")
    assert eff.name == "blur" and kind == "vector"
    assert [p.kind for p in backend.params] == ["f32"]

    _eff, kind, backend = REGISTRY.lookup("blur")
    assert kind == "raster"
    assert [p.kind for p in backend.params] == ["f32"]


def test_raster_and_vector_parameter_types_differ():
    _, _, raster_backend = REGISTRY.lookup("brighten")
    _, _, vector_backend = REGISTRY.lookup("svg_brighten")
    assert raster_backend.params[0].kind == "i32"
    assert vector_backend.params[0].kind == "f32"


def test_crop_has_optional_mode():
    _, _, backend = REGISTRY.lookup("crop")
    assert backend.required == 4
    mode = backend.params[-1]
    assert (mode.name, mode.kind, mode.optional) == ("mode", "flag", True)


def test_png_outputs():
    assert REGISTRY.lookup("transparency")[2].output == "png"
    assert REGISTRY.lookup("mask")[2].output == "png"
    assert REGISTRY.lookup("invert")[2].output == "source"


@pytest.mark.parametrize("op", ["svg_mask", "svg_rotate90", "nope", "svg_"])
def test_unknown_operations(op):
    with pytest.raises(KeyError):
        REGISTRY.lookup(op)


def test_registration_rules():
    reg = EffectRegistry()
    with pytest.raises(ValueError):
        reg.register_raster("svg_x", lambda p: p)
    with pytest.raises(ValueError):
        reg.register_raster("x", lambda p, a, b: p, (Param("a", "u32", optional=True), Param("b", "u32")))
    with pytest.raises(ValueError):
        Param("a", "u64")

    reg.register_vector("only_vector", lambda r: r)
    assert reg.operations() == ["svg_only_vector"]
    assert reg.describe() == ["svg_only_vector"]
