from __future__ import annotations

import numpy as np
import pytest
from lxml import etree

import engine
from argcodec import encode_bool, encode_f32, encode_flag, encode_i32, encode_text_number, encode_u32
from config import EngineConfig
from errors import MissingArgument, UnknownOperation

from conftest import SVG_NS, encode_as, noise, open_rgba, solid


def crop_args(x=0, y=0, w=0.5, h=0.5, mode=1):
    return [encode_u32(x), encode_u32(y), encode_f32(w), encode_f32(h), encode_flag(mode)]


# ---------------------------- raster dispatch ----------------------------

def test_transparency_always_returns_png():
    raw = encode_as(solid(20, 10, (200, 10, 10, 255)), "JPEG")
    result = engine.call("transparency", [raw, encode_u32(128)])
    assert result.ok, result.error
    fmt, out = open_rgba(result.data)
    assert fmt == "PNG"
    assert (out[..., 3] == 128).all()


@pytest.mark.parametrize("src,expected", [("BMP", "PNG"), ("TIFF", "PNG"), ("GIF", "GIF"), ("JPEG", "JPEG"), ("PNG", "PNG")])
def test_output_follows_source_format(src, expected):
    result = engine.call("grayscale", [encode_as(solid(8, 8, (90, 30, 60, 255)), src)])
    assert result.ok, result.error
    assert open_rgba(result.data)[0] == expected


def test_crop_ratio_mode(png_100):
    result = engine.call("crop", [png_100] + crop_args())
    assert result.ok, result.error
    assert open_rgba(result.data)[1].shape[:2] == (50, 50)


def test_crop_mode_is_optional(png_100):
    result = engine.call("crop", [png_100] + crop_args(w=30.0, h=20.0)[:4])
    assert result.ok, result.error
    assert open_rgba(result.data)[1].shape[:2] == (20, 30)


def test_crop_empty_mode_buffer(png_100):
    args = [png_100] + crop_args()[:4] + [b""]
    result = engine.call("crop", args)
    assert result.data is None
    assert "MissingArgument" in result.error


def test_crop_out_of_bounds(png_100):
    result = engine.call("crop", [png_100] + crop_args(x=80, w=50.0, h=10.0, mode=0))
    assert "OutOfBounds" in result.error


def test_crop_with_integer_sizes_names_f32(png_100):
    args = [png_100, encode_u32(0), encode_u32(0), encode_u32(50), encode_u32(50)]
    result = engine.call("crop", args)
    assert result.data is None
    assert "OutOfBounds" in result.error
    assert "f32" in result.error


def test_short_numeric_argument(png_100):
    result = engine.call("blur", [png_100, b"\x00\x00\x80"])
    assert result.data is None
    assert "MalformedArgument" in result.error


def test_argument_count(png_100):
    assert "MissingArgument" in engine.call("brighten", [png_100]).error
    assert "MalformedArgument" in engine.call("invert", [png_100, encode_i32(1)]).error
    assert "MissingArgument" in engine.call("invert", []).error


def test_unknown_operation_and_format():
    result = engine.call("sharpen", [b"abc"])
    assert result.data is None
    assert "UnknownOperation" in result.error

    result = engine.call("invert", [b"abc"])
    assert result.data is None
    assert "UnknownFormat" in result.error


def test_arguments_checked_before_decoding():
    # the bad argument is reported even though the image is garbage too
    assert "MalformedArgument" in engine.call("brighten", [b"abc", b"\x01"]).error


def test_error_string_format():
    result = engine.call("svg_invert", [b"<svg>"])
    assert result.error.startswith("svg_invert: parse failed [MalformedDocument]: ")
    assert "\n" not in result.error


def test_invoke_raises():
    with pytest.raises(UnknownOperation):
        engine.invoke("nope", [b""])
    with pytest.raises(MissingArgument):
        engine.invoke("brighten", [b"abc"])


def test_text_argument_encoding(png_100):
    config = EngineConfig(argument_encoding="text")
    result = engine.call("brighten", [png_100, encode_text_number(-20, "i32")], config)
    assert result.ok, result.error

    expected = engine.call("brighten", [png_100, encode_i32(-20)])
    assert result.data == expected.data

    # binary buffers are not valid text numbers
    assert "InvalidEncoding" in engine.call("blur", [png_100, b"\xff\xff\xff\xff"], config).error


def test_mask_call():
    target = encode_as(solid(6, 6, (10, 20, 30, 255)), "JPEG")
    m = encode_as(solid(3, 3, (0, 0, 0, 64)), "PNG")
    result = engine.call("mask", [target, m, encode_bool(True)])
    assert result.ok, result.error
    fmt, out = open_rgba(result.data)
    assert fmt == "PNG"
    assert out.shape[:2] == (6, 6)
    assert (out[..., 3] == 64).all()


def test_mask_with_undecodable_mask():
    result = engine.call("mask", [encode_as(solid(2, 2), "PNG"), b"abc", encode_bool(False)])
    assert "UnknownFormat" in result.error
    assert "argument 'mask'" in result.error


def test_calls_are_deterministic():
    raw = encode_as(noise(16, 16, seed=40), "PNG")
    first = engine.call("huerotate", [raw, encode_i32(33)])
    second = engine.call("huerotate", [raw, encode_i32(33)])
    assert first.data == second.data


def test_geometry_operations_keep_pixels():
    arr = noise(5, 3, seed=41, opaque=True)
    raw = encode_as(arr, "PNG")
    _fmt, out = open_rgba(engine.call("rotate90", [raw]).data)
    assert out.shape == (5, 3, 4)
    _fmt, out = open_rgba(engine.call("flip_horizontal", [raw]).data)
    np.testing.assert_array_equal(out, arr[:, ::-1])
    _fmt, out = open_rgba(engine.call("convert", [raw]).data)
    np.testing.assert_array_equal(out, arr)


# ---------------------------- vector dispatch ----------------------------

def test_svg_grayscale_call(svg_doc):
    result = engine.call("svg_grayscale", [svg_doc])
    assert result.ok, result.error
    root = etree.fromstring(result.data)
    assert [c.tag for c in root] == [f"{{{SVG_NS}}}filter", f"{{{SVG_NS}}}g"]


def test_svg_crop_call(svg_doc):
    args = [svg_doc] + [encode_f32(v) for v in (10.0, 5.0, 40.0, 20.0)]
    result = engine.call("svg_crop", args)
    assert result.ok, result.error
    assert etree.fromstring(result.data).get("viewBox") == "10 5 40 20"


def test_svg_operations_take_f32(svg_doc):
    result = engine.call("svg_transparency", [svg_doc, encode_u32(1)])
    # any 4 bytes decode; 1 as u32 is a tiny subnormal float
    assert result.ok, result.error
    assert "MalformedArgument" in engine.call("svg_blur", [svg_doc, b"\x00"]).error


def test_svg_input_for_raster_op_is_unknown_format(svg_doc):
    assert "UnknownFormat" in engine.call("invert", [svg_doc]).error


def test_operation_catalogue():
    ops = engine.operations()
    for name in ("grayscale", "invert", "brighten", "huerotate", "blur", "crop", "transparency",
                 "flip_vertical", "flip_horizontal", "rotate90", "rotate180", "rotate270", "convert", "mask"):
        assert name in ops
    for name in ("grayscale", "invert", "brighten", "huerotate", "blur", "crop", "transparency"):
        assert f"svg_{name}" in ops
    assert "svg_mask" not in ops
    assert "svg_rotate90" not in ops
