import io

import numpy as np
import pytest
from PIL import Image

import ascii_image
from ascii_image import (
    CHARSETS,
    PALETTES,
    ConversionOptions,
    ImageBuffer,
    ImageDecodeError,
    InvalidInputError,
    convert,
    create_sample_image,
    decode_image,
    get_palette,
    list_charsets,
    list_palettes,
    render_ansi,
    render_html,
)


def _solid(color, size=(2, 2)):
    return Image.new("RGBA", size, color)


def test_white_image_maps_to_blank_glyph():
    opts = ConversionOptions(output_width=2, charset="simple")
    result = convert(_solid((255, 255, 255, 255)), opts)
    assert result.text == "  \n  \n"
    assert result.rows == ["  ", "  "]
    assert result.color_grid is None


def test_inverted_white_image_maps_to_densest_glyph():
    opts = ConversionOptions(output_width=2, charset="simple", invert=True)
    result = convert(_solid((255, 255, 255, 255)), opts)
    assert result.text == "@@\n@@\n"


@pytest.mark.parametrize("charset", list(CHARSETS))
def test_extremes_map_to_first_and_last_glyph(charset):
    glyphs = CHARSETS[charset]
    black = convert(_solid((0, 0, 0, 255), (4, 4)), ConversionOptions(output_width=4, charset=charset))
    white = convert(_solid((255, 255, 255, 255), (4, 4)), ConversionOptions(output_width=4, charset=charset))
    assert set("".join(black.rows)) == {glyphs[0]}
    assert set("".join(white.rows)) == {glyphs[-1]}


@pytest.mark.parametrize(
    "size, out_w, expected_h",
    [((100, 50), 40, 20), ((7, 13), 5, 9), ((3, 1), 2, 1), ((640, 480), 120, 90), ((10, 10), 1, 1)],
)
def test_grid_shape(size, out_w, expected_h):
    img = Image.new("RGB", size, (90, 140, 200))
    result = convert(img, ConversionOptions(output_width=out_w, color_mode="color"))
    assert (result.width, result.height) == (out_w, expected_h)
    assert len(result.rows) == expected_h
    assert all(len(row) == out_w for row in result.rows)
    assert len(result.color_grid) == expected_h
    assert all(len(row) == out_w for row in result.color_grid)


def test_invert_twice_reproduces_grid():
    img = create_sample_image()
    opts = ConversionOptions(output_width=40, charset="dense")
    first = convert(img, opts)
    inverted = convert(img, ConversionOptions(output_width=40, charset="dense", invert=True))
    again = convert(img, ConversionOptions(output_width=40, charset="dense", invert=False))
    assert inverted.text != first.text
    assert again.text == first.text


def test_single_glyph_charset(monkeypatch):
    monkeypatch.setattr(ascii_image, "CHARSETS", {"one": ("#",)})
    img = Image.new("RGB", (3, 3), (255, 255, 255))
    result = convert(img, ConversionOptions(output_width=3, charset="one"))
    assert result.text == "###\n###\n###\n"


def test_color_grid_uses_palette():
    red = _solid((255, 0, 0, 255), (1, 1))
    result = convert(red, ConversionOptions(output_width=1, color_mode="color", palette="matrix"))
    cell = result.color_grid[0][0]
    assert cell.color == (0, 76, 0)
    assert cell.char == result.rows[0]


def test_original_palette_keeps_adjusted_colour():
    img = _solid((100, 100, 100, 255), (1, 1))
    result = convert(img, ConversionOptions(output_width=1, brightness=50, color_mode="color"))
    assert result.color_grid[0][0].color == (150, 150, 150)
    assert result.processed.data[0, 0, :3].tolist() == [150, 150, 150]


@pytest.mark.parametrize("name", list(PALETTES))
@pytest.mark.parametrize("rgb", [(0, 0, 0), (255, 255, 255), (255, 0, 128), (12, 200, 77)])
def test_palettes_stay_in_byte_range(name, rgb):
    out = PALETTES[name](*rgb)
    assert len(out) == 3
    assert all(isinstance(v, int) and 0 <= v <= 255 for v in out)


def test_palette_values():
    assert PALETTES["original"](1, 2, 3) == (1, 2, 3)
    assert PALETTES["grayscale"](255, 255, 255) == (255, 255, 255)
    assert PALETTES["fire"](255, 255, 255) == (255, 127, 0)
    assert PALETTES["amber"](255, 255, 255) == (255, 178, 0)
    assert PALETTES["ice"](0, 0, 0) == (0, 0, 0)


def test_get_palette_falls_back_to_original():
    assert get_palette("nope") is PALETTES["original"]
    assert get_palette("cyan") is PALETTES["cyan"]


def test_registries_are_read_only():
    assert list_charsets() == ["dense", "medium", "light", "blocks", "simple", "retro"]
    assert len(list_palettes()) == 8
    with pytest.raises(TypeError):
        CHARSETS["mine"] = ("x",)
    with pytest.raises(TypeError):
        PALETTES["mine"] = PALETTES["original"]


@pytest.mark.parametrize(
    "opts",
    [
        ConversionOptions(output_width=0),
        ConversionOptions(output_width=-3),
        ConversionOptions(output_width=2.5),
        ConversionOptions(charset="unknown"),
        ConversionOptions(palette="sepia"),
        ConversionOptions(color_mode="rainbow"),
    ],
)
def test_invalid_options_rejected(opts):
    with pytest.raises(InvalidInputError):
        convert(Image.new("RGB", (10, 10)), opts)


def test_zero_sized_image_rejected():
    with pytest.raises(InvalidInputError):
        convert(Image.new("RGBA", (0, 4)), ConversionOptions())


def test_image_buffer_input():
    data = np.full((2, 2, 4), 255, dtype=np.uint8)
    result = convert(ImageBuffer(2, 2, data), ConversionOptions(output_width=2, charset="simple"))
    assert result.text == "  \n  \n"


def test_decode_png_bytes():
    buf = io.BytesIO()
    Image.new("RGB", (5, 3), (1, 2, 3)).save(buf, format="PNG")
    decoded = decode_image(buf.getvalue())
    assert (decoded.width, decoded.height) == (5, 3)
    assert decoded.data.shape == (3, 5, 4)
    assert decoded.data[0, 0].tolist() == [1, 2, 3, 255]


def test_decode_garbage_fails():
    with pytest.raises(ImageDecodeError):
        decode_image(b"definitely not an image")


def test_render_html_colour_and_mono():
    img = _solid((255, 0, 0, 255), (2, 1))
    colour = convert(img, ConversionOptions(output_width=2, color_mode="color"))
    page = render_html(colour)
    assert page.count("<span") == 2
    assert "rgb(255,0,0)" in page

    mono = convert(img, ConversionOptions(output_width=2))
    page = render_html(mono)
    assert "<span" not in page
    assert mono.rows[0] in page


def test_render_ansi():
    img = _solid((0, 0, 255, 255), (2, 1))
    colour = convert(img, ConversionOptions(output_width=2, color_mode="color"))
    out = render_ansi(colour)
    assert out.count("\x1b[38;2;0;0;255m") == 1
    assert out.endswith("\x1b[0m\n")

    mono = convert(img, ConversionOptions(output_width=2))
    assert render_ansi(mono) == mono.text


def test_sample_image():
    img = create_sample_image()
    assert img.size == (200, 100)
    result = convert(img, ConversionOptions(output_width=80))
    assert (result.width, result.height) == (80, 40)
