import subprocess
from pathlib import Path

import pytest
from PIL import Image

from retroprep import backends
from retroprep.backends import MagickBackend, PillowBackend, select_backend
from retroprep.config import Background, Dimensions
from retroprep.errors import BackendMissingError, ConfigError, ConversionFailed
from retroprep.geometry import plan

TWILIGHT = Dimensions(128, 115)


def leftovers(directory: Path):
    return sorted(p.name for p in directory.iterdir() if ".tmp-" in p.name)


def test_pillow_pad_writes_rgba_with_transparent_bars(tmp_path, make_image):
    src = make_image(tmp_path / "cover.jpg", size=(800, 600), color=(200, 30, 30))
    dest = tmp_path / "cover.png"

    layout = PillowBackend().convert(src, dest, plan(TWILIGHT, "pad", Background.parse("none")))

    assert layout.paste == (0, 9)
    with Image.open(dest) as out:
        assert out.format == "PNG"
        assert out.mode == "RGBA"
        assert out.size == (128, 115)
        alpha = out.getchannel("A")
        for y in list(range(0, 9)) + list(range(105, 115)):
            assert alpha.getpixel((64, y)) == 0
        for y in range(9, 105):
            assert alpha.getpixel((64, y)) == 255
    assert leftovers(tmp_path) == []


def test_pillow_pad_with_colored_background(tmp_path, make_image):
    src = make_image(tmp_path / "tall.png", size=(300, 600), color=(0, 0, 255))
    dest = tmp_path / "out.png"
    PillowBackend().convert(src, dest, plan(Dimensions(100, 100), "pad", Background.parse("white")))
    with Image.open(dest) as out:
        assert out.mode == "RGBA"
        assert out.getpixel((0, 50)) == (255, 255, 255, 255)
        assert out.getpixel((50, 50))[2] > 200


def test_pillow_crop_fills_canvas(tmp_path, make_image):
    src = make_image(tmp_path / "wide.bmp", size=(800, 600))
    dest = tmp_path / "wide.png"
    layout = PillowBackend().convert(src, dest, plan(TWILIGHT, "crop", Background.parse("none")))
    assert layout.crop == (12, 0)
    with Image.open(dest) as out:
        assert out.size == (128, 115)
        assert out.mode == "RGBA"
        assert out.getchannel("A").getextrema() == (255, 255)


def test_pillow_stretch_from_palette_image(tmp_path, make_image):
    src = make_image(tmp_path / "small.gif", size=(40, 10))
    dest = tmp_path / "small.png"
    PillowBackend().convert(src, dest, plan(Dimensions(20, 30), "stretch", Background.parse("none")))
    with Image.open(dest) as out:
        assert out.size == (20, 30)
        assert out.mode == "RGBA"


def test_corrupt_source_leaves_nothing_behind(tmp_path):
    src = tmp_path / "broken.jpg"
    src.write_bytes(b"definitely not a jpeg")
    dest = tmp_path / "broken.png"

    with pytest.raises(ConversionFailed) as excinfo:
        PillowBackend().convert(src, dest, plan(TWILIGHT, "pad", Background.parse("none")))

    assert excinfo.value.item == src
    assert not dest.exists()
    assert leftovers(tmp_path) == []


def test_existing_destination_replaced_atomically(tmp_path, make_image):
    src = make_image(tmp_path / "a.png", size=(50, 50))
    dest = tmp_path / "b.png"
    dest.write_bytes(b"old")
    PillowBackend().convert(src, dest, plan(Dimensions(10, 10), "pad", Background.parse("none")))
    with Image.open(dest) as out:
        assert out.size == (10, 10)


def test_temp_path_is_hidden_sibling(tmp_path):
    tmp = backends.temp_path_for(tmp_path / "cover.png")
    assert tmp.parent == tmp_path
    assert tmp.name.startswith(".cover.tmp-")
    assert tmp.suffix == ".png"


def test_magick_pad_command():
    backend = MagickBackend(["magick"], ["magick", "identify"])
    p = plan(TWILIGHT, "pad", Background.parse("none"))
    layout = p.layout(800, 600)
    cmd = backend.build_command(Path("in.jpg"), Path("out.png"), layout, p)

    assert cmd[:2] == ["magick", "in.jpg[0]"]
    assert cmd[cmd.index("-resize") + 1] == "128x96!"
    assert cmd[cmd.index("-background") + 1] == "#00000000"
    assert cmd[cmd.index("-extent") + 1] == "128x115-0-9"
    assert "-alpha" in cmd
    assert cmd[-3:] == ["-define", "png:color-type=6", "png32:out.png"]


def test_convert_crop_command():
    backend = MagickBackend(["convert"], ["identify"])
    assert backend.name == "convert"
    p = plan(TWILIGHT, "crop", Background.parse("none"))
    cmd = backend.build_command(Path("in.jpg"), Path("out.png"), p.layout(800, 600), p)
    assert cmd[cmd.index("-resize") + 1] == "153x115!"
    assert cmd[cmd.index("-crop") + 1] == "128x115+12+0"
    assert "+repage" in cmd
    assert "-extent" not in cmd


def test_magick_render_goes_through_temp_file(tmp_path, monkeypatch):
    calls = []

    def fake_run(cmd, check=False, capture_output=False, text=False):
        calls.append(cmd)
        if "identify" in cmd:
            return subprocess.CompletedProcess(cmd, 0, stdout="800 600", stderr="")
        target = Path(cmd[-1].split(":", 1)[1])
        Image.new("RGBA", (128, 115)).save(target, "PNG")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr(backends.subprocess, "run", fake_run)
    dest = tmp_path / "cover.png"
    backend = MagickBackend(["magick"], ["magick", "identify"])
    layout = backend.convert(tmp_path / "cover.jpg", dest, plan(TWILIGHT, "pad", Background.parse("none")))

    assert layout.resize == Dimensions(128, 96)
    assert dest.exists()
    assert len(calls) == 2
    assert ".tmp-" in calls[1][-1]
    assert leftovers(tmp_path) == []


def test_magick_failure_is_conversion_failure(tmp_path, monkeypatch):
    def fake_run(cmd, check=False, capture_output=False, text=False):
        if "identify" in cmd:
            return subprocess.CompletedProcess(cmd, 0, stdout="10 10", stderr="")
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="magick: no decode delegate")

    monkeypatch.setattr(backends.subprocess, "run", fake_run)
    with pytest.raises(ConversionFailed, match="no decode delegate"):
        MagickBackend(["magick"], ["magick", "identify"]).convert(
            tmp_path / "x.heic", tmp_path / "x.png", plan(TWILIGHT, "pad", Background.parse("none"))
        )


def test_select_backend(monkeypatch):
    monkeypatch.delenv("RETROPREP_MAGICK", raising=False)
    monkeypatch.setattr(backends, "cmd_exists", lambda name: False)
    assert isinstance(select_backend("auto"), PillowBackend)
    assert isinstance(select_backend("pillow"), PillowBackend)
    with pytest.raises(BackendMissingError):
        select_backend("magick")
    with pytest.raises(ConfigError):
        select_backend("gimp")

    monkeypatch.setattr(backends, "cmd_exists", lambda name: name in ("convert", "identify"))
    auto = select_backend("auto")
    assert isinstance(auto, MagickBackend)
    assert auto.command == ["convert"]

    monkeypatch.setattr(backends, "cmd_exists", lambda name: True)
    assert select_backend("auto").command == ["magick"]
    assert select_backend("convert").identify == ["identify"]
