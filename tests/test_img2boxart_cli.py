import pytest
from PIL import Image

from retroprep.scripts import img2boxart


def size_of(path):
    with Image.open(path) as img:
        return img.size, img.mode


def test_width_height_run(tmp_path, make_image, capsys):
    src = make_image(tmp_path / "capa.jpg", size=(800, 600))

    code = img2boxart.main(["--backend", "pillow", "128", "115", str(src), "-o", str(tmp_path / "out") + "/"])

    assert code == 0
    assert size_of(tmp_path / "out" / "capa.png") == ((128, 115), "RGBA")
    out = capsys.readouterr().out
    assert "[OK]" in out
    assert "1 converted" in out


def test_profile_name(tmp_path, make_image, capsys):
    src = make_image(tmp_path / "ffvii.jpg", size=(600, 600))
    assert img2boxart.main(["--backend", "pillow", "PSX", str(src)]) == 0
    assert size_of(tmp_path / "ffvii.png")[0] == (512, 512)


def test_twilight_variant_defaults(tmp_path, make_image, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    make_image(tmp_path / "imgs" / "sub" / "a.jpg")
    make_image(tmp_path / "imgs" / "b.png")

    code = img2boxart.main(["--variant", "twilight", "--backend", "pillow", "imgs", "--bg", "black"])

    assert code == 0
    assert size_of(tmp_path / "out" / "a.png")[0] == (128, 115)
    assert size_of(tmp_path / "out" / "b.png")[0] == (128, 115)
    assert not (tmp_path / "out" / "sub").exists()


def test_resize_variant_uses_suffix(tmp_path, make_image, capsys):
    src = make_image(tmp_path / "a.jpg")
    assert img2boxart.main(["--variant", "resize", "--backend", "pillow", "--size", "20x20", str(src)]) == 0
    assert (tmp_path / "a-resized.png").is_file()


def test_nothing_found_exits_2(tmp_path, capsys):
    (tmp_path / "empty").mkdir()
    assert img2boxart.main(["--backend", "pillow", str(tmp_path / "empty")]) == 2
    assert "No matching image files found" in capsys.readouterr().out


@pytest.mark.parametrize(
    "argv",
    [
        ["--mode", "zoom", "a.jpg"],
        ["--bg", "not-a-colour", "a.jpg"],
        ["xbox", "a.jpg"],
        ["0", "10", "a.jpg"],
        ["--jobs", "0", "a.jpg"],
        ["--size", "10x10", "--profile", "psx", "a.jpg"],
        ["-o", "out.jpg", "a.jpg"],
        [],
    ],
)
def test_configuration_errors_exit_1(argv, tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert img2boxart.main(["--backend", "pillow"] + argv) == 1
    assert "[ERROR]" in capsys.readouterr().out


def test_single_output_file_with_directory_input(tmp_path, make_image, capsys):
    make_image(tmp_path / "covers" / "a.jpg")
    code = img2boxart.main(["--backend", "pillow", str(tmp_path / "covers"), "-o", str(tmp_path / "x.png")])
    assert code == 1
    assert "Provide an output directory" in capsys.readouterr().out


def test_usage_error_exits_1(capsys):
    with pytest.raises(SystemExit) as excinfo:
        img2boxart.main(["--jobs", "many", "a.jpg"])
    assert excinfo.value.code == 1


def test_missing_magick_backend(tmp_path, make_image, monkeypatch, capsys):
    monkeypatch.setattr("retroprep.backends.cmd_exists", lambda name: False)
    src = make_image(tmp_path / "a.jpg")
    assert img2boxart.main(["--backend", "magick", str(src)]) == 1
    assert not (tmp_path / "a.png").exists()


def test_log_dir_writes_logs(tmp_path, make_image, capsys):
    src = make_image(tmp_path / "a.jpg")
    logs = tmp_path / "logs"
    assert img2boxart.main(["--backend", "pillow", "--log-dir", str(logs), str(src)]) == 0
    assert "[OK]" in (logs / "latest.log").read_text(encoding="utf-8")
    assert (logs / "debug.log").is_file()


def test_rerun_with_output_inside_input(tmp_path, make_image, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    make_image(tmp_path / "covers" / "a.jpg")
    argv = ["--backend", "pillow", "20", "20", "covers", "-o", "covers/boxart/"]

    assert img2boxart.main(argv) == 0
    assert img2boxart.main(argv) == 0

    pngs = sorted(p.relative_to(tmp_path / "covers").as_posix() for p in (tmp_path / "covers").rglob("*.png"))
    assert pngs == ["boxart/a.png"]
    assert "0 converted, 1 skipped" in capsys.readouterr().out


def test_mistyped_input_directory(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert img2boxart.main(["--backend", "pillow", "mycovers"]) == 1
    assert "No file or directory named 'mycovers'" in capsys.readouterr().out
