import subprocess
from pathlib import Path

from retroprep import disc
from retroprep.batch import Outcome
from retroprep.disc import DiscConverter
from retroprep.scripts import cue2iso

CUE = '''FILE "Game (Track 1).bin" BINARY
  TRACK 01 MODE2/2352
    INDEX 01 00:00:00
FILE "Game (Track 2).bin" BINARY
  TRACK 02 AUDIO
    INDEX 01 00:00:00
FILE music.wav WAVE
FILE "Game (Track 1).bin" BINARY
'''


class FakeChdman:
    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    def __call__(self, cmd, check=False):
        self.calls.append(cmd)
        if self.fail_on and self.fail_on in cmd:
            raise subprocess.CalledProcessError(1, cmd)
        Path(cmd[cmd.index("-o") + 1]).write_bytes(b"data")
        return subprocess.CompletedProcess(cmd, 0)


def make_game(directory: Path, name="Game") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    cue = directory / f"{name}.cue"
    cue.write_text(CUE, encoding="utf-8")
    (directory / "Game (Track 1).bin").write_bytes(b"1")
    (directory / "Game (Track 2).bin").write_bytes(b"2")
    (directory / "readme.txt").write_text("keep me")
    return cue


def test_parse_cue_data_files():
    assert disc.parse_cue_data_files(CUE) == ["Game (Track 1).bin", "Game (Track 2).bin"]
    assert disc.parse_cue_data_files("file track.IMG binary\n") == ["track.IMG"]


def test_cue_conversion_removes_sources(tmp_path):
    cue = make_game(tmp_path / "psx")
    fake = FakeChdman()

    entry = DiscConverter(run=fake).convert_cue(cue)

    assert entry.outcome is Outcome.OK
    assert [c[1] for c in fake.calls] == ["createcd", "extractraw"]
    assert fake.calls[0][-1].endswith("Game.tmp.chd")
    assert "-f" in fake.calls[1]
    assert sorted(p.name for p in cue.parent.iterdir()) == ["Game.iso", "readme.txt"]


def test_keep_and_keep_chd(tmp_path):
    cue = make_game(tmp_path)
    DiscConverter(keep=True, keep_chd=True, run=FakeChdman()).convert_cue(cue)
    names = sorted(p.name for p in tmp_path.iterdir())
    assert names == ["Game (Track 1).bin", "Game (Track 2).bin", "Game.chd", "Game.cue", "Game.iso", "readme.txt"]


def test_existing_iso_is_skipped(tmp_path):
    cue = make_game(tmp_path)
    (tmp_path / "Game.iso").write_bytes(b"old")
    fake = FakeChdman()
    entry = DiscConverter(run=fake).convert_cue(cue)
    assert entry.outcome is Outcome.SKIPPED
    assert fake.calls == []
    assert cue.exists()


def test_failure_keeps_sources_and_cleans_partials(tmp_path):
    cue = make_game(tmp_path)
    entry = DiscConverter(run=FakeChdman(fail_on="extractraw")).convert_cue(cue)
    assert entry.outcome is Outcome.FAILED
    assert cue.exists()
    assert not (tmp_path / "Game.iso").exists()
    assert not (tmp_path / "Game.tmp.chd").exists()


def test_dry_run_touches_nothing(tmp_path):
    cue = make_game(tmp_path)
    fake = FakeChdman()
    DiscConverter(dry_run=True, run=fake).convert_all([tmp_path])
    assert fake.calls == []
    assert cue.exists()
    assert not (tmp_path / "Game.iso").exists()


def test_convert_all_handles_cue_and_standalone_chd(tmp_path):
    make_game(tmp_path / "a")
    (tmp_path / "b").mkdir()
    (tmp_path / "b" / "Other.chd").write_bytes(b"chd")
    # a CHD next to its CUE is handled through the CUE
    make_game(tmp_path / "c")
    (tmp_path / "c" / "Game.chd").write_bytes(b"chd")
    fake = FakeChdman()

    result = DiscConverter(keep=True, keep_chd=True, run=fake).convert_all([tmp_path])

    assert [e.source.relative_to(tmp_path).as_posix() for e in result.entries] == [
        "a/Game.cue", "c/Game.cue", "b/Other.chd",
    ]
    assert (tmp_path / "b" / "Other.iso").exists()
    assert (tmp_path / "b" / "Other.chd").exists()


def test_standalone_chd_removed_unless_keep(tmp_path):
    chd = tmp_path / "Solo.chd"
    chd.write_bytes(b"chd")
    entry = DiscConverter(run=FakeChdman()).convert_chd(chd)
    assert entry.outcome is Outcome.OK
    assert not chd.exists()
    assert (tmp_path / "Solo.iso").exists()


def test_cli_requires_chdman(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(disc, "cmd_exists", lambda name: False)
    assert cue2iso.main([str(tmp_path)]) == 1
    assert "chdman" in capsys.readouterr().out


def test_cli_dry_run(tmp_path, monkeypatch, capsys):
    monkeypatch.setattr(disc, "cmd_exists", lambda name: True)
    make_game(tmp_path)
    assert cue2iso.main(["--dry-run", str(tmp_path)]) == 0
    out = capsys.readouterr().out
    assert "createcd" in out
    assert (tmp_path / "Game.cue").exists()
