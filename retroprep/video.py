"""
MKV/MP4 -> 720p MP4 transcoding helpers.

- MKV: keep only the preferred-language audio (default Portuguese) if present,
  otherwise the first audio track; include a preferred-language subtitle only
  if it is text based (ass/ssa/srt/subrip), converted to mov_text.
- MP4: plain re-encode, no track filtering.
- Never upscales beyond 1280x720 and normalizes SAR to 1:1.

Environment variables (read once per run):
    VBITS, VMAX, VBUF   video bitrate / VBV maxrate / VBV bufsize
    ABITS               audio bitrate
    IN_OPTS             extra input options
    HWDEC               hardware decode options, empty disables
    VCODEC              video encoder (default h264_videotoolbox)
    RETROPREP_FFMPEG / RETROPREP_FFPROBE   binary overrides
"""
from __future__ import annotations

import json
import logging
import os
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

from retroprep.core import Outcome, binary_from_env, cmd_exists, temp_path_for
from retroprep.errors import BackendMissingError

LOGGER = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mkv", ".mp4")
DEFAULT_LANGUAGES = ("por", "pt", "pt-br")
TEXT_SUBTITLE_CODECS = {"ass", "ssa", "subrip", "srt", "text"}
DEFAULT_OUT_SUBDIR = "converted_720p_mp4"
SCALE_FILTER = "scale='min(iw,1280)':'min(ih,720)':force_original_aspect_ratio=decrease,setsar=1"


def ffmpeg_bin() -> str:
    return binary_from_env("RETROPREP_FFMPEG", "ffmpeg")


def ffprobe_bin() -> str:
    return binary_from_env("RETROPREP_FFPROBE", "ffprobe")


def ensure_tools_available() -> None:
    for name in (ffmpeg_bin(), ffprobe_bin()):
        if not cmd_exists(name):
            raise BackendMissingError(
                f"'{name}' not found. Install ffmpeg or set RETROPREP_FFMPEG/RETROPREP_FFPROBE."
            )


@dataclass(frozen=True)
class EncodeSettings:
    video_bitrate: str = "2500k"
    maxrate: str = "3000k"
    bufsize: str = "5000k"
    audio_bitrate: str = "160k"
    input_opts: Tuple[str, ...] = ("-fflags", "+discardcorrupt", "-err_detect", "ignore_err")
    hwdec: Tuple[str, ...] = ("-hwaccel", "videotoolbox")
    video_codec: str = "h264_videotoolbox"

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "EncodeSettings":
        env = os.environ if env is None else env
        base = cls()

        def _opts(key, default):
            # present-but-empty disables the option group
            if key in env:
                return tuple(shlex.split(env[key]))
            return default

        return cls(
            video_bitrate=env.get("VBITS") or base.video_bitrate,
            maxrate=env.get("VMAX") or base.maxrate,
            bufsize=env.get("VBUF") or base.bufsize,
            audio_bitrate=env.get("ABITS") or base.audio_bitrate,
            input_opts=_opts("IN_OPTS", base.input_opts),
            hwdec=_opts("HWDEC", base.hwdec),
            video_codec=env.get("VCODEC") or base.video_codec,
        )


@dataclass(frozen=True)
class StreamInfo:
    index: int
    codec_type: str
    codec_name: str = ""
    language: str = ""


def parse_probe_output(data: dict) -> List[StreamInfo]:
    streams = []
    for st in data.get("streams") or []:
        try:
            index = int(st.get("index"))
        except (TypeError, ValueError):
            continue
        tags = st.get("tags") or {}
        streams.append(StreamInfo(
            index=index,
            codec_type=(st.get("codec_type") or "").lower(),
            codec_name=(st.get("codec_name") or "").lower(),
            language=(tags.get("language") or "").lower(),
        ))
    return streams


def probe_streams(path: Path) -> List[StreamInfo]:
    """Audio/subtitle stream list via ffprobe."""
    cmd = [
        ffprobe_bin(),
        "-v", "error",
        "-show_entries", "stream=index,codec_type,codec_name:stream_tags=language",
        "-of", "json",
        str(path),
    ]
    out = subprocess.check_output(cmd, stderr=subprocess.STDOUT)
    return parse_probe_output(json.loads(out.decode("utf-8", errors="ignore")))


@dataclass(frozen=True)
class TrackSelection:
    audio: Optional[int] = None
    audio_preferred: bool = False
    subtitle: Optional[int] = None


def select_tracks(streams: Iterable[StreamInfo], languages: Sequence[str] = DEFAULT_LANGUAGES) -> TrackSelection:
    wanted = {lang.lower() for lang in languages}
    streams = list(streams)
    audio = [s for s in streams if s.codec_type == "audio"]

    preferred = next((s for s in audio if s.language in wanted), None)
    if preferred is not None:
        audio_idx, is_preferred = preferred.index, True
    elif audio:
        audio_idx, is_preferred = audio[0].index, False
    else:
        audio_idx, is_preferred = None, False

    # image-based subtitles (PGS/VobSub) cannot become mov_text
    subtitle = next(
        (s for s in streams
         if s.codec_type == "subtitle" and s.language in wanted and s.codec_name in TEXT_SUBTITLE_CODECS),
        None,
    )
    return TrackSelection(audio_idx, is_preferred, subtitle.index if subtitle else None)


def build_ffmpeg_command(
    src: Path,
    dst: Path,
    settings: EncodeSettings,
    selection: Optional[TrackSelection] = None,
    language_tag: str = DEFAULT_LANGUAGES[0],
) -> List[str]:
    """ffmpeg argv; ``selection`` is None for MP4 sources (no track filtering)."""
    cmd = [ffmpeg_bin(), "-nostdin", "-y", *settings.hwdec, *settings.input_opts, "-i", str(src)]
    if selection is not None:
        cmd += ["-map", "0:v:0"]
        if selection.audio is not None:
            cmd += ["-map", f"0:{selection.audio}"]
        if selection.subtitle is not None:
            cmd += ["-map", f"0:{selection.subtitle}"]
        else:
            cmd.append("-sn")
    cmd += [
        "-vf", SCALE_FILTER,
        "-c:v", settings.video_codec,
        "-b:v", settings.video_bitrate,
        "-maxrate", settings.maxrate,
        "-bufsize", settings.bufsize,
        "-pix_fmt", "yuv420p",
        "-colorspace", "bt709", "-color_primaries", "bt709", "-color_trc", "bt709", "-color_range", "tv",
        "-c:a", "aac", "-b:a", settings.audio_bitrate, "-ac", "2",
    ]
    if selection is not None and selection.subtitle is not None:
        cmd += ["-c:s", "mov_text", "-metadata:s:s:0", f"language={language_tag}"]
    cmd += ["-movflags", "+faststart", "-map_metadata", "0"]
    if selection is not None and selection.audio_preferred:
        cmd += ["-metadata:s:a:0", f"language={language_tag}", "-disposition:a:0", "default"]
    cmd.append(str(dst))
    return cmd


def find_videos(in_dir: Path, exclude: Optional[Path] = None) -> List[Path]:
    """MKV/MP4 files below ``in_dir`` in byte order of their full path, skipping ``exclude``."""
    in_dir = Path(in_dir)
    excluded = Path(exclude).resolve() if exclude else None
    found = []
    for dirpath, dirnames, filenames in os.walk(in_dir):
        if excluded is not None:
            dirnames[:] = [d for d in dirnames if (Path(dirpath) / d).resolve() != excluded]
        for name in filenames:
            if name.lower().endswith(VIDEO_EXTENSIONS):
                found.append(Path(dirpath) / name)
    return sorted(found, key=lambda p: os.fsencode(str(p)))


@dataclass(frozen=True)
class TranscodeEntry:
    source: Path
    destination: Path
    outcome: Outcome
    reason: str = ""


@dataclass
class TranscodeResult:
    entries: List[TranscodeEntry] = field(default_factory=list)

    @property
    def found(self) -> int:
        return len(self.entries)

    @property
    def exit_code(self) -> int:
        return 2 if not self.entries else 0


def transcode_all(
    in_dir: Path,
    out_dir: Optional[Path] = None,
    settings: Optional[EncodeSettings] = None,
    languages: Sequence[str] = DEFAULT_LANGUAGES,
    overwrite: bool = False,
    dry_run: bool = False,
    probe: Callable[[Path], List[StreamInfo]] = probe_streams,
    run: Callable = subprocess.run,
) -> TranscodeResult:
    in_dir = Path(in_dir)
    out_dir = Path(out_dir) if out_dir else in_dir / DEFAULT_OUT_SUBDIR
    settings = settings or EncodeSettings.from_env()
    result = TranscodeResult()

    sources = find_videos(in_dir, exclude=out_dir)
    if not sources:
        LOGGER.error("No MKV or MP4 files found in: %s", in_dir)
        return result
    if not dry_run:
        out_dir.mkdir(parents=True, exist_ok=True)

    for src in sources:
        dst = out_dir / f"{src.stem}.mp4"
        LOGGER.info("-" * 60)
        LOGGER.info("[SOURCE] %s", src)
        LOGGER.info("[OUTPUT] %s", dst)

        if dst.exists() and not overwrite:
            LOGGER.info("[SKIP] Output already exists: %s", dst)
            result.entries.append(TranscodeEntry(src, dst, Outcome.SKIPPED, "output exists"))
            continue

        selection = None
        if src.suffix.lower() == ".mkv":
            try:
                streams = probe(src)
            except (subprocess.CalledProcessError, OSError, ValueError) as exc:
                LOGGER.warning("ffprobe failed for %s (%s); encoding video only.", src, exc)
                streams = []
            selection = select_tracks(streams, languages)
            if selection.audio is None:
                LOGGER.info("No audio streams detected.")
            elif selection.audio_preferred:
                LOGGER.info("Preferred-language audio found at index %s.", selection.audio)
            else:
                LOGGER.info("No preferred-language audio found. Using first audio track (%s).", selection.audio)
            if selection.subtitle is not None:
                LOGGER.info("Preferred-language text subtitle found at index %s.", selection.subtitle)
        else:
            LOGGER.info("Simple MP4 re-encode (no track filtering).")

        tmp = temp_path_for(dst)
        cmd = build_ffmpeg_command(src, tmp, settings, selection, language_tag=languages[0])
        if dry_run:
            LOGGER.info("DRY RUN: %s", " ".join(shlex.quote(a) for a in cmd[:-1] + [str(dst)]))
            result.entries.append(TranscodeEntry(src, dst, Outcome.SKIPPED, "dry run"))
            continue

        try:
            run(cmd, check=True)
            tmp.replace(dst)
        except (subprocess.CalledProcessError, OSError) as exc:
            tmp.unlink(missing_ok=True)
            LOGGER.error("[ERROR] ffmpeg failed for %s: %s", src, exc)
            result.entries.append(TranscodeEntry(src, dst, Outcome.FAILED, str(exc)))
            continue
        LOGGER.info("Done: %s", dst)
        result.entries.append(TranscodeEntry(src, dst, Outcome.OK))

    LOGGER.info("All conversions finished. Output folder: %s", out_dir)
    return result
