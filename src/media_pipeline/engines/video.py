"""
Video engine facade over the ffmpeg / ffprobe executables.

Each call stages the source bytes and the codec output in a private temporary
directory that is removed on every exit path: normal return, codec failure,
timeout, or an exception raised while reading the result. Directories left
behind by a killed process are swept by ``purge_stale_staging`` on the next
start.
"""

import json
import os
import shutil
import subprocess
import tempfile
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from ..core.exceptions import TransformFailure, UnsupportedType
from ..core.logging_config import get_logger
from ..core.models import ProcessingType

STAGING_PREFIX = "media-pipeline-"

# VIDEO_COMPRESS quality -> video bitrate (bits/s); unknown qualities use medium
QUALITY_BITRATES: Dict[str, int] = {
    "low": 500_000,
    "medium": 1_000_000,
    "high": 2_000_000,
}
DEFAULT_QUALITY = "medium"
COMPRESSED_AUDIO_BITRATE = 128_000
EXTRACTED_AUDIO_BITRATE = 192_000

WATERMARK_FONT_SIZE = 36

Runner = Callable[..., "subprocess.CompletedProcess[bytes]"]


def bitrate_for_quality(quality: str) -> int:
    return QUALITY_BITRATES.get(quality.lower(), QUALITY_BITRATES[DEFAULT_QUALITY])


@contextmanager
def staging_files(
    data: bytes,
    input_suffix: str = ".mp4",
    output_suffix: str = ".mp4",
    temp_dir: Optional[str] = None,
) -> Iterator[Tuple[str, str]]:
    """Yield ``(input_path, output_path)`` inside a directory deleted on exit."""
    with tempfile.TemporaryDirectory(prefix=STAGING_PREFIX, dir=temp_dir) as workdir:
        input_path = os.path.join(workdir, f"input{input_suffix}")
        output_path = os.path.join(workdir, f"output{output_suffix}")
        with open(input_path, "wb") as handle:
            handle.write(data)
        yield input_path, output_path


def _parse_frame_rate(frame_rate: str) -> float:
    """Parse frame rate strings like '30000/1001' to float."""
    try:
        if "/" in frame_rate:
            num, denom = frame_rate.split("/")
            return float(num) / float(denom)
        return float(frame_rate)
    except (ValueError, ZeroDivisionError):
        return 0.0


class VideoEngine:
    """Video transforms run through ffmpeg with scoped staging files."""

    SUPPORTED_TYPES = (
        ProcessingType.VIDEO_THUMBNAIL,
        ProcessingType.VIDEO_WATERMARK,
        ProcessingType.VIDEO_COMPRESS,
        ProcessingType.AUDIO_EXTRACT,
        ProcessingType.VIDEO_PREVIEW,
    )

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        timeout: float = 300.0,
        temp_dir: Optional[str] = None,
        runner: Optional[Runner] = None,
    ):
        self._ffmpeg_path = ffmpeg_path
        self._ffprobe_path = ffprobe_path
        self._timeout = timeout
        self._temp_dir = temp_dir
        self._runner = runner or subprocess.run
        self._logger = get_logger("media-pipeline.video")

    def apply(
        self, data: bytes, processing_type: ProcessingType, parameters: Mapping[str, str]
    ) -> bytes:
        if processing_type == ProcessingType.VIDEO_THUMBNAIL:
            return self.extract_thumbnail(data)
        if processing_type == ProcessingType.VIDEO_WATERMARK:
            return self.add_watermark(data, parameters["text"])
        if processing_type == ProcessingType.VIDEO_COMPRESS:
            return self.compress(data, parameters["quality"])
        if processing_type == ProcessingType.AUDIO_EXTRACT:
            return self.extract_audio(data)
        if processing_type == ProcessingType.VIDEO_PREVIEW:
            return self.create_preview(data, int(parameters["duration"]))
        raise UnsupportedType(processing_type.value)

    def extract_thumbnail(self, data: bytes) -> bytes:
        with staging_files(data, output_suffix=".jpg", temp_dir=self._temp_dir) as (src, dst):
            return self._transcode(
                "VIDEO_THUMBNAIL",
                ["-i", src, "-frames:v", "1", "-f", "image2", "-c:v", "mjpeg", dst],
                dst,
            )

    def add_watermark(self, data: bytes, text: str) -> bytes:
        with staging_files(data, temp_dir=self._temp_dir) as (src, dst):
            # textfile= sidesteps filtergraph escaping of arbitrary user text
            text_path = os.path.join(os.path.dirname(src), "watermark.txt")
            with open(text_path, "w", encoding="utf-8") as handle:
                handle.write(text)
            drawtext = (
                f"drawtext=textfile={text_path}:fontcolor=white@0.5:"
                f"fontsize={WATERMARK_FONT_SIZE}:x=(w-text_w)/2:y=(h-text_h)/2"
            )
            return self._transcode(
                "VIDEO_WATERMARK",
                ["-i", src, "-vf", drawtext, "-c:a", "copy", dst],
                dst,
            )

    def compress(self, data: bytes, quality: str) -> bytes:
        bitrate = bitrate_for_quality(quality)
        with staging_files(data, temp_dir=self._temp_dir) as (src, dst):
            return self._transcode(
                "VIDEO_COMPRESS",
                [
                    "-i", src,
                    "-c:v", "libx264", "-b:v", str(bitrate),
                    "-c:a", "aac", "-b:a", str(COMPRESSED_AUDIO_BITRATE),
                    "-f", "mp4", dst,
                ],
                dst,
            )

    def extract_audio(self, data: bytes) -> bytes:
        with staging_files(data, output_suffix=".mp3", temp_dir=self._temp_dir) as (src, dst):
            return self._transcode(
                "AUDIO_EXTRACT",
                [
                    "-i", src, "-vn",
                    "-c:a", "libmp3lame", "-b:a", str(EXTRACTED_AUDIO_BITRATE),
                    "-f", "mp3", dst,
                ],
                dst,
            )

    def create_preview(self, data: bytes, duration_seconds: int) -> bytes:
        with staging_files(data, temp_dir=self._temp_dir) as (src, dst):
            return self._transcode(
                "VIDEO_PREVIEW",
                [
                    "-i", src, "-t", str(duration_seconds),
                    "-c:v", "libx264", "-c:a", "aac",
                    "-f", "mp4", dst,
                ],
                dst,
            )

    def probe(self, data: bytes) -> Dict[str, Any]:
        """Return stream metadata (dimensions, duration, codecs) via ffprobe."""
        with staging_files(data, temp_dir=self._temp_dir) as (src, _):
            completed = self._run(
                "probe",
                [
                    self._ffprobe_path, "-v", "quiet",
                    "-print_format", "json", "-show_format", "-show_streams",
                    src,
                ],
            )

        try:
            probe_data = json.loads(completed.stdout or b"{}")
        except json.JSONDecodeError as exc:
            raise TransformFailure(f"ffprobe returned invalid JSON: {exc}", cause=exc) from exc

        video_stream: Dict[str, Any] = {}
        audio_stream: Dict[str, Any] = {}
        for stream in probe_data.get("streams", []):
            if stream.get("codec_type") == "video" and not video_stream:
                video_stream = stream
            elif stream.get("codec_type") == "audio" and not audio_stream:
                audio_stream = stream

        format_info = probe_data.get("format", {})
        return {
            "width": video_stream.get("width"),
            "height": video_stream.get("height"),
            "format": format_info.get("format_name", ""),
            "duration": float(format_info.get("duration", 0) or 0),
            "frame_rate": _parse_frame_rate(video_stream.get("r_frame_rate", "0/1")),
            "video_codec": video_stream.get("codec_name"),
            "audio_codec": audio_stream.get("codec_name"),
            "audio_channels": audio_stream.get("channels", 0),
            "sample_rate": int(audio_stream.get("sample_rate", 0) or 0),
        }

    def purge_stale_staging(self, max_age_seconds: Optional[float] = None) -> List[str]:
        """Remove staging directories older than ``max_age_seconds``.

        Only meaningful with a dedicated ``temp_dir``; the default age is twice
        the codec timeout so directories of running transforms are never touched.
        """
        if not self._temp_dir or not os.path.isdir(self._temp_dir):
            return []

        max_age = max_age_seconds if max_age_seconds is not None else self._timeout * 2
        cutoff = time.time() - max_age
        removed = []
        for entry in os.scandir(self._temp_dir):
            if (
                entry.is_dir()
                and entry.name.startswith(STAGING_PREFIX)
                and entry.stat().st_mtime < cutoff
            ):
                shutil.rmtree(entry.path, ignore_errors=True)
                removed.append(entry.path)

        if removed:
            self._logger.warning(f"Purged {len(removed)} stale staging directories")
        return removed

    def _transcode(self, operation: str, args: List[str], output_path: str) -> bytes:
        command = [self._ffmpeg_path, "-hide_banner", "-loglevel", "error", "-y", *args]
        self._run(operation, command)

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            raise TransformFailure(f"{operation} produced no output")
        try:
            with open(output_path, "rb") as handle:
                return handle.read()
        except OSError as exc:
            raise TransformFailure(
                f"{operation} output could not be read: {exc}", cause=exc
            ) from exc

    def _run(self, operation: str, command: List[str]) -> "subprocess.CompletedProcess[bytes]":
        self._logger.debug(f"{operation}: running {' '.join(command)}")
        try:
            completed = self._runner(
                command, capture_output=True, timeout=self._timeout, check=False
            )
        except subprocess.TimeoutExpired as exc:
            raise TransformFailure(
                f"{operation} timed out after {self._timeout}s", cause=exc
            ) from exc
        except OSError as exc:
            raise TransformFailure(
                f"{operation} could not start {command[0]}: {exc}", cause=exc
            ) from exc

        if completed.returncode != 0:
            stderr = (completed.stderr or b"").decode("utf-8", errors="replace").strip()
            raise TransformFailure(
                f"{operation} failed with exit code {completed.returncode}: {stderr}"
            )
        return completed
