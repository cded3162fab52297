"""
Video helpers built on the ffmpeg/ffprobe command line tools.

Every subprocess call has a timeout; a failed or timed-out call raises
MediaProcessingError.
"""

import json
import logging
import os
import subprocess
import tempfile
import uuid
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from core.exceptions import MediaProcessingError

logger = logging.getLogger(__name__)

SHORT_VIDEO_SECONDS = 3


@dataclass
class Frame:
    data: bytes
    media_type: str = "image/jpeg"


class FfmpegTranscoder:
    def __init__(self, ffmpeg: str = "ffmpeg", ffprobe: str = "ffprobe", timeout: int = 60):
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe
        self.timeout = timeout

    def _run(self, args: Sequence[str]) -> str:
        try:
            result = subprocess.run(
                list(args),
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=True,
            )
        except subprocess.TimeoutExpired as e:
            raise MediaProcessingError(f"{args[0]} timed out after {self.timeout}s") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()[:500]
            raise MediaProcessingError(f"{args[0]} failed ({e.returncode}): {stderr}") from e
        except OSError as e:
            raise MediaProcessingError(f"Could not run {args[0]}: {e}") from e
        return result.stdout

    def probe_duration(self, path: str) -> float:
        stdout = self._run([
            self.ffprobe,
            "-v", "error",
            "-show_entries", "format=duration",
            "-of", "default=noprint_wrappers=1:nokey=1",
            path,
        ])
        try:
            return float(stdout.strip())
        except ValueError as e:
            raise MediaProcessingError(f"Could not parse duration for {path}: {stdout!r}") from e

    def probe_dimensions(self, path: str) -> Tuple[int, int]:
        stdout = self._run([
            self.ffprobe,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "json",
            path,
        ])
        try:
            stream = json.loads(stdout)["streams"][0]
            return int(stream["width"]), int(stream["height"])
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise MediaProcessingError(f"Could not parse dimensions for {path}") from e

    def extract_frame(self, path: str, timestamp: float, output_path: str, width: int = 800) -> str:
        self._run([
            self.ffmpeg,
            "-ss", str(timestamp),
            "-i", path,
            "-vframes", "1",
            "-vf", f"scale={width}:-1",
            "-q:v", "5",
            "-y",
            output_path,
        ])
        return output_path

    def generate_thumbnail(self, path: str, output_path: str, width: int = 100) -> str:
        """Grab a small frame half a second in."""
        os.makedirs(os.path.dirname(os.path.abspath(output_path)), exist_ok=True)
        self._run([
            self.ffmpeg,
            "-i", path,
            "-ss", "00:00:00.5",
            "-vframes", "1",
            "-vf", f"scale={width}:-1",
            "-q:v", "10",
            "-y",
            output_path,
        ])
        return output_path


def frame_timestamps(duration: float, frame_count: int = 3) -> List[float]:
    """Evenly spaced timestamps; one frame for clips under three seconds."""
    count = 1 if duration < SHORT_VIDEO_SECONDS else max(1, frame_count)
    return [duration * i / (count + 1) for i in range(1, count + 1)]


def extract_frames(path: str, transcoder: FfmpegTranscoder, frame_count: int = 3) -> List[Frame]:
    """
    Extract evenly spaced JPEG frames from a video.

    Frames that fail to extract are logged and skipped. Raises
    MediaProcessingError only if the duration cannot be probed.
    """
    duration = transcoder.probe_duration(path)
    frames: List[Frame] = []

    for index, timestamp in enumerate(frame_timestamps(duration, frame_count), start=1):
        tmp_path = os.path.join(tempfile.gettempdir(), f"wave-frame-{uuid.uuid4().hex}-{index}.jpg")
        try:
            transcoder.extract_frame(path, timestamp, tmp_path)
            with open(tmp_path, "rb") as f:
                frames.append(Frame(data=f.read()))
        except (MediaProcessingError, OSError) as e:
            logger.error(f"Error extracting frame at {timestamp:.2f}s from {path}: {e}")
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)

    return frames
