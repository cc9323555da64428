# probe.py — ffprobe 技术元数据（带超时，失败返回全空）
import json, logging, subprocess
from dataclasses import dataclass
from typing import Optional

from . import config
from .errors import ProbeFailure

log = logging.getLogger(__name__)

@dataclass(frozen=True)
class TechnicalMetadata:
    duration: Optional[float] = None
    width: Optional[int] = None
    height: Optional[int] = None
    codec: Optional[str] = None

    @property
    def resolution(self) -> Optional[str]:
        if self.width and self.height:
            return f"{self.width}x{self.height}"
        return None

    @property
    def failed(self) -> bool:
        return self.duration is None and self.codec is None and self.resolution is None

EMPTY_METADATA = TechnicalMetadata()

def run_ffprobe(path: str, entries: str, timeout: Optional[float] = None) -> dict:
    cmd = [
        config.FFPROBE_BIN, "-v", "error",
        "-show_entries", entries,
        "-of", "json",
        path,
    ]
    try:
        res = subprocess.run(cmd, capture_output=True, text=True, check=True,
                             timeout=timeout or config.PROBE_TIMEOUT)
        return json.loads(res.stdout or "{}")
    except subprocess.TimeoutExpired as e:
        raise ProbeFailure(f"ffprobe timed out after {e.timeout}s") from e
    except subprocess.CalledProcessError as e:
        raise ProbeFailure(f"ffprobe exited {e.returncode}: {(e.stderr or '').strip()[-200:]}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ProbeFailure(str(e)) from e

def _to_float(v) -> Optional[float]:
    try:
        return float(v)
    except (TypeError, ValueError):
        return None

def _to_int(v) -> Optional[int]:
    try:
        return int(v)
    except (TypeError, ValueError):
        return None

def parse_probe_output(data: dict) -> TechnicalMetadata:
    streams = data.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    if video is None:
        raise ProbeFailure("no video stream")
    fmt = data.get("format") or {}
    return TechnicalMetadata(
        duration=_to_float(fmt.get("duration")),
        width=_to_int(video.get("width")),
        height=_to_int(video.get("height")),
        codec=video.get("codec_name") or None,
    )

def probe_media(path: str) -> TechnicalMetadata:
    """失败（超时/坏头/无视频流）不抛出，只返回全空字段。"""
    try:
        data = run_ffprobe(path, "format=duration:stream=codec_type,codec_name,width,height")
        return parse_probe_output(data)
    except ProbeFailure as e:
        log.warning("probe failed for %s: %s", path, e.message)
        return EMPTY_METADATA

def probe_details(path: str) -> dict:
    """/api/stream/info 用：格式 + 首个视频/音频流的详细信息。失败时抛 ProbeFailure。"""
    data = run_ffprobe(
        path,
        "format=format_name,duration,size,bit_rate"
        ":stream=codec_type,codec_name,width,height,bit_rate,r_frame_rate,channels,sample_rate",
    )
    streams = data.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), None)
    audio = next((s for s in streams if s.get("codec_type") == "audio"), None)
    return {
        "format": data.get("format") or {},
        "video": {
            "codec": video.get("codec_name"),
            "resolution": f"{video.get('width')}x{video.get('height')}",
            "bitrate": video.get("bit_rate"),
            "fps": video.get("r_frame_rate"),
        } if video else None,
        "audio": {
            "codec": audio.get("codec_name"),
            "channels": audio.get("channels"),
            "sample_rate": audio.get("sample_rate"),
        } if audio else None,
    }
