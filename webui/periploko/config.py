# periploko/config.py
import os
from typing import List

# === 媒体根目录（os.pathsep 分隔，按顺序优先） ===
MEDIA_ROOTS: List[str] = [
    os.path.abspath(p) for p in os.getenv("MEDIA_ROOTS", os.path.join(os.getcwd(), "media")).split(os.pathsep)
    if p.strip()
]

# 白名单：扫描 / 播放 / 上传校验共用
VIDEO_EXTENSIONS = (".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv", ".webm", ".m4v")
SUBTITLE_EXTENSIONS = (".srt", ".vtt")

CONTENT_TYPES = {
    ".mp4": "video/mp4",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".mov": "video/quicktime",
    ".wmv": "video/x-ms-wmv",
    ".flv": "video/x-flv",
    ".webm": "video/webm",
    ".m4v": "video/x-m4v",
}

# === 扫描 / 探测 ===
SCAN_WORKERS = int(os.getenv("SCAN_WORKERS", "4"))
MAX_SCAN_DEPTH = int(os.getenv("MAX_SCAN_DEPTH", "32"))
PROBE_TIMEOUT = float(os.getenv("PROBE_TIMEOUT", "15"))
FFPROBE_BIN = os.getenv("FFPROBE_BIN", "ffprobe")
FFMPEG_BIN = os.getenv("FFMPEG_BIN", "ffmpeg")

# === 转码 ===
TRANSCODE_CODECS = frozenset(
    c.strip().lower() for c in os.getenv("TRANSCODE_CODECS", "hevc,h265,vp9,av1,mpeg4,msmpeg4v3,wmv3,vc1").split(",")
    if c.strip()
)
TRANSCODE_KILL_GRACE = float(os.getenv("TRANSCODE_KILL_GRACE", "5"))
THUMBNAIL_TIMEOUT = float(os.getenv("THUMBNAIL_TIMEOUT", "20"))

STREAM_CHUNK = int(os.getenv("STREAM_CHUNK", str(1024 * 1024)))

# === TMDb（未配置 key 则关闭补全） ===
TMDB_API_KEY = os.getenv("TMDB_API_KEY", "")
TMDB_BASE = os.getenv("TMDB_BASE", "https://api.themoviedb.org/3")
TMDB_IMAGE_BASE = os.getenv("TMDB_IMAGE_BASE", "https://image.tmdb.org/t/p/w500")
TMDB_TIMEOUT = float(os.getenv("TMDB_TIMEOUT", "10"))

CLIENT_URL = os.getenv("CLIENT_URL", "http://localhost:3000")
SILENCE_HEALTH_LOGS = os.getenv("SILENCE_HEALTH_LOGS", "1") == "1"
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3001"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
