# transcode.py — 不兼容编码的实时转码（ffmpeg → 分块 mp4，无 Range）
import asyncio, contextlib, logging, shutil, subprocess
from collections import deque
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Iterable, List, Optional

from . import config
from .errors import TranscodeFailure

log = logging.getLogger(__name__)

@dataclass(frozen=True)
class QualityTier:
    name: str
    width: int
    height: int
    video_bitrate: str
    audio_bitrate: str
    fps: int

QUALITY_TIERS = {
    "480p": QualityTier("480p", 854, 480, "800k", "128k", 24),
    "720p": QualityTier("720p", 1280, 720, "1500k", "128k", 24),
    "1080p": QualityTier("1080p", 1920, 1080, "3000k", "192k", 24),
}
DEFAULT_TIER = "720p"

READ_CHUNK = 64 * 1024

def resolve_tier(name: Optional[str]) -> QualityTier:
    # 未知档位 → 默认档，不报错
    return QUALITY_TIERS.get((name or "").strip().lower(), QUALITY_TIERS[DEFAULT_TIER])

def needs_transcode(codec: Optional[str], codecs: Optional[Iterable[str]] = None) -> bool:
    if not codec:
        return False
    return codec.lower() in (config.TRANSCODE_CODECS if codecs is None else codecs)

def build_transcode_cmd(src_path: str, tier: QualityTier) -> List[str]:
    return [
        config.FFMPEG_BIN, "-hide_banner", "-loglevel", "error", "-nostdin",
        "-i", src_path,
        "-map", "0:v:0", "-map", "0:a:0?", "-sn", "-dn",
        "-c:v", "libx264", "-preset", "veryfast",
        "-s", f"{tier.width}x{tier.height}",
        "-b:v", tier.video_bitrate,
        "-r", str(tier.fps),
        "-c:a", "aac", "-b:a", tier.audio_bitrate,
        # 管道输出必须是分片 mp4（moov 前置）
        "-movflags", "frag_keyframe+empty_moov+default_base_moof",
        "-f", "mp4", "pipe:1",
    ]

def ensure_encoder() -> None:
    if shutil.which(config.FFMPEG_BIN) is None:
        raise TranscodeFailure("encoder-unavailable")

class TranscodeSession:
    """
    一次转码 = 一个 ffmpeg 子进程，生命周期绑定到 HTTP 连接：
    - 客户端断开 / 生成器关闭 / 任务取消 → terminate，宽限期后 kill；
    - 编码器非 0 退出只记日志并结束流，不影响服务进程。
    """

    def __init__(self, src_path: str, tier: QualityTier,
                 grace: float = config.TRANSCODE_KILL_GRACE, chunk: int = READ_CHUNK):
        self.src_path = src_path
        self.tier = tier
        self.grace = grace
        self.chunk = chunk
        self.proc: Optional[asyncio.subprocess.Process] = None
        self._stderr_tail = deque(maxlen=20)
        self._stderr_task: Optional[asyncio.Task] = None

    @property
    def command(self) -> List[str]:
        return build_transcode_cmd(self.src_path, self.tier)

    async def start(self) -> None:
        try:
            self.proc = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TranscodeFailure(f"cannot start encoder: {e}") from e
        # stderr 不排空会把 ffmpeg 堵死
        self._stderr_task = asyncio.ensure_future(self._drain_stderr())
        log.info("transcode started pid=%s %s @%s", self.proc.pid, self.src_path, self.tier.name)

    async def _drain_stderr(self) -> None:
        assert self.proc is not None and self.proc.stderr is not None
        async for line in self.proc.stderr:
            self._stderr_tail.append(line.decode("utf-8", errors="ignore").rstrip())

    async def stop(self) -> None:
        proc = self.proc
        if proc is None:
            return
        try:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.terminate()
                try:
                    await asyncio.wait_for(proc.wait(), timeout=self.grace)
                except asyncio.TimeoutError:
                    log.warning("encoder pid=%s ignored SIGTERM, killing", proc.pid)
        finally:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
            if self._stderr_task is not None:
                self._stderr_task.cancel()

    async def stream(self, is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None) -> AsyncIterator[bytes]:
        try:
            await self.start()
        except TranscodeFailure as e:
            log.error("transcode failed for %s: %s", self.src_path, e.message)
            return
        assert self.proc is not None and self.proc.stdout is not None
        aborted = False
        try:
            while True:
                if is_disconnected is not None and await is_disconnected():
                    aborted = True
                    log.info("client gone, aborting transcode pid=%s", self.proc.pid)
                    break
                data = await self.proc.stdout.read(self.chunk)
                if not data:
                    break
                yield data
            if not aborted:
                rc = await self.proc.wait()
                if rc != 0:
                    err = TranscodeFailure(f"encoder exited {rc}: {' | '.join(self._stderr_tail)}")
                    log.error("transcode failed for %s: %s", self.src_path, err.message)
                else:
                    log.info("transcode finished pid=%s", self.proc.pid)
        finally:
            await self.stop()

def extract_thumbnail(src_path: str, at: str = "00:00:10", size: str = "320x180") -> bytes:
    cmd = [
        config.FFMPEG_BIN, "-hide_banner", "-loglevel", "error", "-nostdin",
        "-ss", at, "-i", src_path,
        "-frames:v", "1", "-s", size,
        "-f", "image2", "-c:v", "mjpeg", "pipe:1",
    ]
    try:
        res = subprocess.run(cmd, capture_output=True, check=True, timeout=config.THUMBNAIL_TIMEOUT)
    except subprocess.TimeoutExpired as e:
        raise TranscodeFailure("thumbnail timed out") from e
    except subprocess.CalledProcessError as e:
        raise TranscodeFailure(f"thumbnail failed: {e.stderr.decode('utf-8', errors='ignore').strip()[-200:]}") from e
    except OSError as e:
        raise TranscodeFailure(str(e)) from e
    if not res.stdout:
        raise TranscodeFailure("thumbnail empty")
    return res.stdout
