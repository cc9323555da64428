# media_scan.py — 只读扫描媒体根目录 + 同名字幕查找 + 相对路径校验
import os, logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Set, Tuple

from .config import VIDEO_EXTENSIONS, SUBTITLE_EXTENSIONS, MAX_SCAN_DEPTH
from .errors import InvalidRequest, NotFound, ScanEntryFailure

log = logging.getLogger(__name__)

@dataclass(frozen=True)
class MediaFile:
    path: str
    relative_path: str
    root: str
    size: int
    created: float
    modified: float

    @property
    def filename(self) -> str:
        return os.path.basename(self.path)

    @property
    def extension(self) -> str:
        return os.path.splitext(self.path)[1].lower()

@dataclass
class ScanResult:
    files: List[MediaFile] = field(default_factory=list)
    errors: List[ScanEntryFailure] = field(default_factory=list)

def to_relative(root: str, path: str) -> str:
    # 统一使用 / 分隔，便于拼 URL
    return os.path.relpath(path, root).replace(os.sep, "/")

def is_video_file(name: str) -> bool:
    return os.path.splitext(name)[1].lower() in VIDEO_EXTENSIONS

def _inside(root: str, path: str) -> bool:
    try:
        return os.path.commonpath([root, path]) == root
    except ValueError:
        # 不同盘符（Windows）
        return False

def resolve_media_path(roots: Sequence[str], relative: str) -> Tuple[str, str]:
    """
    把客户端传来的相对路径解析为 (root, 绝对路径)。
    - 绝对路径、规范化后以 .. 开头 → InvalidRequest；
    - 按根目录顺序取第一个存在的普通文件；某个根里经符号链接跑出去的，视为“不在这个根”；
    - 每个根都跑出去 → InvalidRequest，否则 → NotFound。
    """
    if not relative or "\x00" in relative or os.path.isabs(relative):
        raise InvalidRequest("invalid-path")
    norm = os.path.normpath(relative)
    if norm == os.pardir or norm.startswith(os.pardir + os.sep):
        raise InvalidRequest("invalid-path")
    escaped = 0
    for root in roots:
        root_real = os.path.realpath(root)
        candidate = os.path.realpath(os.path.join(root_real, norm))
        if not _inside(root_real, candidate):
            escaped += 1
            continue
        if os.path.isfile(candidate):
            return root_real, candidate
    if roots and escaped == len(roots):
        raise InvalidRequest("invalid-path")
    raise NotFound("file-not-found")

def _media_file(root: str, path: str, st: os.stat_result) -> MediaFile:
    created = getattr(st, "st_birthtime", None) or st.st_ctime
    return MediaFile(
        path=path,
        relative_path=to_relative(root, path),
        root=root,
        size=st.st_size,
        created=created,
        modified=st.st_mtime,
    )

def _failure(index: int, root: str, path: str, message: str) -> ScanEntryFailure:
    # 对外只给根序号 + 根内相对路径，不暴露服务器绝对路径
    return ScanEntryFailure(to_relative(root, path), message, root=index)

def _walk(index: int, root: str, directory: str, depth: int, visited: Set[str], result: ScanResult) -> None:
    if depth > MAX_SCAN_DEPTH:
        log.warning("scan depth limit reached at %s", directory)
        return
    real = os.path.realpath(directory)
    if real in visited:
        # 符号链接成环
        return
    visited.add(real)

    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        result.errors.append(_failure(index, root, directory, str(e)))
        log.warning("cannot read directory %s: %s", directory, e)
        return

    for entry in entries:
        try:
            # 指向根目录之外的链接：播放解析不认，扫描也不收
            if entry.is_symlink() and not _inside(root, os.path.realpath(entry.path)):
                continue
            if entry.is_dir():
                _walk(index, root, entry.path, depth + 1, visited, result)
                continue
            if not (entry.is_file() and is_video_file(entry.name)):
                continue
            st = entry.stat()
        except OSError as e:
            result.errors.append(_failure(index, root, entry.path, str(e)))
            log.warning("skipping unreadable entry %s: %s", entry.path, e)
            continue
        result.files.append(_media_file(root, os.path.normpath(entry.path), st))

def scan_media_roots(roots: Sequence[str]) -> ScanResult:
    """
    递归扫描所有根目录，返回白名单扩展名的视频文件。
    单个条目失败只记录，不中断整次扫描。
    """
    result = ScanResult()
    for index, root in enumerate(roots):
        root_real = os.path.realpath(root)
        if not os.path.isdir(root_real):
            log.warning("media root missing: %s", root)
            result.errors.append(ScanEntryFailure(".", "media-root-missing", root=index))
            continue
        # 每个根独立的 visited，允许两个根互相包含时各自完整出结果
        _walk(index, root_real, root_real, 0, set(), result)
    log.info("scan finished: %d files, %d errors", len(result.files), len(result.errors))
    return result

def find_sidecar_subtitle(media: MediaFile) -> Optional[str]:
    """同目录、同名（仅扩展名不同）的字幕；找不到返回 None。"""
    stem = os.path.splitext(media.path)[0]
    for ext in SUBTITLE_EXTENSIONS:
        candidate = stem + ext
        if os.path.isfile(candidate):
            return to_relative(media.root, candidate)
    return None
