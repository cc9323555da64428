# catalog.py — 每次请求现算的目录（不缓存，不落盘）
import os, re, hashlib, logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from . import config
from .enrichment import EnrichmentProvider, EnrichmentRecord, NullEnrichmentProvider
from .errors import ScanEntryFailure
from .media_scan import MediaFile, scan_media_roots, find_sidecar_subtitle
from .probe import TechnicalMetadata, EMPTY_METADATA, probe_media
from .transcode import needs_transcode

log = logging.getLogger(__name__)

_YEAR_RE = re.compile(r"(?<!\d)((?:19|20)\d{2})(?!\d)")
_SEP_RE = re.compile(r"[\s._\-\[\]\(\)]+")

@dataclass
class Movie:
    id: str
    title: str
    year: Optional[int]
    media: MediaFile
    technical: TechnicalMetadata
    subtitle: Optional[str] = None
    enrichment: Optional[EnrichmentRecord] = None

    @property
    def display_title(self) -> str:
        if self.enrichment and self.enrichment.title:
            return self.enrichment.title
        return self.title

    @property
    def poster(self) -> Optional[str]:
        return self.enrichment.poster if self.enrichment else None

    @property
    def needs_transcode(self) -> bool:
        return needs_transcode(self.technical.codec)

@dataclass
class Catalog:
    movies: List[Movie] = field(default_factory=list)
    errors: List[ScanEntryFailure] = field(default_factory=list)

def movie_id(relative_path: str) -> str:
    """相对路径 → 稳定 ID（纯函数；同一棵目录树重复扫描结果一致）"""
    return hashlib.sha1(relative_path.encode("utf-8")).hexdigest()[:16]

def _normalize(text: str) -> str:
    return _SEP_RE.sub(" ", text).strip()

def parse_title_year(filename: str) -> Tuple[str, Optional[int]]:
    stem = os.path.splitext(os.path.basename(filename))[0]
    for m in reversed(list(_YEAR_RE.finditer(stem))):
        title = _normalize(stem[:m.start()])
        if title:
            return title, int(m.group(1))
    return _normalize(stem) or stem, None

def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    i = 0
    while size >= 1024 ** (i + 1) and i < len(units) - 1:
        i += 1
    value = round(size / 1024 ** i, 2)
    return f"{value:g} {units[i]}"

def format_duration(seconds: Optional[float]) -> str:
    if not seconds:
        return "Unknown"
    total = int(seconds)
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"

def iso_time(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()

class CatalogAssembler:
    def __init__(self, roots: Sequence[str],
                 probe: Callable[[str], TechnicalMetadata] = probe_media,
                 enrichment: Optional[EnrichmentProvider] = None,
                 workers: int = config.SCAN_WORKERS):
        self.roots = list(roots)
        self.probe = probe
        self.enrichment = enrichment or NullEnrichmentProvider()
        self.workers = max(1, workers)

    def _scan(self) -> Tuple[List[MediaFile], List[ScanEntryFailure]]:
        result = scan_media_roots(self.roots)
        seen: Dict[str, MediaFile] = {}
        files: List[MediaFile] = []
        for f in result.files:
            # 多个根出现同一相对路径：按配置顺序先到先得（与播放解析一致）
            if f.relative_path in seen:
                log.info("shadowed duplicate %s (kept %s)", f.path, seen[f.relative_path].path)
                continue
            seen[f.relative_path] = f
            files.append(f)
        return files, result.errors

    def _probe(self, media: MediaFile) -> TechnicalMetadata:
        try:
            return self.probe(media.path)
        except Exception as e:
            log.warning("probe raised for %s: %s", media.path, e)
            return EMPTY_METADATA

    def _enrich(self, title: str, year: Optional[int]) -> Optional[EnrichmentRecord]:
        try:
            return self.enrichment.lookup(title, year)
        except Exception as e:
            log.warning("enrichment raised for %r: %s", title, e)
            return None

    def assemble(self, media: MediaFile) -> Movie:
        title, year = parse_title_year(media.filename)
        return Movie(
            id=movie_id(media.relative_path),
            title=title,
            year=year,
            media=media,
            technical=self._probe(media),
            subtitle=find_sidecar_subtitle(media),
            enrichment=self._enrich(title, year),
        )

    def _assemble_all(self, files: List[MediaFile]) -> List[Movie]:
        if not files:
            return []
        # 有界线程池：并发的 ffprobe / 外部请求数不超过 workers
        with ThreadPoolExecutor(max_workers=min(self.workers, len(files))) as pool:
            return list(pool.map(self.assemble, files))

    def build(self) -> Catalog:
        files, errors = self._scan()
        return Catalog(movies=self._assemble_all(files), errors=errors)

    def find(self, mid: str) -> Optional[Movie]:
        files, _ = self._scan()
        media = next((f for f in files if movie_id(f.relative_path) == mid), None)
        return self.assemble(media) if media else None

    def search(self, query: str) -> List[Movie]:
        q = query.casefold().strip()
        files, _ = self._scan()
        # 展示标题可能来自外部元数据，只能组装完再过滤
        movies = self._assemble_all(files)
        if not q:
            return movies
        return [
            m for m in movies
            if q in os.path.splitext(m.media.filename)[0].casefold()
            or q in m.title.casefold()
            or q in m.display_title.casefold()
        ]

    def stats(self) -> dict:
        files, errors = self._scan()
        formats: Dict[str, int] = {}
        for f in files:
            formats[f.extension] = formats.get(f.extension, 0) + 1
        total_size = sum(f.size for f in files)
        return {
            "total_movies": len(files),
            "total_size": total_size,
            "total_size_formatted": format_file_size(total_size),
            "formats": formats,
            "errors": len(errors),
            "last_scan": datetime.now(timezone.utc).isoformat(),
        }

    def rescan(self) -> dict:
        """只走文件系统，不 probe、不查外部元数据；返回本次扫描的摘要。"""
        start = datetime.now(timezone.utc).isoformat()
        files, errors = self._scan()
        return {
            "scanned": len(files),
            "errors": errors,
            "start_time": start,
            "end_time": datetime.now(timezone.utc).isoformat(),
        }
