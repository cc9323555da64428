# enrichment.py — 外部描述性元数据（可选；失败一律降级为 None）
import logging
from dataclasses import dataclass, asdict
from typing import Optional, Protocol

import requests

from . import config
from .errors import EnrichmentFailure

log = logging.getLogger(__name__)

@dataclass(frozen=True)
class EnrichmentRecord:
    external_id: str
    title: str
    overview: str = ""
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    year: Optional[int] = None
    rating: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

class EnrichmentProvider(Protocol):
    def lookup(self, title: str, year: Optional[int] = None) -> Optional[EnrichmentRecord]:
        ...

class NullEnrichmentProvider:
    """未配置外部服务时使用：永远没有补全。"""

    def lookup(self, title: str, year: Optional[int] = None) -> Optional[EnrichmentRecord]:
        return None

class TmdbProvider:
    """
    TMDb /search/movie 的最小客户端。
    缓存与限流由调用方负责；这里只保证不抛出。
    """

    def __init__(self, api_key: str, base_url: str = config.TMDB_BASE,
                 image_base: str = config.TMDB_IMAGE_BASE, timeout: float = config.TMDB_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.image_base = image_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _image(self, path: Optional[str]) -> Optional[str]:
        return f"{self.image_base}{path}" if path else None

    def _search(self, title: str, year: Optional[int]) -> list:
        params = {"api_key": self.api_key, "query": title}
        if year:
            params["year"] = year
        try:
            r = self.session.get(f"{self.base_url}/search/movie", params=params, timeout=self.timeout)
            r.raise_for_status()
            return r.json().get("results", []) or []
        except (requests.RequestException, ValueError) as e:
            raise EnrichmentFailure(f"TMDb search error: {e}") from e

    def _record(self, hit: dict) -> EnrichmentRecord:
        release = hit.get("release_date") or ""
        year = int(release[:4]) if release[:4].isdigit() else None
        return EnrichmentRecord(
            external_id=str(hit.get("id", "")),
            title=hit.get("title") or hit.get("original_title") or "",
            overview=hit.get("overview") or "",
            poster=self._image(hit.get("poster_path")),
            backdrop=self._image(hit.get("backdrop_path")),
            year=year,
            rating=hit.get("vote_average"),
        )

    def lookup(self, title: str, year: Optional[int] = None) -> Optional[EnrichmentRecord]:
        if not title:
            return None
        try:
            results = self._search(title, year)
        except EnrichmentFailure as e:
            log.warning("enrichment failed for %r (%s): %s", title, year, e.message)
            return None
        if not results:
            return None
        return self._record(results[0])

def default_provider() -> EnrichmentProvider:
    if config.TMDB_API_KEY:
        return TmdbProvider(config.TMDB_API_KEY)
    return NullEnrichmentProvider()
