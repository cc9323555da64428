# periploko/main.py — 目录列表 + 流媒体服务入口
import os, logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .catalog import CatalogAssembler, Movie, format_file_size, format_duration, iso_time
from .enrichment import EnrichmentProvider, default_provider
from .errors import PeriplokoError, RangeNotSatisfiable, NotFound, ScanEntryFailure
from .models import (
  EnrichmentOut, MovieOut, MovieListResponse, MovieResponse, ScanErrorOut,
  LibraryStatsOut, LibraryStatsResponse, LibraryScanOut, LibraryScanResponse,
)
from .probe import TechnicalMetadata, probe_media
from .stream_api import router as stream_router

log = logging.getLogger(__name__)

# ==== 静音健康检查的 access log（避免被轮询刷屏） ====
class _HealthFilter(logging.Filter):
  def filter(self, record):
    return "/api/health" not in record.getMessage()

if config.SILENCE_HEALTH_LOGS:
  logging.getLogger("uvicorn.access").addFilter(_HealthFilter())

def _movie_out(m: Movie) -> MovieOut:
  t = m.technical
  return MovieOut(
    id=m.id,
    title=m.title,
    display_title=m.display_title,
    year=m.year,
    filename=m.media.filename,
    path=m.media.relative_path,
    size=m.media.size,
    size_formatted=format_file_size(m.media.size),
    created_at=iso_time(m.media.created),
    modified_at=iso_time(m.media.modified),
    duration=t.duration,
    duration_formatted=format_duration(t.duration),
    resolution=t.resolution,
    codec=t.codec,
    needs_transcode=m.needs_transcode,
    subtitle=m.subtitle,
    poster=m.poster,
    enrichment=EnrichmentOut(**m.enrichment.to_dict()) if m.enrichment else None,
  )

def _scan_errors(errors: Sequence[ScanEntryFailure]) -> List[ScanErrorOut]:
  return [ScanErrorOut(root=e.root, path=e.path, error=e.message) for e in errors]

def _assembler(request: Request) -> CatalogAssembler:
  st = request.app.state
  return CatalogAssembler(st.media_roots, probe=st.probe, enrichment=st.enrichment, workers=config.SCAN_WORKERS)

async def _handle_error(request: Request, exc: PeriplokoError):
  headers = {}
  if isinstance(exc, RangeNotSatisfiable):
    headers = {"Content-Range": f"bytes */{exc.file_size}", "Accept-Ranges": "bytes"}
  if exc.status_code >= 500:
    log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
  return JSONResponse({"success": False, "error": exc.message}, status_code=exc.status_code, headers=headers)

def create_app(media_roots: Optional[Sequence[str]] = None,
               enrichment: Optional[EnrichmentProvider] = None,
               probe: Optional[Callable[[str], TechnicalMetadata]] = None) -> FastAPI:
  app = FastAPI(title="Periploko")
  app.state.media_roots = [os.path.abspath(p) for p in (media_roots or config.MEDIA_ROOTS)]
  app.state.enrichment = enrichment or default_provider()
  app.state.probe = probe or probe_media

  app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
  )
  app.add_exception_handler(PeriplokoError, _handle_error)
  app.include_router(stream_router)

  # ========== 目录 ==========
  @app.get("/api/movies", response_model=MovieListResponse)
  def api_movies(request: Request):
    catalog = _assembler(request).build()
    return MovieListResponse(
      data=[_movie_out(m) for m in catalog.movies],
      count=len(catalog.movies),
      errors=_scan_errors(catalog.errors),
    )

  @app.get("/api/movies/search/{query}", response_model=MovieListResponse)
  def api_search(request: Request, query: str):
    movies = _assembler(request).search(query)
    return MovieListResponse(data=[_movie_out(m) for m in movies], count=len(movies), query=query)

  @app.get("/api/movies/{movie_id}", response_model=MovieResponse)
  def api_movie(request: Request, movie_id: str):
    m = _assembler(request).find(movie_id)
    if m is None:
      raise NotFound("movie-not-found")
    return MovieResponse(data=_movie_out(m))

  @app.get("/api/library/stats", response_model=LibraryStatsResponse)
  def api_stats(request: Request):
    return LibraryStatsResponse(data=LibraryStatsOut(**_assembler(request).stats()))

  @app.post("/api/library/scan", response_model=LibraryScanResponse)
  def api_scan(request: Request):
    summary = _assembler(request).rescan()
    summary["errors"] = _scan_errors(summary["errors"])
    return LibraryScanResponse(data=LibraryScanOut(**summary))

  @app.get("/api/health")
  def health(request: Request):
    roots: List[str] = request.app.state.media_roots
    return {
      "status": "OK",
      "timestamp": datetime.now(timezone.utc).isoformat(),
      "media_roots": [{"path": r, "exists": os.path.isdir(r)} for r in roots],
    }

  return app

app = create_app()

def run():
  logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
  log.info("Periploko serving %s on %s:%s", ", ".join(config.MEDIA_ROOTS), config.HOST, config.PORT)
  uvicorn.run(app, host=config.HOST, port=config.PORT)

if __name__ == "__main__":
  run()
