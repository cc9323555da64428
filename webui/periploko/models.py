# periploko/models.py
from pydantic import BaseModel
from typing import Dict, List, Optional

class EnrichmentOut(BaseModel):
    external_id: str
    title: str
    overview: str = ""
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    year: Optional[int] = None
    rating: Optional[float] = None

class MovieOut(BaseModel):
    id: str
    title: str
    display_title: str
    year: Optional[int] = None
    filename: str
    path: str
    size: int
    size_formatted: str
    created_at: str
    modified_at: str
    duration: Optional[float] = None
    duration_formatted: str
    resolution: Optional[str] = None
    codec: Optional[str] = None
    needs_transcode: bool = False
    subtitle: Optional[str] = None
    poster: Optional[str] = None
    enrichment: Optional[EnrichmentOut] = None

class ScanErrorOut(BaseModel):
    root: int
    path: str
    error: str

class MovieListResponse(BaseModel):
    success: bool = True
    data: List[MovieOut]
    count: int
    errors: List[ScanErrorOut] = []
    query: Optional[str] = None

class MovieResponse(BaseModel):
    success: bool = True
    data: MovieOut

class LibraryStatsOut(BaseModel):
    total_movies: int
    total_size: int
    total_size_formatted: str
    formats: Dict[str, int]
    errors: int
    last_scan: str

class LibraryStatsResponse(BaseModel):
    success: bool = True
    data: LibraryStatsOut

class LibraryScanOut(BaseModel):
    scanned: int
    errors: List[ScanErrorOut] = []
    start_time: str
    end_time: str

class LibraryScanResponse(BaseModel):
    success: bool = True
    data: LibraryScanOut
