# stream_api.py — /api/stream：直出 / 转码 / 字幕 / 信息 / 缩略图
import os, re, logging
from typing import List

from fastapi import APIRouter, Query, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from .config import VIDEO_EXTENSIONS, SUBTITLE_EXTENSIONS
from .errors import InvalidRequest
from .media_scan import resolve_media_path
from .probe import probe_details
from .streaming import stream_file
from .subtitles import subtitle_to_vtt
from .transcode import TranscodeSession, resolve_tier, ensure_encoder, extract_thumbnail

log = logging.getLogger(__name__)

_time_re = re.compile(r"^(\d{1,2}:\d{2}:\d{2}(\.\d+)?|\d+(\.\d+)?)$")

router = APIRouter(prefix="/api/stream")

def _roots(request: Request) -> List[str]:
    return request.app.state.media_roots

def _resolve(request: Request, path: str, allowed) -> str:
    if not path:
        raise InvalidRequest("missing-path")
    _, abs_path = resolve_media_path(_roots(request), path)
    if os.path.splitext(abs_path)[1].lower() not in allowed:
        raise InvalidRequest("unsupported-file-type")
    return abs_path

@router.get("")
def api_stream(request: Request, path: str = Query("", description="媒体根下的相对路径")):
    abs_path = _resolve(request, path, VIDEO_EXTENSIONS)
    return stream_file(abs_path, request.headers.get("range"))

async def _transcode_response(request: Request, path: str, quality: str) -> StreamingResponse:
    abs_path = _resolve(request, path, VIDEO_EXTENSIONS)
    ensure_encoder()
    session = TranscodeSession(abs_path, resolve_tier(quality))
    # 长度未知：不给 Content-Length，也不支持 Range
    return StreamingResponse(
        session.stream(request.is_disconnected),
        status_code=200,
        media_type="video/mp4",
        headers={"Cache-Control": "no-cache"},
    )

@router.get("/transcode")
async def api_transcode(request: Request, path: str = Query(""), quality: str = Query("720p")):
    return await _transcode_response(request, path, quality)

@router.get("/transcode/{path:path}")
async def api_transcode_path(request: Request, path: str, quality: str = Query("720p")):
    return await _transcode_response(request, path, quality)

@router.get("/subtitle")
def api_subtitle(request: Request, path: str = Query("")):
    abs_path = _resolve(request, path, SUBTITLE_EXTENSIONS)
    return PlainTextResponse(subtitle_to_vtt(abs_path), media_type="text/vtt")

@router.get("/info")
def api_info(request: Request, path: str = Query("")):
    abs_path = _resolve(request, path, VIDEO_EXTENSIONS)
    return {"success": True, "data": probe_details(abs_path)}

@router.get("/thumbnail")
def api_thumbnail(request: Request, path: str = Query(""), time: str = Query("00:00:10")):
    if not _time_re.match(time):
        raise InvalidRequest("invalid-time")
    abs_path = _resolve(request, path, VIDEO_EXTENSIONS)
    return Response(content=extract_thumbnail(abs_path, at=time), media_type="image/jpeg",
                    headers={"Cache-Control": "public, max-age=86400"})
