# streaming.py — 原文件直出（支持单段 Range）
import os, re
from email.utils import formatdate
from typing import Iterator, Optional, Tuple

from fastapi.responses import StreamingResponse

from . import config
from .errors import InvalidRequest, RangeNotSatisfiable

_range_re = re.compile(r"^bytes=(\d*)-(\d*)$")

def content_type_for(path: str) -> str:
    return config.CONTENT_TYPES.get(os.path.splitext(path)[1].lower(), "application/octet-stream")

def _etag_for(st: os.stat_result) -> str:
    return f'W/"{st.st_ino}-{st.st_size}-{int(st.st_mtime)}"'

def _last_modified_str(st: os.stat_result) -> str:
    return formatdate(st.st_mtime, usegmt=True)

def parse_range_header(range_header: str, file_size: int) -> Tuple[int, int]:
    """
    解析 `bytes=start-end`，返回闭区间 (start, end)。
    - 语法错误 / 多段 / start>end → InvalidRequest (400)
    - start 超出文件大小 → RangeNotSatisfiable (416)
    """
    header = (range_header or "").strip()
    if "," in header:
        raise InvalidRequest("multiple-ranges-unsupported")
    m = _range_re.match(header)
    if not m:
        raise InvalidRequest("malformed-range")
    start_s, end_s = m.groups()
    if start_s == "" and end_s == "":
        raise InvalidRequest("malformed-range")
    if start_s == "":  # bytes=-N
        length = int(end_s)
        if length <= 0 or file_size == 0:
            raise RangeNotSatisfiable(file_size)
        return max(0, file_size - length), file_size - 1
    start = int(start_s)
    end = int(end_s) if end_s else file_size - 1
    if start >= file_size:
        raise RangeNotSatisfiable(file_size)
    if end < start:
        raise InvalidRequest("malformed-range")
    return start, min(end, file_size - 1)

def iter_file_range(path: str, start: int, length: int, chunk: Optional[int] = None) -> Iterator[bytes]:
    chunk = chunk or config.STREAM_CHUNK
    with open(path, "rb") as f:
        f.seek(start)
        remaining = length
        while remaining > 0:
            data = f.read(min(chunk, remaining))
            if not data: break
            remaining -= len(data)
            yield data

def stream_file(path: str, range_header: Optional[str]):
    """path 必须已经过 resolve_media_path 校验。"""
    st = os.stat(path)
    file_size = st.st_size
    mime = content_type_for(path)
    headers = {
        "Accept-Ranges": "bytes",
        "ETag": _etag_for(st),
        "Last-Modified": _last_modified_str(st),
    }

    if not range_header:
        headers["Content-Length"] = str(file_size)
        return StreamingResponse(iter_file_range(path, 0, file_size), status_code=200,
                                 headers=headers, media_type=mime)

    start, end = parse_range_header(range_header, file_size)
    length = end - start + 1
    headers.update({
        "Content-Range": f"bytes {start}-{end}/{file_size}",
        "Content-Length": str(length),
    })
    return StreamingResponse(iter_file_range(path, start, length), status_code=206,
                             headers=headers, media_type=mime)
