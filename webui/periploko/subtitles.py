# subtitles.py — SRT → WebVTT（纯文本变换，无外部进程）
import os, re

VTT_HEADER = "WEBVTT"

# 只改时间轴行的逗号；对白里的逗号保持原样
_timing_re = re.compile(
    r"^(\d{2,}:\d{2}:\d{2}),(\d{3})(\s*-->\s*)(\d{2,}:\d{2}:\d{2}),(\d{3})(.*)$"
)

def normalize_newlines(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")

def _rewrite_line(line: str) -> str:
    m = _timing_re.match(line)
    if not m:
        return line
    a, ams, arrow, b, bms, rest = m.groups()
    return f"{a}.{ams}{arrow}{b}.{bms}{rest}"

def srt_to_vtt(text: str) -> str:
    body = normalize_newlines(text.lstrip("\ufeff")).strip("\n")
    lines = [_rewrite_line(line) for line in body.split("\n")]
    return f"{VTT_HEADER}\n\n" + "\n".join(lines) + "\n"

def read_subtitle_text(path: str) -> str:
    with open(path, "rb") as f:
        raw = f.read()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        # 老字幕常见 latin-1 / cp1252
        return raw.decode("latin-1")

def subtitle_to_vtt(path: str) -> str:
    text = read_subtitle_text(path)
    if os.path.splitext(path)[1].lower() == ".vtt":
        return normalize_newlines(text.lstrip("\ufeff"))
    return srt_to_vtt(text)
