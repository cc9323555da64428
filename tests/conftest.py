from pathlib import Path
from typing import Dict, Iterator

import pytest
from fastapi.testclient import TestClient

from periploko.enrichment import NullEnrichmentProvider
from periploko.main import create_app
from periploko.probe import EMPTY_METADATA, TechnicalMetadata

SRT_SAMPLE = "1\r\n00:00:01,000 --> 00:00:02,000\r\nHello, world\r\n\r\n2\r\n00:00:03,500 --> 00:00:04,250\r\nBye\r\n"


def _write(path: Path, data: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


@pytest.fixture
def media_root(tmp_path: Path) -> Path:
    root = tmp_path / "media"
    _write(root / "Blade.Runner.1982.mp4", bytes(range(256)) * 40)
    _write(root / "Blade.Runner.1982.srt", SRT_SAMPLE.encode("utf-8"))
    _write(root / "series" / "Arrival (2016).mkv", b"\x1a\x45\xdf\xa3" + b"x" * 5000)
    _write(root / "series" / "notes.txt", b"not a video")
    _write(root / "broken.avi", b"RIFF")
    _write(tmp_path / "secrets.txt", b"TOP-SECRET")
    return root


class FakeProbe:
    """按文件名返回预设元数据；没登记的文件当作探测失败。"""

    def __init__(self, table: Dict[str, TechnicalMetadata]):
        self.table = table
        self.calls = []

    def __call__(self, path: str) -> TechnicalMetadata:
        self.calls.append(path)
        return self.table.get(Path(path).name, EMPTY_METADATA)


@pytest.fixture
def fake_probe() -> FakeProbe:
    return FakeProbe({
        "Blade.Runner.1982.mp4": TechnicalMetadata(duration=7020.5, width=1920, height=1080, codec="h264"),
        "Arrival (2016).mkv": TechnicalMetadata(duration=6960.0, width=3840, height=2160, codec="hevc"),
    })


@pytest.fixture
def client(media_root: Path, fake_probe: FakeProbe) -> Iterator[TestClient]:
    app = create_app(media_roots=[str(media_root)], enrichment=NullEnrichmentProvider(), probe=fake_probe)
    with TestClient(app) as c:
        yield c
