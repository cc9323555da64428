import json
import subprocess
from types import SimpleNamespace

import pytest

from periploko.errors import ProbeFailure
from periploko.probe import parse_probe_output, probe_details, probe_media

FFPROBE_JSON = {
    "streams": [
        {"codec_type": "audio", "codec_name": "aac", "channels": 2, "sample_rate": "48000"},
        {"codec_type": "video", "codec_name": "h264", "width": 1920, "height": 800,
         "bit_rate": "4000000", "r_frame_rate": "24000/1001"},
    ],
    "format": {"duration": "7020.480000", "format_name": "mov,mp4,m4a,3gp,3g2,mj2"},
}


def _fake_run(stdout: str):
    def run(cmd, **kwargs):
        assert kwargs.get("timeout")
        return SimpleNamespace(stdout=stdout, stderr="", returncode=0)
    return run


def test_probe_parses_ffprobe_json(monkeypatch) -> None:
    monkeypatch.setattr(subprocess, "run", _fake_run(json.dumps(FFPROBE_JSON)))
    meta = probe_media("/media/movie.mp4")
    assert meta.duration == pytest.approx(7020.48)
    assert meta.resolution == "1920x800"
    assert meta.codec == "h264"


def test_probe_timeout_yields_empty_metadata(monkeypatch) -> None:
    def run(cmd, **kwargs):
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr(subprocess, "run", run)
    assert probe_media("/media/slow.mkv").failed


def test_probe_error_exit_yields_empty_metadata(monkeypatch) -> None:
    def run(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd, output="", stderr="moov atom not found")

    monkeypatch.setattr(subprocess, "run", run)
    meta = probe_media("/media/truncated.mp4")
    assert (meta.duration, meta.resolution, meta.codec) == (None, None, None)


def test_probe_missing_binary_yields_empty_metadata(monkeypatch) -> None:
    def run(cmd, **kwargs):
        raise FileNotFoundError("ffprobe")

    monkeypatch.setattr(subprocess, "run", run)
    assert probe_media("/media/a.mp4").failed


def test_audio_only_is_a_probe_failure() -> None:
    with pytest.raises(ProbeFailure):
        parse_probe_output({"streams": [{"codec_type": "audio", "codec_name": "mp3"}], "format": {}})


def test_probe_details_shape(monkeypatch) -> None:
    monkeypatch.setattr(subprocess, "run", _fake_run(json.dumps(FFPROBE_JSON)))
    info = probe_details("/media/movie.mp4")
    assert info["video"] == {"codec": "h264", "resolution": "1920x800", "bitrate": "4000000", "fps": "24000/1001"}
    assert info["audio"]["channels"] == 2


def test_info_endpoint_reports_probe_failure(client, monkeypatch) -> None:
    def run(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd, output="", stderr="Invalid data")

    monkeypatch.setattr(subprocess, "run", run)
    resp = client.get("/api/stream/info", params={"path": "broken.avi"})
    assert resp.status_code == 500
    assert resp.json()["success"] is False
