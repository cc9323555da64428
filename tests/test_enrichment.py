import requests

from periploko.enrichment import NullEnrichmentProvider, TmdbProvider


class _Resp:
    def __init__(self, payload, status=200):
        self.payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")

    def json(self):
        return self.payload


class _StubSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params, timeout))
        if self.error:
            raise self.error
        return self.response


def test_tmdb_maps_first_result() -> None:
    session = _StubSession(_Resp({"results": [{
        "id": 78, "title": "Blade Runner", "overview": "Replicants.",
        "poster_path": "/p.jpg", "backdrop_path": "/b.jpg",
        "release_date": "1982-06-25", "vote_average": 7.9,
    }]}))
    provider = TmdbProvider("key", base_url="https://tmdb.test/3", image_base="https://img.test/w500", session=session)
    rec = provider.lookup("Blade Runner", 1982)
    assert rec.external_id == "78"
    assert rec.poster == "https://img.test/w500/p.jpg"
    assert rec.year == 1982
    url, params, timeout = session.calls[0]
    assert url == "https://tmdb.test/3/search/movie"
    assert params == {"api_key": "key", "query": "Blade Runner", "year": 1982}
    assert timeout


def test_tmdb_not_found_is_none() -> None:
    provider = TmdbProvider("key", session=_StubSession(_Resp({"results": []})))
    assert provider.lookup("Nothing Here") is None


def test_tmdb_network_errors_degrade_to_none() -> None:
    provider = TmdbProvider("key", session=_StubSession(error=requests.Timeout("slow")))
    assert provider.lookup("Arrival", 2016) is None
    provider = TmdbProvider("key", session=_StubSession(_Resp({}, status=503)))
    assert provider.lookup("Arrival", 2016) is None


def test_null_provider() -> None:
    assert NullEnrichmentProvider().lookup("Anything", 2000) is None
