from unittest.mock import MagicMock

import requests

from conftest import make_launch, raw_launch
from okto.services.launch_cache import LaunchCache
from okto.services.launch_fetcher import LaunchFetcher


def _fetcher(payload=None, error=None) -> LaunchFetcher:
    session = MagicMock(spec=requests.Session)
    if error is not None:
        session.get.side_effect = error
    else:
        response = MagicMock()
        response.json.return_value = payload
        session.get.return_value = response
    return LaunchFetcher(api_url="https://ll.example.com/2.2.0/", limit=10, session=session)


def test_fetch_requests_upcoming_launches():
    fetcher = _fetcher({"results": [raw_launch()]})

    assert fetcher.fetch() == [raw_launch()]

    args, kwargs = fetcher.session.get.call_args
    assert args[0] == "https://ll.example.com/2.2.0/launch/upcoming/"
    assert kwargs["params"] == {"mode": "detailed", "limit": 10}
    assert kwargs["timeout"] == 30


def test_fetch_returns_empty_list_on_request_error():
    fetcher = _fetcher(error=requests.ConnectionError("offline"))

    assert fetcher.fetch() == []


def test_fetch_returns_empty_list_without_results():
    assert _fetcher({"detail": "Request was throttled."}).fetch() == []


def test_refresh_publishes_transformed_launches_and_skips_bad_ones():
    bad = raw_launch(id="broken")
    del bad["pad"]
    fetcher = _fetcher({"results": [
        raw_launch(id="second", net="2026-10-21T12:00:00Z"),
        bad,
        raw_launch(id="first", net="2026-10-20T12:00:00Z"),
    ]})
    cache = LaunchCache()

    assert fetcher.refresh(cache)

    snapshot = cache.snapshot()
    assert [r.ll_id for r in snapshot] == ["first", "second"]
    assert {r.ll_id: r.id for r in snapshot} == {"second": 0, "first": 1}


def test_failed_refresh_keeps_previous_generation():
    cache = LaunchCache([make_launch()])
    fetcher = _fetcher(error=requests.Timeout("slow"))

    assert not fetcher.refresh(cache)
    assert cache.generation == 1
    assert [r.ll_id for r in cache.snapshot()] == ["launch-1"]
