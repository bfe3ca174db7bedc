"""Tests for the transport layer.

Mocking strategy: every test hands ``fetch_markup`` a :class:`FakeSession`
that answers from a URL map, so the retrieval order and the validation of each
body can be observed without network access.
"""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest
import requests

from conftest import DIRECT, RELAY_A, RELAY_B, FakeResponse, FakeSession, page
from shopscout.errors import TransportExhausted
from shopscout.fetch import DirectPath, RelayPath, build_paths, create_session, fetch_markup, validate_body
from shopscout.urls import resolve_target


TARGET = resolve_target("shop.test")
GOOD = page("<p>real shop page</p>")


class TestBuildPaths:
    def test_direct_first_then_relays(self, config) -> None:
        paths = build_paths(TARGET, config)
        assert [type(p) for p in paths] == [DirectPath, RelayPath, RelayPath]
        assert [p.url for p in paths] == [DIRECT, RELAY_A, RELAY_B]

    def test_direct_can_be_disabled(self, config) -> None:
        paths = build_paths(TARGET, config.replace(allow_direct=False))
        assert [p.url for p in paths] == [RELAY_A, RELAY_B]

    def test_relay_name_uses_host(self) -> None:
        assert RelayPath(DIRECT, "https://corsproxy.io/?{url}").name == "relay:corsproxy.io"


class TestValidateBody:
    def test_short_body(self) -> None:
        assert "too short" in validate_body("<html></html>", 500)

    def test_access_denied(self) -> None:
        assert "blocked" in validate_body("<h1>Access Denied</h1>" + "x" * 600, 500)

    def test_good_body(self) -> None:
        assert validate_body(GOOD, 500) is None


class TestFetchMarkup:
    def test_direct_success_stops_early(self, config) -> None:
        session = FakeSession({DIRECT: FakeResponse(200, GOOD)})
        html, attempts = fetch_markup(TARGET, session=session, config=config)
        assert html == GOOD
        assert session.calls == [DIRECT]
        assert [a.ok for a in attempts] == [True]

    def test_falls_through_failed_paths(self, config) -> None:
        session = FakeSession(
            {
                DIRECT: FakeResponse(403, "Forbidden"),
                RELAY_A: FakeResponse(200, "<html>proxy error</html>"),
                RELAY_B: FakeResponse(200, GOOD),
            }
        )
        html, attempts = fetch_markup(TARGET, session=session, config=config)
        assert html == GOOD
        assert session.calls == [DIRECT, RELAY_A, RELAY_B]
        assert attempts[0].status_code == 403
        assert "too short" in attempts[1].reason

    def test_network_error_is_a_failed_path(self, config) -> None:
        session = FakeSession(
            {
                DIRECT: requests.ConnectionError("refused"),
                RELAY_A: FakeResponse(200, GOOD),
            }
        )
        html, attempts = fetch_markup(TARGET, session=session, config=config)
        assert html == GOOD
        assert "network error" in attempts[0].reason

    def test_all_paths_fail(self, config) -> None:
        session = FakeSession(
            {
                DIRECT: FakeResponse(403, "Forbidden"),
                RELAY_A: FakeResponse(200, ""),
                RELAY_B: FakeResponse(500, "oops"),
            }
        )
        with pytest.raises(TransportExhausted) as excinfo:
            fetch_markup(TARGET, session=session, config=config)
        assert [a.path_name for a in excinfo.value.attempts] == [
            "direct",
            "relay:relay-a.test",
            "relay:relay-b.test",
        ]
        assert "HTTP 403" in str(excinfo.value)

    def test_no_paths(self, config) -> None:
        with pytest.raises(TransportExhausted):
            fetch_markup(TARGET, session=FakeSession({}), config=config.replace(allow_direct=False, relay_templates=()))

    def test_expired_deadline_makes_no_requests(self, config) -> None:
        session = FakeSession({DIRECT: FakeResponse(200, GOOD)})
        with pytest.raises(TransportExhausted) as excinfo:
            fetch_markup(TARGET, session=session, config=config.replace(overall_deadline=0))
        assert session.calls == []
        assert all(a.reason == "overall deadline exceeded" for a in excinfo.value.attempts)

    def test_concurrent_first_valid_wins(self, config) -> None:
        session = FakeSession(
            {
                DIRECT: FakeResponse(403, "Forbidden"),
                RELAY_A: FakeResponse(200, "tiny"),
                RELAY_B: FakeResponse(200, GOOD),
            }
        )
        html, _ = fetch_markup(TARGET, session=session, config=config.replace(concurrent_transport=True))
        assert html == GOOD

    def test_concurrent_all_fail(self, config) -> None:
        session = FakeSession({})
        with pytest.raises(TransportExhausted):
            fetch_markup(TARGET, session=session, config=config.replace(concurrent_transport=True))
        assert sorted(session.calls) == sorted([DIRECT, RELAY_A, RELAY_B])

    def test_slow_attempt_past_deadline_fails(self, config) -> None:
        class SlowSession(FakeSession):
            def get(self, url, timeout=None, allow_redirects=True):
                time.sleep(1.5)
                return super().get(url, timeout=timeout, allow_redirects=allow_redirects)

        session = SlowSession({DIRECT: FakeResponse(200, GOOD)})
        started = time.monotonic()
        with pytest.raises(TransportExhausted) as excinfo:
            fetch_markup(TARGET, session=session, config=config.replace(overall_deadline=0.5))
        assert time.monotonic() - started < 1.4
        assert excinfo.value.attempts[0].reason == "overall deadline exceeded"

    def test_concurrent_uses_a_session_per_path(self, config) -> None:
        created = []

        def new_session(**kwargs):
            created.append(FakeSession({RELAY_B: FakeResponse(200, GOOD)}))
            return created[-1]

        with patch("shopscout.fetch.create_session", side_effect=new_session):
            html, _ = fetch_markup(TARGET, config=config.replace(concurrent_transport=True))
        assert html == GOOD
        assert len(created) == 3
        assert len({id(s) for s in created}) == 3


class TestCreateSession:
    def test_headers_and_single_attempt(self) -> None:
        session = create_session(user_agent="UnitTest/1.0")
        assert session.headers["User-Agent"] == "UnitTest/1.0"
        assert "text/html" in session.headers["Accept"]
        assert session.get_adapter("https://shop.test").max_retries.total == 0
