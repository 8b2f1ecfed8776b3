import sys
import os
import pytest
import requests
from unittest.mock import MagicMock, call, patch

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from errors import ResolutionTimeout, TransportError
from http_client import HttpClient
from scrapers.base import Deadline

UA = "TestAgent/1.0"


def make_response(status: int, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.text = text
    return response


def make_client(responses, retries: int = 3) -> HttpClient:
    session = MagicMock()
    session.request.side_effect = responses
    return HttpClient("https://hianime.to/", UA, timeout=10.0, retries=retries, session=session)


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("http_client.time.sleep") as sleep:
        yield sleep


class TestHeaders:
    def test_defaults_are_sent(self):
        client = make_client([make_response(200)])
        client.get("https://hianime.to/home")

        _, kwargs = client.session.request.call_args
        assert kwargs["headers"] == {"User-Agent": UA, "Referer": "https://hianime.to/"}
        assert kwargs["timeout"] == 10.0

    def test_caller_headers_override_and_extend_defaults(self):
        client = make_client([make_response(200)])
        client.get("https://x", headers={"Referer": "https://embed/", "X-Requested-With": "XMLHttpRequest"})

        _, kwargs = client.session.request.call_args
        assert kwargs["headers"] == {
            "User-Agent": UA,
            "Referer": "https://embed/",
            "X-Requested-With": "XMLHttpRequest",
        }

    def test_per_call_timeout(self):
        client = make_client([make_response(200)])
        client.get("https://x", timeout=2.5)
        assert client.session.request.call_args[1]["timeout"] == 2.5


class TestRetries:
    def test_first_success_does_not_sleep(self, no_sleep):
        ok = make_response(200, "body")
        client = make_client([ok])
        assert client.get("https://x") is ok
        no_sleep.assert_not_called()

    def test_retries_after_bad_status_with_linear_backoff(self, no_sleep):
        bad = make_response(502)
        bad2 = make_response(503)
        ok = make_response(200)
        client = make_client([bad, bad2, ok])

        assert client.get("https://x") is ok
        assert client.session.request.call_count == 3
        assert no_sleep.call_args_list == [call(0.5), call(1.0)]
        bad.close.assert_called_once()
        bad2.close.assert_called_once()

    def test_exhausted_status_reports_final_status(self, no_sleep):
        client = make_client([make_response(500), make_response(500), make_response(404)], retries=2)

        with pytest.raises(TransportError) as exc:
            client.get("https://x")
        assert exc.value.status_code == 404
        assert "404" in str(exc.value)
        assert client.session.request.call_count == 3
        assert no_sleep.call_count == 2

    def test_final_network_error_takes_precedence(self):
        boom = requests.ConnectionError("connection reset")
        client = make_client([make_response(500), boom], retries=1)

        with pytest.raises(TransportError) as exc:
            client.get("https://x")
        assert exc.value.status_code is None
        assert "connection reset" in str(exc.value)
        assert exc.value.__cause__ is boom

    def test_final_status_after_earlier_network_error(self):
        client = make_client([requests.Timeout("slow"), make_response(403)], retries=1)

        with pytest.raises(TransportError) as exc:
            client.get("https://x")
        assert exc.value.status_code == 403

    def test_zero_retries_means_single_attempt(self, no_sleep):
        client = make_client([make_response(500)], retries=0)
        with pytest.raises(TransportError):
            client.get("https://x")
        assert client.session.request.call_count == 1
        no_sleep.assert_not_called()


class TestPostAndJson:
    def test_post_accepts_any_2xx(self):
        created = make_response(201)
        client = make_client([created])
        assert client.post("https://x", json={"a": 1}) is created
        args, kwargs = client.session.request.call_args
        assert args == ("POST", "https://x")
        assert kwargs["json"] == {"a": 1}

    def test_get_rejects_204(self):
        client = make_client([make_response(204)], retries=0)
        with pytest.raises(TransportError):
            client.get("https://x")

    def test_get_json(self):
        response = make_response(200)
        response.json.return_value = {"link": "https://embed/x?k=1"}
        client = make_client([response])
        assert client.get_json("https://x") == {"link": "https://embed/x?k=1"}

    def test_get_json_invalid_body(self):
        response = make_response(200, "<html>")
        response.json.side_effect = ValueError("Expecting value")
        client = make_client([response])
        with pytest.raises(TransportError):
            client.get_json("https://x")


class TestDeadline:
    @pytest.fixture
    def clock(self, no_sleep):
        now = [0.0]

        def sleep(seconds):
            now[0] += seconds
        no_sleep.side_effect = sleep
        return now

    def slow_failing_client(self, clock, retries: int = 3) -> HttpClient:
        def request(method, url, headers=None, timeout=None, **kwargs):
            clock[0] += 0.6
            raise requests.ConnectionError("connection timed out")
        session = MagicMock()
        session.request.side_effect = request
        return HttpClient("https://hianime.to/", UA, timeout=10.0, retries=retries, session=session)

    def test_attempt_timeout_is_capped_by_time_left(self, clock):
        client = make_client([make_response(200)])
        client.get("https://x", deadline=Deadline(4, clock=lambda: clock[0]))
        assert client.session.request.call_args[1]["timeout"] == pytest.approx(4.0)

    def test_per_call_timeout_below_time_left_is_kept(self, clock):
        client = make_client([make_response(200)])
        client.get("https://x", timeout=2.5, deadline=Deadline(30, clock=lambda: clock[0]))
        assert client.session.request.call_args[1]["timeout"] == 2.5

    def test_stops_retrying_when_backoff_would_outlast_deadline(self, clock, no_sleep):
        client = self.slow_failing_client(clock)

        with pytest.raises(TransportError) as exc:
            client.get("https://x", deadline=Deadline(2.0, clock=lambda: clock[0]))

        assert client.session.request.call_count == 2
        assert no_sleep.call_args_list == [call(0.5)]
        timeouts = [c[1]["timeout"] for c in client.session.request.call_args_list]
        assert timeouts == [pytest.approx(2.0), pytest.approx(0.9)]
        assert clock[0] <= 2.0
        assert "after 2 attempts" in str(exc.value)

    def test_expired_deadline_sends_nothing(self, clock):
        client = make_client([make_response(200)])
        deadline = Deadline(1, clock=lambda: clock[0])
        clock[0] = 5.0
        with pytest.raises(ResolutionTimeout):
            client.get_json("https://x", deadline=deadline)
        client.session.request.assert_not_called()

    def test_unlimited_deadline_keeps_every_retry(self, clock, no_sleep):
        client = self.slow_failing_client(clock)
        with pytest.raises(TransportError):
            client.get("https://x", deadline=Deadline(None))
        assert client.session.request.call_count == 4
        assert no_sleep.call_args_list == [call(0.5), call(1.0), call(1.5)]
