"""Tests for downstream endpoint resolution."""

import pytest

from botgate.config import DEFAULT_HOST_DENYLIST
from botgate.domain.models import Category
from botgate.relay.endpoints import (
    DeniedHostError,
    EndpointConfigError,
    chatbot_path,
    denied_pattern,
    join_url,
    resolve_destination,
)


class TestJoinUrl:
    @pytest.mark.parametrize(
        "base,path,expected",
        [
            ("https://h.example.com", "/api/x", "https://h.example.com/api/x"),
            ("https://h.example.com/", "/api/x", "https://h.example.com/api/x"),
            ("https://h.example.com/functions/v1", "/api/x", "https://h.example.com/functions/v1/api/x"),
            ("https://h.example.com/functions/v1/", "api/x", "https://h.example.com/functions/v1/api/x"),
        ],
    )
    def test_single_separator_and_base_path_kept(self, base, path, expected):
        assert join_url(base, path) == expected


class TestResolveDestination:
    def test_resolves_chatbot_url(self):
        url = resolve_destination(
            "https://bots.example.com/functions/v1", chatbot_path(Category.QUIZ), DEFAULT_HOST_DENYLIST
        )
        assert url == "https://bots.example.com/functions/v1/api/chatbot/quiz"

    @pytest.mark.parametrize("base", ["", "   ", "bots.example.com", "ftp://bots.example.com"])
    def test_unset_or_malformed_base_raises(self, base):
        with pytest.raises(EndpointConfigError):
            resolve_destination(base, "/api/whatsapp/status", DEFAULT_HOST_DENYLIST)

    @pytest.mark.parametrize(
        "base",
        [
            "http://localhost:54321/functions/v1",
            "http://127.0.0.1:8000",
            "http://0.0.0.0:3000",
            "http://[::1]:8000",
        ],
    )
    def test_denylisted_hosts_raise(self, base):
        with pytest.raises(DeniedHostError):
            resolve_destination(base, "/api/chatbot/client", DEFAULT_HOST_DENYLIST)

    @pytest.mark.parametrize("base", ["http://127.0.0.2:8000", "http://127.10.20.30", "http://[::]:8000"])
    def test_other_loopback_and_unspecified_addresses_raise(self, base):
        with pytest.raises(DeniedHostError):
            resolve_destination(base, "/api/chatbot/client", DEFAULT_HOST_DENYLIST)

    @pytest.mark.parametrize(
        "base", ["https://[2001:db8::1]", "https://[2001:db8::1]:8443/functions", "http://203.0.113.10"]
    )
    def test_public_ip_literals_are_allowed(self, base):
        url = resolve_destination(base, "/api/chatbot/client", DEFAULT_HOST_DENYLIST)
        assert url.endswith("/api/chatbot/client")

    def test_denied_host_is_a_config_error(self):
        assert issubclass(DeniedHostError, EndpointConfigError)

    def test_empty_denylist_allows_localhost(self):
        url = resolve_destination("http://localhost:8000", "/api/chatbot/client", ())
        assert url == "http://localhost:8000/api/chatbot/client"


class TestDeniedPattern:
    def test_substring_match_is_case_insensitive(self):
        assert denied_pattern("Staging.Internal.example.com", ["internal"]) == "internal"

    def test_ip_literal_needs_exact_address(self):
        assert denied_pattern("2001:db8::1", ["::1"]) is None
        assert denied_pattern("::1", ["::1"]) == "::1"

    def test_loopback_range_reported(self):
        assert denied_pattern("127.0.0.2", DEFAULT_HOST_DENYLIST) == "loopback"
        assert denied_pattern("::", DEFAULT_HOST_DENYLIST) == "unspecified"

    def test_empty_denylist_refuses_nothing(self):
        assert denied_pattern("127.0.0.1", ()) is None

    def test_no_match(self):
        assert denied_pattern("bots.example.com", DEFAULT_HOST_DENYLIST) is None


def test_chatbot_paths():
    assert chatbot_path(Category.CLIENT) == "/api/chatbot/client"
    assert chatbot_path(Category.EDUCATION) == "/api/chatbot/education"
    assert chatbot_path(Category.QUIZ) == "/api/chatbot/quiz"
