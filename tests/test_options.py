"""Unit tests for limiter option canonicalization."""

import logging

import pytest

from window_limiter.adapters.rate_limit.in_memory import InMemoryWindowCounter
from window_limiter.core.errors import ValidationAppError
from window_limiter.core.keys import client_ip
from window_limiter.core.options import (
    DEFAULT_ERROR_MESSAGE,
    Rate,
    canonical_options,
    match_all,
    parse_rate,
)


class TestParseRate:
    @pytest.mark.parametrize(
        "rate, expected",
        [
            ("10/second", Rate(10, 1)),
            ("10/minute", Rate(10, 60)),
            ("5/hour", Rate(5, 3600)),
            ("1/day", Rate(1, 86400)),
            (" 20 / minutes ", Rate(20, 60)),
            ("3/HOUR", Rate(3, 3600)),
        ],
    )
    def test_valid(self, rate: str, expected: Rate) -> None:
        assert parse_rate(rate) == expected

    @pytest.mark.parametrize("rate", ["", "10", "10/week", "ten/minute", "0/minute", "-1/second", 10])
    def test_invalid(self, rate) -> None:
        with pytest.raises(ValidationAppError) as exc_info:
            parse_rate(rate)

        assert exc_info.value.code == "invalid_rate_limit_option"
        assert exc_info.value.details["option"] == "rate"


class TestCanonicalOptions:
    def test_defaults(self) -> None:
        opts = canonical_options(counter=InMemoryWindowCounter(), key="ip", rate="10/minute")

        assert opts.key is client_ip
        assert opts.rate == Rate(10, 60)
        assert opts.error_matcher is match_all
        assert opts.error_message == DEFAULT_ERROR_MESSAGE == "Too Many Errors"
        assert opts.should_rate_limit is True
        assert callable(opts.log)

    def test_custom_values_kept(self) -> None:
        messages: list[str] = []

        def key(request):
            return "fixed"

        def matcher(error):
            return False

        opts = canonical_options(
            counter=InMemoryWindowCounter(),
            key=key,
            rate="1/second",
            error_matcher=matcher,
            error_message="Stop Doing That",
            should_rate_limit=False,
            logger=messages.append,
        )

        assert opts.key is key
        assert opts.error_matcher is matcher
        assert opts.error_message == "Stop Doing That"
        assert opts.should_rate_limit is False
        opts.log("line")
        assert messages == ["line"]

    def test_logger_disabled(self, caplog) -> None:
        opts = canonical_options(counter=InMemoryWindowCounter(), key="ip", rate="1/second", logger=False)

        with caplog.at_level(logging.DEBUG):
            opts.log("should vanish")

        assert "should vanish" not in caplog.text

    def test_logger_instance(self, caplog) -> None:
        opts = canonical_options(
            counter=InMemoryWindowCounter(),
            key="ip",
            rate="1/second",
            logger=logging.getLogger("custom.limiter"),
        )

        with caplog.at_level(logging.WARNING, logger="custom.limiter"):
            opts.log("decision line")

        assert "decision line" in caplog.text

    @pytest.mark.parametrize(
        "overrides, option",
        [
            ({"counter": object()}, "counter"),
            ({"key": "nope"}, "key"),
            ({"key": 42}, "key"),
            ({"rate": "lots"}, "rate"),
            ({"error_matcher": "all"}, "error_matcher"),
            ({"error_message": ""}, "error_message"),
            ({"error_message": 429}, "error_message"),
            ({"should_rate_limit": "yes"}, "should_rate_limit"),
            ({"logger": "stdout"}, "logger"),
        ],
    )
    def test_invalid_options_rejected(self, overrides: dict, option: str) -> None:
        kwargs = {"counter": InMemoryWindowCounter(), "key": "ip", "rate": "10/minute"}
        kwargs.update(overrides)

        with pytest.raises(ValidationAppError) as exc_info:
            canonical_options(**kwargs)

        assert exc_info.value.details["option"] == option
