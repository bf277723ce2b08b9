"""Limiter option validation and defaults.

Options are checked once, when a limiter is built, so a misconfigured route
fails at startup with a ValidationAppError instead of on the first request.

Example:
    >>> opts = canonical_options(
    ...     counter=InMemoryWindowCounter(),
    ...     key="ip",
    ...     rate="10/hour",
    ...     error_matcher=lambda exc: isinstance(exc, TimeoutError),
    ...     error_message="Stop Doing That",
    ... )
    >>> opts.rate
    Rate(limit=10, window_seconds=3600)
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable

from window_limiter.adapters.rate_limit.base import AbstractWindowCounter
from window_limiter.core.errors import ValidationAppError
from window_limiter.core.keys import BUILTIN_EXTRACTORS, KeyExtractor

DEFAULT_ERROR_MESSAGE = "Too Many Errors"

WINDOW_SECONDS = {
    "second": 1,
    "minute": 60,
    "hour": 60 * 60,
    "day": 24 * 60 * 60,
}

_RATE_PATTERN = re.compile(
    r"^\s*(?P<limit>\d+)\s*/\s*(?P<unit>second|minute|hour|day)s?\s*$",
    re.IGNORECASE,
)

_default_logger = logging.getLogger("window_limiter.rate_limit")

ErrorMatcher = Callable[[BaseException], bool]
DecisionLogger = Callable[[str], None]


@dataclass(frozen=True)
class Rate:
    """A limit of ``limit`` events per ``window_seconds``."""

    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitOptions:
    """Validated limiter configuration.

    Attributes:
        counter: Window counter shared by all handlers.
        key: Function deriving the partition key from a request.
        rate: Parsed limit and window.
        error_matcher: Decides which errors count (error-counting limiter only).
        error_message: Body of the 429 response.
        should_rate_limit: False logs decisions without rejecting.
        log: Receives one line per over-limit decision.
    """

    counter: AbstractWindowCounter
    key: KeyExtractor
    rate: Rate
    error_matcher: ErrorMatcher
    error_message: str
    should_rate_limit: bool
    log: DecisionLogger


def _invalid(option: str, message: str, value: Any = None) -> ValidationAppError:
    return ValidationAppError(
        code="invalid_rate_limit_option",
        message=f"Invalid {option}: {message}",
        details={"option": option, "value": repr(value)},
    )


def match_all(error: BaseException) -> bool:
    return True


def _log_warning(message: str) -> None:
    _default_logger.warning(message)


def _discard(message: str) -> None:
    pass


def parse_rate(rate: str) -> Rate:
    """Parse a rate string such as ``"10/minute"`` or ``"5 / hours"``.

    Args:
        rate: ``N/unit`` where unit is second, minute, hour or day.

    Returns:
        Rate with the limit and the window length in seconds.

    Raises:
        ValidationAppError: If the string is malformed or N is zero.
    """
    if not isinstance(rate, str):
        raise _invalid("rate", "expected a string like '10/minute'", rate)

    match = _RATE_PATTERN.match(rate)
    if match is None:
        raise _invalid("rate", f"cannot parse '{rate}', expected N/second|minute|hour|day", rate)

    limit = int(match.group("limit"))
    if limit < 1:
        raise _invalid("rate", "limit must be >= 1", rate)

    return Rate(limit=limit, window_seconds=WINDOW_SECONDS[match.group("unit").lower()])


def _resolve_key(key: str | KeyExtractor) -> KeyExtractor:
    if isinstance(key, str):
        try:
            return BUILTIN_EXTRACTORS[key]
        except KeyError:
            known = ", ".join(sorted(BUILTIN_EXTRACTORS))
            raise _invalid("key", f"unknown extractor '{key}' (known: {known})", key) from None
    if callable(key):
        return key
    raise _invalid("key", "expected a callable or a built-in extractor name", key)


def _resolve_logger(logger: DecisionLogger | logging.Logger | bool | None) -> DecisionLogger:
    if logger is None or logger is True:
        return _log_warning
    if logger is False:
        return _discard
    if isinstance(logger, logging.Logger):
        return logger.warning
    if callable(logger):
        return logger
    raise _invalid("logger", "expected a callable, a logging.Logger, or False", logger)


def canonical_options(
    *,
    counter: AbstractWindowCounter,
    key: str | KeyExtractor,
    rate: str,
    error_matcher: ErrorMatcher | None = None,
    error_message: str | None = None,
    should_rate_limit: bool = True,
    logger: DecisionLogger | logging.Logger | bool | None = None,
) -> RateLimitOptions:
    """Validate limiter options and fill in defaults.

    Raises:
        ValidationAppError: If any option has the wrong type or value.
    """
    if not isinstance(counter, AbstractWindowCounter):
        raise _invalid("counter", "expected an AbstractWindowCounter", counter)

    if error_matcher is None:
        error_matcher = match_all
    elif not callable(error_matcher):
        raise _invalid("error_matcher", "expected a callable", error_matcher)

    if error_message is None:
        error_message = DEFAULT_ERROR_MESSAGE
    elif not isinstance(error_message, str) or not error_message:
        raise _invalid("error_message", "expected a non-empty string", error_message)

    if not isinstance(should_rate_limit, bool):
        raise _invalid("should_rate_limit", "expected a bool", should_rate_limit)

    return RateLimitOptions(
        counter=counter,
        key=_resolve_key(key),
        rate=parse_rate(rate),
        error_matcher=error_matcher,
        error_message=error_message,
        should_rate_limit=should_rate_limit,
        log=_resolve_logger(logger),
    )
