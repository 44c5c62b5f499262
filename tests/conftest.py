# tests/conftest.py
"""Global PyTest fixtures for the test-suite."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Generator

import pytest

from s3wire.config import ClientConfig
from s3wire.credentials import StaticProvider
from s3wire.trace import TRACE_LOGGER_NAME
from tests.helpers.constants import ACCESS_KEY, FIXED_TIME, SECRET_KEY


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_TIME


@pytest.fixture
def provider() -> StaticProvider:
    return StaticProvider(ACCESS_KEY, SECRET_KEY)


@pytest.fixture
def aws_config() -> ClientConfig:
    """Config against the AWS default endpoint with region discovery enabled."""
    return ClientConfig(endpoint="s3.amazonaws.com")


@pytest.fixture
def local_config() -> ClientConfig:
    """Plain-HTTP, path-style config against a local server."""
    return ClientConfig(endpoint="localhost", port=9000, use_ssl=False, path_style=True)


@pytest.fixture(autouse=True)
def reset_trace() -> Generator[None, None, None]:
    """Detach any trace handler a test attached."""
    yield
    trace_logger = logging.getLogger(TRACE_LOGGER_NAME)
    for handler in list(trace_logger.handlers):
        trace_logger.removeHandler(handler)
    trace_logger.setLevel(logging.NOTSET)
