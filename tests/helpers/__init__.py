# tests/helpers/__init__.py
"""Shared test utilities for the s3wire test suite.

Usage:
    >>> from tests.helpers import expect_success, ScriptedTransport, ScriptedResponse
    >>> from tests.helpers import records_frame, end_frame
"""

from __future__ import annotations

from tests.helpers.fake_transport import (
    RecordedRequest,
    ScriptedResponse,
    ScriptedTransport,
    error_body,
    location_body,
)
from tests.helpers.frames import (
    encode_frame,
    encode_headers,
    end_frame,
    error_frame,
    event_frame,
    progress_frame,
    records_frame,
    stats_frame,
)
from tests.helpers.constants import ACCESS_KEY, EXAMPLE_HOST, FIXED_TIME, SECRET_KEY
from tests.helpers.result_utils import expect_failure, expect_success


__all__ = [
    # Constants
    "ACCESS_KEY",
    "SECRET_KEY",
    "FIXED_TIME",
    "EXAMPLE_HOST",
    # Result unwrapping
    "expect_success",
    "expect_failure",
    # Transport
    "ScriptedTransport",
    "ScriptedResponse",
    "RecordedRequest",
    "error_body",
    "location_body",
    # Event-stream frames
    "encode_headers",
    "encode_frame",
    "event_frame",
    "records_frame",
    "progress_frame",
    "stats_frame",
    "end_frame",
    "error_frame",
]
