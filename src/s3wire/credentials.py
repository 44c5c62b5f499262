# src/s3wire/credentials.py
"""
Credential snapshots and the providers that refresh them.

The dispatcher asks its provider for a fresh snapshot before every signed
request. A snapshot with an empty access or secret key is anonymous and is
sent unsigned.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import aioboto3  # Type stub: stubs/aioboto3/__init__.pyi

from .errors import CredentialsError


_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """Immutable access key / secret key / session token snapshot."""

    access_key: str = ""
    secret_key: str = ""
    session_token: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return not self.access_key or not self.secret_key

    def __repr__(self) -> str:
        return f"Credentials(access_key={self.access_key!r}, secret_key='***')"


ANONYMOUS = Credentials()


@runtime_checkable
class CredentialProvider(Protocol):
    """Source of credential snapshots; may perform network I/O."""

    async def retrieve(self) -> Credentials: ...


class StaticProvider:
    """Always returns the same credentials."""

    def __init__(
        self, access_key: str, secret_key: str, session_token: str | None = None
    ) -> None:
        self._credentials = Credentials(access_key, secret_key, session_token)

    async def retrieve(self) -> Credentials:
        return self._credentials


class EnvironmentProvider:
    """Reads ``AWS_ACCESS_KEY_ID`` / ``AWS_SECRET_ACCESS_KEY`` / ``AWS_SESSION_TOKEN`` on every call."""

    async def retrieve(self) -> Credentials:
        access_key = os.environ.get("AWS_ACCESS_KEY_ID")
        secret_key = os.environ.get("AWS_SECRET_ACCESS_KEY")
        if not access_key or not secret_key:
            raise CredentialsError(
                "AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY must both be set"
            )
        return Credentials(
            access_key=access_key,
            secret_key=secret_key,
            session_token=os.environ.get("AWS_SESSION_TOKEN") or None,
        )


class AioBoto3Provider:
    """
    Resolves credentials through the aioboto3 / botocore provider chain.

    Picks up shared config files, instance metadata and assumed roles; refreshable
    credentials are refreshed by botocore when they near expiry. An empty chain
    yields anonymous credentials.
    """

    def __init__(
        self, session: aioboto3.Session | None = None, profile_name: str | None = None
    ) -> None:
        self._session = session or aioboto3.Session(profile_name=profile_name)

    async def retrieve(self) -> Credentials:
        try:
            resolved = await self._session.get_credentials()
            if resolved is None:
                _logger.debug("Credential chain is empty; using anonymous access")
                return ANONYMOUS
            frozen = await resolved.get_frozen_credentials()
        except Exception as exc:
            raise CredentialsError(f"Credential chain failed: {exc}") from exc
        return Credentials(
            access_key=frozen.access_key or "",
            secret_key=frozen.secret_key or "",
            session_token=frozen.token or None,
        )


__all__ = [
    "Credentials",
    "ANONYMOUS",
    "CredentialProvider",
    "StaticProvider",
    "EnvironmentProvider",
    "AioBoto3Provider",
]
