# src/s3wire/config.py
"""Client configuration model."""

from __future__ import annotations

import os
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .multipart import DEFAULT_PART_SIZE, MAX_PART_SIZE, MIN_PART_SIZE
from .result import Result
from .validation import is_valid_endpoint, is_valid_port, validate_model


_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


class ClientConfig(BaseModel):
    """Immutable connection settings for one client.

    Attributes
    ----------
    endpoint
        Host name or IP address of the server, without scheme or path.
    port
        TCP port; ``None`` means the protocol default.
    use_ssl
        Talk HTTPS when true (the default).
    region
        Fixed region for every bucket. When unset the region is discovered
        per bucket and cached.
    path_style
        Force ``/bucket/object`` addressing instead of ``bucket.host``.
    part_size
        Pinned multipart part size in bytes; ``None`` lets the planner grow it
        from the 64 MiB default.
    accelerate_endpoint
        Transfer-acceleration host used in place of the AWS default endpoint.
    trace
        Emit request/response traces on the ``s3wire.trace`` logger.
    """

    endpoint: Annotated[str, Field(min_length=1)]
    port: Annotated[int, Field(gt=0, le=65535)] | None = None
    use_ssl: bool = True
    region: str | None = None
    path_style: bool = False
    part_size: Annotated[int, Field(ge=MIN_PART_SIZE, le=MAX_PART_SIZE)] | None = None
    accelerate_endpoint: str | None = None
    trace: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("endpoint")
    @classmethod
    def _check_endpoint(cls, value: str) -> str:
        if not is_valid_endpoint(value):
            raise ValueError(f"invalid endpoint: {value!r}")
        return value

    @field_validator("port", mode="before")
    @classmethod
    def _check_port(cls, value: object) -> object:
        if value is not None and isinstance(value, (int, bool)) and not is_valid_port(value):
            raise ValueError(f"invalid port: {value!r}")
        return value

    @field_validator("accelerate_endpoint")
    @classmethod
    def _check_accelerate_endpoint(cls, value: str | None) -> str | None:
        if value is not None and not is_valid_endpoint(value):
            raise ValueError(f"invalid accelerate endpoint: {value!r}")
        return value

    @property
    def protocol(self) -> Literal["http", "https"]:
        return "https" if self.use_ssl else "http"

    @property
    def part_size_overridden(self) -> bool:
        return self.part_size is not None

    @property
    def effective_part_size(self) -> int:
        return self.part_size if self.part_size is not None else DEFAULT_PART_SIZE

    @classmethod
    def create(cls, **data: object) -> Result[ClientConfig, ValidationError]:
        return validate_model(cls, **data)

    @classmethod
    def from_env(cls, **overrides: object) -> ClientConfig:
        """
        Build a config from ``S3WIRE_*`` environment variables.

        ``S3WIRE_REGION`` falls back to ``AWS_REGION``. Keyword overrides win
        over the environment.
        """
        data: dict[str, object] = {}
        env = os.environ
        if "S3WIRE_ENDPOINT" in env:
            data["endpoint"] = env["S3WIRE_ENDPOINT"]
        if "S3WIRE_PORT" in env:
            data["port"] = int(env["S3WIRE_PORT"])
        if "S3WIRE_USE_SSL" in env:
            data["use_ssl"] = env["S3WIRE_USE_SSL"].strip().lower() in _TRUE_STRINGS
        region = env.get("S3WIRE_REGION") or env.get("AWS_REGION")
        if region:
            data["region"] = region
        if "S3WIRE_PATH_STYLE" in env:
            data["path_style"] = env["S3WIRE_PATH_STYLE"].strip().lower() in _TRUE_STRINGS
        if "S3WIRE_PART_SIZE" in env:
            data["part_size"] = int(env["S3WIRE_PART_SIZE"])
        data.update(overrides)
        return cls(**data)


__all__ = ["ClientConfig"]
