# src/s3wire/endpoints.py
"""Host and path resolution: virtual-hosted vs path-style addressing."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ConfigurationError
from .helpers import DEFAULT_REGION, uri_resource_escape


AWS_DEFAULT_ENDPOINTS = frozenset({"s3.amazonaws.com", "s3.cn-north-1.amazonaws.com.cn"})

_REGION_ENDPOINTS: dict[str, str] = {
    "us-east-1": "s3.amazonaws.com",
    "cn-north-1": "s3.cn-north-1.amazonaws.com.cn",
    "cn-northwest-1": "s3.cn-northwest-1.amazonaws.com.cn",
}


def region_endpoint(region: str) -> str:
    """Registered S3 endpoint for ``region``."""
    return _REGION_ENDPOINTS.get(region, f"s3.{region}.amazonaws.com")


def is_aws_default_endpoint(host: str) -> bool:
    return host in AWS_DEFAULT_ENDPOINTS


def is_virtual_host_style(host: str, protocol: str, bucket: str, path_style: bool) -> bool:
    """
    Decide whether ``bucket`` can be addressed as a sub-domain of ``host``.

    Wildcard TLS certificates cover only one label, so dotted bucket names are
    never virtual-hosted over https.
    """
    if protocol == "https" and "." in bucket:
        return False
    return is_aws_default_endpoint(host) or not path_style


@dataclass(frozen=True)
class ResolvedEndpoint:
    host: str
    path: str


def resolve(
    host: str,
    protocol: str,
    bucket: str | None = None,
    object_name: str | None = None,
    *,
    path_style: bool = False,
    region: str = DEFAULT_REGION,
    accelerate_endpoint: str | None = None,
) -> ResolvedEndpoint:
    """
    Map a logical bucket/object address to the request host and path.

    Raises:
        ConfigurationError: transfer acceleration requested for a dotted bucket name
    """
    virtual_host = bool(bucket) and is_virtual_host_style(host, protocol, bucket or "", path_style)

    if is_aws_default_endpoint(host):
        if accelerate_endpoint is not None:
            if bucket and "." in bucket:
                raise ConfigurationError(
                    f"Transfer acceleration is not supported for bucket names with '.': {bucket}"
                )
            host = accelerate_endpoint
        else:
            host = region_endpoint(region)

    escaped_object = uri_resource_escape(object_name) if object_name else None

    if bucket and virtual_host and not path_style:
        host = f"{bucket}.{host}"
        path = f"/{escaped_object}" if escaped_object else "/"
    elif bucket:
        path = f"/{bucket}/{escaped_object}" if escaped_object else f"/{bucket}"
    else:
        path = "/"

    return ResolvedEndpoint(host=host, path=path)


__all__ = [
    "AWS_DEFAULT_ENDPOINTS",
    "ResolvedEndpoint",
    "region_endpoint",
    "is_aws_default_endpoint",
    "is_virtual_host_style",
    "resolve",
]
