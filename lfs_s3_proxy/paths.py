"""Split a batch endpoint path into signer overrides and a bucket path.

A batch URL looks like::

    /region=auto/service=s3/<host>/<bucket>/<prefix>/objects/batch

Leading ``key=value`` segments override signer options for the request.
The first segment without ``=`` starts the bucket path, which names the
object store host followed by the bucket and an optional key prefix.
"""

import logging
import re
from typing import List, Optional, Tuple
from urllib.parse import unquote

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from lfs_s3_proxy.exceptions import InvalidOverride, RouteNotFound

logger = logging.getLogger(__name__)

BATCH_SUFFIX = "/objects/batch"

# SigV4 query signing accepts at most seven days
MAX_EXPIRY = 7 * 24 * 60 * 60

_TOKEN_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class SignerOverrides(BaseModel):
    """Signer options parsed from ``key=value`` path segments."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    region: Optional[str] = None
    service: Optional[str] = None
    expiry: Optional[int] = Field(default=None, ge=1, le=MAX_EXPIRY)

    @field_validator("region", "service")
    @classmethod
    def check_token(cls, value):
        if value is not None and not _TOKEN_RE.match(value):
            raise ValueError(f"invalid value {value!r}")
        return value


def is_batch_path(path: str) -> bool:
    """Check whether the path addresses a batch endpoint."""
    return path.endswith(BATCH_SUFFIX)


def split_batch_path(path: str) -> List[str]:
    """Return the segments between the leading ``/`` and ``objects/batch``."""
    if not is_batch_path(path):
        raise RouteNotFound(f"Not a batch endpoint: {path}")
    return path.split("/")[1:-2]


def decompose(segments: List[str]) -> Tuple[List[Tuple[str, str]], str]:
    """Separate leading override segments from the bucket path.

    Args:
        segments: Raw (still percent-encoded) path segments.

    Returns:
        The ordered ``(key, value)`` overrides, percent-decoded, and the
        remaining segments joined with ``/``.
    """
    overrides = []
    bucket_index = 0
    for segment in segments:
        key, sep, value = segment.partition("=")
        if not sep:
            break
        overrides.append((unquote(key), unquote(value)))
        bucket_index += 1
    return overrides, "/".join(segments[bucket_index:])


def parse_overrides(overrides: List[Tuple[str, str]]) -> SignerOverrides:
    """Validate overrides against the recognized option names.

    Raises:
        InvalidOverride: on an unknown key or an invalid value.
    """
    # later segments win over earlier ones
    values = dict(overrides)
    try:
        return SignerOverrides.model_validate(values)
    except ValidationError as e:
        names = ", ".join(".".join(str(loc) for loc in err["loc"]) for err in e.errors())
        logger.warning("Rejected path overrides: %s", names)
        raise InvalidOverride(f"Invalid path override: {names}") from e


def parse_batch_path(path: str) -> Tuple[SignerOverrides, str]:
    """Parse a full batch endpoint path.

    Returns:
        The validated overrides and the non-empty bucket path.

    Raises:
        RouteNotFound: if the path is not a batch endpoint, names no bucket
            or puts user info in the bucket host.
        InvalidOverride: if an override segment is not recognized.
    """
    overrides, bucket_path = decompose(split_batch_path(path))
    if not bucket_path:
        raise RouteNotFound("No bucket in batch path")
    if "@" in bucket_path.split("/", 1)[0]:
        raise RouteNotFound("Bucket host must not carry user info")
    return parse_overrides(overrides), bucket_path
