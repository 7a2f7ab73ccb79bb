"""Produce pre-signed object store URLs.

URLs are signed with AWS Signature Version 4 in query-string mode, which
S3 and the common S3-compatible stores (R2, B2, MinIO) accept. Signing is
a local computation; no request is sent to the store.
"""

import logging
import re
from typing import Tuple
from urllib.parse import quote, urlsplit

from botocore.auth import S3SigV4QueryAuth
from botocore.awsrequest import AWSRequest
from botocore.credentials import Credentials
from botocore.exceptions import BotoCoreError

from lfs_s3_proxy.credentials import SigningIdentity
from lfs_s3_proxy.exceptions import SigningError

logger = logging.getLogger(__name__)

# Default URL expiration time (1 hour)
DEFAULT_EXPIRES_IN = 3600

DEFAULT_SERVICE = "s3"
DEFAULT_REGION = "us-east-1"

_B2_HOST_RE = re.compile(r"^(?:[^.]+\.)?s3\.([^.]+)\.backblazeb2\.com$")
_AWS_HOST_RE = re.compile(r"([^.]+)\.(?:([^.]*)\.)?amazonaws\.com(?:\.cn)?$")


def guess_service_region(host: str) -> Tuple[str, str]:
    """Infer the SigV4 service name and region from an object store host.

    Examples:
        >>> guess_service_region("acct.r2.cloudflarestorage.com")
        ('s3', 'auto')
        >>> guess_service_region("bucket.s3.eu-west-1.amazonaws.com")
        ('s3', 'eu-west-1')
    """
    host = (host or "").lower()

    if host.endswith(".r2.cloudflarestorage.com"):
        return DEFAULT_SERVICE, "auto"

    if host.endswith(".backblazeb2.com"):
        match = _B2_HOST_RE.match(host)
        if match:
            return DEFAULT_SERVICE, match.group(1)
        return DEFAULT_SERVICE, DEFAULT_REGION

    match = _AWS_HOST_RE.search(host.replace("dualstack.", ""))
    if match:
        service, region = match.group(1), match.group(2)
        if service.startswith("s3-") and service != "s3-accelerate":
            # legacy s3-<region>.amazonaws.com endpoints
            return DEFAULT_SERVICE, service[3:]
        if region in (None, "", "s3", "s3-accelerate"):
            return DEFAULT_SERVICE, DEFAULT_REGION
        if region.startswith("s3-"):
            return DEFAULT_SERVICE, region[3:]
        if region == "us-gov":
            return DEFAULT_SERVICE, "us-gov-west-1"
        return DEFAULT_SERVICE, region

    return DEFAULT_SERVICE, DEFAULT_REGION


def object_url(bucket_path: str, object_key: str) -> str:
    """Build the unsigned https URL of an object under a bucket path."""
    return f"https://{bucket_path.strip('/')}/{quote(object_key, safe='/~')}"


def sign_url(
    identity: SigningIdentity,
    bucket_path: str,
    object_key: str,
    method: str,
    expires_in: int = DEFAULT_EXPIRES_IN,
) -> str:
    """Return a pre-signed URL granting ``method`` on one object.

    Args:
        identity: Access key, secret, optional session token and signer options.
        bucket_path: Store host followed by bucket and optional prefix.
        object_key: Key of the object relative to the bucket path.
        method: HTTP verb the URL is valid for.
        expires_in: Lifetime of the signature in seconds.

    Raises:
        SigningError: if the identity is incomplete or signing fails.
    """
    if not identity.access_key_id or not identity.secret_access_key:
        raise SigningError("Signing identity is missing an access key or secret")

    url = object_url(bucket_path, object_key)
    parts = urlsplit(url)
    host = parts.hostname
    if not host:
        raise SigningError(f"No host in bucket path {bucket_path!r}")
    if parts.username is not None:
        raise SigningError("Bucket host must not carry user info")

    service, region = guess_service_region(host)
    service = identity.service or service
    region = identity.region or region

    credentials = Credentials(
        identity.access_key_id,
        identity.secret_access_key,
        identity.session_token,
    )
    request = AWSRequest(method=method, url=url)
    try:
        S3SigV4QueryAuth(credentials, service, region, expires=expires_in).add_auth(
            request
        )
    except (BotoCoreError, ValueError) as e:
        logger.warning("Failed to sign %s for %s: %s", method, host, e)
        raise SigningError("Failed to sign URL") from e
    return request.url
