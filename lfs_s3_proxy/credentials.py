"""Resolve the credentials used to sign object store URLs.

The proxy runs in one of two modes, chosen once at startup:

- ``FixedCredentials``: the operator supplies an access key, secret and
  optional session token; client Authorization headers are ignored.
- ``ClientSuppliedCredentials``: the Git LFS client sends its object store
  key pair as HTTP Basic auth, ``Authorization: Basic base64(key:secret)``.
"""

import base64
import binascii
import logging
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict

from lfs_s3_proxy.exceptions import AuthMalformed, AuthMissing, ConfigurationError

logger = logging.getLogger(__name__)


class SigningIdentity(BaseModel):
    """Key material plus signer options for a single request."""

    model_config = ConfigDict(frozen=True)

    access_key_id: str
    secret_access_key: str
    session_token: Optional[str] = None
    region: Optional[str] = None
    service: Optional[str] = None

    def __repr__(self):
        # keep secrets out of logs and tracebacks
        return (
            f"SigningIdentity(access_key_id={self.access_key_id!r}, "
            f"region={self.region!r}, service={self.service!r})"
        )

    __str__ = __repr__


class FixedCredentials(BaseModel):
    """Operator-supplied credentials shared by every request."""

    model_config = ConfigDict(frozen=True)

    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    session_token: Optional[str] = None


class ClientSuppliedCredentials(BaseModel):
    """Credentials are taken from each request's Basic auth header."""

    model_config = ConfigDict(frozen=True)


CredentialSource = Union[FixedCredentials, ClientSuppliedCredentials]


def parse_basic_authorization(authorization: Optional[str]) -> tuple[str, str]:
    """Split a Basic Authorization header into (username, password).

    Only the first ``:`` separates the two, so the password may itself
    contain colons.

    Raises:
        AuthMissing: if the header is absent.
        AuthMalformed: if the scheme is not Basic or the payload does not
            decode to ``user:password``.
    """
    if not authorization:
        raise AuthMissing("Authorization header is required")

    parts = authorization.split(" ")
    scheme = parts[0]
    encoded = parts[1] if len(parts) > 1 else ""
    if scheme != "Basic" or not encoded:
        raise AuthMalformed("Expected Basic authorization")

    # tolerate missing padding
    encoded += "=" * (-len(encoded) % 4)
    try:
        decoded = base64.b64decode(encoded, validate=True).decode(
            "utf-8", errors="replace"
        )
    except (binascii.Error, ValueError) as e:
        raise AuthMalformed("Basic credentials are not valid base64") from e

    if ":" not in decoded:
        raise AuthMalformed("Basic credentials must be of the form user:password")
    username, password = decoded.split(":", 1)
    return username, password


def resolve_identity(
    source: CredentialSource, authorization: Optional[str] = None
) -> SigningIdentity:
    """Build the signing identity for a request.

    Args:
        source: The credential mode configured at startup.
        authorization: The request's Authorization header, if any.

    Returns:
        A fresh SigningIdentity without signer options.
    """
    if isinstance(source, FixedCredentials):
        if not source.access_key_id or not source.secret_access_key:
            logger.error("Fixed credential mode is enabled but the key pair is incomplete")
            raise ConfigurationError("Missing fixed access key id or secret access key")
        return SigningIdentity(
            access_key_id=source.access_key_id,
            secret_access_key=source.secret_access_key,
            session_token=source.session_token or None,
        )

    username, password = parse_basic_authorization(authorization)
    return SigningIdentity(access_key_id=username, secret_access_key=password)
