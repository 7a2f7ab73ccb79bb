"""Errors raised while translating a Git LFS batch request.

Every error is terminal for the request it belongs to and maps to exactly
one HTTP status. Only ``UnsupportedHashAlgorithm`` carries a body, since
LFS clients parse it as part of hash algorithm negotiation.
"""

import json
from typing import Any, Dict, Optional


class LFSProxyError(Exception):
    """Base class for errors rendered as HTTP responses."""

    status_code = 500

    def __init__(self, message: str = "", headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.headers = headers

    @property
    def body(self) -> Optional[Dict[str, Any]]:
        """Return the JSON body for the response, if any."""
        return None


class AuthMissing(LFSProxyError):
    """No Authorization header was sent."""

    status_code = 401


class AuthMalformed(LFSProxyError):
    """The Authorization header is not usable Basic auth."""

    status_code = 400


class ConfigurationError(LFSProxyError):
    """The operator configuration cannot produce a signing identity."""

    status_code = 500


class MalformedBody(LFSProxyError):
    """The batch request body could not be parsed or validated."""

    status_code = 400


class InvalidOverride(LFSProxyError):
    """A key=value path segment names an unknown or invalid option."""

    status_code = 400


class UnsupportedHashAlgorithm(LFSProxyError):
    """The client asked for a hash algorithm other than sha256."""

    status_code = 409

    def __init__(self, hash_algo: Any):
        self.hash_algo = hash_algo
        # report non-string values the way the client sent them
        name = hash_algo if isinstance(hash_algo, str) else json.dumps(hash_algo)
        super().__init__(
            f"Hash algorithm '{name}' is not supported. "
            "Only 'sha256' is currently supported."
        )

    @property
    def body(self) -> Dict[str, Any]:
        return {"message": self.message}


class SigningError(LFSProxyError):
    """A signed URL could not be produced."""

    status_code = 500


class RouteNotFound(LFSProxyError):
    status_code = 404


class MethodNotAllowed(LFSProxyError):
    status_code = 405

    def __init__(self, allow: str):
        super().__init__(f"Method not allowed, use {allow}", headers={"Allow": allow})
        self.allow = allow
