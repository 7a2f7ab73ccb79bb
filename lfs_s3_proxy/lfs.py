"""Git LFS (Large File Storage) Batch API translation.

The proxy implements only the batch endpoint of the LFS HTTP API:

1. Client sends a Batch API request to /{overrides...}/{host}/{bucket}/objects/batch
2. The proxy signs one object store URL per requested object
3. Client uploads/downloads directly to the object store using those URLs

No object store request is made by the proxy itself, so object existence
is never checked and no verify action is offered.

Reference: https://github.com/git-lfs/git-lfs/blob/main/docs/api/batch.md
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field, StrictInt, ValidationError
from starlette.concurrency import run_in_threadpool

from lfs_s3_proxy.credentials import CredentialSource, SigningIdentity, resolve_identity
from lfs_s3_proxy.exceptions import (
    MalformedBody,
    MethodNotAllowed,
    RouteNotFound,
    UnsupportedHashAlgorithm,
)
from lfs_s3_proxy.paths import is_batch_path, parse_batch_path
from lfs_s3_proxy.signing import DEFAULT_EXPIRES_IN, sign_url

logger = logging.getLogger(__name__)

# Git LFS content types
LFS_CONTENT_TYPE = "application/vnd.git-lfs+json"

SUPPORTED_HASH_ALGO = "sha256"

HOMEPAGE = "https://github.com/milkey-mouse/git-lfs-s3-proxy"

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class Operation(str, Enum):
    """LFS batch operations and the HTTP verb their URLs are signed for."""

    upload = "upload"
    download = "download"

    @property
    def method(self) -> str:
        return "PUT" if self is Operation.upload else "GET"


class LFSObjectRequest(BaseModel):
    """A single object in an LFS batch request."""

    oid: str = Field(..., description="The object ID (SHA-256 hash)")
    size: StrictInt = Field(..., description="Size in bytes")


class LFSRef(BaseModel):
    """Git reference information."""

    name: str = Field(..., description="Fully-qualified Git ref (e.g., refs/heads/main)")


class LFSBatchRequest(BaseModel):
    """Git LFS Batch API request body."""

    operation: Operation = Field(..., description="Either 'download' or 'upload'")
    objects: List[LFSObjectRequest] = Field(..., description="List of objects")
    transfers: Optional[List[str]] = Field(
        default=["basic"], description="Transfer adapters (default: basic)"
    )
    ref: Optional[LFSRef] = Field(default=None, description="Git ref context")
    hash_algo: str = Field(
        default=SUPPORTED_HASH_ALGO, description="Hash algorithm (default: sha256)"
    )


class LFSAction(BaseModel):
    """An action (upload/download) for an LFS object."""

    href: str = Field(..., description="URL for the action")
    expires_in: int = Field(..., description="Seconds until URL expires")


class LFSObjectResponse(BaseModel):
    """Response for a single LFS object in batch response."""

    oid: str
    size: int
    authenticated: bool = True
    actions: Dict[str, LFSAction]


class LFSBatchResponse(BaseModel):
    """Git LFS Batch API response body."""

    transfer: str = "basic"
    hash_algo: str = SUPPORTED_HASH_ALGO
    objects: List[LFSObjectResponse]


def parse_batch_request(body: Any) -> LFSBatchRequest:
    """Validate a decoded batch request body.

    The hash algorithm is checked before anything else so that an
    unsupported algorithm is reported as such regardless of the rest of
    the body.

    Raises:
        MalformedBody: if the body does not have the batch request shape.
        UnsupportedHashAlgorithm: if ``hash_algo`` is not sha256.
    """
    if not isinstance(body, dict):
        raise MalformedBody("Batch request must be a JSON object")

    hash_algo = body.get("hash_algo", SUPPORTED_HASH_ALGO)
    if hash_algo != SUPPORTED_HASH_ALGO:
        raise UnsupportedHashAlgorithm(hash_algo)

    try:
        return LFSBatchRequest.model_validate(body)
    except ValidationError as e:
        raise MalformedBody(f"Invalid request body: {e.error_count()} error(s)") from e


async def translate_batch(
    body: Any,
    identity: SigningIdentity,
    bucket_path: str,
    expires_in: int = DEFAULT_EXPIRES_IN,
) -> LFSBatchResponse:
    """Turn a batch request body into a batch response with signed URLs.

    Objects are signed concurrently; the response holds one entry per
    requested object.
    """
    batch_request = parse_batch_request(body)
    operation = batch_request.operation

    logger.info(
        "LFS batch: bucket=%s, operation=%s, objects=%d",
        bucket_path,
        operation.value,
        len(batch_request.objects),
    )

    async def sign_object(obj: LFSObjectRequest) -> LFSObjectResponse:
        href = await run_in_threadpool(
            sign_url, identity, bucket_path, obj.oid, operation.method, expires_in
        )
        return LFSObjectResponse(
            oid=obj.oid,
            size=obj.size,
            authenticated=True,
            actions={operation.value: LFSAction(href=href, expires_in=expires_in)},
        )

    objects = await asyncio.gather(
        *(sign_object(obj) for obj in batch_request.objects)
    )
    return LFSBatchResponse(objects=list(objects))


def create_lfs_router(
    credential_source: CredentialSource,
    default_expires_in: int = DEFAULT_EXPIRES_IN,
    homepage: str = HOMEPAGE,
) -> APIRouter:
    """Create a FastAPI router for the proxy endpoints.

    Args:
        credential_source: Where signing credentials come from.
        default_expires_in: URL lifetime unless a path override sets one.
        homepage: Target of the ``GET /`` redirect.

    Returns:
        FastAPI router serving ``/`` and ``.../objects/batch``
    """
    router = APIRouter()

    @router.api_route("/", methods=ALL_METHODS, include_in_schema=False)
    async def index(request: Request):
        if request.method != "GET":
            raise MethodNotAllowed("GET")
        return RedirectResponse(homepage, status_code=302)

    @router.api_route("/{path:path}", methods=ALL_METHODS)
    async def lfs_batch(
        request: Request,
        authorization: Optional[str] = Header(None),
    ):
        """Git LFS Batch API endpoint."""
        # split the undecoded path so escaped slashes stay inside a segment
        raw_path = request.scope.get("raw_path")
        if raw_path:
            raw_path = raw_path.decode("latin-1").split("?", 1)[0]
        else:
            raw_path = request.url.path

        if not is_batch_path(raw_path):
            raise RouteNotFound(f"Not found: {raw_path}")
        if request.method != "POST":
            raise MethodNotAllowed("POST")

        identity = resolve_identity(credential_source, authorization)
        overrides, bucket_path = parse_batch_path(raw_path)
        identity = identity.model_copy(
            update={"region": overrides.region, "service": overrides.service}
        )
        expires_in = overrides.expiry or default_expires_in

        try:
            body = await request.json()
        except ValueError as e:
            raise MalformedBody("Request body is not valid JSON") from e

        response = await translate_batch(body, identity, bucket_path, expires_in)
        return JSONResponse(
            content=response.model_dump(),
            media_type=LFS_CONTENT_TYPE,
            headers={"Cache-Control": "no-store"},
        )

    return router
