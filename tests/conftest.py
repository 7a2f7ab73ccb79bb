"""Provide common pytest fixtures."""

import httpx
import pytest
import pytest_asyncio

from lfs_s3_proxy.server import create_application, get_argparser

from . import ACCESS_KEY_ID, SECRET_ACCESS_KEY, SESSION_TOKEN


def make_app(*argv):
    """Create an application from command line style arguments."""
    args = get_argparser(add_help=False).parse_args(list(argv))
    return create_application(args)


def make_client(app):
    """Create an in-process HTTP client for an application."""
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep ambient credentials and proxy settings out of the tests."""
    for name in (
        "AWS_ACCESS_KEY_ID",
        "AWS_SECRET_ACCESS_KEY",
        "AWS_SESSION_TOKEN",
        "LFS_S3_PROXY_USE_FIXED_CREDENTIALS",
        "LFS_S3_PROXY_ACCESS_KEY_ID",
        "LFS_S3_PROXY_SECRET_ACCESS_KEY",
        "LFS_S3_PROXY_SESSION_TOKEN",
        "LFS_S3_PROXY_EXPIRY",
        "LFS_S3_PROXY_HOMEPAGE",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest_asyncio.fixture
async def client():
    """Client for a proxy that signs with Basic auth credentials."""
    async with make_client(make_app()) as c:
        yield c


@pytest_asyncio.fixture
async def fixed_client():
    """Client for a proxy that signs with operator credentials."""
    app = make_app(
        "--use-fixed-credentials",
        "--access-key-id",
        ACCESS_KEY_ID,
        "--secret-access-key",
        SECRET_ACCESS_KEY,
        "--session-token",
        SESSION_TOKEN,
        "--expiry",
        "900",
    )
    async with make_client(app) as c:
        yield c
