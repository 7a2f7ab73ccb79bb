"""Provide the server."""

import argparse
import logging
import os
import sys
from os import environ as env

from dotenv import find_dotenv, load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from lfs_s3_proxy import __version__
from lfs_s3_proxy.credentials import (
    ClientSuppliedCredentials,
    CredentialSource,
    FixedCredentials,
)
from lfs_s3_proxy.exceptions import (
    LFSProxyError,
    MethodNotAllowed,
    RouteNotFound,
    UnsupportedHashAlgorithm,
)
from lfs_s3_proxy.lfs import HOMEPAGE, LFS_CONTENT_TYPE, create_lfs_router
from lfs_s3_proxy.paths import MAX_EXPIRY, is_batch_path
from lfs_s3_proxy.signing import DEFAULT_EXPIRES_IN

LOGLEVEL = os.environ.get("LFS_S3_PROXY_LOGLEVEL", "WARNING").upper()
logging.basicConfig(level=LOGLEVEL, stream=sys.stdout)
logger = logging.getLogger("server")
logger.setLevel(LOGLEVEL)

ENV_FILE = find_dotenv()
if ENV_FILE:
    load_dotenv(ENV_FILE)

ENV_PREFIX = "LFS_S3_PROXY_"

# standard AWS variables consulted when the prefixed ones are unset
AWS_ENV_FALLBACKS = {
    "access_key_id": "AWS_ACCESS_KEY_ID",
    "secret_access_key": "AWS_SECRET_ACCESS_KEY",
    "session_token": "AWS_SESSION_TOKEN",
}


def register_exception_handlers(app: FastAPI):
    """Render proxy errors as bare HTTP responses."""

    @app.exception_handler(LFSProxyError)
    async def proxy_error_handler(request: Request, exc: LFSProxyError):
        logger.debug(
            "%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc
        )
        if isinstance(exc, UnsupportedHashAlgorithm):
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.body,
                media_type=LFS_CONTENT_TYPE,
            )
        return Response(status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        # methods no route accepts are rejected by the router before our handlers run
        if exc.status_code == 405:
            path = request.url.path
            if path == "/":
                error = MethodNotAllowed("GET")
            elif is_batch_path(path):
                error = MethodNotAllowed("POST")
            else:
                error = RouteNotFound(f"Not found: {path}")
        elif exc.status_code == 404:
            error = RouteNotFound(f"Not found: {request.url.path}")
        else:
            return Response(status_code=exc.status_code, headers=exc.headers)
        return await proxy_error_handler(request, error)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(
            "Unhandled error for %s %s", request.method, request.url.path, exc_info=exc
        )
        return Response(status_code=500)


def get_credential_source(args: argparse.Namespace) -> CredentialSource:
    """Select the credential mode from the parsed arguments."""
    if not args.use_fixed_credentials:
        return ClientSuppliedCredentials()
    for name, env_var in AWS_ENV_FALLBACKS.items():
        if not getattr(args, name) and env.get(env_var):
            setattr(args, name, env[env_var])
    if not args.access_key_id or not args.secret_access_key:
        logger.warning(
            "Fixed credentials are enabled but the access key id or secret "
            "access key is missing, batch requests will fail"
        )
    return FixedCredentials(
        access_key_id=args.access_key_id,
        secret_access_key=args.secret_access_key,
        session_token=args.session_token,
    )


def create_application(args: argparse.Namespace) -> FastAPI:
    """Create a proxy application from parsed arguments."""
    if args.from_env:
        logger.info("Loading arguments from environment variables")
        _args = get_args_from_env()
        # copy the _args to args
        for key, value in _args.__dict__.items():
            setattr(args, key, value)

    if not 1 <= args.expiry <= MAX_EXPIRY:
        raise ValueError(
            f"--expiry must be between 1 and {MAX_EXPIRY} seconds, got {args.expiry}"
        )

    credential_source = get_credential_source(args)

    application = FastAPI(
        title="Git LFS S3 Proxy",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        description="Git LFS batch API backed by pre-signed object store URLs",
        version=__version__,
    )
    register_exception_handlers(application)
    application.include_router(
        create_lfs_router(
            credential_source,
            default_expires_in=args.expiry,
            homepage=args.homepage,
        )
    )

    logger.info(
        "Signing with %s credentials, URLs expire after %d seconds",
        "fixed" if isinstance(credential_source, FixedCredentials) else "client",
        args.expiry,
    )
    if args.host in ("127.0.0.1", "localhost"):
        logger.info(
            "***Note: If you want to enable access from another host, "
            "please start with `--host=0.0.0.0`.***"
        )
    return application


def get_args_from_env():
    """Read the arguments from environment variables."""
    parser = get_argparser(add_help=False)
    args = parser.parse_args([])

    # Get the argument types from the parser
    arg_types = {
        action.dest: action.type
        for action in parser._actions
        if action.type is not None
    }
    arg_bools = {
        action.dest
        for action in parser._actions
        if isinstance(action, argparse._StoreTrueAction)
    }

    for arg_name in vars(args):
        env_var = ENV_PREFIX + arg_name.upper().replace("-", "_")
        if env_var in env:
            value = env[env_var]

            # Handle boolean flags
            if arg_name in arg_bools:
                value = value.lower() in ("true", "1", "yes", "y", "on")
            elif arg_name in arg_types:
                try:
                    value = arg_types[arg_name](value)
                except (ValueError, TypeError) as e:
                    logger.warning(
                        f"Failed to convert environment variable {env_var}={value} "
                        f"to type {arg_types[arg_name]}: {str(e)}"
                    )
                    continue

            setattr(args, arg_name, value)

    return args


def get_argparser(add_help=True):
    """Return the argument parser."""
    parser = argparse.ArgumentParser(add_help=add_help)
    parser.add_argument(
        "--from-env",
        action="store_true",
        help="load arguments from environment variables, the environment variables should be in the format of LFS_S3_PROXY_<ARG_NAME_UPPER>",
    )
    parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="host for the proxy server",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="port for the proxy server",
    )
    parser.add_argument(
        "--use-fixed-credentials",
        action="store_true",
        help="sign with the configured access key instead of the client's Basic auth credentials",
    )
    parser.add_argument(
        "--access-key-id",
        type=str,
        default=None,
        help="access key id used with --use-fixed-credentials (falls back to AWS_ACCESS_KEY_ID)",
    )
    parser.add_argument(
        "--secret-access-key",
        type=str,
        default=None,
        help="secret access key used with --use-fixed-credentials (falls back to AWS_SECRET_ACCESS_KEY)",
    )
    parser.add_argument(
        "--session-token",
        type=str,
        default=None,
        help="optional session token used with --use-fixed-credentials (falls back to AWS_SESSION_TOKEN)",
    )
    parser.add_argument(
        "--expiry",
        type=int,
        default=DEFAULT_EXPIRES_IN,
        help="lifetime of signed URLs in seconds",
    )
    parser.add_argument(
        "--homepage",
        type=str,
        default=HOMEPAGE,
        help="redirect target for requests to /",
    )
    return parser
