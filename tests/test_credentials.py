"""Test credential resolution."""

import base64

import pytest

from lfs_s3_proxy.credentials import (
    ClientSuppliedCredentials,
    FixedCredentials,
    SigningIdentity,
    parse_basic_authorization,
    resolve_identity,
)
from lfs_s3_proxy.exceptions import AuthMalformed, AuthMissing, ConfigurationError

from . import ACCESS_KEY_ID, SECRET_ACCESS_KEY, SESSION_TOKEN, basic_auth


class TestParseBasicAuthorization:
    """Tests for parse_basic_authorization."""

    def test_user_and_password(self):
        assert parse_basic_authorization(basic_auth("key", "secret")) == (
            "key",
            "secret",
        )

    def test_splits_on_first_colon(self):
        """Passwords may contain colons."""
        user, password = parse_basic_authorization(basic_auth("key", "a:b:c"))
        assert user == "key"
        assert password == "a:b:c"

    def test_empty_parts(self):
        assert parse_basic_authorization(basic_auth("", "")) == ("", "")

    def test_missing_padding_is_tolerated(self):
        encoded = base64.b64encode(b"ab:c").decode("ascii").rstrip("=")
        assert parse_basic_authorization(f"Basic {encoded}") == ("ab", "c")

    @pytest.mark.parametrize("header", [None, ""])
    def test_missing_header(self, header):
        with pytest.raises(AuthMissing):
            parse_basic_authorization(header)

    @pytest.mark.parametrize(
        "header",
        [
            "Basic",
            "Basic ",
            "Bearer abc",
            "basic " + base64.b64encode(b"key:secret").decode("ascii"),
            "Basic !!!not-base64!!!",
            "Basic " + base64.b64encode(b"no-colon-here").decode("ascii"),
        ],
    )
    def test_malformed_header(self, header):
        with pytest.raises(AuthMalformed):
            parse_basic_authorization(header)


class TestResolveIdentity:
    """Tests for resolve_identity."""

    def test_client_supplied(self):
        identity = resolve_identity(
            ClientSuppliedCredentials(), basic_auth(ACCESS_KEY_ID, SECRET_ACCESS_KEY)
        )
        assert identity == SigningIdentity(
            access_key_id=ACCESS_KEY_ID, secret_access_key=SECRET_ACCESS_KEY
        )
        assert identity.session_token is None

    def test_client_supplied_without_header(self):
        with pytest.raises(AuthMissing):
            resolve_identity(ClientSuppliedCredentials(), None)

    def test_fixed_ignores_authorization(self):
        source = FixedCredentials(
            access_key_id=ACCESS_KEY_ID,
            secret_access_key=SECRET_ACCESS_KEY,
            session_token=SESSION_TOKEN,
        )
        identity = resolve_identity(source, basic_auth("other", "pair"))
        assert identity.access_key_id == ACCESS_KEY_ID
        assert identity.secret_access_key == SECRET_ACCESS_KEY
        assert identity.session_token == SESSION_TOKEN

    def test_fixed_without_authorization(self):
        source = FixedCredentials(
            access_key_id=ACCESS_KEY_ID, secret_access_key=SECRET_ACCESS_KEY
        )
        assert resolve_identity(source).session_token is None

    @pytest.mark.parametrize(
        "source",
        [
            FixedCredentials(),
            FixedCredentials(access_key_id=ACCESS_KEY_ID),
            FixedCredentials(secret_access_key=SECRET_ACCESS_KEY),
        ],
    )
    def test_fixed_incomplete(self, source):
        with pytest.raises(ConfigurationError):
            resolve_identity(source)

    def test_repr_hides_secrets(self):
        identity = SigningIdentity(
            access_key_id=ACCESS_KEY_ID,
            secret_access_key=SECRET_ACCESS_KEY,
            session_token=SESSION_TOKEN,
        )
        assert SECRET_ACCESS_KEY not in repr(identity)
        assert SESSION_TOKEN not in str(identity)
