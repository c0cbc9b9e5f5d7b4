"""
Tests for origin handling and redirect URI validation.
"""

import pytest

from utils.errors import CrossOriginRedirectError, InvalidRedirectUriError
from utils.schemas import AuthRequest
from utils.validators import (
    embedded_redirect_uri,
    is_same_origin,
    origin_of,
    validate_auth_request,
    validate_redirect_uri,
)

HOST = "https://app.test"


class TestOrigin:
    def test_default_ports_normalised(self):
        assert origin_of("https://app.test:443/cb") == "https://app.test"
        assert origin_of("http://app.test:80/") == "http://app.test"
        assert origin_of("http://localhost:8000/cb?x=1") == "http://localhost:8000"

    def test_scheme_and_host_lowercased(self):
        assert origin_of("HTTPS://App.Test/cb") == "https://app.test"

    def test_ipv6(self):
        assert origin_of("http://[::1]:8000/cb") == "http://[::1]:8000"

    def test_opaque(self):
        assert origin_of("about:blank") == "null"
        assert origin_of("data:text/html,hi") == "null"

    def test_same_origin(self):
        assert is_same_origin("https://app.test/cb", HOST)
        assert not is_same_origin("https://app.test:8443/cb", HOST)
        assert not is_same_origin("http://app.test/cb", HOST)
        assert not is_same_origin("https://sub.app.test/cb", HOST)
        assert not is_same_origin("about:blank", HOST)
        assert not is_same_origin("https://app.test:99999/cb", HOST)


class TestValidateRedirectUri:
    def test_same_origin_passes(self):
        validate_redirect_uri("https://app.test/oauth/callback?x=1", HOST)

    def test_cross_origin(self):
        with pytest.raises(CrossOriginRedirectError) as excinfo:
            validate_redirect_uri("https://evil.test/cb", HOST)
        assert excinfo.value.expected == "https://app.test"
        assert excinfo.value.actual == "https://evil.test"
        assert str(excinfo.value) == (
            "OAuth redirect URL must be same-origin. "
            "Expected origin: https://app.test, but got: https://evil.test"
        )

    @pytest.mark.parametrize("uri", ["https://app.test:444/cb", "http://app.test/cb", "about:blank"])
    def test_other_origins_rejected(self, uri):
        with pytest.raises(CrossOriginRedirectError):
            validate_redirect_uri(uri, HOST)

    @pytest.mark.parametrize("uri", ["", "   ", "/relative/cb", "https://app.test:port/cb"])
    def test_unparseable(self, uri):
        with pytest.raises(InvalidRedirectUriError):
            validate_redirect_uri(uri, HOST)


class TestAuthRequestRedirects:
    def test_embedded_redirect_uri(self):
        url = "https://provider.test/authorize?client_id=a&redirect_uri=https%3A%2F%2Fapp.test%2Fcb"
        assert embedded_redirect_uri(url) == "https://app.test/cb"
        assert embedded_redirect_uri("https://provider.test/authorize?client_id=a") is None

    def test_both_must_pass(self):
        request = AuthRequest(
            auth_url="https://provider.test/authorize?redirect_uri=https%3A%2F%2Fevil.test%2Fcb",
            redirect_uri="https://app.test/cb",
        )
        with pytest.raises(CrossOriginRedirectError):
            validate_auth_request(request, HOST)

    def test_no_redirects_is_fine(self):
        validate_auth_request(AuthRequest(auth_url="https://provider.test/authorize"), HOST)
