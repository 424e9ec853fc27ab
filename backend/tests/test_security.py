"""
Tests for security helpers.
"""
import time

import pytest
from starlette.requests import Request

from contract_analysis.utils.security import (
    generate_signed_url,
    get_client_ip,
    sanitize_filename,
    scrub_pii,
    scrub_pii_from_object,
    verify_signed_url,
)

SECRET = "signing-secret"


def _request(headers=None, client=("127.0.0.1", 5000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


class TestScrubPII:

    def test_email(self):
        assert scrub_pii("contact max@example.de now") == "contact [EMAIL_REDACTED] now"

    def test_credit_card_before_phone(self):
        assert scrub_pii("card 4111 1111 1111 1111") == "card [CC_REDACTED]"

    def test_ip(self):
        assert scrub_pii("from 10.1.2.3") == "from [IP_REDACTED]"

    def test_non_string_passthrough(self):
        assert scrub_pii(None) is None
        assert scrub_pii("") == ""

    def test_nested_object(self):
        scrubbed = scrub_pii_from_object({"user": {"email": "a@b.io"}, "ids": [1, "x@y.com"]})
        assert scrubbed == {"user": {"email": "[EMAIL_REDACTED]"}, "ids": [1, "[EMAIL_REDACTED]"]}


class TestClientIP:

    def test_forwarded_for_first_hop(self):
        request = _request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})
        assert get_client_ip(request) == "203.0.113.5"

    def test_real_ip(self):
        assert get_client_ip(_request({"X-Real-IP": "203.0.113.7"})) == "203.0.113.7"

    def test_cloudflare(self):
        assert get_client_ip(_request({"CF-Connecting-IP": "203.0.113.9"})) == "203.0.113.9"

    def test_socket_peer(self):
        assert get_client_ip(_request()) == "127.0.0.1"

    def test_no_client(self):
        assert get_client_ip(_request(client=None)) is None


@pytest.mark.parametrize("name, expected", [
    ("Mietvertrag 2024.pdf", "Mietvertrag_2024.pdf"),
    ("../../etc/passwd", "._._etc_passwd"),
    ("a..b.txt", "a.b.txt"),
    ("", "upload"),
])
def test_sanitize_filename(name, expected):
    assert sanitize_filename(name) == expected


class TestSignedUrls:

    def _parts(self, url):
        path, query = url.split("?")
        params = dict(pair.split("=") for pair in query.split("&"))
        return path.rsplit("/", 1)[1], params["expires"], params["signature"]

    def test_valid(self):
        file_id, expires, signature = self._parts(generate_signed_url("abc.pdf", SECRET))
        assert file_id == "abc.pdf"
        assert verify_signed_url(file_id, expires, signature, SECRET)

    def test_wrong_secret(self):
        file_id, expires, signature = self._parts(generate_signed_url("abc.pdf", SECRET))
        assert not verify_signed_url(file_id, expires, signature, "other")

    def test_other_file(self):
        _, expires, signature = self._parts(generate_signed_url("abc.pdf", SECRET))
        assert not verify_signed_url("xyz.pdf", expires, signature, SECRET)

    def test_expired(self):
        file_id, expires, signature = self._parts(generate_signed_url("abc.pdf", SECRET, expires_in=-1))
        assert int(expires) < time.time()
        assert not verify_signed_url(file_id, expires, signature, SECRET)

    def test_malformed_expiry(self):
        assert not verify_signed_url("abc.pdf", "soon", "sig", SECRET)
