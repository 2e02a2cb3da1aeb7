"""
Tests for security helpers: password hashing, session tokens, OTPs,
input validation and client IP extraction.

Tests follow AAA (Arrange, Act, Assert) pattern.
"""

import hashlib
from unittest.mock import MagicMock, patch

import pytest

from labsite.core.config import settings
from labsite.core.security import (
    create_security_event,
    generate_otp,
    generate_session_token,
    get_client_ip,
    get_password_hash,
    hash_otp,
    is_private_ip,
    is_valid_session_token,
    sanitize_input,
    slugify,
    slugify_title,
    validate_password_strength,
    validate_username,
    verify_password,
)


def make_request(headers=None, host="198.51.100.20"):
    request = MagicMock()
    request.headers = headers or {}
    request.client = MagicMock(host=host) if host else None
    return request


class TestPasswordHashing:
    def test_hash_verifies_with_original_password(self):
        # Arrange
        hashed = get_password_hash("Sup3r$ecret")

        # Act / Assert
        assert hashed != "Sup3r$ecret"
        assert verify_password("Sup3r$ecret", hashed) is True
        assert verify_password("wrong", hashed) is False

    def test_malformed_hash_is_rejected_without_raising(self):
        assert verify_password("anything", "not-a-bcrypt-hash") is False


class TestTokensAndOTP:
    def test_session_token_is_64_hex_chars(self):
        token = generate_session_token()

        assert len(token) == 64
        assert is_valid_session_token(token)
        assert generate_session_token() != token

    @pytest.mark.parametrize("token", [None, "", "abc", "G" * 64, "a" * 63])
    def test_invalid_session_tokens(self, token):
        assert is_valid_session_token(token) is False

    def test_otp_is_six_digits(self):
        for _ in range(50):
            otp = generate_otp()
            assert len(otp) == 6
            assert otp.isdigit()
            assert otp[0] != "0"

    def test_otp_hash_is_sha256_of_stripped_code(self):
        expected = hashlib.sha256(b"482913").hexdigest()

        assert hash_otp("482913") == expected
        assert hash_otp(" 482913 ") == expected


class TestInputValidation:
    def test_sanitize_strips_html_characters(self):
        assert sanitize_input("  <admin>'\"&  ") == "admin"
        assert sanitize_input(None) == ""

    @pytest.mark.parametrize("username,valid", [
        ("jerry", True),
        ("jerry_admin-1", True),
        ("ab", False),
        ("a" * 21, False),
        ("jerry admin", False),
    ])
    def test_validate_username(self, username, valid):
        assert validate_username(username) is valid

    def test_strong_password_has_no_problems(self):
        assert validate_password_strength("Sup3r$ecret") == []

    def test_weak_password_lists_every_problem(self):
        problems = validate_password_strength("abc")

        assert len(problems) == 4
        assert any("8 characters" in p for p in problems)
        assert any("special character" in p for p in problems)

    def test_slugify_machine_name(self):
        assert slugify("  Active  Directory ") == "active-directory"

    def test_slugify_room_title(self):
        assert slugify_title("Mr. Robot: CTF!") == "mr-robot-ctf"


class TestClientIP:
    @pytest.fixture
    def behind_proxy(self):
        with patch.object(settings, "trusted_proxies", ["10.0.0.0/8"]):
            yield

    def test_forwarding_headers_ignored_without_trusted_proxy(self):
        request = make_request({"X-Forwarded-For": "203.0.113.7", "X-Real-IP": "203.0.113.8"})

        assert get_client_ip(request) == "198.51.100.20"

    def test_forwarded_for_behind_trusted_proxy(self, behind_proxy):
        request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}, host="10.0.0.5")

        assert get_client_ip(request) == "203.0.113.7"

    def test_spoofed_leading_hop_is_skipped(self, behind_proxy):
        request = make_request(
            {"X-Forwarded-For": "198.51.100.99, 203.0.113.7, 10.0.0.1"}, host="10.0.0.5"
        )

        assert get_client_ip(request) == "203.0.113.7"

    def test_real_ip_header_behind_trusted_proxy(self, behind_proxy):
        request = make_request({"X-Real-IP": "203.0.113.8"}, host="10.0.0.5")

        assert get_client_ip(request) == "203.0.113.8"

    def test_untrusted_peer_with_proxy_configured(self, behind_proxy):
        request = make_request({"X-Forwarded-For": "203.0.113.7"})

        assert get_client_ip(request) == "198.51.100.20"

    def test_socket_peer_fallback(self):
        assert get_client_ip(make_request()) == "198.51.100.20"
        assert get_client_ip(make_request(host=None)) == "unknown"

    @pytest.mark.parametrize("ip,private", [
        ("127.0.0.1", True),
        ("192.168.1.10", True),
        ("unknown", True),
        ("not-an-ip", True),
        ("8.8.8.8", False),
    ])
    def test_is_private_ip(self, ip, private):
        assert is_private_ip(ip) is private


def test_security_event_carries_severity_and_timestamp():
    event = create_security_event(
        "login_failure", "203.0.113.7", "curl/8.0",
        username="jerry", details={"reason": "wrong_password"},
    )

    assert event["type"] == "login_failure"
    assert event["severity"] == "high"
    assert event["username"] == "jerry"
    assert event["details"] == {"reason": "wrong_password"}
    assert "timestamp" in event
