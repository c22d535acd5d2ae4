"""Tests for webhook signature verification."""
import pytest

from whatsapp_bridge.utils.security import compute_signature, is_request_authentic, verify_signature

SECRET = "app_secret"
BODY = b'{"object":"whatsapp_business_account","entry":[]}'


class TestVerifySignature:
    def test_valid_signature_accepted(self):
        assert verify_signature(BODY, compute_signature(BODY, SECRET), SECRET) is True

    def test_uppercase_hex_accepted(self):
        header = "sha256=" + compute_signature(BODY, SECRET)[7:].upper()
        assert verify_signature(BODY, header, SECRET) is True

    @pytest.mark.parametrize("index", [0, len(BODY) // 2, len(BODY) - 1])
    def test_single_byte_mutation_rejected(self, index):
        signature = compute_signature(BODY, SECRET)
        mutated = bytearray(BODY)
        mutated[index] ^= 0x01
        assert verify_signature(bytes(mutated), signature, SECRET) is False

    def test_wrong_secret_rejected(self):
        assert verify_signature(BODY, compute_signature(BODY, "other"), SECRET) is False

    def test_missing_prefix_rejected(self):
        digest = compute_signature(BODY, SECRET)[7:]
        assert verify_signature(BODY, digest, SECRET) is False

    def test_empty_secret_rejected(self):
        assert verify_signature(BODY, compute_signature(BODY, ""), "") is False

    def test_non_ascii_header_rejected(self):
        assert verify_signature(BODY, "sha256=éé", SECRET) is False


class TestIsRequestAuthentic:
    def test_unsigned_delivery_allowed_by_default(self):
        assert is_request_authentic(BODY, None, SECRET) is True

    def test_unsigned_delivery_rejected_when_required(self):
        assert is_request_authentic(BODY, None, SECRET, require_signature=True) is False

    def test_signed_delivery_must_match(self):
        assert is_request_authentic(BODY, "sha256=deadbeef", SECRET) is False
        assert is_request_authentic(BODY, compute_signature(BODY, SECRET), SECRET) is True
