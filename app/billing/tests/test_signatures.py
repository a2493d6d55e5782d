"""
Tests for HMAC signature verification.
"""

import hashlib
import hmac

import pytest

from billing.signatures import (
    compute_signature,
    verify_payment_signature,
    verify_webhook_signature,
)

SECRET = "whsec_unit"
BODY = b'{"entity":"event","event":"payment.captured","payload":{}}'


def sign(payload: bytes, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


class TestComputeSignature:
    """Tests for compute_signature."""

    def test_matches_hmac_sha256_hex(self):
        assert compute_signature(BODY, SECRET) == sign(BODY)

    def test_str_payload_encoded_as_utf8(self):
        assert compute_signature("order_1|pay_1", SECRET) == sign(b"order_1|pay_1")


class TestVerifyWebhookSignature:
    """Tests for verify_webhook_signature."""

    def test_valid_signature(self):
        assert verify_webhook_signature(BODY, sign(BODY), SECRET)

    def test_any_byte_mutation_fails(self):
        signature = sign(BODY)

        for index in range(len(BODY)):
            mutated = bytearray(BODY)
            mutated[index] ^= 0x01
            assert not verify_webhook_signature(bytes(mutated), signature, SECRET)

    def test_reserialized_body_fails(self):
        """Whitespace changes after re-serialization change the digest."""
        reserialized = b'{"entity": "event", "event": "payment.captured", "payload": {}}'

        assert not verify_webhook_signature(reserialized, sign(BODY), SECRET)

    def test_wrong_secret_fails(self):
        assert not verify_webhook_signature(BODY, sign(BODY, "other"), SECRET)

    @pytest.mark.parametrize("secret", ["", None])
    def test_missing_secret_rejects(self, secret):
        assert not verify_webhook_signature(BODY, sign(BODY), secret)

    @pytest.mark.parametrize("signature", ["", None, "not-hex", "é" * 64])
    def test_bad_signature_values(self, signature):
        assert not verify_webhook_signature(BODY, signature, SECRET)

    def test_uppercase_hex_rejected(self):
        assert not verify_webhook_signature(BODY, sign(BODY).upper(), SECRET)


class TestVerifyPaymentSignature:
    """Tests for verify_payment_signature."""

    def test_valid_triple(self):
        signature = sign(b"order_Kx9|pay_Lq2")

        assert verify_payment_signature("order_Kx9", "pay_Lq2", signature, SECRET)

    def test_swapped_ids_fail(self):
        signature = sign(b"order_Kx9|pay_Lq2")

        assert not verify_payment_signature("pay_Lq2", "order_Kx9", signature, SECRET)

    @pytest.mark.parametrize("order_id,payment_id", [("", "pay_1"), ("order_1", None)])
    def test_missing_ids_fail(self, order_id, payment_id):
        assert not verify_payment_signature(order_id, payment_id, "abc", SECRET)
