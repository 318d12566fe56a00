"""Tests for webhook signature checks."""

import pytest

from slot_matcher.signature import SignatureVerifier, compute_signature

BODY = b'{"data": {"state": "NY"}}'


@pytest.mark.unit
class TestSignatureVerifier:
    def test_valid_signature(self):
        verifier = SignatureVerifier("s3cret")
        assert verifier.enabled
        assert verifier.verify(BODY, compute_signature("s3cret", BODY))

    def test_signature_case_and_whitespace_are_ignored(self):
        signature = compute_signature("s3cret", BODY).upper()
        assert SignatureVerifier("s3cret").verify(BODY, f" {signature} ")

    def test_wrong_secret(self):
        assert not SignatureVerifier("s3cret").verify(BODY, compute_signature("other", BODY))

    def test_tampered_body(self):
        signature = compute_signature("s3cret", BODY)
        assert not SignatureVerifier("s3cret").verify(BODY + b" ", signature)

    def test_missing_header(self):
        assert not SignatureVerifier("s3cret").verify(BODY, None)

    def test_skip_flag_disables_checks(self):
        verifier = SignatureVerifier("s3cret", skip=True)
        assert not verifier.enabled
        assert verifier.verify(BODY, "garbage")

    def test_no_secret_disables_checks(self):
        assert SignatureVerifier(None).verify(BODY, None)
        assert SignatureVerifier("").verify(BODY, None)

    def test_known_digest(self):
        assert compute_signature("key", b"The quick brown fox jumps over the lazy dog") == (
            "f7bc83f430538424b13298e6aa6fb143ef4d59a14946175997479dbc2d1a3cd8"
        )
