import pytest

from billing_gateway.errors import AuthenticationError, ConfigurationError
from billing_gateway.webhooks.signature import SignatureVerifier

from conftest import SECRET, sign

BODY = b'{"event":"subscription.activated","payload":{},"created_at":1700000000}'


@pytest.fixture
def verifier():
    return SignatureVerifier(SECRET)


def test_compute_matches_hmac_sha256_hex(verifier):
    assert verifier.compute(BODY) == sign(BODY)


def test_verify_accepts_valid_signature(verifier):
    verifier.verify(BODY, sign(BODY))


def test_verify_accepts_uppercase_hex(verifier):
    verifier.verify(BODY, sign(BODY).upper())


def test_verify_rejects_missing_signature(verifier):
    with pytest.raises(AuthenticationError, match="Invalid webhook signature"):
        verifier.verify(BODY, None)


def test_verify_rejects_signature_under_other_secret(verifier):
    with pytest.raises(AuthenticationError):
        verifier.verify(BODY, sign(BODY, "some_other_secret"))


def test_verify_rejects_non_ascii_signature(verifier):
    with pytest.raises(AuthenticationError):
        verifier.verify(BODY, "é" * 64)


@pytest.mark.parametrize("position", [0, 1, len(BODY) // 2, len(BODY) - 1])
def test_single_byte_mutation_fails(verifier, position):
    signature = sign(BODY)
    mutated = bytearray(BODY)
    mutated[position] ^= 0x01

    with pytest.raises(AuthenticationError):
        verifier.verify(bytes(mutated), signature)


def test_missing_secret_is_configuration_error():
    verifier = SignatureVerifier("")
    assert verifier.configured is False

    with pytest.raises(ConfigurationError, match="not configured"):
        verifier.verify(BODY, sign(BODY))


def test_mismatch_log_never_contains_secret_or_full_signature(verifier, caplog):
    wrong = sign(BODY, "some_other_secret")

    with pytest.raises(AuthenticationError):
        verifier.verify(BODY, wrong)

    assert SECRET not in caplog.text
    assert wrong not in caplog.text
    assert sign(BODY) not in caplog.text
