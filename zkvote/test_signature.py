import pytest
from Crypto.Hash import SHA256

from zkvote.errors import SignatureError
from zkvote.signature import (
    ORDER, address_from_signature, generate_keys, generate_nonce, hash_message,
    pubkey_to_address, public_key_of, recover_public_key, sign_digest, sign_message,
    signature_from_bytes, signature_to_bytes, validate_point, verify_digest, verify_signature_bytes,
)


@pytest.fixture(scope="module")
def account():
    return generate_keys()


def test_known_address():
    # clé privée 1 : la clé publique est le générateur
    assert pubkey_to_address(public_key_of(1)).hex() == "7e5f4552091a69125d5dfcb7b8c2659029395bdf"


def test_rfc6979_nonce_vector():
    digest = int(SHA256.new(b"Satoshi Nakamoto").hexdigest(), 16)
    k = generate_nonce(1, digest)
    assert k == 0x8F8A276C19F4149656B280621E358CCE24F5F52542772691EE69063B74F15D15


def test_nonce_is_deterministic(account):
    sk, _ = account
    assert generate_nonce(sk, 1234) == generate_nonce(sk, 1234)
    assert generate_nonce(sk, 1234) != generate_nonce(sk, 1235)


def test_generate_keys(account):
    sk, pk = account
    assert 0 < sk < ORDER
    assert validate_point(*pk)


def test_sign_verify_digest(account):
    sk, pk = account
    digest = 0xDEADBEEF
    r, s, _ = sign_digest(digest, sk)
    assert s <= ORDER // 2
    assert verify_digest(digest, (r, s), pk)
    assert not verify_digest(digest + 1, (r, s), pk)


def test_verify_rejects_out_of_range(account):
    _, pk = account
    with pytest.raises(ValueError):
        verify_digest(1, (0, 1), pk)
    with pytest.raises(ValueError):
        verify_digest(1, (1, ORDER), pk)
    with pytest.raises(ValueError):
        verify_digest(1, (1, 1), (1, 1))


def test_recover_public_key(account):
    sk, pk = account
    digest = 987654321
    r, s, v = sign_digest(digest, sk)
    assert recover_public_key(digest, r, s, v) == pk
    assert recover_public_key(digest, r, s, v ^ 1) != pk


def test_signature_bytes(account):
    sk, _ = account
    r, s, v = sign_digest(42, sk)
    data = signature_to_bytes(r, s, v)
    assert len(data) == 65
    assert data[64] in (27, 28)
    assert signature_from_bytes(data) == (r, s, v)
    with pytest.raises(SignatureError):
        signature_from_bytes(data[:64])
    with pytest.raises(SignatureError):
        signature_from_bytes(data[:64] + b"\x05")


def test_hash_message_prefix():
    assert hash_message(b"abc") != hash_message(b"abd")


def test_address_from_signature(account):
    sk, pk = account
    message = b"1" + b"7"
    signature = sign_message(message, sk)
    assert address_from_signature(message, signature) == pubkey_to_address(pk)
    assert address_from_signature(message, signature, expected=pubkey_to_address(pk))
    with pytest.raises(SignatureError):
        address_from_signature(message, signature, expected=b"\x00" * 20)


def test_address_from_signature_other_message(account):
    sk, pk = account
    signature = sign_message(b"17", sk)
    assert address_from_signature(b"18", signature) != pubkey_to_address(pk)


def test_verify_signature_bytes_binds_recovery_byte(account):
    sk, pk = account
    digest = 2024
    data = bytearray(signature_to_bytes(*sign_digest(digest, sk)))
    assert verify_signature_bytes(digest, bytes(data), pk)

    data[64] = 55 - data[64]
    assert not verify_signature_bytes(digest, bytes(data), pk)

    data[64] = 0
    with pytest.raises(SignatureError):
        verify_signature_bytes(digest, bytes(data), pk)
