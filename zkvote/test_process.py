import pytest

from zkvote.crypto_utils.algebra import BN254_SCALAR_FIELD
from zkvote.errors import DecodeError
from zkvote.process import ProcessID

ADDRESS = bytes(range(20))


def test_marshal_layout():
    pid = ProcessID(address=ADDRESS, nonce=5, chain_id=1)
    data = pid.marshal()
    assert len(data) == 32
    assert data[:4] == b"\x00\x00\x00\x01"
    assert data[4:24] == ADDRESS
    assert data[24:] == (5).to_bytes(8, "big")
    assert ProcessID.unmarshal(data) == pid


def test_hex():
    pid = ProcessID(address=ADDRESS, nonce=2 ** 40, chain_id=137)
    assert ProcessID.from_hex(pid.hex()) == pid
    assert ProcessID.from_hex("0x" + pid.hex()) == pid
    assert str(pid) == pid.hex()


def test_distinct_inputs_give_distinct_ids():
    a = ProcessID(address=ADDRESS, nonce=1, chain_id=1)
    assert a.marshal() != ProcessID(address=ADDRESS, nonce=2, chain_id=1).marshal()
    assert a.marshal() != ProcessID(address=ADDRESS, nonce=1, chain_id=2).marshal()


@pytest.mark.parametrize("data", [b"", b"\x00" * 31, b"\x00" * 33])
def test_unmarshal_length(data):
    with pytest.raises(DecodeError):
        ProcessID.unmarshal(data)


def test_from_hex_invalid():
    with pytest.raises(DecodeError):
        ProcessID.from_hex("zz" * 32)


def test_invalid_fields():
    with pytest.raises(DecodeError):
        ProcessID(address=b"\x00" * 19, nonce=0, chain_id=0)
    with pytest.raises(DecodeError):
        ProcessID(address=ADDRESS, nonce=2 ** 64, chain_id=0)
    with pytest.raises(DecodeError):
        ProcessID(address=ADDRESS, nonce=0, chain_id=-1)


def test_field_reduction():
    pid = ProcessID(address=b"\xff" * 20, nonce=2 ** 64 - 1, chain_id=2 ** 32 - 1)
    assert pid.to_int() == 2 ** 256 - 1
    assert pid.to_ff() == (2 ** 256 - 1) % BN254_SCALAR_FIELD
