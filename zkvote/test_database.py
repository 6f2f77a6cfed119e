import pytest

from zkvote.database import KeyStore, deserialize_public_key, serialize_key
from zkvote.ecelgamal import generate_keys
from zkvote.errors import KeyExistsError, KeyNotFoundError, StorageError
from zkvote.testutil import random_process_id


@pytest.fixture
def store(tmp_path):
    return KeyStore(str(tmp_path / "keys.db"))


def test_store_and_load(store):
    pid = random_process_id()
    pk, sk = generate_keys()
    store.store_encryption_keys(pid, pk, sk)
    loaded_pk, loaded_sk = store.load_encryption_keys(pid)
    assert loaded_pk == pk
    assert loaded_sk == sk
    assert store.exists(pid)


def test_unknown_process(store):
    pid = random_process_id()
    assert not store.exists(pid)
    with pytest.raises(KeyNotFoundError):
        store.load_encryption_keys(pid)


def test_keys_are_immutable(store):
    pid = random_process_id()
    pk, sk = generate_keys()
    store.store_encryption_keys(pid, pk, sk)
    other_pk, other_sk = generate_keys()
    with pytest.raises(KeyExistsError):
        store.store_encryption_keys(pid, other_pk, other_sk)
    assert store.load_encryption_keys(pid) == (pk, sk)


def test_persists_across_instances(tmp_path):
    path = str(tmp_path / "keys.db")
    pid = random_process_id()
    pk, sk = generate_keys()
    KeyStore(path).store_encryption_keys(pid, pk, sk)
    assert KeyStore(path).load_encryption_keys(pid)[1] == sk


def test_key_serialization():
    pk, sk = generate_keys()
    assert serialize_key(sk) == hex(sk)[2:]
    assert serialize_key(pk).startswith("bn254,")
    assert deserialize_public_key(serialize_key(pk)) == pk
    with pytest.raises(StorageError):
        deserialize_public_key("bn254,zz,1")
