import secrets

import pytest

from zkvote import config
from zkvote.census import CensusProof, compute_root, leaf_hash, path_length, verify_census_proof
from zkvote.testutil import CensusBuilder


@pytest.fixture(scope="module")
def census():
    builder = CensusBuilder()
    for i in range(6):
        builder.add(secrets.token_bytes(20), i + 1)
    return builder


def test_every_member_verifies(census):
    root = census.root()
    for key, weight in census.leaves.items():
        proof = census.proof(key.to_bytes(20, "big"))
        assert proof.root == root
        assert len(proof.siblings) == config.CENSUS_LEVELS
        assert proof.verify()


def test_wrong_weight_fails(census):
    key = next(iter(census.leaves))
    proof = census.proof(key.to_bytes(20, "big"))
    assert not verify_census_proof(proof.root, proof.key, proof.value + 1, proof.siblings)


def test_wrong_root_fails(census):
    key = next(iter(census.leaves))
    proof = census.proof(key.to_bytes(20, "big"))
    assert not verify_census_proof(proof.root + 1, proof.key, proof.value, proof.siblings)


def test_wrong_length_fails(census):
    key = next(iter(census.leaves))
    proof = census.proof(key.to_bytes(20, "big"))
    assert not verify_census_proof(proof.root, proof.key, proof.value, proof.siblings[:-1])
    assert not verify_census_proof(proof.root, proof.key, proof.value, proof.siblings + [0])


def test_non_member_fails(census):
    key = next(iter(census.leaves))
    proof = census.proof(key.to_bytes(20, "big"))
    other = int.from_bytes(secrets.token_bytes(20), "big")
    assert not verify_census_proof(proof.root, other, proof.value, proof.siblings)


def test_single_leaf_tree():
    builder = CensusBuilder()
    address = secrets.token_bytes(20)
    builder.add(address, 10)
    proof = builder.proof(address)
    assert proof.root == leaf_hash(proof.key, 10)
    assert path_length(proof.siblings) == 0
    assert proof.verify()


def test_path_length_ignores_padding():
    assert path_length([1, 0, 3, 0, 0]) == 3
    assert path_length([0] * 4) == 0


def test_compute_root_uses_key_bits():
    # deux feuilles séparées au bit 0 : clé paire à gauche, impaire à droite
    proof = CensusProof(root=0, key=2, value=1, siblings=[leaf_hash(3, 1)] + [0] * 159)
    left_first = compute_root(2, 1, proof.siblings)
    builder = CensusBuilder()
    builder.add((2).to_bytes(20, "big"), 1)
    builder.add((3).to_bytes(20, "big"), 1)
    assert builder.root() == left_first
