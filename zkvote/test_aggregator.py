import dataclasses

import pytest

from zkvote.aggregator import (
    Aggregator, aggregator_inputs, compute_public_inputs_hash, vote_inputs_hash,
)
from zkvote.crypto_utils.algebra import bytes_to_int
from zkvote.curves import from_te_to_rte
from zkvote.errors import PredicateUnsatisfied
from zkvote.mimc import MIMC_BW6_761, MiMC, to_limbs
from zkvote.prover import build_aggregator_witness, native_backend, prove_votes
from zkvote.snark_backend import CIRCUIT_AGGREGATOR
from zkvote.testutil import VoteContext, build_vote_witnesses

BATCH = 3


@pytest.fixture(scope="module")
def setup():
    return native_backend(batch_size=BATCH)


@pytest.fixture(scope="module")
def batch(setup):
    ctx = VoteContext.new(setup, n_voters=BATCH)
    votes = build_vote_witnesses(ctx)
    proofs = prove_votes(votes, setup.backend, setup.vote_pk, max_workers=2)
    return ctx, votes, build_aggregator_witness(votes, proofs)


@pytest.fixture(scope="module")
def aggregator(setup):
    return Aggregator(setup.backend, setup.vote_vk, BATCH)


def _independent_hash(ctx, votes):
    """Recalcul du condensé du lot, limb par limb"""
    values = ctx.mode.as_inputs()
    values += list(from_te_to_rte(*ctx.encryption_key.point()))
    values += [ctx.process_id.to_int(), votes[0].census_root]
    values += [v.nullifier for v in votes]
    values += [v.commitment for v in votes]
    values += [bytes_to_int(v.address) for v in votes]
    for v in votes:
        values += v.ballot.circuit_coords()
    h = MiMC(MIMC_BW6_761)
    for value in values:
        for limb in to_limbs(value):
            h.write(limb.to_bytes(32, "big"))
    return h.sum_int()


def test_batch_hash_matches_independent_computation(batch):
    ctx, votes, witness = batch
    assert witness.inputs_hash == _independent_hash(ctx, votes)


def test_batch_inputs_layout(batch):
    ctx, votes, witness = batch
    inputs = aggregator_inputs(witness.mode, witness.encryption_key, witness.process_id,
                               witness.census_root, witness.votes)
    assert len(inputs) == 8 + 4 + 3 * BATCH + 32 * BATCH
    assert inputs[10] == ctx.process_id.to_int()
    assert inputs[12:12 + BATCH] == [v.nullifier for v in votes]


def test_valid_batch_is_accepted(aggregator, batch):
    _, _, witness = batch
    assert aggregator.check(witness) == [witness.inputs_hash]
    assert aggregator.verify(witness)


def test_mutated_nullifier_changes_hash(aggregator, batch):
    _, _, witness = batch
    votes = list(witness.votes)
    votes[1] = dataclasses.replace(votes[1], nullifier=votes[1].nullifier + 1)
    mutated = dataclasses.replace(witness, votes=votes)
    recomputed = compute_public_inputs_hash(mutated.mode, mutated.encryption_key,
                                            mutated.process_id, mutated.census_root, votes)
    assert recomputed != witness.inputs_hash
    # la preuve du vote modifié ne lie plus ses données
    with pytest.raises(PredicateUnsatisfied) as exc:
        aggregator.check(mutated)
    assert exc.value.check == "vote_proof"


def test_wrong_inputs_hash_is_rejected(aggregator, batch):
    _, _, witness = batch
    with pytest.raises(PredicateUnsatisfied) as exc:
        aggregator.check(dataclasses.replace(witness, inputs_hash=witness.inputs_hash + 1))
    assert exc.value.check == "inputs_hash"


def test_swapped_proofs_are_rejected(aggregator, batch):
    _, _, witness = batch
    votes = list(witness.votes)
    votes[0], votes[1] = (dataclasses.replace(votes[0], proof=votes[1].proof),
                          dataclasses.replace(votes[1], proof=votes[0].proof))
    with pytest.raises(PredicateUnsatisfied) as exc:
        aggregator.check(dataclasses.replace(witness, votes=votes))
    assert exc.value.check == "vote_proof"


def test_batch_size_is_fixed(aggregator, batch):
    _, _, witness = batch
    with pytest.raises(PredicateUnsatisfied) as exc:
        aggregator.check(dataclasses.replace(witness, votes=witness.votes[:-1]))
    assert exc.value.check == "batch_size"


def test_vote_inputs_hash_matches_vote_witness(batch):
    _, votes, witness = batch
    for vote, aggregated in zip(votes, witness.votes):
        assert vote_inputs_hash(witness.mode, witness.encryption_key, witness.process_id,
                                witness.census_root, aggregated) == vote.inputs_hash


def test_aggregate_proof(setup, batch):
    _, _, witness = batch
    proof = setup.backend.prove(CIRCUIT_AGGREGATOR, witness, setup.aggregator_pk)
    assert proof.public_inputs == (witness.inputs_hash,)
    setup.backend.verify(proof, [witness.inputs_hash], setup.aggregator_vk)
