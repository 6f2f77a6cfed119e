"""
Prédicat d'agrégation : un lot de N preuves de vote replié en un seul
condensé public.

Les valeurs du lot sont des scalaires d'un autre corps que celui du
hachage (BW6-761) : chaque valeur est découpée en 4 limbs de 64 bits, poids
faible d'abord, et chaque limb est haché comme un élément indépendant
(voir mimc.hash_limbs).
"""
import logging
from dataclasses import dataclass
from typing import List

from zkvote import config
from zkvote.ballot import BallotMode, circom_inputs_hash
from zkvote.crypto_utils.algebra import bytes_to_int
from zkvote.curves import Point, from_te_to_rte
from zkvote.ecelgamal import Ballot
from zkvote.errors import DecodeError, PredicateUnsatisfied, ProofVerificationError
from zkvote.mimc import hash_limbs
from zkvote.process import ProcessID
from zkvote.snark_backend import CircuitKey, Proof, ProofBackend
from zkvote.voteverifier import compute_inputs_hash

logger = logging.getLogger(__name__)


@dataclass
class AggregatedVote:
    """Données d'un votant dans le lot ; le poids reste privé"""
    nullifier: int
    commitment: int
    address: bytes
    weight: int
    ballot: Ballot
    proof: Proof


@dataclass
class AggregatorWitness:
    mode: BallotMode
    encryption_key: Point
    process_id: ProcessID
    census_root: int
    votes: List[AggregatedVote]
    inputs_hash: int

    def public_inputs(self) -> List[int]:
        return [self.inputs_hash]


def aggregator_inputs(mode: BallotMode, encryption_key: Point, process_id: ProcessID,
                      census_root: int, votes: List[AggregatedVote]) -> List[int]:
    """Valeurs hachées pour le lot, dans l'ordre du hachage"""
    pk_x, pk_y = from_te_to_rte(*encryption_key.point(), encryption_key.params)
    inputs = mode.as_inputs() + [pk_x, pk_y, process_id.to_int(), census_root]
    inputs.extend(v.nullifier for v in votes)
    inputs.extend(v.commitment for v in votes)
    inputs.extend(bytes_to_int(v.address) for v in votes)
    for v in votes:
        inputs.extend(v.ballot.circuit_coords())
    return inputs


def compute_public_inputs_hash(mode: BallotMode, encryption_key: Point, process_id: ProcessID,
                               census_root: int, votes: List[AggregatedVote]) -> int:
    """MiMC BW6-761 des limbs de chaque valeur du lot"""
    return hash_limbs(aggregator_inputs(mode, encryption_key, process_id, census_root, votes))


def vote_inputs_hash(mode: BallotMode, encryption_key: Point, process_id: ProcessID,
                     census_root: int, vote: AggregatedVote) -> int:
    """InputsHash attendu pour la preuve de vote d'un votant du lot"""
    circom_hash = circom_inputs_hash(mode, vote.address, vote.weight, process_id,
                                     encryption_key, vote.nullifier, vote.commitment,
                                     vote.ballot)
    return compute_inputs_hash(circom_hash, census_root)


class Aggregator:
    """Relation du prédicat d'agrégation pour des lots de taille fixe"""

    def __init__(self, backend: ProofBackend, vote_verifying_key: CircuitKey,
                 batch_size: int = config.BATCH_SIZE):
        self.backend = backend
        self.vote_verifying_key = vote_verifying_key
        self.batch_size = batch_size

    def check(self, w: AggregatorWitness) -> List[int]:
        """
        Évalue la relation

        Returns:
            List[int]: les entrées publiques ([InputsHash])

        Raises:
            PredicateUnsatisfied: check="batch_size", "vote_proof" ou "inputs_hash"
        """
        if len(w.votes) != self.batch_size:
            raise PredicateUnsatisfied(
                "batch_size", f"{len(w.votes)} votes, {self.batch_size} attendus"
            )

        for i, vote in enumerate(w.votes):
            try:
                expected = vote_inputs_hash(w.mode, w.encryption_key, w.process_id,
                                            w.census_root, vote)
            except DecodeError as e:
                raise PredicateUnsatisfied("vote_proof", f"vote {i} : {e}") from e
            try:
                self.backend.verify(vote.proof, [expected], self.vote_verifying_key)
            except ProofVerificationError as e:
                raise PredicateUnsatisfied("vote_proof", f"vote {i} : {e}") from e

        try:
            inputs_hash = compute_public_inputs_hash(w.mode, w.encryption_key, w.process_id,
                                                     w.census_root, w.votes)
        except DecodeError as e:
            raise PredicateUnsatisfied("inputs_hash", str(e)) from e
        if inputs_hash != w.inputs_hash:
            raise PredicateUnsatisfied("inputs_hash", "condensé du lot incorrect")
        return w.public_inputs()

    __call__ = check

    def verify(self, w: AggregatorWitness) -> bool:
        try:
            self.check(w)
        except PredicateUnsatisfied as e:
            logger.info("batch rejected: %s", e.check)
            return False
        return True
