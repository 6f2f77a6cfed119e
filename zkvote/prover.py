"""
Génération des preuves : en parallèle pour les votes, par lots pour
l'agrégation.

Les preuves de vote sont indépendantes ; seules les clés et les paramètres
du processus (en lecture seule) sont partagés entre les threads.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Generic, List, Optional, Sequence, TypeVar

from zkvote import config
from zkvote.aggregator import (
    AggregatedVote, Aggregator, AggregatorWitness, compute_public_inputs_hash,
)
from zkvote.ballot import ballot_relation
from zkvote.snark_backend import (
    CIRCUIT_AGGREGATOR, CIRCUIT_BALLOT, CIRCUIT_VOTE, CircuitKey, NativeBackend, Proof,
    ProofBackend, get_backend_from_env,
)
from zkvote.voteverifier import VoteVerifier, VoteWitness

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ProverSetup:
    """Backend et clés des trois circuits"""
    backend: NativeBackend
    ballot_pk: CircuitKey
    ballot_vk: CircuitKey
    vote_pk: CircuitKey
    vote_vk: CircuitKey
    aggregator_pk: CircuitKey
    aggregator_vk: CircuitKey
    batch_size: int


def native_backend(batch_size: int = config.BATCH_SIZE) -> ProverSetup:
    """
    Enregistre les trois relations sur un NativeBackend et fait leur mise en place.

    Le prédicat de vote vérifie les preuves client sous ballot_vk, celui
    d'agrégation les preuves de vote sous vote_vk.
    """
    backend = NativeBackend({CIRCUIT_BALLOT: ballot_relation})
    ballot_pk, ballot_vk = backend.setup(CIRCUIT_BALLOT)
    backend.register(CIRCUIT_VOTE, VoteVerifier(backend, ballot_vk))
    vote_pk, vote_vk = backend.setup(CIRCUIT_VOTE)
    backend.register(CIRCUIT_AGGREGATOR, Aggregator(backend, vote_vk, batch_size))
    aggregator_pk, aggregator_vk = backend.setup(CIRCUIT_AGGREGATOR)
    return ProverSetup(backend, ballot_pk, ballot_vk, vote_pk, vote_vk,
                       aggregator_pk, aggregator_vk, batch_size)


def client_proof_verifier(verifying_key_path: str,
                          backend: Optional[ProofBackend] = None) -> VoteVerifier:
    """
    Prédicat de vote pour des preuves client produites hors ligne (snarkjs)

    Args:
        verifying_key_path: la vkey JSON du circuit du bulletin
        backend: par défaut celui choisi par l'environnement (get_backend_from_env)
    """
    if backend is None:
        backend = get_backend_from_env()
    with open(verifying_key_path, "rb") as f:
        material = f.read()
    logger.info("client proofs verified with %s", type(backend).__name__)
    return VoteVerifier(backend, CircuitKey(CIRCUIT_BALLOT, material))

def prove_votes(witnesses: Sequence[VoteWitness], backend: ProofBackend,
                proving_key: CircuitKey, max_workers: Optional[int] = None) -> List[Proof]:
    """
    Prouve des votes indépendants sur un pool de threads

    Returns:
        List[Proof]: une preuve par témoin, dans l'ordre des témoins

    Raises:
        PredicateUnsatisfied: le premier témoin invalide (dans l'ordre) fait échouer l'appel
    """
    if max_workers is None:
        max_workers = config.PROVER_WORKERS
    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(backend.prove, CIRCUIT_VOTE, w, proving_key) for w in witnesses]
        proofs = [f.result() for f in futures]
    logger.debug("proved %d votes", len(proofs))
    return proofs


class BatchQueue(Generic[T]):
    """
    File « collecter puis vider » : add() retourne un lot complet exactement
    quand batch_size éléments ont été collectés, None sinon.
    """

    def __init__(self, batch_size: int = config.BATCH_SIZE):
        if batch_size <= 0:
            raise ValueError("batch_size doit être positif")
        self.batch_size = batch_size
        self._items: List[T] = []
        self._lock = threading.Lock()

    def add(self, item: T) -> Optional[List[T]]:
        with self._lock:
            self._items.append(item)
            if len(self._items) < self.batch_size:
                return None
            batch, self._items = self._items[:self.batch_size], self._items[self.batch_size:]
        logger.info("batch of %d ready", len(batch))
        return batch

    def drain(self) -> List[T]:
        """Retire les éléments en attente (lot partiel, politique de l'appelant)"""
        with self._lock:
            items, self._items = self._items, []
        return items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


def build_aggregator_witness(votes: Sequence[VoteWitness], proofs: Sequence[Proof]) -> AggregatorWitness:
    """
    Assemble le témoin d'agrégation d'un lot de votes prouvés

    Raises:
        ValueError: si les votes ne partagent pas les paramètres du processus
    """
    if len(votes) != len(proofs):
        raise ValueError("Autant de preuves que de votes attendues")
    if not votes:
        raise ValueError("Lot vide")
    first = votes[0]
    for v in votes[1:]:
        if (v.mode != first.mode or v.process_id != first.process_id
                or v.encryption_key != first.encryption_key
                or v.census_root != first.census_root):
            raise ValueError("Votes de processus différents dans un même lot")

    aggregated = [
        AggregatedVote(
            nullifier=v.nullifier,
            commitment=v.commitment,
            address=v.address,
            weight=v.weight,
            ballot=v.ballot,
            proof=p,
        )
        for v, p in zip(votes, proofs)
    ]
    inputs_hash = compute_public_inputs_hash(first.mode, first.encryption_key, first.process_id,
                                             first.census_root, aggregated)
    return AggregatorWitness(
        mode=first.mode,
        encryption_key=first.encryption_key,
        process_id=first.process_id,
        census_root=first.census_root,
        votes=aggregated,
        inputs_hash=inputs_hash,
    )
