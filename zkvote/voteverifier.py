"""
Prédicat de vote : relation vérifiée pour chaque bulletin avant agrégation.

Le témoin est accepté si :
1. la preuve client vérifie et son entrée publique est le condensé circom
2. InputsHash = MiMC_BLS12-377(condensé circom, racine du recensement)
3. la signature ECDSA couvre InputsHash
4. la clé publique du signataire correspond à l'adresse déclarée
5. (adresse, poids) appartient au recensement
6. nullifier et commitment sont bien dérivés de (adresse, processus, secret)
"""
import logging
from dataclasses import dataclass
from typing import List

from zkvote import config
from zkvote.ballot import BallotMode, circom_inputs_hash, derive_commitment_nullifier
from zkvote.census import verify_census_proof
from zkvote.crypto_utils.algebra import BLS12377_SCALAR_FIELD, bytes_to_int
from zkvote.curves import Point
from zkvote.ecelgamal import Ballot
from zkvote.errors import DecodeError, PredicateUnsatisfied, ProofVerificationError
from zkvote.mimc import MIMC_BLS12_377, mimc_hash
from zkvote.process import ProcessID
from zkvote.signature import PublicKey, pubkey_to_address, verify_signature_bytes
from zkvote.snark_backend import CircuitKey, Proof, ProofBackend

logger = logging.getLogger(__name__)


@dataclass
class VoteWitness:
    # entrées du client
    mode: BallotMode
    address: bytes
    weight: int
    process_id: ProcessID
    encryption_key: Point
    nullifier: int
    commitment: int
    ballot: Ballot
    secret: bytes
    # recensement
    census_root: int
    census_siblings: List[int]
    # signature du votant (65 octets r‖s‖v) et sa clé publique secp256k1
    public_key: PublicKey
    signature: bytes
    # preuve client
    client_proof: Proof
    # entrée publique
    inputs_hash: int

    def circom_hash(self) -> int:
        return circom_inputs_hash(self.mode, self.address, self.weight, self.process_id,
                                  self.encryption_key, self.nullifier, self.commitment,
                                  self.ballot)

    def public_inputs(self) -> List[int]:
        return [self.inputs_hash]


def compute_inputs_hash(circom_hash: int, census_root: int) -> int:
    """Condensé externe, celui que signe le votant"""
    return mimc_hash([circom_hash % BLS12377_SCALAR_FIELD, census_root], MIMC_BLS12_377)


class VoteVerifier:
    """
    Relation du prédicat de vote, paramétrée par le backend et la clé de
    vérification fixe de la preuve client.
    """

    def __init__(self, backend: ProofBackend, client_verifying_key: CircuitKey):
        self.backend = backend
        self.client_verifying_key = client_verifying_key

    def check(self, w: VoteWitness) -> List[int]:
        """
        Évalue la relation

        Returns:
            List[int]: les entrées publiques ([InputsHash])

        Raises:
            PredicateUnsatisfied: la sous-vérification en échec est nommée
        """
        if len(w.ballot) != config.NUM_FIELDS or not all(
                c.c1.is_on_curve() and c.c2.is_on_curve() for c in w.ballot):
            raise PredicateUnsatisfied("ciphertext", "bulletin chiffré mal formé")

        try:
            circom_hash = w.circom_hash()
            inputs_hash = compute_inputs_hash(circom_hash, w.census_root)
        except DecodeError as e:
            raise PredicateUnsatisfied("inputs_hash", str(e)) from e

        try:
            self.backend.verify(w.client_proof, [circom_hash], self.client_verifying_key)
        except ProofVerificationError as e:
            raise PredicateUnsatisfied("client_proof", str(e)) from e

        if inputs_hash != w.inputs_hash:
            raise PredicateUnsatisfied("inputs_hash", "InputsHash ne correspond pas aux entrées")

        try:
            valid = verify_signature_bytes(inputs_hash, w.signature, w.public_key)
        except ValueError as e:
            raise PredicateUnsatisfied("signature", str(e)) from e
        if not valid:
            raise PredicateUnsatisfied("signature", "signature ECDSA invalide")

        if pubkey_to_address(w.public_key) != w.address:
            raise PredicateUnsatisfied("address", "la clé publique ne correspond pas à l'adresse")

        if not verify_census_proof(w.census_root, bytes_to_int(w.address), w.weight,
                                   w.census_siblings):
            raise PredicateUnsatisfied("census", "preuve d'appartenance invalide")

        commitment, nullifier = derive_commitment_nullifier(w.address, w.process_id, w.secret)
        if commitment != w.commitment:
            raise PredicateUnsatisfied("commitment")
        if nullifier != w.nullifier:
            raise PredicateUnsatisfied("nullifier")

        return w.public_inputs()

    __call__ = check

    def verify(self, w: VoteWitness) -> bool:
        """Vrai si le prédicat est satisfait ; la cause d'un refus est journalisée"""
        try:
            self.check(w)
        except PredicateUnsatisfied as e:
            logger.info("vote rejected: %s", e.check)
            return False
        return True
