"""
Côté client : paramètres du processus, validation des champs du bulletin,
dérivation commitment/nullifier et condensé des entrées publiques.

La relation `ballot_relation` est celle que prouve le client : les champs
respectent le mode du bulletin, ils ont été chiffrés sous la clé déclarée
avec l'aléa k, et le condensé des entrées correspond.
"""
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from zkvote import config
from zkvote.crypto_utils.algebra import BN254_SCALAR_FIELD, big_to_ff, bytes_to_int
from zkvote.curves import Point, from_te_to_rte
from zkvote.ecelgamal import Ballot
from zkvote.errors import PredicateUnsatisfied
from zkvote.mimc import mimc7_hash
from zkvote.process import ProcessID


@dataclass(frozen=True)
class BallotMode:
    """Règles d'un bulletin : nombre de champs, bornes, modèle de coût"""
    max_count: int
    force_uniqueness: bool
    max_value: int
    min_value: int
    max_total_cost: int
    min_total_cost: int
    cost_exp: int
    cost_from_weight: bool

    def as_inputs(self) -> List[int]:
        """Les 8 paramètres dans l'ordre où ils sont hachés"""
        return [
            self.max_count,
            int(self.force_uniqueness),
            self.max_value,
            self.min_value,
            self.max_total_cost,
            self.min_total_cost,
            self.cost_exp,
            int(self.cost_from_weight),
        ]

    def validate_fields(self, fields: Sequence[int], weight: int = 0) -> None:
        """
        Vérifie les champs en clair d'un bulletin

        Raises:
            PredicateUnsatisfied: avec check="fields" si une règle est violée
        """
        if len(fields) > config.NUM_FIELDS:
            raise PredicateUnsatisfied("fields", f"{len(fields)} champs, au plus {config.NUM_FIELDS}")
        if self.max_count > config.NUM_FIELDS:
            raise PredicateUnsatisfied("fields", "max_count dépasse le nombre de champs")
        padded = list(fields) + [0] * (config.NUM_FIELDS - len(fields))
        counted = padded[:self.max_count]
        if any(f != 0 for f in padded[self.max_count:]):
            raise PredicateUnsatisfied("fields", "champ non nul au-delà de max_count")
        for i, f in enumerate(counted):
            if not self.min_value <= f <= self.max_value:
                raise PredicateUnsatisfied("fields", f"champ {i} hors de [{self.min_value}, {self.max_value}]")
        if self.force_uniqueness and len(set(counted)) != len(counted):
            raise PredicateUnsatisfied("fields", "valeurs répétées")
        total = sum(f ** self.cost_exp for f in counted)
        max_total = weight if self.cost_from_weight else self.max_total_cost
        if not self.min_total_cost <= total <= max_total:
            raise PredicateUnsatisfied("fields", f"coût total {total} hors de [{self.min_total_cost}, {max_total}]")


def secret_to_ff(secret: bytes) -> int:
    return big_to_ff(BN254_SCALAR_FIELD, bytes_to_int(secret))


def address_to_ff(address: bytes) -> int:
    return big_to_ff(BN254_SCALAR_FIELD, bytes_to_int(address))


def derive_commitment_nullifier(address: bytes, process_id: ProcessID,
                                secret: bytes) -> Tuple[int, int]:
    """
    commitment = H(adresse, processus, secret), nullifier = H(commitment, secret)

    Fonction pure : mêmes entrées, même couple.

    Returns:
        Tuple[int, int]: (commitment, nullifier)
    """
    s = secret_to_ff(secret)
    commitment = mimc7_hash([address_to_ff(address), process_id.to_ff(), s])
    nullifier = mimc7_hash([commitment, s])
    return commitment, nullifier


def circom_inputs(mode: BallotMode, address: bytes, weight: int, process_id: ProcessID,
                  public_key: Point, nullifier: int, commitment: int,
                  ballot: Ballot) -> List[int]:
    """Entrées publiques du client, dans l'ordre du hachage"""
    pk_x, pk_y = from_te_to_rte(*public_key.point(), public_key.params)
    inputs = mode.as_inputs() + [
        address_to_ff(address),
        weight,
        process_id.to_ff(),
        pk_x,
        pk_y,
        nullifier,
        commitment,
    ]
    inputs.extend(ballot.circuit_coords())
    return inputs


def circom_inputs_hash(*args, **kwargs) -> int:
    """MiMC-7 des entrées publiques du client (voir circom_inputs)"""
    return mimc7_hash(circom_inputs(*args, **kwargs))


@dataclass
class BallotProofWitness:
    """Témoin de la preuve client"""
    mode: BallotMode
    fields: List[int]
    address: bytes
    weight: int
    process_id: ProcessID
    public_key: Point
    k: int
    secret: bytes
    nullifier: int
    commitment: int
    ballot: Ballot
    inputs_hash: int

    def public_inputs(self) -> List[int]:
        return [self.inputs_hash]


def ballot_relation(w: BallotProofWitness) -> List[int]:
    """
    Évalue la relation du client

    Returns:
        List[int]: les entrées publiques ([inputs_hash])

    Raises:
        PredicateUnsatisfied: la sous-vérification en échec est nommée
    """
    w.mode.validate_fields(w.fields, w.weight)
    if Ballot.encrypt(w.fields, w.public_key, w.k) != w.ballot:
        raise PredicateUnsatisfied("ciphertext", "bulletin chiffré incohérent avec les champs")
    commitment, nullifier = derive_commitment_nullifier(w.address, w.process_id, w.secret)
    if commitment != w.commitment:
        raise PredicateUnsatisfied("commitment")
    if nullifier != w.nullifier:
        raise PredicateUnsatisfied("nullifier")
    expected = circom_inputs_hash(w.mode, w.address, w.weight, w.process_id, w.public_key,
                                  w.nullifier, w.commitment, w.ballot)
    if expected != w.inputs_hash:
        raise PredicateUnsatisfied("inputs_hash", "condensé client incorrect")
    return w.public_inputs()
