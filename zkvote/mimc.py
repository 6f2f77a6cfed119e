"""
Fonctions de hachage MiMC utilisées pour lier les entrées publiques des preuves.

- mimc7_hash : MiMC-7 (variante iden3) sur le corps scalaire de BN254, celui de
  la courbe de chiffrement. Sert au hachage côté client (circom) et à la
  dérivation nullifier/commitment.
- MiMC : construction Miyaguchi-Preneel (variante gnark) sur un corps donné.
  MIMC_BLS12_377 sert au hachage du prédicat de vote et au recensement,
  MIMC_BW6_761 au hachage du lot dans le prédicat d'agrégation.
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Iterable, List, Sequence, Tuple

from zkvote.crypto_utils.algebra import (
    BLS12377_SCALAR_FIELD, BN254_SCALAR_FIELD, BW6761_SCALAR_FIELD,
    bytes_to_int, int_to_bytes, keccak256,
)
from zkvote.errors import DecodeError

MIMC7_SEED = b"mimc"
MIMC7_ROUNDS = 91

# Largeur d'un limb de la représentation émulée d'un scalaire BLS12-377
LIMB_BITS = 64
NB_LIMBS = 4
# Les limbs sont écrits sur la taille d'un scalaire BLS12-377
BLS12377_BYTES = 32


@lru_cache(maxsize=None)
def mimc7_constants(seed: bytes = MIMC7_SEED, rounds: int = MIMC7_ROUNDS,
                    field: int = BN254_SCALAR_FIELD) -> Tuple[int, ...]:
    """c[0] = 0, puis c[i] = keccak256(c_prec) mod q, en chaînant les condensés non réduits"""
    constants = [0]
    c = bytes_to_int(keccak256(seed))
    for _ in range(1, rounds):
        c = bytes_to_int(keccak256(int_to_bytes(c)))
        constants.append(c % field)
    return tuple(constants)


def _mimc7_round_function(x: int, k: int, field: int = BN254_SCALAR_FIELD) -> int:
    constants = mimc7_constants(field=field)
    r = 0
    for i in range(MIMC7_ROUNDS):
        if i == 0:
            t = (x + k) % field
        else:
            t = (r + k + constants[i]) % field
        r = pow(t, 7, field)
    return (r + k) % field


def mimc7_hash(inputs: Sequence[int], key: int = 0, field: int = BN254_SCALAR_FIELD) -> int:
    """
    Hache une liste d'éléments du corps avec MiMC-7

    Args:
        inputs: éléments du corps (entiers dans [0, q))
        key: clé initiale

    Returns:
        int: le condensé, élément du corps

    Raises:
        DecodeError: si une entrée n'est pas dans le corps
    """
    for i, x in enumerate(inputs):
        if not 0 <= x < field:
            raise DecodeError(f"Entrée {i} hors du corps pour MiMC-7")
    r = key % field
    for x in inputs:
        r = (r + x + _mimc7_round_function(x, r, field)) % field
    return r


@dataclass(frozen=True)
class MiMCParams:
    name: str
    field: int
    rounds: int
    exponent: int
    block_size: int
    seed: bytes = b"seed"


MIMC_BLS12_377 = MiMCParams("bls12-377", BLS12377_SCALAR_FIELD, 62, 17, 32)
MIMC_BW6_761 = MiMCParams("bw6-761", BW6761_SCALAR_FIELD, 327, 5, 48)


@lru_cache(maxsize=None)
def mimc_constants(params: MiMCParams) -> Tuple[int, ...]:
    # la graine est hachée une première fois avant utilisation
    rnd = keccak256(params.seed)
    constants = []
    for _ in range(params.rounds):
        rnd = keccak256(rnd)
        constants.append(bytes_to_int(rnd) % params.field)
    return tuple(constants)


class MiMC:
    """
    Hachage MiMC Miyaguchi-Preneel

    Chaque write() ajoute un élément du corps ; les écritures plus courtes
    qu'un bloc sont complétées à gauche par des zéros.
    """

    def __init__(self, params: MiMCParams = MIMC_BLS12_377):
        self.params = params
        self.data: List[int] = []

    def write_int(self, value: int) -> "MiMC":
        if not 0 <= value < self.params.field:
            raise DecodeError(f"Valeur hors du corps {self.params.name}")
        self.data.append(value)
        return self

    def write(self, data: bytes) -> "MiMC":
        size = self.params.block_size
        if 0 < len(data) < size:
            data = data.rjust(size, b"\x00")
        if len(data) % size != 0:
            raise DecodeError(f"Longueur invalide : multiple de {size} octets attendu")
        for start in range(0, len(data), size):
            self.write_int(bytes_to_int(data[start:start + size]))
        return self

    def _encrypt(self, m: int, h: int) -> int:
        field, e = self.params.field, self.params.exponent
        for c in mimc_constants(self.params):
            m = pow((m + h + c) % field, e, field)
        return (m + h) % field

    def sum_int(self) -> int:
        h = 0
        field = self.params.field
        for x in self.data:
            r = self._encrypt(x, h)
            h = (r + h + x) % field
        return h

    def sum(self) -> bytes:
        return int_to_bytes(self.sum_int(), self.params.block_size)

    def reset(self) -> None:
        self.data = []


def mimc_hash(inputs: Iterable[int], params: MiMCParams = MIMC_BLS12_377) -> int:
    h = MiMC(params)
    for x in inputs:
        h.write_int(x)
    return h.sum_int()


def to_limbs(value: int, nb_limbs: int = NB_LIMBS, limb_bits: int = LIMB_BITS) -> List[int]:
    """
    Décompose un entier en limbs de largeur fixe, poids faible en premier.

    C'est la représentation émulée d'un scalaire BLS12-377 dans un circuit
    BW6-761 : la valeur n'est pas réduite, elle doit tenir dans
    nb_limbs * limb_bits bits.
    """
    if value < 0 or value.bit_length() > nb_limbs * limb_bits:
        raise DecodeError(f"Valeur trop large pour {nb_limbs} limbs de {limb_bits} bits")
    mask = (1 << limb_bits) - 1
    return [(value >> (i * limb_bits)) & mask for i in range(nb_limbs)]


def hash_limbs(inputs: Iterable[int], params: MiMCParams = MIMC_BW6_761,
               nb_limbs: int = NB_LIMBS, limb_bits: int = LIMB_BITS) -> int:
    """Hache chaque limb de chaque entrée comme un élément indépendant"""
    h = MiMC(params)
    for value in inputs:
        for limb in to_limbs(value, nb_limbs, limb_bits):
            h.write(int_to_bytes(limb, BLS12377_BYTES))
    return h.sum_int()
