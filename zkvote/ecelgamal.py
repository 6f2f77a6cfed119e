"""
EC-ElGamal additif sur la courbe de chiffrement.

Dans EC-ElGamal, le chiffrement d'un message m est :
- C1 = kG
- C2 = mG + kY (où Y est la clé publique)

Quand on additionne deux chiffrés :
(C1 + C1', C2 + C2') = ((k+k')G, (m+m')G + (k+k')Y)

C'est le chiffré de m+m' avec l'aléa k+k', d'où le dépouillement sans
déchiffrer les bulletins un par un.
"""
import json
import logging
import secrets
from typing import Iterable, List, Optional, Tuple

from zkvote import config
from zkvote.crypto_utils.algebra import bytes_to_int, int_to_bytes
from zkvote.curves import CURVE_TYPE_BN254, Point, from_te_to_rte, new_point
from zkvote.errors import DecodeError, RandomnessError
from zkvote.mimc import mimc7_hash

logger = logging.getLogger(__name__)

# Taille en octets d'une coordonnée sérialisée
SIZE_POINT_COORD = 32
SIZE_CIPHERTEXT = 4 * SIZE_POINT_COORD


def rand_k(curve_type: str = CURVE_TYPE_BN254) -> int:
    """
    Tire un scalaire aléatoire dans [1, ORDER-1] avec une source sûre

    Raises:
        RandomnessError: si la source d'aléa du système échoue
    """
    order = new_point(curve_type).order()
    try:
        return secrets.randbelow(order - 1) + 1
    except (OSError, NotImplementedError) as e:
        raise RandomnessError(f"Source d'aléa indisponible : {e}") from e


def generate_keys(curve_type: str = CURVE_TYPE_BN254) -> Tuple[Point, int]:
    """
    Génère une paire de clés pour EC-ElGamal de manière cryptographiquement sûre

    Returns:
        Tuple[Point, int]: (clé publique, clé privée), avec clé publique = sk·G
    """
    private_key = rand_k(curve_type)
    g = new_point(curve_type).generator()
    public_key = new_point(curve_type).scalar_mult(private_key, g)
    return public_key, private_key


def _point_to_dict(p: Point) -> dict:
    x, y = p.point()
    return {"x": str(x), "y": str(y)}


def _point_from_dict(curve_type: str, data: dict) -> Point:
    try:
        x, y = int(data["x"]), int(data["y"])
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Point mal formé : {e}") from e
    return new_point(curve_type).set_native(x, y)


class Ciphertext:
    """Chiffré ElGamal (C1, C2), avec propriétés homomorphes"""

    def __init__(self, c1: Point, c2: Point):
        self.c1 = c1
        self.c2 = c2

    @property
    def curve_type(self) -> str:
        return self.c1.curve_type

    @classmethod
    def new(cls, curve_type: str = CURVE_TYPE_BN254) -> "Ciphertext":
        """Chiffré neutre pour l'addition (chiffré de 0 avec k = 0)"""
        return cls(new_point(curve_type), new_point(curve_type))

    @classmethod
    def encrypt(cls, message: int, public_key: Point, k: Optional[int] = None) -> "Ciphertext":
        """
        Chiffre un message avec EC-ElGamal

        Args:
            message: entier dans [0, ORDER)
            public_key: la clé publique du processus (point sur la courbe)
            k: l'aléa, tiré si absent. Ne jamais réutiliser k avec la même clé.

        Returns:
            Ciphertext: le nouveau chiffré

        Raises:
            ValueError: si le message n'est pas représentable dans le groupe ou si k
                n'est pas dans [1, ORDER)
            RandomnessError: si l'aléa ne peut pas être tiré
        """
        curve_type = public_key.curve_type
        order = public_key.order()
        if not 0 <= message < order:
            raise ValueError("Le message doit être dans [0, ORDER)")
        if k is None:
            k = rand_k(curve_type)
        elif not 0 < k < order:
            # k = 0 donnerait C1 = O et C2 = m·G, lisible sans la clé
            raise ValueError("L'aléa k doit être dans [1, ORDER)")

        g = new_point(curve_type).generator()
        # C1 = k*G
        c1 = new_point(curve_type).scalar_mult(k, g)
        # C2 = m*G + k*H
        m_point = new_point(curve_type).scalar_mult(message, g)
        s = new_point(curve_type).scalar_mult(k, public_key)
        c2 = new_point(curve_type).safe_add(m_point, s)
        return cls(c1, c2)

    def add(self, other: "Ciphertext") -> "Ciphertext":
        """Addition homomorphe, coordonnée par coordonnée"""
        c1 = self.c1.new().safe_add(self.c1, other.c1)
        c2 = self.c2.new().safe_add(self.c2, other.c2)
        return Ciphertext(c1, c2)

    __add__ = add

    def serialize(self) -> bytes:
        """
        Sérialise en 4*32 octets : C1.x, C1.y, C2.x, C2.y en petit-boutiste,
        en coordonnées d'Edwards tordues réduites.
        """
        c1x, c1y = from_te_to_rte(*self.c1.point(), self.c1.params)
        c2x, c2y = from_te_to_rte(*self.c2.point(), self.c2.params)
        return b"".join(
            int_to_bytes(coord, SIZE_POINT_COORD, "little")
            for coord in (c1x, c1y, c2x, c2y)
        )

    @classmethod
    def deserialize(cls, data: bytes, curve_type: str = CURVE_TYPE_BN254) -> "Ciphertext":
        """
        Reconstruit un chiffré depuis sa forme sérialisée (4*32 octets)

        Raises:
            DecodeError: longueur invalide ou coordonnée hors du corps
            CurveError: point hors de la courbe
        """
        if len(data) != SIZE_CIPHERTEXT:
            raise DecodeError(
                f"Longueur invalide : {len(data)} octets reçus, {SIZE_CIPHERTEXT} attendus"
            )

        def read(i: int) -> int:
            return bytes_to_int(data[i * SIZE_POINT_COORD:(i + 1) * SIZE_POINT_COORD], "little")

        c1 = new_point(curve_type).set_point(read(0), read(1))
        c2 = new_point(curve_type).set_point(read(2), read(3))
        return cls(c1, c2)

    def marshal(self) -> bytes:
        """Encodage JSON pour le stockage (coordonnées natives)"""
        return json.dumps({
            "curveType": self.curve_type,
            "c1": _point_to_dict(self.c1),
            "c2": _point_to_dict(self.c2),
        }).encode()

    @classmethod
    def unmarshal(cls, data: bytes) -> "Ciphertext":
        try:
            obj = json.loads(data)
            curve_type = obj["curveType"]
            c1, c2 = obj["c1"], obj["c2"]
        except (ValueError, KeyError, TypeError) as e:
            raise DecodeError(f"Chiffré JSON mal formé : {e}") from e
        return cls(_point_from_dict(curve_type, c1), _point_from_dict(curve_type, c2))

    def to_circuit(self) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        """Projection vers le type de point des circuits, toujours en forme réduite"""
        return (
            from_te_to_rte(*self.c1.point(), self.c1.params),
            from_te_to_rte(*self.c2.point(), self.c2.params),
        )

    def __eq__(self, other) -> bool:
        if not isinstance(other, Ciphertext):
            return NotImplemented
        return self.c1 == other.c1 and self.c2 == other.c2

    __hash__ = None

    def __str__(self) -> str:
        return f"{{C1: {self.c1}, C2: {self.c2}}}"

    __repr__ = __str__


def brute_ec_log(point: Point, max_message: int) -> int:
    """
    Cherche m dans [0, max_message] tel que m*G = point.

    ATTENTION: recherche linéaire, réservée au dépouillement d'une somme bornée.
    """
    g = point.generator()
    current = point.new()
    for m in range(max_message + 1):
        if current == point:
            return m
        current = current.new().safe_add(current, g)
    raise DecodeError(f"Message hors de l'intervalle [0, {max_message}]")


def decrypt(ciphertext: Ciphertext, private_key: int, max_message: Optional[int] = None) -> int:
    """
    Déchiffre un chiffré (ou une somme de chiffrés) dont le message est borné

    Args:
        ciphertext: le chiffré
        private_key: la clé privée du processus
        max_message: borne de la recherche, config.MAX_DECRYPT_MESSAGE par défaut

    Returns:
        int: le message

    Raises:
        DecodeError: si le message dépasse la borne
    """
    if max_message is None:
        max_message = config.MAX_DECRYPT_MESSAGE
    # S = sk*C1, M = C2 - S
    s = ciphertext.c1.new().scalar_mult(private_key, ciphertext.c1)
    m_point = ciphertext.c2.new().safe_add(ciphertext.c2, s.neg())
    return brute_ec_log(m_point, max_message)


def derive_field_nonces(k: int, n: int, curve_type: str = CURVE_TYPE_BN254) -> List[int]:
    """Un aléa distinct par champ : k_0 = k, k_{i+1} = MiMC7(k_i) mod ORDER"""
    order = new_point(curve_type).order()
    nonces = [k]
    for _ in range(1, n):
        nxt = mimc7_hash([nonces[-1]]) % order
        if nxt == 0:
            raise RandomnessError("Aléa dérivé nul, tirer un autre k")
        nonces.append(nxt)
    return nonces


class Ballot:
    """Bulletin chiffré : un chiffré par champ, nombre de champs fixe"""

    def __init__(self, ciphertexts: List[Ciphertext]):
        self.ciphertexts = list(ciphertexts)

    @classmethod
    def new(cls, num_fields: int = config.NUM_FIELDS,
            curve_type: str = CURVE_TYPE_BN254) -> "Ballot":
        return cls([Ciphertext.new(curve_type) for _ in range(num_fields)])

    @classmethod
    def encrypt(cls, fields: List[int], public_key: Point, k: Optional[int] = None,
                num_fields: int = config.NUM_FIELDS) -> "Ballot":
        """
        Chiffre les champs d'un bulletin, complétés par des zéros

        Raises:
            ValueError: s'il y a plus de champs que num_fields
        """
        if len(fields) > num_fields:
            raise ValueError(f"Trop de champs : {len(fields)} > {num_fields}")
        if k is None:
            k = rand_k(public_key.curve_type)
        padded = list(fields) + [0] * (num_fields - len(fields))
        nonces = derive_field_nonces(k, num_fields, public_key.curve_type)
        return cls([Ciphertext.encrypt(m, public_key, ki) for m, ki in zip(padded, nonces)])

    def add(self, other: "Ballot") -> "Ballot":
        if len(self.ciphertexts) != len(other.ciphertexts):
            raise ValueError("Bulletins de tailles différentes")
        return Ballot([a.add(b) for a, b in zip(self.ciphertexts, other.ciphertexts)])

    __add__ = add

    def serialize(self) -> bytes:
        return b"".join(c.serialize() for c in self.ciphertexts)

    @classmethod
    def deserialize(cls, data: bytes, num_fields: int = config.NUM_FIELDS,
                    curve_type: str = CURVE_TYPE_BN254) -> "Ballot":
        if len(data) != num_fields * SIZE_CIPHERTEXT:
            raise DecodeError(
                f"Longueur invalide : {len(data)} octets reçus, {num_fields * SIZE_CIPHERTEXT} attendus"
            )
        return cls([
            Ciphertext.deserialize(data[i * SIZE_CIPHERTEXT:(i + 1) * SIZE_CIPHERTEXT], curve_type)
            for i in range(num_fields)
        ])

    def circuit_coords(self) -> List[int]:
        """Coordonnées réduites aplaties : C1.x, C1.y, C2.x, C2.y pour chaque champ"""
        coords = []
        for c in self.ciphertexts:
            (c1x, c1y), (c2x, c2y) = c.to_circuit()
            coords.extend([c1x, c1y, c2x, c2y])
        return coords

    def __len__(self) -> int:
        return len(self.ciphertexts)

    def __iter__(self):
        return iter(self.ciphertexts)

    def __getitem__(self, i: int) -> Ciphertext:
        return self.ciphertexts[i]

    def __eq__(self, other) -> bool:
        if not isinstance(other, Ballot):
            return NotImplemented
        return self.ciphertexts == other.ciphertexts

    __hash__ = None


def tally(ballots: Iterable[Ballot], num_fields: int = config.NUM_FIELDS,
          curve_type: str = CURVE_TYPE_BN254) -> Ballot:
    """Somme homomorphe de bulletins (repli depuis le bulletin neutre)"""
    result = Ballot.new(num_fields, curve_type)
    count = 0
    for ballot in ballots:
        result = result.add(ballot)
        count += 1
    logger.debug("tally of %d ballots", count)
    return result


def decrypt_tally(result: Ballot, private_key: int, max_message: Optional[int] = None) -> List[int]:
    """Déchiffre chaque champ d'un total"""
    return [decrypt(c, private_key, max_message) for c in result]
