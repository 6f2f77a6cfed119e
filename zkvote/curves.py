from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Protocol, Tuple

from zkvote.crypto_utils.algebra import BN254_SCALAR_FIELD, mod_inv, mod_sqrt
from zkvote.errors import CurveError, DecodeError

CURVE_TYPE_BN254 = "bn254"


@dataclass(frozen=True)
class CurveParams:
    """Paramètres d'une courbe d'Edwards tordue a·x² + y² = 1 + d·x²·y²"""
    name: str
    p: int
    a: int
    d: int
    gx: int
    gy: int
    order: int


# Baby-JubJub (EIP-2494) sur le corps scalaire de BN254, point de base B8
BN254_BJJ = CurveParams(
    name=CURVE_TYPE_BN254,
    p=BN254_SCALAR_FIELD,
    a=168700,
    d=168696,
    gx=5299619240641551281634865583518297030282874472190772894086521144482721001553,
    gy=16950150798460657717958625567821834550301663161624707787222815936182638968203,
    order=2736030358979909402780800718157159386076813972158567259200215660948447373041,
)


@lru_cache(maxsize=None)
def rte_factor(params: CurveParams = BN254_BJJ) -> int:
    """
    Facteur c tel que c² = -a (mod p).

    La forme réduite (a' = -1, d' = -d/a) s'obtient par x' = c·x, y' = y.
    Des deux racines on garde la plus petite.
    """
    c = mod_sqrt(-params.a % params.p, params.p)
    return min(c, params.p - c)


def reduced_params(params: CurveParams = BN254_BJJ) -> Tuple[int, int]:
    """Coefficients (a', d') de la forme d'Edwards tordue réduite"""
    p = params.p
    return p - 1, (-params.d * mod_inv(params.a, p)) % p


def from_te_to_rte(x: int, y: int, params: CurveParams = BN254_BJJ) -> Tuple[int, int]:
    """Coordonnées natives -> coordonnées réduites"""
    return (x * rte_factor(params)) % params.p, y % params.p


def from_rte_to_te(x: int, y: int, params: CurveParams = BN254_BJJ) -> Tuple[int, int]:
    """Coordonnées réduites -> coordonnées natives"""
    return (x * mod_inv(rte_factor(params), params.p)) % params.p, y % params.p


def validate_point(x: int, y: int, params: CurveParams = BN254_BJJ) -> bool:
    """
    Vérifie si un point est sur la courbe d'Edwards tordue
    a·x² + y² = 1 + d·x²·y² (mod p)
    """
    p = params.p
    xx, yy = x * x % p, y * y % p
    left = (params.a * xx + yy) % p
    right = (1 + params.d * xx * yy) % p
    return left == right


class Point(Protocol):
    """Capacités communes à chaque courbe supportée"""
    curve_type: str
    params: CurveParams

    def new(self) -> "Point":
        ...

    def point(self) -> Tuple[int, int]:
        ...

    def set_point(self, x: int, y: int) -> "Point":
        ...

    def safe_add(self, a: "Point", b: "Point") -> "Point":
        ...

    def __str__(self) -> str:
        ...

    # en plus : arithmétique utilisée par le chiffrement
    def generator(self) -> "Point":
        ...

    def order(self) -> int:
        ...

    def set_native(self, x: int, y: int) -> "Point":
        ...

    def scalar_mult(self, k: int, base: "Point") -> "Point":
        ...

    def neg(self) -> "Point":
        ...

    def is_on_curve(self) -> bool:
        ...


def _add(x1: int, y1: int, x2: int, y2: int, params: CurveParams) -> Tuple[int, int]:
    p = params.p
    t = params.d * x1 * x2 * y1 * y2 % p
    den_x = (1 + t) % p
    den_y = (1 - t) % p
    if den_x == 0 or den_y == 0:
        raise CurveError("Addition indéfinie pour ces points")
    x3 = (x1 * y2 + y1 * x2) * mod_inv(den_x, p) % p
    y3 = (y1 * y2 - params.a * x1 * x2) * mod_inv(den_y, p) % p
    return x3, y3


class BabyJubJub:
    """
    Point de Baby-JubJub, coordonnées natives (a = 168700, d = 168696).

    Les coordonnées d'échange (hachage, sérialisation, circuits) sont
    toujours dans la forme réduite, voir from_te_to_rte.
    """
    curve_type = CURVE_TYPE_BN254
    params = BN254_BJJ

    def __init__(self, x: int = 0, y: int = 1):
        self.x = x
        self.y = y

    @classmethod
    def generator(cls) -> "BabyJubJub":
        return cls(cls.params.gx, cls.params.gy)

    @classmethod
    def order(cls) -> int:
        return cls.params.order

    def new(self) -> "BabyJubJub":
        """Élément neutre (0, 1)"""
        return BabyJubJub()

    def point(self) -> Tuple[int, int]:
        return self.x, self.y

    def set_point(self, x: int, y: int) -> "BabyJubJub":
        """
        Reconstruit un point depuis ses coordonnées réduites.

        Raises:
            DecodeError: si une coordonnée n'est pas un élément du corps
            CurveError: si le point n'est pas sur la courbe
        """
        p = self.params.p
        if not (0 <= x < p and 0 <= y < p):
            raise DecodeError("Coordonnée hors du corps")
        tx, ty = from_rte_to_te(x, y, self.params)
        return self.set_native(tx, ty)

    def set_native(self, x: int, y: int) -> "BabyJubJub":
        """Comme set_point, mais pour des coordonnées natives"""
        p = self.params.p
        if not (0 <= x < p and 0 <= y < p):
            raise DecodeError("Coordonnée hors du corps")
        if not validate_point(x, y, self.params):
            raise CurveError(f"Le point ({x}, {y}) n'est pas sur la courbe {self.curve_type}")
        return BabyJubJub(x, y)

    def is_on_curve(self) -> bool:
        return validate_point(self.x, self.y, self.params)

    def is_identity(self) -> bool:
        return self.x == 0 and self.y == 1

    def safe_add(self, a: "BabyJubJub", b: "BabyJubJub") -> "BabyJubJub":
        """Calcule a + b, stocke le résultat dans self et le retourne"""
        for operand in (a, b):
            if operand.curve_type != self.curve_type:
                raise CurveError("Points de courbes différentes")
            if not operand.is_on_curve():
                raise CurveError("Opérande hors de la courbe")
        self.x, self.y = _add(a.x, a.y, b.x, b.y, self.params)
        return self

    def scalar_mult(self, k: int, base: "BabyJubJub") -> "BabyJubJub":
        """Calcule k·base (double-and-add), stocke le résultat dans self"""
        if not base.is_on_curve():
            raise CurveError("Opérande hors de la courbe")
        bx, by = base.x, base.y
        if k < 0:
            k = -k
            bx = (-bx) % self.params.p
        rx, ry = 0, 1
        while k:
            if k & 1:
                rx, ry = _add(rx, ry, bx, by, self.params)
            bx, by = _add(bx, by, bx, by, self.params)
            k >>= 1
        self.x, self.y = rx, ry
        return self

    def neg(self) -> "BabyJubJub":
        return BabyJubJub((-self.x) % self.params.p, self.y)

    def copy(self) -> "BabyJubJub":
        return BabyJubJub(self.x, self.y)

    def __add__(self, other: "BabyJubJub") -> "BabyJubJub":
        return BabyJubJub().safe_add(self, other)

    def __sub__(self, other: "BabyJubJub") -> "BabyJubJub":
        return BabyJubJub().safe_add(self, other.neg())

    def __neg__(self) -> "BabyJubJub":
        return self.neg()

    def __rmul__(self, k: int) -> "BabyJubJub":
        return BabyJubJub().scalar_mult(k, self)

    def __eq__(self, other) -> bool:
        if not isinstance(other, BabyJubJub):
            return NotImplemented
        p = self.params.p
        return self.x % p == other.x % p and self.y % p == other.y % p

    __hash__ = None

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"

    def __repr__(self) -> str:
        return f"BabyJubJub{self}"


# Une implémentation par type de courbe, choisie à la construction
CURVES: Dict[str, type] = {
    CURVE_TYPE_BN254: BabyJubJub,
}


def new_point(curve_type: str = CURVE_TYPE_BN254) -> Point:
    """Élément neutre de la courbe désignée par son type"""
    try:
        return CURVES[curve_type]()
    except KeyError:
        raise ValueError(f"Type de courbe inconnu : {curve_type}") from None


def generator(curve_type: str = CURVE_TYPE_BN254) -> Point:
    return new_point(curve_type).generator()
