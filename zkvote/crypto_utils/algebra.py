from Crypto.Hash import keccak

# Corps scalaire de BN254 (corps de base de Baby-JubJub)
BN254_SCALAR_FIELD = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Corps scalaire de BLS12-377 (corps de base de la courbe interne du recensement)
BLS12377_SCALAR_FIELD = 8444461749428370424248824938781546531375899335154063827935233455917409239041

# Corps scalaire de BW6-761 (= corps de base de BLS12-377)
BW6761_SCALAR_FIELD = 258664426012969094010652733694893533536393512754914660539884262666720468348340822774968888139573360124440321458177


def mod_inv(a: int, p: int) -> int:
    """Inverse modulaire, lève ValueError si a n'est pas inversible"""
    if a % p == 0:
        raise ValueError("0 n'est pas inversible")
    return pow(a, -1, p)


def mod_sqrt(n: int, p: int) -> int:
    """
    Racine carrée modulaire (Tonelli-Shanks) pour p premier impair

    Raises:
        ValueError: si n n'est pas un résidu quadratique modulo p
    """
    n %= p
    if n == 0:
        return 0
    if pow(n, (p - 1) // 2, p) != 1:
        raise ValueError("Pas de racine carrée modulo p")
    if p % 4 == 3:
        return pow(n, (p + 1) // 4, p)

    # p - 1 = q * 2^s avec q impair
    q, s = p - 1, 0
    while q % 2 == 0:
        q //= 2
        s += 1

    z = 2
    while pow(z, (p - 1) // 2, p) != p - 1:
        z += 1

    m, c, t, r = s, pow(z, q, p), pow(n, q, p), pow(n, (q + 1) // 2, p)
    while t != 1:
        i, t2 = 0, t
        while t2 != 1:
            t2 = t2 * t2 % p
            i += 1
        b = pow(c, 1 << (m - i - 1), p)
        m, c, t, r = i, b * b % p, t * b * b % p, r * b % p
    return r


def int_to_bytes(value: int, length: int = None, byteorder: str = "big") -> bytes:
    """Convertit un entier en octets (longueur minimale par défaut)"""
    if length is None:
        length = max(1, (value.bit_length() + 7) // 8)
    return value.to_bytes(length, byteorder)


def bytes_to_int(data: bytes, byteorder: str = "big") -> int:
    return int.from_bytes(data, byteorder)


def big_to_ff(field: int, value: int) -> int:
    """Réduit un entier dans le corps donné"""
    return value % field


def keccak256(data: bytes) -> bytes:
    """Keccak-256 (variante Ethereum, pas SHA3-256)"""
    h = keccak.new(digest_bits=256)
    h.update(data)
    return h.digest()
