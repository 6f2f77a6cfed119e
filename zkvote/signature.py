"""
ECDSA sur secp256k1, tel qu'utilisé par les portefeuilles Ethereum.

- sign_digest / verify_digest : signature d'un condensé déjà calculé
  (l'InputsHash du prédicat de vote), nonce déterministe RFC 6979, s bas.
- recover_public_key : retrouve la clé publique depuis (r, s, v).
- sign_message / address_from_signature : forme "Ethereum Signed Message"
  sur 65 octets r‖s‖v, utilisée par l'API.
"""
from secrets import randbelow
from typing import Optional, Tuple

from Crypto.Hash import HMAC, SHA256
from ecdsa import SECP256k1, ellipticcurve

from zkvote.crypto_utils.algebra import bytes_to_int, int_to_bytes, keccak256, mod_inv
from zkvote.errors import SignatureError

# Paramètres de la courbe
CURVE = SECP256k1.curve
ORDER = SECP256k1.order
P = CURVE.p()
G = SECP256k1.generator.to_affine()

SIGNATURE_LENGTH = 65
ETH_MESSAGE_PREFIX = b"\x19Ethereum Signed Message:\n"

PublicKey = Tuple[int, int]


def validate_point(x: int, y: int) -> bool:
    """
    Vérifie si un point est sur secp256k1
    y² = x³ + 7 (mod p)
    """
    return 0 <= x < P and 0 <= y < P and CURVE.contains_point(x, y)


def H(message: bytes) -> int:
    """Keccak-256 d'un message, en entier"""
    return bytes_to_int(keccak256(message))


def bits2int(bits: bytes, qlen: int) -> int:
    ret = int.from_bytes(bits, byteorder="big")
    # Tronque si nécessaire
    if len(bits) * 8 > qlen:
        ret = ret >> (len(bits) * 8 - qlen)
    return ret


def generate_nonce(private_key: int, digest: int, order: int = ORDER) -> int:
    """
    Génère un nonce k de manière déterministe selon RFC 6979 (HMAC-SHA256)

    Args:
        private_key: la clé privée
        digest: le condensé à signer
        order: l'ordre du groupe

    Returns:
        int: le nonce k dans [1, order-1]
    """
    qlen = order.bit_length()
    rlen = (qlen + 7) // 8
    x = int_to_bytes(private_key, rlen)
    h1 = int_to_bytes(bits2int(int_to_bytes(digest % (1 << 256), 32), qlen) % order, rlen)

    v = b"\x01" * 32
    k = b"\x00" * 32
    k = HMAC.new(k, v + b"\x00" + x + h1, SHA256).digest()
    v = HMAC.new(k, v, SHA256).digest()
    k = HMAC.new(k, v + b"\x01" + x + h1, SHA256).digest()
    v = HMAC.new(k, v, SHA256).digest()

    while True:
        t = b""
        while len(t) * 8 < qlen:
            v = HMAC.new(k, v, SHA256).digest()
            t += v
        nonce = bits2int(t, qlen)
        if 0 < nonce < order:
            return nonce
        # Si non valide, continue avec K = HMAC_K(V || 0x00)
        k = HMAC.new(k, v + b"\x00", SHA256).digest()
        v = HMAC.new(k, v, SHA256).digest()


def public_key_of(private_key: int) -> PublicKey:
    if not 0 < private_key < ORDER:
        raise ValueError("Clé privée invalide")
    q = G * private_key
    return int(q.x()), int(q.y())


def generate_keys() -> Tuple[int, PublicKey]:
    """
    Génère une paire de clés secp256k1

    Returns:
        Tuple[int, Tuple[int, int]]: (clé privée, clé publique)
    """
    private_key = randbelow(ORDER - 1) + 1
    return private_key, public_key_of(private_key)


def pubkey_to_address(public_key: PublicKey) -> bytes:
    """Adresse Ethereum : les 20 derniers octets de keccak256(x‖y)"""
    x, y = public_key
    return keccak256(int_to_bytes(x, 32) + int_to_bytes(y, 32))[12:]


def address_to_int(address: bytes) -> int:
    return bytes_to_int(address)


def sign_digest(digest: int, private_key: int) -> Tuple[int, int, int]:
    """
    Signe un condensé avec ECDSA

    Returns:
        Tuple[int, int, int]: (r, s, v) avec s <= ORDER/2 et v l'identifiant
        de récupération (0 ou 1)

    Raises:
        ValueError: si la clé privée est invalide
    """
    if not 0 < private_key < ORDER:
        raise ValueError("Clé privée invalide")
    e = digest % ORDER
    k = generate_nonce(private_key, digest)
    while True:
        R = G * k
        r = int(R.x()) % ORDER
        if r != 0:
            s = (mod_inv(k, ORDER) * (e + private_key * r)) % ORDER
            if s != 0:
                v = int(R.y()) & 1
                if int(R.x()) >= ORDER:
                    v |= 2
                if s > ORDER // 2:
                    s = ORDER - s
                    v ^= 1
                return r, s, v
        # cas dégénéré, nonce suivant
        k = (k + 1) % ORDER or 1


def verify_digest(digest: int, signature: Tuple[int, int], public_key: PublicKey) -> bool:
    """
    Vérifie une signature ECDSA sur un condensé

    Raises:
        ValueError: si la clé publique ou la signature est hors domaine
    """
    if not validate_point(*public_key):
        raise ValueError("Clé publique invalide")
    r, s = signature
    if not (0 < r < ORDER and 0 < s < ORDER):
        raise ValueError("Signature invalide")

    w = mod_inv(s, ORDER)
    u1 = (digest % ORDER) * w % ORDER
    u2 = r * w % ORDER
    Q = ellipticcurve.Point(CURVE, public_key[0], public_key[1], ORDER)
    R = G * u1 + Q * u2
    if R == ellipticcurve.INFINITY:
        return False
    return int(R.x()) % ORDER == r


def recover_public_key(digest: int, r: int, s: int, v: int) -> PublicKey:
    """
    Retrouve la clé publique Q = r⁻¹(sR - eG)

    Raises:
        SignatureError: si la signature ne permet pas la récupération
    """
    if not (0 < r < ORDER and 0 < s < ORDER) or v not in (0, 1, 2, 3):
        raise SignatureError("Signature hors domaine")
    x = r + ORDER if v & 2 else r
    if x >= P:
        raise SignatureError("Abscisse de R hors du corps")
    alpha = (pow(x, 3, P) + CURVE.a() * x + CURVE.b()) % P
    y = pow(alpha, (P + 1) // 4, P)
    if y * y % P != alpha:
        raise SignatureError("R n'est pas sur la courbe")
    if y & 1 != v & 1:
        y = P - y
    R = ellipticcurve.Point(CURVE, x, y, ORDER)
    e = digest % ORDER
    Q = (R * s + G * ((-e) % ORDER)) * mod_inv(r, ORDER)
    if Q == ellipticcurve.INFINITY:
        raise SignatureError("Clé publique récupérée à l'infini")
    return int(Q.x()), int(Q.y())


def signature_to_bytes(r: int, s: int, v: int) -> bytes:
    """r‖s‖v sur 65 octets, v au format Ethereum (27 ou 28)"""
    return int_to_bytes(r, 32) + int_to_bytes(s, 32) + bytes([27 + (v & 1)])


def signature_from_bytes(signature: bytes) -> Tuple[int, int, int]:
    if len(signature) != SIGNATURE_LENGTH:
        raise SignatureError(
            f"Longueur de signature invalide : {len(signature)} octets, {SIGNATURE_LENGTH} attendus"
        )
    r = bytes_to_int(signature[:32])
    s = bytes_to_int(signature[32:64])
    v = signature[64]
    if v >= 27:
        v -= 27
    if v not in (0, 1):
        raise SignatureError("Identifiant de récupération invalide")
    return r, s, v


def verify_signature_bytes(digest: int, signature: bytes, public_key: PublicKey) -> bool:
    """
    Vérifie une signature r‖s‖v de 65 octets, identifiant de récupération compris.

    v doit être au format Ethereum (27 ou 28) et la clé récupérée avec v doit
    être public_key : aucun octet de la signature ne peut changer sans la
    rendre invalide.

    Raises:
        SignatureError: si la signature est mal formée ou irrécupérable
        ValueError: si la clé publique est hors de la courbe
    """
    if len(signature) == SIGNATURE_LENGTH and signature[64] not in (27, 28):
        raise SignatureError("Identifiant de récupération non canonique")
    r, s, v = signature_from_bytes(signature)
    if not verify_digest(digest, (r, s), public_key):
        return False
    return recover_public_key(digest, r, s, v) == tuple(public_key)


def hash_message(message: bytes) -> int:
    """Condensé d'un message signé à la manière d'Ethereum (personal_sign)"""
    prefix = ETH_MESSAGE_PREFIX + str(len(message)).encode()
    return H(prefix + message)


def sign_message(message: bytes, private_key: int) -> bytes:
    r, s, v = sign_digest(hash_message(message), private_key)
    return signature_to_bytes(r, s, v)


def address_from_signature(message: bytes, signature: bytes,
                           expected: Optional[bytes] = None) -> bytes:
    """
    Retrouve l'adresse du signataire d'un message Ethereum

    Raises:
        SignatureError: si la signature est mal formée, irrécupérable, ou ne
            correspond pas à l'adresse attendue
    """
    r, s, v = signature_from_bytes(signature)
    digest = hash_message(message)
    public_key = recover_public_key(digest, r, s, v)
    if not verify_digest(digest, (r, s), public_key):
        raise SignatureError("Signature invalide")
    address = pubkey_to_address(public_key)
    if expected is not None and address != expected:
        raise SignatureError("Adresse du signataire inattendue")
    return address
