"""Identifiant d'un processus de vote"""
from dataclasses import dataclass

from zkvote.crypto_utils.algebra import BN254_SCALAR_FIELD, big_to_ff, bytes_to_int
from zkvote.errors import DecodeError

ADDRESS_LENGTH = 20
PROCESS_ID_LENGTH = 32


@dataclass(frozen=True)
class ProcessID:
    """
    Identifiant déterministe dérivé de (adresse, nonce, chaîne).

    Forme sérialisée : chainId (4 octets) ‖ adresse (20 octets) ‖ nonce (8 octets),
    en gros-boutiste.
    """
    address: bytes
    nonce: int
    chain_id: int

    def __post_init__(self):
        if len(self.address) != ADDRESS_LENGTH:
            raise DecodeError(f"Adresse de {len(self.address)} octets, {ADDRESS_LENGTH} attendus")
        if not 0 <= self.chain_id < 1 << 32:
            raise DecodeError("chainId hors de [0, 2^32)")
        if not 0 <= self.nonce < 1 << 64:
            raise DecodeError("nonce hors de [0, 2^64)")

    def marshal(self) -> bytes:
        return (
            self.chain_id.to_bytes(4, "big")
            + bytes(self.address)
            + self.nonce.to_bytes(8, "big")
        )

    @classmethod
    def unmarshal(cls, data: bytes) -> "ProcessID":
        if len(data) != PROCESS_ID_LENGTH:
            raise DecodeError(f"Identifiant de {len(data)} octets, {PROCESS_ID_LENGTH} attendus")
        return cls(
            address=bytes(data[4:24]),
            nonce=int.from_bytes(data[24:32], "big"),
            chain_id=int.from_bytes(data[0:4], "big"),
        )

    def hex(self) -> str:
        return self.marshal().hex()

    @classmethod
    def from_hex(cls, value: str) -> "ProcessID":
        if value.startswith(("0x", "0X")):
            value = value[2:]
        try:
            data = bytes.fromhex(value)
        except ValueError as e:
            raise DecodeError(f"Identifiant hexadécimal invalide : {e}") from e
        return cls.unmarshal(data)

    def to_int(self) -> int:
        """Valeur brute sur 32 octets"""
        return bytes_to_int(self.marshal())

    def to_ff(self, field: int = BN254_SCALAR_FIELD) -> int:
        return big_to_ff(field, self.to_int())

    def __str__(self) -> str:
        return self.hex()
