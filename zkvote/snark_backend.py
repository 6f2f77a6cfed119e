"""
Frontière avec le système de preuve.

Un backend expose setup / prove / verify pour un circuit nommé. Le noyau ne
compile pas de circuit : NativeBackend évalue les relations en Python et émet
une étiquette HMAC liant le circuit et ses entrées publiques (développement
et tests) ; SnarkjsBackend délègue la vérification Groth16/PLONK à snarkjs,
uniquement si l'environnement l'autorise explicitement.
"""
import json
import logging
import os
import secrets
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Protocol, Sequence, Tuple

from Crypto.Hash import HMAC, SHA256

from zkvote.errors import ProofVerificationError

logger = logging.getLogger(__name__)

CIRCUIT_BALLOT = "ballot"
CIRCUIT_VOTE = "vote"
CIRCUIT_AGGREGATOR = "aggregator"

# Une relation évalue un témoin et retourne ses entrées publiques,
# ou lève PredicateUnsatisfied
Relation = Callable[[Any], List[int]]


@dataclass(frozen=True)
class Proof:
    circuit: str
    public_inputs: Tuple[int, ...]
    data: bytes


@dataclass(frozen=True)
class CircuitKey:
    """Clé de preuve ou de vérification d'un circuit"""
    circuit: str
    material: bytes = field(repr=False)


class ProofBackend(Protocol):
    def setup(self, circuit: str) -> Tuple[CircuitKey, CircuitKey]:
        ...

    def prove(self, circuit: str, witness: Any, proving_key: CircuitKey) -> Proof:
        ...

    def verify(self, proof: Proof, public_inputs: Sequence[int], verifying_key: CircuitKey) -> None:
        ...


def _transcript(circuit: str, public_inputs: Sequence[int]) -> bytes:
    parts = [circuit.encode(), len(public_inputs).to_bytes(4, "big")]
    for x in public_inputs:
        n = (x.bit_length() + 7) // 8 or 1
        parts.append(n.to_bytes(2, "big") + x.to_bytes(n, "big"))
    return b"".join(parts)


class NativeBackend:
    """
    Backend d'évaluation native.

    prove() échoue (PredicateUnsatisfied) exactement quand le témoin ne
    satisfait pas la relation, comme le ferait un vrai prouveur.
    """

    def __init__(self, relations: Dict[str, Relation]):
        self.relations = dict(relations)

    def register(self, circuit: str, relation: Relation) -> None:
        self.relations[circuit] = relation

    def setup(self, circuit: str) -> Tuple[CircuitKey, CircuitKey]:
        if circuit not in self.relations:
            raise ValueError(f"Circuit inconnu : {circuit}")
        material = secrets.token_bytes(32)
        return CircuitKey(circuit, material), CircuitKey(circuit, material)

    def prove(self, circuit: str, witness: Any, proving_key: CircuitKey) -> Proof:
        if proving_key.circuit != circuit:
            raise ValueError(f"Clé de preuve du circuit {proving_key.circuit}, {circuit} attendu")
        try:
            relation = self.relations[circuit]
        except KeyError:
            raise ValueError(f"Circuit inconnu : {circuit}") from None
        public_inputs = tuple(relation(witness))
        tag = HMAC.new(proving_key.material, _transcript(circuit, public_inputs), SHA256).digest()
        return Proof(circuit, public_inputs, tag)

    def verify(self, proof: Proof, public_inputs: Sequence[int], verifying_key: CircuitKey) -> None:
        if proof.circuit != verifying_key.circuit:
            raise ProofVerificationError(
                f"Preuve du circuit {proof.circuit}, clé du circuit {verifying_key.circuit}"
            )
        if tuple(public_inputs) != proof.public_inputs:
            raise ProofVerificationError("Entrées publiques différentes de celles de la preuve")
        h = HMAC.new(verifying_key.material, _transcript(proof.circuit, proof.public_inputs), SHA256)
        try:
            h.verify(proof.data)
        except ValueError as e:
            raise ProofVerificationError("Étiquette de preuve invalide") from e


@dataclass(frozen=True)
class DisabledBackend:
    def setup(self, circuit: str) -> Tuple[CircuitKey, CircuitKey]:
        raise NotImplementedError("Backend de preuve désactivé")

    def prove(self, circuit: str, witness: Any, proving_key: CircuitKey) -> Proof:
        raise NotImplementedError("Backend de preuve désactivé")

    def verify(self, proof: Proof, public_inputs: Sequence[int], verifying_key: CircuitKey) -> None:
        raise NotImplementedError(
            "Backend de preuve désactivé (ZKVOTE_SNARK_ALLOW_SUBPROCESS=1 et ZKVOTE_SNARK_BACKEND=snarkjs)"
        )


def _truthy(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


def _in_ci() -> bool:
    # jamais d'outil externe en CI
    return _truthy(os.getenv("GITHUB_ACTIONS", "0")) or _truthy(os.getenv("CI", "0"))


def _snark_timeout() -> int:
    try:
        return int(os.getenv("ZKVOTE_SNARK_TIMEOUT_SECS", "20"))
    except ValueError:
        return 20


@dataclass(frozen=True)
class SnarkjsBackend:
    """
    Vérification par snarkjs dans un sous-processus.

    La preuve (Proof.data) est le JSON produit par snarkjs, la clé de
    vérification le JSON de la vkey. setup et prove se font hors ligne.
    """
    snarkjs_bin: str = "snarkjs"
    alg: str = "groth16"

    def setup(self, circuit: str) -> Tuple[CircuitKey, CircuitKey]:
        raise NotImplementedError("La mise en place snarkjs se fait hors ligne")

    def prove(self, circuit: str, witness: Any, proving_key: CircuitKey) -> Proof:
        raise NotImplementedError("La génération de preuve snarkjs se fait côté client")

    def verify(self, proof: Proof, public_inputs: Sequence[int], verifying_key: CircuitKey) -> None:
        if _in_ci():
            raise NotImplementedError("Refus de lancer snarkjs en CI")
        alg = self.alg.lower().strip()
        if alg not in {"groth16", "plonk"}:
            raise NotImplementedError(f"snarkjs : groth16 ou plonk uniquement ({alg})")

        with tempfile.TemporaryDirectory(prefix="zkvote_snarkjs_") as d:
            td = Path(d)
            vk_path = td / "vk.json"
            proof_path = td / "proof.json"
            public_path = td / "public.json"

            vk_path.write_bytes(verifying_key.material)
            proof_path.write_bytes(proof.data)
            public_path.write_text(json.dumps([str(x) for x in public_inputs]), encoding="utf-8")

            cmd = [self.snarkjs_bin, alg, "verify", str(vk_path), str(public_path), str(proof_path)]
            try:
                proc = subprocess.run(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    text=True,
                    timeout=_snark_timeout(),
                    check=False,
                )
            except subprocess.TimeoutExpired as e:
                raise ProofVerificationError("snarkjs verify : délai dépassé") from e

            if proc.returncode != 0:
                err = (proc.stderr or "")[-4000:]
                logger.warning("snarkjs verify failed (rc=%d)", proc.returncode)
                raise ProofVerificationError(f"snarkjs verify a échoué (rc={proc.returncode}) : {err}")


def get_backend_from_env() -> ProofBackend:
    """
    Règles :
      - jamais en CI (GITHUB_ACTIONS/CI) -> DisabledBackend
      - ZKVOTE_SNARK_ALLOW_SUBPROCESS=1 requis
      - ZKVOTE_SNARK_BACKEND choisit l'implémentation (snarkjs)
    """
    if _in_ci():
        return DisabledBackend()
    if not _truthy(os.getenv("ZKVOTE_SNARK_ALLOW_SUBPROCESS", "0")):
        return DisabledBackend()
    backend = os.getenv("ZKVOTE_SNARK_BACKEND", "").strip().lower()
    if backend == "snarkjs":
        return SnarkjsBackend(
            snarkjs_bin=os.getenv("ZKVOTE_SNARKJS_BIN", "snarkjs"),
            alg=os.getenv("ZKVOTE_SNARK_ALG", "groth16"),
        )
    return DisabledBackend()
