"""
Outils partagés par les tests : comptes de votants, champs de bulletin,
recensement en mémoire et construction de témoins de vote complets.
"""
import secrets
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from zkvote import config
from zkvote.ballot import BallotMode, BallotProofWitness, circom_inputs_hash, derive_commitment_nullifier
from zkvote.census import CensusProof, leaf_hash, node_hash
from zkvote.crypto_utils.algebra import bytes_to_int
from zkvote.curves import Point
from zkvote.ecelgamal import Ballot, generate_keys, rand_k
from zkvote.process import ProcessID
from zkvote.prover import ProverSetup
from zkvote.signature import PublicKey, generate_keys as generate_account_keys
from zkvote.signature import pubkey_to_address, sign_digest, signature_to_bytes
from zkvote.snark_backend import CIRCUIT_BALLOT
from zkvote.voteverifier import VoteWitness, compute_inputs_hash

MAX_COUNT = 5
MAX_VALUE = 16
MIN_VALUE = 0
COST_EXP = 2
WEIGHT = 10


def default_mode() -> BallotMode:
    return BallotMode(
        max_count=MAX_COUNT,
        force_uniqueness=False,
        max_value=MAX_VALUE,
        min_value=MIN_VALUE,
        max_total_cost=MAX_VALUE ** COST_EXP * MAX_COUNT,
        min_total_cost=MAX_COUNT,
        cost_exp=COST_EXP,
        cost_from_weight=False,
    )


@dataclass
class Account:
    private_key: int
    public_key: PublicKey
    address: bytes

    @classmethod
    def new(cls) -> "Account":
        sk, pk = generate_account_keys()
        return cls(sk, pk, pubkey_to_address(pk))


def generate_ballot_fields(max_count: int = MAX_COUNT, max_value: int = MAX_VALUE,
                           min_value: int = MIN_VALUE, unique: bool = False) -> List[int]:
    """Champs aléatoires non nuls dans [max(min_value, 1), max_value]"""
    low = max(min_value, 1)
    candidates = list(range(low, max_value + 1))
    if unique:
        rng = secrets.SystemRandom()
        return rng.sample(candidates, max_count)
    return [secrets.choice(candidates) for _ in range(max_count)]


def random_process_id(chain_id: int = 1) -> ProcessID:
    return ProcessID(address=secrets.token_bytes(20), nonce=secrets.randbelow(1 << 32),
                     chain_id=chain_id)


class CensusBuilder:
    """Arbre de Merkle creux en mémoire, compatible avec census.verify_census_proof"""

    def __init__(self, levels: int = config.CENSUS_LEVELS):
        self.levels = levels
        self.leaves: Dict[int, int] = {}

    def add(self, address: bytes, weight: int) -> None:
        self.leaves[bytes_to_int(address)] = weight

    def _subtree(self, keys: List[int], depth: int) -> int:
        if not keys:
            return 0
        if len(keys) == 1:
            return leaf_hash(keys[0], self.leaves[keys[0]])
        left, right = self._split(keys, depth)
        return node_hash(self._subtree(left, depth + 1), self._subtree(right, depth + 1))

    def _split(self, keys: List[int], depth: int) -> Tuple[List[int], List[int]]:
        if depth >= self.levels:
            raise ValueError("Clés indistinguables sur la profondeur de l'arbre")
        left = [k for k in keys if not (k >> depth) & 1]
        right = [k for k in keys if (k >> depth) & 1]
        return left, right

    def root(self) -> int:
        return self._subtree(sorted(self.leaves), 0)

    def proof(self, address: bytes) -> CensusProof:
        key = bytes_to_int(address)
        if key not in self.leaves:
            raise KeyError(address.hex())
        keys = sorted(self.leaves)
        siblings = []
        depth = 0
        while len(keys) > 1:
            left, right = self._split(keys, depth)
            if (key >> depth) & 1:
                siblings.append(self._subtree(left, depth + 1))
                keys = right
            else:
                siblings.append(self._subtree(right, depth + 1))
                keys = left
            depth += 1
        siblings.extend([0] * (self.levels - len(siblings)))
        return CensusProof(root=self.root(), key=key, value=self.leaves[key], siblings=siblings)


@dataclass
class VoteContext:
    """Un processus de test : paramètres, clés, recensement et votants"""
    setup: ProverSetup
    mode: BallotMode
    process_id: ProcessID
    encryption_key: Point
    encryption_secret: int
    census: CensusBuilder
    accounts: List[Account] = field(default_factory=list)
    weights: Dict[bytes, int] = field(default_factory=dict)

    @classmethod
    def new(cls, setup: ProverSetup, n_voters: int, weight: int = WEIGHT,
            mode: Optional[BallotMode] = None) -> "VoteContext":
        pk, sk = generate_keys()
        ctx = cls(setup, mode or default_mode(), random_process_id(), pk, sk, CensusBuilder())
        for _ in range(n_voters):
            account = Account.new()
            ctx.accounts.append(account)
            ctx.weights[account.address] = weight
            ctx.census.add(account.address, weight)
        return ctx


def build_vote_witness(ctx: VoteContext, account: Account,
                       fields: Optional[List[int]] = None,
                       secret: Optional[bytes] = None) -> VoteWitness:
    """Chiffre, prouve côté client, signe : un témoin de vote satisfaisable"""
    if fields is None:
        fields = generate_ballot_fields()
    if secret is None:
        secret = secrets.token_bytes(16)
    weight = ctx.weights[account.address]
    k = rand_k()
    ballot = Ballot.encrypt(fields, ctx.encryption_key, k)
    commitment, nullifier = derive_commitment_nullifier(account.address, ctx.process_id, secret)
    circom_hash = circom_inputs_hash(ctx.mode, account.address, weight, ctx.process_id,
                                     ctx.encryption_key, nullifier, commitment, ballot)

    client_witness = BallotProofWitness(
        mode=ctx.mode,
        fields=fields,
        address=account.address,
        weight=weight,
        process_id=ctx.process_id,
        public_key=ctx.encryption_key,
        k=k,
        secret=secret,
        nullifier=nullifier,
        commitment=commitment,
        ballot=ballot,
        inputs_hash=circom_hash,
    )
    client_proof = ctx.setup.backend.prove(CIRCUIT_BALLOT, client_witness, ctx.setup.ballot_pk)

    census_proof = ctx.census.proof(account.address)
    inputs_hash = compute_inputs_hash(circom_hash, census_proof.root)
    r, s, v = sign_digest(inputs_hash, account.private_key)

    return VoteWitness(
        mode=ctx.mode,
        address=account.address,
        weight=weight,
        process_id=ctx.process_id,
        encryption_key=ctx.encryption_key,
        nullifier=nullifier,
        commitment=commitment,
        ballot=ballot,
        secret=secret,
        census_root=census_proof.root,
        census_siblings=census_proof.siblings,
        public_key=account.public_key,
        signature=signature_to_bytes(r, s, v),
        client_proof=client_proof,
        inputs_hash=inputs_hash,
    )


def build_vote_witnesses(ctx: VoteContext) -> List[VoteWitness]:
    return [build_vote_witness(ctx, account) for account in ctx.accounts]
