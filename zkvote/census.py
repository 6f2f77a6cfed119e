"""
Preuve d'appartenance au recensement.

Le recensement est un arbre de Merkle creux (MiMC sur BLS12-377) :
- feuille = H(clé, valeur, 1), la clé étant l'adresse et la valeur le poids
- noeud = H(gauche, droite)
- au niveau i, le bit i de la clé (poids faible en premier) choisit la branche

La liste des frères a toujours `levels` entrées ; les zéros de fin sont du
remplissage. Ce module ne construit pas le recensement, il vérifie seulement.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from zkvote import config
from zkvote.errors import DecodeError
from zkvote.mimc import MIMC_BLS12_377, mimc_hash

logger = logging.getLogger(__name__)


def leaf_hash(key: int, value: int) -> int:
    return mimc_hash([key, value, 1], MIMC_BLS12_377)


def node_hash(left: int, right: int) -> int:
    return mimc_hash([left, right], MIMC_BLS12_377)


def path_length(siblings: Sequence[int]) -> int:
    """Indice du dernier frère non nul + 1"""
    for i in range(len(siblings) - 1, -1, -1):
        if siblings[i] != 0:
            return i + 1
    return 0


def compute_root(key: int, value: int, siblings: Sequence[int]) -> int:
    """Remonte de la feuille vers la racine le long du chemin de la clé"""
    node = leaf_hash(key, value)
    for i in range(path_length(siblings) - 1, -1, -1):
        if (key >> i) & 1:
            node = node_hash(siblings[i], node)
        else:
            node = node_hash(node, siblings[i])
    return node


@dataclass
class CensusProof:
    root: int
    key: int
    value: int
    siblings: List[int] = field(default_factory=list)

    def verify(self, levels: int = config.CENSUS_LEVELS) -> bool:
        return verify_census_proof(self.root, self.key, self.value, self.siblings, levels)


def verify_census_proof(root: int, key: int, value: int, siblings: Sequence[int],
                        levels: int = config.CENSUS_LEVELS) -> bool:
    """
    Vérifie que (clé, valeur) appartient au recensement de racine `root`

    Returns:
        bool: False si la longueur, la feuille ou la racine ne correspondent pas
    """
    if len(siblings) != levels:
        logger.debug("census proof rejected: %d siblings, %d expected", len(siblings), levels)
        return False
    if key >> levels:
        logger.debug("census proof rejected: key wider than %d bits", levels)
        return False
    try:
        return compute_root(key, value, siblings) == root
    except DecodeError as e:
        logger.debug("census proof rejected: %s", e)
        return False
