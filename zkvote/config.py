import logging
import os


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


# Nombre de champs chiffrés par bulletin
NUM_FIELDS = 8

# Profondeur de l'arbre du recensement
CENSUS_LEVELS = 160

# Taille d'un lot pour le prédicat d'agrégation
BATCH_SIZE = _int_env("ZKVOTE_BATCH_SIZE", 4)

# Borne de la recherche du logarithme discret lors du dépouillement
MAX_DECRYPT_MESSAGE = _int_env("ZKVOTE_MAX_DECRYPT_MESSAGE", 100000)

# Nombre de threads pour générer les preuves de vote
PROVER_WORKERS = _int_env("ZKVOTE_PROVER_WORKERS", os.cpu_count() or 1)

DATABASE_PATH = os.getenv("ZKVOTE_DATABASE", "zkvote.db")

CURVE_TYPE = os.getenv("ZKVOTE_CURVE", "bn254")

API_HOST = os.getenv("ZKVOTE_HOST", "0.0.0.0")
API_PORT = _int_env("ZKVOTE_PORT", 8000)

LOG_LEVEL = os.getenv("ZKVOTE_LOG_LEVEL", "INFO")


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure la journalisation du processus"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
