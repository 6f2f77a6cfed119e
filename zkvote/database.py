import logging
import sqlite3
from contextlib import contextmanager
from typing import Optional, Tuple

from zkvote import config
from zkvote.curves import Point, new_point
from zkvote.errors import KeyExistsError, KeyNotFoundError, StorageError
from zkvote.process import ProcessID

logger = logging.getLogger(__name__)


@contextmanager
def get_db_connection(path: str = config.DATABASE_PATH):
    """Gestionnaire de contexte pour la connexion à la base de données"""
    conn = sqlite3.connect(path)
    try:
        yield conn
    finally:
        conn.close()


def init_database(path: str = config.DATABASE_PATH) -> None:
    """Initialise la base de données avec la table des processus"""
    with get_db_connection(path) as conn:
        cursor = conn.cursor()
        cursor.execute('''
        CREATE TABLE IF NOT EXISTS processes (
            process_id TEXT PRIMARY KEY,
            curve_type TEXT NOT NULL,
            public_key TEXT NOT NULL,
            private_key TEXT NOT NULL,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        )
        ''')
        conn.commit()


def serialize_key(key) -> str:
    """Convertit une clé en chaîne hexadécimale"""
    if isinstance(key, int):
        return hex(key)[2:]
    # Clé publique : type de courbe et coordonnées natives
    x, y = key.point()
    return f"{key.curve_type},{hex(x)[2:]},{hex(y)[2:]}"


def deserialize_public_key(key_str: str) -> Point:
    try:
        curve_type, x, y = key_str.split(",")
        return new_point(curve_type).set_native(int(x, 16), int(y, 16))
    except ValueError as e:
        raise StorageError(f"Clé publique stockée illisible : {e}") from e


def deserialize_private_key(key_str: str) -> int:
    try:
        return int(key_str, 16)
    except ValueError as e:
        raise StorageError("Clé privée stockée illisible") from e


class KeyStore:
    """Clés de chiffrement des processus, indexées par identifiant de processus"""

    def __init__(self, path: str = config.DATABASE_PATH):
        self.path = path
        try:
            init_database(path)
        except sqlite3.Error as e:
            raise StorageError(f"Initialisation de la base impossible : {e}") from e

    def store_encryption_keys(self, process_id: ProcessID, public_key: Point, private_key: int) -> None:
        """
        Stocke la paire de clés d'un processus

        Raises:
            KeyExistsError: si le processus a déjà des clés (identités immuables)
            StorageError: pour toute autre erreur de la base
        """
        try:
            with get_db_connection(self.path) as conn:
                cursor = conn.cursor()
                cursor.execute('''
                    INSERT INTO processes (process_id, curve_type, public_key, private_key)
                    VALUES (?, ?, ?, ?)
                ''', (
                    process_id.hex(),
                    public_key.curve_type,
                    serialize_key(public_key),
                    serialize_key(private_key),
                ))
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise KeyExistsError(f"Le processus {process_id.hex()} existe déjà") from e
        except sqlite3.Error as e:
            raise StorageError(f"Écriture impossible : {e}") from e
        logger.info("stored encryption keys for process %s", process_id.hex())

    def load_encryption_keys(self, process_id: ProcessID) -> Tuple[Point, int]:
        """
        Récupère la paire de clés d'un processus

        Raises:
            KeyNotFoundError: si le processus est inconnu
        """
        row = self._fetch(process_id)
        if row is None:
            raise KeyNotFoundError(f"Processus {process_id.hex()} introuvable")
        return deserialize_public_key(row[0]), deserialize_private_key(row[1])

    def exists(self, process_id: ProcessID) -> bool:
        return self._fetch(process_id) is not None

    def _fetch(self, process_id: ProcessID) -> Optional[tuple]:
        try:
            with get_db_connection(self.path) as conn:
                cursor = conn.cursor()
                cursor.execute('''
                    SELECT public_key, private_key
                    FROM processes WHERE process_id = ?
                ''', (process_id.hex(),))
                return cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Lecture impossible : {e}") from e
