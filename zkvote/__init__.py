"""Noyau cryptographique du vote anonyme vérifiable (ElGamal homomorphe + preuves récursives)."""

__version__ = "0.1.0"
