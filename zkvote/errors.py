class ZKVoteError(Exception):
    """Exception de base du noyau cryptographique"""
    pass


class DecodeError(ZKVoteError, ValueError):
    """Entrée mal formée : longueur invalide ou élément hors du corps"""
    pass


class CurveError(ZKVoteError, ValueError):
    """Coordonnées qui ne sont pas sur la courbe"""
    pass


class RandomnessError(ZKVoteError):
    """Échec de la source d'aléa pendant le chiffrement"""
    pass


class SignatureError(ZKVoteError, ValueError):
    """Signature invalide ou adresse non récupérable"""
    pass


class StorageError(ZKVoteError):
    """Exception personnalisée pour les erreurs de stockage des clés"""
    pass


class KeyNotFoundError(StorageError):
    pass


class KeyExistsError(StorageError):
    pass


class ProofVerificationError(ZKVoteError):
    """Une preuve ne vérifie pas contre sa clé de vérification"""
    pass


class PredicateUnsatisfied(ZKVoteError):
    """
    Le témoin ne satisfait pas la relation (vote ou agrégation).

    Attributes:
        check: nom de la sous-vérification qui a échoué
        reason: détail lisible, sans matériel de clé privée
    """

    def __init__(self, check: str, reason: str = ""):
        self.check = check
        self.reason = reason
        message = f"prédicat non satisfait [{check}]"
        if reason:
            message += f" : {reason}"
        super().__init__(message)
