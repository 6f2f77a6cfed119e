import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from zkvote import config
from zkvote.database import KeyStore
from zkvote.ecelgamal import generate_keys
from zkvote.errors import (
    DecodeError, KeyExistsError, KeyNotFoundError, RandomnessError, SignatureError, StorageError,
)
from zkvote.models import CreateProcessRequest, CreateProcessResponse, ProcessResponse
from zkvote.process import ProcessID
from zkvote.signature import address_from_signature

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Erreur exposée au client avec un code stable"""

    def __init__(self, code: int, status: int, message: str):
        self.code = code
        self.status = status
        self.message = message
        super().__init__(message)

    def withf(self, fmt: str, *args) -> "APIError":
        """Copie de l'erreur avec un message détaillé"""
        return APIError(self.code, self.status, fmt % args if args else fmt)

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


ErrMalformedBody = APIError(40001, 400, "corps de requête mal formé")
ErrInvalidSignature = APIError(40002, 400, "signature invalide")
ErrMalformedProcessID = APIError(40003, 400, "identifiant de processus mal formé")
ErrProcessNotFound = APIError(40401, 404, "processus introuvable")
ErrProcessAlreadyExists = APIError(40901, 409, "le processus existe déjà")
ErrGenericInternal = APIError(50001, 500, "erreur interne")


def _process_response(process_id: ProcessID, public_key) -> dict:
    x, y = public_key.point()
    return {
        "process_id": process_id.hex(),
        "encryption_pub_key": [str(x), str(y)],
        "state_root": "",
    }


def create_app(storage: Optional[KeyStore] = None) -> FastAPI:
    """Construit l'application ; la base par défaut est config.DATABASE_PATH"""
    app = FastAPI(title="zkvote")
    app.state.storage = storage if storage is not None else KeyStore(config.DATABASE_PATH)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        return JSONResponse(status_code=exc.status, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = errors[0]["msg"] if errors else "invalide"
        err = ErrMalformedBody.withf("corps de requête mal formé : %s", detail)
        return JSONResponse(status_code=err.status, content=err.to_dict())

    @app.post("/process", response_model=CreateProcessResponse)
    def create_process(body: CreateProcessRequest):
        """Crée un processus : identité dérivée du signataire, nouvelle paire de clés"""
        sig_hex = body.signature[2:] if body.signature.startswith("0x") else body.signature
        try:
            signature = bytes.fromhex(sig_hex)
        except ValueError:
            raise ErrMalformedBody.withf("signature non hexadécimale") from None

        try:
            address = address_from_signature(body.signed_message(), signature)
        except SignatureError as e:
            raise ErrInvalidSignature.withf("signature invalide : %s", e) from e

        try:
            process_id = ProcessID(address=address, nonce=body.nonce, chain_id=body.chain_id)
        except DecodeError as e:
            raise ErrMalformedBody.withf("%s", e) from e

        store: KeyStore = app.state.storage
        try:
            exists = store.exists(process_id)
        except StorageError as e:
            logger.error("storage failed: %s", e)
            raise ErrGenericInternal.withf("lecture des clés impossible") from e
        if exists:
            raise ErrProcessAlreadyExists.withf("le processus %s existe déjà", process_id.hex())

        try:
            public_key, private_key = generate_keys(config.CURVE_TYPE)
        except (RandomnessError, ValueError) as e:
            # ValueError : ZKVOTE_CURVE désigne une courbe inconnue
            logger.error("key generation failed: %s", e)
            raise ErrGenericInternal.withf("génération des clés impossible") from e

        try:
            store.store_encryption_keys(process_id, public_key, private_key)
        except KeyExistsError as e:
            raise ErrProcessAlreadyExists.withf("le processus %s existe déjà", process_id.hex()) from e
        except StorageError as e:
            logger.error("storage failed: %s", e)
            raise ErrGenericInternal.withf("stockage des clés impossible") from e

        logger.info("process created: %s", process_id.hex())
        return _process_response(process_id, public_key)

    @app.get("/process", response_model=ProcessResponse)
    def get_process(id: str = Query(...)):
        """Retourne la clé publique et les métadonnées d'un processus"""
        try:
            process_id = ProcessID.from_hex(id)
        except DecodeError as e:
            raise ErrMalformedProcessID.withf("identifiant mal formé : %s", e) from e

        store: KeyStore = app.state.storage
        try:
            public_key, _ = store.load_encryption_keys(process_id)
        except KeyNotFoundError as e:
            raise ErrProcessNotFound.withf("processus %s introuvable", process_id.hex()) from e
        except StorageError as e:
            logger.error("storage failed: %s", e)
            raise ErrGenericInternal.withf("lecture des clés impossible") from e

        response = _process_response(process_id, public_key)
        response.update({
            "address": "0x" + process_id.address.hex(),
            "chain_id": process_id.chain_id,
            "nonce": process_id.nonce,
        })
        return response

    return app


if __name__ == "__main__":
    config.setup_logging()
    uvicorn.run("zkvote.api:create_app", factory=True, host=config.API_HOST, port=config.API_PORT)
