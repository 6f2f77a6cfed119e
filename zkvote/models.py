from typing import List

from pydantic import BaseModel, ConfigDict, Field


class CreateProcessRequest(BaseModel):
    """Corps signé de POST /process ; la signature couvre "{chainId}{nonce}" """
    model_config = ConfigDict(populate_by_name=True)

    chain_id: int = Field(alias="chainId", ge=0, lt=2 ** 32)
    nonce: int = Field(ge=0, lt=2 ** 64)
    signature: str

    def signed_message(self) -> bytes:
        return f"{self.chain_id}{self.nonce}".encode()


class CreateProcessResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    process_id: str = Field(alias="processId")
    encryption_pub_key: List[str] = Field(alias="encryptionPubKey")
    state_root: str = Field(default="", alias="stateRoot")


class ProcessResponse(CreateProcessResponse):
    address: str
    chain_id: int = Field(alias="chainId")
    nonce: int


class ErrorResponse(BaseModel):
    error: str
    code: int
