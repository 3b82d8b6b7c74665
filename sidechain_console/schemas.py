import re
from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field, computed_field, field_validator
from web3 import Web3

_INFURA_PROJECT_ID = re.compile(r"^[0-9a-fA-F]{32}$")


def _checksum_address(value: str) -> str:
    value = (value or "").strip()
    if not Web3.is_address(value):
        raise ValueError("not a valid Ethereum address")
    return Web3.to_checksum_address(value)


def _http_url(value: str) -> str:
    value = (value or "").strip()
    if not value.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL")
    return value.rstrip("/")


EthAddress = Annotated[str, AfterValidator(_checksum_address)]
HttpUrl = Annotated[str, AfterValidator(_http_url)]


class SidechainConfig(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    chain_id: int = Field(..., gt=0)
    rpc_url: HttpUrl


class SigningAuthorityConfig(BaseModel):
    address: EthAddress
    label: Optional[str] = Field(None, max_length=64)


class TreasuryConfig(BaseModel):
    address: EthAddress
    initial_deposit: float = Field(0.0, ge=0)


class MainnetConfig(BaseModel):
    rpc_url: HttpUrl
    chain_id: int = Field(1, gt=0)


class InfuraConfig(BaseModel):
    project_id: str
    network: Literal["mainnet", "sepolia", "holesky"] = "mainnet"

    @field_validator("project_id")
    @classmethod
    def check_project_id(cls, value: str) -> str:
        value = (value or "").strip()
        if not _INFURA_PROJECT_ID.match(value):
            raise ValueError("Infura project id must be 32 hex characters")
        return value.lower()

    @computed_field
    @property
    def endpoint(self) -> str:
        return f"https://{self.network}.infura.io/v3/{self.project_id}"


class LoginForm(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        value = value.strip().lower()
        local, _, domain = value.partition("@")
        if not local or not domain:
            raise ValueError("not a valid email address")
        return value


class VerificationForm(BaseModel):
    code: str = Field(..., min_length=4, max_length=12)


def format_validation_error(exc) -> str:
    parts = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error.get("loc", ())) or "value"
        message = str(error.get("msg", "invalid value"))
        parts.append(f"{field}: {message}")
    return "; ".join(parts)
