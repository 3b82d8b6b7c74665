from dataclasses import dataclass
from typing import Iterable, Optional, Type

from pydantic import BaseModel

from sidechain_console.paths import Routes
from sidechain_console.schemas import (
    InfuraConfig,
    MainnetConfig,
    SidechainConfig,
    SigningAuthorityConfig,
    TreasuryConfig,
)


@dataclass(frozen=True)
class SetupStep:
    key: str
    path: str
    title: str
    schema: Type[BaseModel]
    description: str = ""


SETUP_STEPS = (
    SetupStep(
        "sidechain",
        Routes.SETUP_SIDECHAIN,
        "Sidechain",
        SidechainConfig,
        "Name the sidechain and point the console at its RPC endpoint.",
    ),
    SetupStep(
        "signing_authority",
        Routes.SETUP_SIGNING_AUTHORITY,
        "Signing authority",
        SigningAuthorityConfig,
        "Address that signs sidechain checkpoints.",
    ),
    SetupStep(
        "treasury",
        Routes.SETUP_TREASURE,
        "Treasury",
        TreasuryConfig,
        "Treasury contract address and initial deposit.",
    ),
    SetupStep(
        "mainnet",
        Routes.SETUP_MAINNET,
        "Mainnet",
        MainnetConfig,
        "Mainnet RPC endpoint the sidechain anchors to.",
    ),
    SetupStep(
        "infura",
        Routes.SETUP_INFURA,
        "Infura",
        InfuraConfig,
        "Infura project used for mainnet access.",
    ),
)

_BY_KEY = {step.key: step for step in SETUP_STEPS}


def get_step(key: str) -> Optional[SetupStep]:
    return _BY_KEY.get(key)


def next_step_path(key: str) -> str:
    keys = [step.key for step in SETUP_STEPS]
    position = keys.index(key)
    if position + 1 < len(keys):
        return SETUP_STEPS[position + 1].path
    return Routes.DASHBOARD


def first_incomplete_path(completed: Iterable[str]) -> str:
    done = set(completed or ())
    for step in SETUP_STEPS:
        if step.key not in done:
            return step.path
    return Routes.DASHBOARD


def get_step_by_path(path: str) -> Optional[SetupStep]:
    for step in SETUP_STEPS:
        if step.path == path:
            return step
    return None
