import os
import tempfile

# Configuration is read at import time, so point it at SQLite first.
_TMP_DIR = tempfile.mkdtemp(prefix="sidechain_console_tests_")
os.environ.setdefault("CONSOLE_DATABASE_URL", f"sqlite:///{_TMP_DIR}/console.db")
os.environ.setdefault("CONSOLE_LOG_LEVEL", "WARNING")

from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from sidechain_console.api_client import ConsoleApiClient  # noqa: E402

SIGNER = "0x52908400098527886e0f7030069857d2e4169ee7"
SIGNER_CHECKSUM = "0x52908400098527886E0F7030069857D2E4169EE7"
TREASURY = "0xde709f2102306220921060314715629080e2fb77"
INFURA_ID = "0123456789abcdef0123456789abcdef"


@pytest.fixture
def db_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'users.db'}",
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    from sidechain_console.database import sync_user_table

    sync_user_table(db_engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def api_client():
    client = MagicMock(spec=ConsoleApiClient)
    client.request_login_code.return_value = {"status": "sent"}
    client.verify_login_code.return_value = {"status": "verified"}
    client.submit_setup_step.return_value = {"status": "saved"}
    return client


@pytest.fixture
def step_configs():
    return {
        "sidechain": {"name": "demo-chain", "chain_id": "4242", "rpc_url": "http://sidechain:8545/"},
        "signing_authority": {"address": SIGNER, "label": "primary"},
        "treasury": {"address": TREASURY, "initial_deposit": "12.5"},
        "mainnet": {"rpc_url": "https://mainnet.example.org", "chain_id": "1"},
        "infura": {"project_id": INFURA_ID, "network": "mainnet"},
    }
