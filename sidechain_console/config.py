import os

from sqlalchemy.engine import URL
from sqlalchemy.engine.create import create_engine
from sqlalchemy.orm.decl_api import declarative_base
from sqlalchemy.orm.session import sessionmaker


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default).strip()
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip() in {"1", "true", "TRUE", "yes", "YES"}


# Database connection. Defaults match the docker-compose "db" service.
DB_DIALECT = os.getenv("CONSOLE_DB_DIALECT", "mysql+pymysql")
DB_HOST = os.getenv("CONSOLE_DB_HOST", "db")
DB_PORT = _env_int("CONSOLE_DB_PORT", "3306")
DB_NAME = os.getenv("CONSOLE_DB_NAME", "users")
DB_USER = os.getenv("CONSOLE_DB_USER", "test")
DB_PASSWORD = os.getenv("CONSOLE_DB_PASSWORD", "test1234")
DB_CONNECT_TIMEOUT = _env_int("CONSOLE_DB_CONNECT_TIMEOUT", "10")

DATABASE_URL = os.getenv("CONSOLE_DATABASE_URL", "").strip() or URL.create(
    DB_DIALECT,
    username=DB_USER,
    password=DB_PASSWORD,
    host=DB_HOST,
    port=DB_PORT,
    database=DB_NAME,
)

# External sidechain/auth backend
API_URL = os.getenv("CONSOLE_API_URL", "").strip().rstrip("/")
API_TIMEOUT = _env_int("CONSOLE_API_TIMEOUT", "15")

TEST_MODE = _env_flag("CONSOLE_TEST_MODE")
TEST_VERIFICATION_CODE = os.getenv("CONSOLE_TEST_VERIFICATION_CODE", "000000").strip()
if TEST_MODE and not TEST_VERIFICATION_CODE:
    raise ValueError("CONSOLE_TEST_VERIFICATION_CODE must not be empty in test mode")

# How long a form post waits for its flow to settle before redirecting.
FLOW_WAIT_SECONDS = _env_int("CONSOLE_FLOW_WAIT_SECONDS", "20")


def engine_options(url) -> dict:
    backend = str(url).split(":", 1)[0]
    if backend.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    options = {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_pre_ping": True,
        "pool_recycle": 1800,
    }
    if backend.startswith("mysql"):
        options["connect_args"] = {"connect_timeout": DB_CONNECT_TIMEOUT}
    return options


# Database setup
Base = declarative_base()
engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
