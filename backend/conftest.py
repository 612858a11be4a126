"""Root conftest: load test environment variables, configure structlog, shared key fixtures."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv
from nacl.signing import SigningKey

from access.cookie import AuthCookie, CookieType, serialize_auth_cookie
from access.signature import public_key_hash, to_base64

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# Configure structlog to route through stdlib logging so caplog works in tests.
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)


class ClientKey:
    """A device key pair as a browser client would hold it."""

    def __init__(self, seed: bytes | None = None) -> None:
        self.signing_key = SigningKey(seed) if seed is not None else SigningKey.generate()

    @property
    def public_key(self) -> str:
        return to_base64(bytes(self.signing_key.verify_key))

    @property
    def key_hash(self) -> str:
        return public_key_hash(bytes(self.signing_key.verify_key))

    def sign_cookie(self, username: str, timestamp: str = "2024-01-01T00:00:00.000Z") -> AuthCookie:
        message = (username + timestamp + self.key_hash).encode("utf-8")
        signature = to_base64(self.signing_key.sign(message).signature)
        return AuthCookie(username, CookieType.KEY, timestamp, self.key_hash, signature)

    def cookie_value(self, username: str, timestamp: str = "2024-01-01T00:00:00.000Z") -> str:
        return serialize_auth_cookie(self.sign_cookie(username, timestamp))


@pytest.fixture
def alice_key() -> ClientKey:
    return ClientKey(b"a" * 32)


@pytest.fixture
def bob_key() -> ClientKey:
    return ClientKey(b"b" * 32)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Prevent context leaking between tests."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
