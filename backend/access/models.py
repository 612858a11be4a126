"""Identity and registry entry types for cookie authentication."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RegisteredKey:
    """A public key registered under an auth account."""

    account_key: str
    username: str
    public_key: str  # base64, as written in the configuration


@dataclass(frozen=True)
class Identity:
    """Caller resolved from a valid auth cookie. Recomputed on every request."""

    account_key: str
    username: str
