"""Per-user, per-provider credentials with refresh."""

from .oauth import OAuthTokenClient
from .store import CredentialStore
from .registry import ConnectorRegistry

__all__ = ["OAuthTokenClient", "CredentialStore", "ConnectorRegistry"]
