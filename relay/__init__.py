"""Contact-form mail relay."""

from relay.app import create_app
from relay.config import RelaySettings

__all__ = [
    "create_app",
    "RelaySettings",
]
