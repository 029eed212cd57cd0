"""Python client for the SigmaGPT API with automatic session refresh."""
from sigmagpt.client.session import (
    ClientSession,
    SessionController,
    SessionState,
    UserCache,
)

__all__ = ["ClientSession", "SessionController", "SessionState", "UserCache"]
