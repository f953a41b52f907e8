"""
Session / Credential Providers

The sync engine only asks two questions of the session: is the user signed
in, and is there a bearer credential. Sign-in, sign-out and token refresh
belong to the authentication layer; the engine never performs them.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from google.oauth2.credentials import Credentials


# drive.file limits access to the folders and files the app created.
DRIVE_SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
]


class CredentialProvider(ABC):
    """Source of the current authentication state."""

    @property
    @abstractmethod
    def is_authenticated(self) -> bool:
        pass

    @property
    @abstractmethod
    def credential(self) -> Optional[str]:
        """Opaque bearer credential, or None when signed out."""
        pass


class StaticCredentialProvider(CredentialProvider):
    """
    Credential held in memory and set by whoever performs sign-in.

    Useful for scripts and tests.
    """

    def __init__(self, credential: Optional[str] = None):
        self._credential = credential

    @property
    def is_authenticated(self) -> bool:
        return bool(self._credential)

    @property
    def credential(self) -> Optional[str]:
        return self._credential

    def sign_in(self, credential: str) -> None:
        self._credential = credential

    def sign_out(self) -> None:
        self._credential = None


class GoogleCredentialProvider(CredentialProvider):
    """
    Wraps google-auth user credentials.

    An expired token counts as signed out, and so does a token whose
    expiry is unknown. Refreshing it is the authentication layer's job.
    """

    def __init__(self, credentials: Optional[Credentials] = None):
        self._credentials = credentials

    @classmethod
    def from_authorized_user_info(
        cls,
        info: dict[str, Any],
        scopes: Optional[list[str]] = None,
    ) -> "GoogleCredentialProvider":
        """Build from the dict an OAuth flow saved (token, refresh_token, client_id, ...)."""
        return cls(Credentials.from_authorized_user_info(info, scopes=scopes or DRIVE_SCOPES))

    @property
    def is_authenticated(self) -> bool:
        creds = self._credentials
        return creds is not None and creds.expiry is not None and creds.valid

    @property
    def credential(self) -> Optional[str]:
        if not self.is_authenticated:
            return None
        return self._credentials.token

    def set_credentials(self, credentials: Optional[Credentials]) -> None:
        self._credentials = credentials

    def clear(self) -> None:
        self._credentials = None
