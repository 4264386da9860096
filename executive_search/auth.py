"""
Google Cloud credential provider.

Obtains and refreshes the bearer token used to call Vertex AI. One provider
instance belongs to one pipeline run; its token cache is never shared.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from datetime import timedelta

import google.auth
import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from config import GoogleConfig
from executive_search.exceptions import AuthError
from executive_search.models import AccessToken

logger = logging.getLogger(__name__)

CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"


class CredentialProvider(ABC):
    """Source of bearer tokens for the embedding provider."""

    @abstractmethod
    def get_token(self) -> AccessToken:
        """
        Return a currently valid token.

        Raises:
            AuthError: Credential material is missing or malformed, or the
                identity provider rejected the request
        """


class GoogleCredentialProvider(CredentialProvider):
    """
    Token source backed by google-auth.

    Uses the service account key file when one is configured and falls back
    to Application Default Credentials otherwise. The token is cached and
    refreshed once it is within ``refresh_margin`` of expiry.
    """

    def __init__(
        self,
        credentials_file: str | None = None,
        scopes: list[str] | None = None,
        refresh_margin: timedelta = timedelta(minutes=5),
    ):
        self.credentials_file = credentials_file
        self.scopes = scopes or [CLOUD_PLATFORM_SCOPE]
        self.refresh_margin = refresh_margin
        self._credentials = None
        self._token: AccessToken | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, google_config: GoogleConfig) -> GoogleCredentialProvider:
        return cls(credentials_file=google_config.application_credentials)

    def _load_credentials(self):
        try:
            if self.credentials_file:
                logger.info(f"[Auth] Loading service account key from {self.credentials_file}")
                return service_account.Credentials.from_service_account_file(
                    self.credentials_file, scopes=self.scopes
                )
            credentials, project = google.auth.default(scopes=self.scopes)
            logger.info(f"[Auth] Using application default credentials (project={project})")
            return credentials
        except FileNotFoundError as e:
            raise AuthError(f"Credentials file not found: {self.credentials_file}") from e
        except (ValueError, KeyError) as e:
            raise AuthError(f"Malformed credentials: {e}") from e
        except google.auth.exceptions.DefaultCredentialsError as e:
            raise AuthError(f"No Google credentials available: {e}") from e

    def get_token(self) -> AccessToken:
        with self._lock:
            if self._token is not None and not self._token.expires_within(self.refresh_margin):
                return self._token

            if self._credentials is None:
                self._credentials = self._load_credentials()

            try:
                self._credentials.refresh(Request())
            except google.auth.exceptions.RefreshError as e:
                raise AuthError(f"Identity provider rejected token refresh: {e}") from e
            except google.auth.exceptions.TransportError as e:
                raise AuthError(f"Could not reach identity provider: {e}") from e

            if not self._credentials.token:
                raise AuthError("Identity provider returned an empty token")

            self._token = AccessToken(
                token=self._credentials.token,
                expiry=self._credentials.expiry,
            )
            logger.debug(f"[Auth] Token refreshed, expires {self._token.expiry}")
            return self._token


class StaticCredentialProvider(CredentialProvider):
    """Serves a fixed token, e.g. one minted by ``gcloud auth print-access-token``."""

    def __init__(self, token: str):
        if not token:
            raise AuthError("Static token is empty")
        self._token = AccessToken(token=token)

    def get_token(self) -> AccessToken:
        return self._token


def build_credential_provider(google_config: GoogleConfig) -> CredentialProvider:
    """Pick the provider matching the configured credential material."""
    if google_config.access_token:
        return StaticCredentialProvider(google_config.access_token)
    return GoogleCredentialProvider.from_config(google_config)
