from abc import ABC, abstractmethod

import msal

from docingest.auth.exceptions import TokenAcquisitionError
from docingest.config.settings import Settings

STORAGE_AUDIENCE = "https://storage.azure.com"
ANALYSIS_AUDIENCE = "https://cognitiveservices.azure.com"
FABRIC_AUDIENCE = "https://api.fabric.microsoft.com"


class BaseTokenProvider(ABC):
    """Contract for bearer credential sources."""

    @abstractmethod
    def get_token(self, audience: str) -> str:
        """Return a bearer token valid for ``audience``.

        Raises:
            TokenAcquisitionError: if no token can be obtained.
        """


class StaticTokenProvider(BaseTokenProvider):
    """Returns pre-acquired tokens keyed by audience."""

    def __init__(self, tokens: dict[str, str]) -> None:
        self._tokens = tokens

    def get_token(self, audience: str) -> str:
        token = self._tokens.get(audience)
        if not token:
            raise TokenAcquisitionError(f"No token configured for audience {audience}")
        return token


class MsalTokenProvider(BaseTokenProvider):
    """Client-credentials tokens from Microsoft Entra ID via MSAL.

    MSAL keeps an in-memory token cache on the application object, so repeated
    calls for the same audience do not hit the authority until expiry.
    """

    def __init__(self, *, tenant_id: str, client_id: str, client_secret: str) -> None:
        self._app = msal.ConfidentialClientApplication(
            client_id=client_id,
            authority=f"https://login.microsoftonline.com/{tenant_id}",
            client_credential=client_secret,
        )

    def get_token(self, audience: str) -> str:
        result = self._app.acquire_token_for_client(scopes=[f"{audience.rstrip('/')}/.default"])
        token = result.get("access_token") if result else None
        if not token:
            detail = (result or {}).get("error_description") or (result or {}).get("error")
            raise TokenAcquisitionError(
                f"Failed to acquire token for {audience}: {detail or 'unknown error'}"
            )
        return token

    @classmethod
    def from_settings(cls, settings: Settings) -> "MsalTokenProvider":
        settings.require("azure_tenant_id", "azure_client_id", "azure_client_secret")
        return cls(
            tenant_id=settings.azure_tenant_id,
            client_id=settings.azure_client_id,
            client_secret=settings.azure_client_secret,
        )
