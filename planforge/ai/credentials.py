"""
API key storage for PlanForge.

Two tiers hold the OpenAI key:
1. The OS credential store via ``keyring`` (service "PlanForge",
   account "OpenAI_API_Key").
2. The ``Settings`` row in the database, written as a backup copy.

The classes here only talk to one tier each; the fallback order lives in
AIServiceManager.
"""

from __future__ import annotations

import logging
from typing import Protocol

import keyring
import keyring.errors

from planforge.config.settings import CREDENTIAL_ACCOUNT_NAME, CREDENTIAL_SERVICE_NAME

logger = logging.getLogger(__name__)


class CredentialStore(Protocol):
    """Secure storage for a single opaque secret."""

    def get_secret(self) -> str | None: ...

    def set_secret(self, value: str) -> None: ...

    def delete_secret(self) -> None: ...


class ApiKeySettingsStore(Protocol):
    """Database fallback for the key (implemented by DatabaseService)."""

    def get_openai_api_key(self) -> str | None: ...

    def set_openai_api_key(self, api_key: str | None) -> None: ...


class KeyringCredentialStore:
    """
    CredentialStore backed by the OS keychain through ``keyring``.

    Backend errors (no keychain available, locked keychain, dbus failures)
    propagate to the caller, which decides whether to fall back.
    """

    def __init__(
        self,
        service_name: str = CREDENTIAL_SERVICE_NAME,
        account_name: str = CREDENTIAL_ACCOUNT_NAME,
    ) -> None:
        self.service_name = service_name
        self.account_name = account_name

    def get_secret(self) -> str | None:
        logger.debug(
            "Reading secret from keyring",
            extra={"service": self.service_name, "account": self.account_name},
        )
        return keyring.get_password(self.service_name, self.account_name) or None

    def set_secret(self, value: str) -> None:
        keyring.set_password(self.service_name, self.account_name, value)
        logger.info("Secret saved to keyring", extra={"service": self.service_name})

    def delete_secret(self) -> None:
        try:
            keyring.delete_password(self.service_name, self.account_name)
        except keyring.errors.PasswordDeleteError:
            # Nothing stored; deleting is already done.
            logger.debug("No keyring secret to delete", extra={"service": self.service_name})


__all__ = ["CredentialStore", "ApiKeySettingsStore", "KeyringCredentialStore"]
