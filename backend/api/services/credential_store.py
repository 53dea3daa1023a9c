"""Credential store: API-facing wrapper over ``CredentialRepository``.

Separates "nothing stored" (the user has to log in) from "store broken"
(retryable infrastructure error).
"""

import logging

from core.errors import RELOGIN_HINT, CredentialNotFound, CredentialStoreError
from shared.database import DatabaseManager
from shared.models.credential import DiscordCredential
from shared.repositories.credential import CredentialRepository

logger = logging.getLogger(__name__)


class CredentialStore:
    """get / put / delete of a user's Discord credential"""

    def __init__(self, db_manager: DatabaseManager | None) -> None:
        self.db_manager = db_manager

    def _repo(self) -> CredentialRepository:
        if self.db_manager is None or not self.db_manager.is_connected:
            raise CredentialStoreError("Database not ready")
        return CredentialRepository(self.db_manager.pool)

    async def get(self, user_id: str) -> DiscordCredential:
        repo = self._repo()
        try:
            credential = await repo.get(user_id)
        except Exception as e:
            logger.exception(f"Credential read failed for user {user_id}: {type(e).__name__}")
            raise CredentialStoreError("Could not read stored Discord credentials") from e

        if credential is None:
            logger.warning(f"No Discord credential stored for user {user_id}")
            raise CredentialNotFound(
                f"Could not find a stored Discord token for your user. {RELOGIN_HINT}"
            )
        return credential

    async def put(self, credential: DiscordCredential) -> DiscordCredential:
        repo = self._repo()
        try:
            stored = await repo.upsert(credential)
        except Exception as e:
            logger.exception(
                f"Credential write failed for user {credential.user_id}: {type(e).__name__}"
            )
            raise CredentialStoreError("Could not store Discord credentials") from e
        logger.debug(f"Credential stored for user {credential.user_id}")
        return stored

    async def delete(self, user_id: str) -> bool:
        repo = self._repo()
        try:
            removed = await repo.delete(user_id)
        except Exception as e:
            logger.exception(f"Credential delete failed for user {user_id}: {type(e).__name__}")
            raise CredentialStoreError("Could not remove Discord credentials") from e
        if removed:
            logger.info(f"Credential removed for user {user_id}")
        return removed
