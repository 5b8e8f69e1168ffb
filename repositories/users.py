import datetime
import logging
from typing import Any, Dict, Optional

from fastapi import Depends
from google.cloud.firestore import AsyncClient

from domain.user import UserInDB
from repositories.base import FirestoreRepository, get_firestore_client

logger = logging.getLogger('uvicorn.error')

USERS_COLLECTION = "users"


class UserRepository(FirestoreRepository):
    collection_name = USERS_COLLECTION

    @staticmethod
    def _to_user(doc_id: str, data: Dict[str, Any]) -> UserInDB:
        return UserInDB(id=doc_id, **{k: v for k, v in data.items() if k != "id"})

    async def get(self, user_id: str) -> Optional[UserInDB]:
        data = await self._get(user_id)
        return self._to_user(user_id, data) if data is not None else None

    async def _find_one(self, field: str, value: Any) -> Optional[UserInDB]:
        found = await self._first_where((field, "==", value))
        return self._to_user(*found) if found else None

    async def find_by_email(self, email: str) -> Optional[UserInDB]:
        return await self._find_one("email", email.lower())

    async def find_by_username(self, username: str) -> Optional[UserInDB]:
        return await self._find_one("username", username)

    async def find_by_verify_key(self, key: str) -> Optional[UserInDB]:
        return await self._find_one("email_verify_key", key)

    async def find_by_reset_token(self, token_hash: str, now: datetime.datetime) -> Optional[UserInDB]:
        # equality only on the token; the expiry is compared here so no composite index is needed
        user = await self._find_one("password_reset_token", token_hash)
        if user is None or user.password_reset_expires is None or user.password_reset_expires <= now:
            return None
        return user

    async def create(self, user: UserInDB) -> UserInDB:
        data = user.model_dump(exclude={"id"})
        data["email"] = user.email.lower()
        await self.collection.document(user.id).set(data)
        logger.info(f"Created user '{user.username}' ({user.id})")
        return user.model_copy(update={"email": data["email"]})

    async def update(self, user_id: str, fields: Dict[str, Any]) -> None:
        await self.collection.document(user_id).update(fields)


def get_user_repository(db: AsyncClient = Depends(get_firestore_client)) -> UserRepository:
    return UserRepository(db)
