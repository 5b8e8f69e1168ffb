"""
Firestore repositories.

Routers never touch collections directly; they receive a repository through
``Depends`` so that persistence can be swapped out in tests.
"""

import logging
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from fastapi import Request, status
from google.cloud.firestore import AsyncClient
from google.cloud.firestore_v1 import FieldFilter

from errors import ServerError

logger = logging.getLogger('uvicorn.error')


class FirestoreRepository:
    collection_name: str = ""

    def __init__(self, db: AsyncClient) -> None:
        self._db = db

    @property
    def collection(self):
        return self._db.collection(self.collection_name)

    async def _get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = await self.collection.document(doc_id).get()
        if not doc.exists:
            return None
        return doc.to_dict()

    async def _stream_where(self, *filters: Tuple[str, str, Any]) -> AsyncIterator[Tuple[str, Dict[str, Any]]]:
        query = self.collection
        for field, op, value in filters:
            query = query.where(filter=FieldFilter(field, op, value))
        async for doc in query.stream():
            yield doc.id, doc.to_dict()

    async def _first_where(self, *filters: Tuple[str, str, Any]) -> Optional[Tuple[str, Dict[str, Any]]]:
        async for doc_id, data in self._stream_where(*filters):
            return doc_id, data
        return None


def get_firestore_client(request: Request) -> AsyncClient:
    if not hasattr(request.app.state, 'db') or not request.app.state.db:
        logger.error("Firestore client not initialized or unavailable.")
        raise ServerError("Database service unavailable", status.HTTP_503_SERVICE_UNAVAILABLE)
    return request.app.state.db
