import logging
from typing import List, Optional

from fastapi import Depends
from google.cloud.firestore import AsyncClient

from domain.comments import Comment, build_thread
from repositories.base import FirestoreRepository, get_firestore_client

logger = logging.getLogger('uvicorn.error')

COMMENTS_COLLECTION = "comments"


class CommentRepository(FirestoreRepository):
    collection_name = COMMENTS_COLLECTION

    async def get(self, comment_id: str) -> Optional[Comment]:
        data = await self._get(comment_id)
        return Comment.from_document(comment_id, data) if data is not None else None

    async def create(self, comment: Comment) -> Comment:
        await self.collection.document(comment.id).set(comment.to_document())
        return comment

    async def list_for_post(self, post_id: str) -> List[Comment]:
        # equality filter only; ordering here avoids a composite index on (post, commented_at)
        comments = [
            Comment.from_document(doc_id, data)
            async for doc_id, data in self._stream_where(("post", "==", post_id))
        ]
        comments.sort(key=lambda c: c.commented_at)
        return comments

    async def replies_of(self, comment_id: str) -> List[Comment]:
        replies = [
            Comment.from_document(doc_id, data)
            async for doc_id, data in self._stream_where(("parent_comment", "==", comment_id))
        ]
        replies.sort(key=lambda c: c.commented_at)
        return replies

    async def load_thread(self, comment: Comment) -> Comment:
        """Return ``comment`` with ``replies`` filled in to any depth, one query per level."""
        level = [comment]
        collected: List[Comment] = []
        seen = {comment.id}
        while level:
            next_level = []
            for parent in level:
                for reply in await self.replies_of(parent.id):
                    if reply.id not in seen:
                        seen.add(reply.id)
                        next_level.append(reply)
            collected.extend(next_level)
            level = next_level
        return comment.model_copy(update={"replies": build_thread(collected, root_id=comment.id)})

    async def delete_thread(self, comment: Comment) -> int:
        threaded = await self.load_thread(comment)
        ids = []
        stack = [threaded]
        while stack:
            node = stack.pop()
            ids.append(node.id)
            stack.extend(node.replies)
        await self._delete_many(ids)
        return len(ids)

    async def _delete_many(self, ids: List[str]) -> None:
        batch = self._db.batch()
        for comment_id in ids:
            batch.delete(self.collection.document(comment_id))
        await batch.commit()


def get_comment_repository(db: AsyncClient = Depends(get_firestore_client)) -> CommentRepository:
    return CommentRepository(db)
