import datetime
import uuid
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, model_serializer

from domain.validation import ValidationResult, validate_model

MAX_TEXT_LENGTH = 10_000
MAX_ID_LENGTH = 128
# document ids only; no path separators
COMMENT_ID_PATTERN = r"^[A-Za-z0-9_-]+$"


class CommentIn(BaseModel):
    text: str = Field(min_length=1, max_length=MAX_TEXT_LENGTH)
    parent_comment: Optional[str] = Field(default=None, min_length=1, max_length=MAX_ID_LENGTH, pattern=COMMENT_ID_PATTERN)


class Comment(BaseModel):
    id: str = Field(default_factory=lambda: f"comment-{uuid.uuid4().hex}")
    text: str
    post: str
    user: str
    parent_comment: Optional[str] = None
    commented_at: datetime.datetime = Field(default_factory=lambda: datetime.datetime.now(datetime.timezone.utc))
    # derived at read time, never stored; None until a thread is loaded
    replies: Optional[List["Comment"]] = None

    @model_serializer(mode="wrap")
    def _omit_unloaded_replies(self, handler):
        data = handler(self)
        if self.replies is None:
            data.pop("replies", None)
        return data

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"id", "replies"})

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Comment":
        data = dict(data)
        data.pop("replies", None)
        return cls(id=doc_id, **data)


def validate_comment(payload: Any) -> ValidationResult:
    result = validate_model(CommentIn, payload)
    if result.ok and not result.value.text.strip():
        result = ValidationResult(errors=[{"field": "text", "message": "Comment text must not be blank"}])
    return result


def build_thread(comments: Iterable[Comment], root_id: Optional[str] = None) -> List[Comment]:
    """
    Nest a flat list of comments into threads.

    With ``root_id`` the direct replies of that comment are returned (each
    carrying its own replies); without it the root comments of the list.
    Siblings are ordered by ``commented_at``.
    """
    by_parent: Dict[Optional[str], List[Comment]] = defaultdict(list)
    for comment in comments:
        by_parent[comment.parent_comment].append(comment)
    for siblings in by_parent.values():
        siblings.sort(key=lambda c: c.commented_at)

    seen = set()

    def attach(parent_id: Optional[str]) -> List[Comment]:
        nested = []
        for child in by_parent.get(parent_id, []):
            if child.id in seen:
                continue
            seen.add(child.id)
            nested.append(child.model_copy(update={"replies": attach(child.id)}))
        return nested

    if root_id is not None:
        seen.add(root_id)
    return attach(root_id)
