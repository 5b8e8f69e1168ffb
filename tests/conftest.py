"""
Shared test fixtures.

The Firestore repositories are replaced by in-memory subclasses that keep the
real query logic (reset-token expiry, thread loading) and only swap the
storage primitives. Mail goes to a recording queue instead of SendGrid.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

import AuthAndUser as auth
from config import Settings, get_settings
from domain.comments import Comment
from domain.user import UserInDB, new_user_id
from main import app
from repositories.comments import CommentRepository, get_comment_repository
from repositories.users import UserRepository, get_user_repository
from sendgridemail import EmailDeliveryError, EmailMessage
from services.mail_queue import get_mail_queue

TEST_JWT_SECRET = "test-secret-key-for-testing-only"
TEST_PASSWORD = "correct-horse-battery"


class InMemoryUserRepository(UserRepository):
    def __init__(self):
        super().__init__(db=None)
        self.docs: Dict[str, UserInDB] = {}

    async def get(self, user_id: str) -> Optional[UserInDB]:
        return self.docs.get(user_id)

    async def _find_one(self, field: str, value: Any) -> Optional[UserInDB]:
        for user in self.docs.values():
            if getattr(user, field) == value:
                return user
        return None

    async def create(self, user: UserInDB) -> UserInDB:
        user = user.model_copy(update={"email": user.email.lower()})
        self.docs[user.id] = user
        return user

    async def update(self, user_id: str, fields: Dict[str, Any]) -> None:
        self.docs[user_id] = self.docs[user_id].model_copy(update=fields)


class InMemoryCommentRepository(CommentRepository):
    def __init__(self):
        super().__init__(db=None)
        self.docs: Dict[str, Comment] = {}
        self.reply_queries = 0

    async def get(self, comment_id: str) -> Optional[Comment]:
        return self.docs.get(comment_id)

    async def create(self, comment: Comment) -> Comment:
        self.docs[comment.id] = comment
        return comment

    async def list_for_post(self, post_id: str) -> List[Comment]:
        return sorted((c for c in self.docs.values() if c.post == post_id), key=lambda c: c.commented_at)

    async def replies_of(self, comment_id: str) -> List[Comment]:
        self.reply_queries += 1
        return sorted(
            (c for c in self.docs.values() if c.parent_comment == comment_id),
            key=lambda c: c.commented_at,
        )

    async def _delete_many(self, ids: List[str]) -> None:
        for comment_id in ids:
            self.docs.pop(comment_id, None)


class RecordingMailQueue:
    def __init__(self):
        self.queued: List[EmailMessage] = []
        self.sent: List[EmailMessage] = []
        self.fail_send = False

    def enqueue(self, message: EmailMessage) -> None:
        self.queued.append(message)

    async def send_now(self, message: EmailMessage) -> None:
        if self.fail_send:
            raise EmailDeliveryError("SendGrid unavailable")
        self.sent.append(message)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        jwt_secret=TEST_JWT_SECRET,
        jwt_expires_minutes=60,
        reset_token_ttl_minutes=10,
        public_base_url="http://testserver",
        mail_from="blog@example.com",
    )


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def comment_repo() -> InMemoryCommentRepository:
    return InMemoryCommentRepository()


@pytest.fixture
def mail_queue() -> RecordingMailQueue:
    return RecordingMailQueue()


@pytest.fixture
def client(settings, user_repo, comment_repo, mail_queue):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_user_repository] = lambda: user_repo
    app.dependency_overrides[get_comment_repository] = lambda: comment_repo
    app.dependency_overrides[get_mail_queue] = lambda: mail_queue
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(user_repo):
    """Insert a user directly into the repository."""
    def _make_user(
        username: str = "alice",
        email: str = "alice@example.com",
        role: str = "reader",
        verified: bool = True,
        password: str = TEST_PASSWORD,
        **extra,
    ) -> UserInDB:
        user = UserInDB(
            id=new_user_id(),
            username=username,
            email=email,
            role=role,
            verified=verified,
            hashed_password=auth.get_password_hash(password),
            created_at=datetime.now(timezone.utc),
            **extra,
        )
        user_repo.docs[user.id] = user
        return user

    return _make_user


@pytest.fixture
def auth_headers(settings):
    def _auth_headers(user: UserInDB) -> Dict[str, str]:
        return {"Authorization": f"Bearer {auth.create_access_token(user.id, settings)}"}

    return _auth_headers
