from __future__ import annotations

import os
import tempfile
import uuid
from datetime import datetime
from typing import Callable, Generator

# Configure the environment before the application modules read it
_TMP_DIR = tempfile.mkdtemp(prefix="inkwell-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP_DIR}/inkwell-test.db"
os.environ["JWT_SECRET_KEY"] = "test-only-secret-key-with-at-least-32-chars"
os.environ.pop("JWT_AUDIENCE", None)
os.environ["REDIS_URL"] = ""
os.environ["MEDIA_LOCATION"] = os.path.join(_TMP_DIR, "media")
os.environ["COMMENTS_REQUIRE_APPROVAL"] = "false"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inkwell import models, schemas
from inkwell.auth import create_access_token
from inkwell.db import Base, SessionLocal, engine
from inkwell.main import app, run_startup_tasks
from inkwell.services import publishing


@pytest.fixture(scope="session", autouse=True)
def bootstrap() -> None:
    run_startup_tasks()


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    """Every test starts with empty tables."""
    yield
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture()
def client() -> Generator[TestClient, None, None]:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def auth_headers(profile: models.Profile) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(profile.id)}"}


@pytest.fixture()
def headers_for() -> Callable[[models.Profile], dict[str, str]]:
    """Bearer headers for a profile."""
    return auth_headers


@pytest.fixture()
def make_profile(db: Session) -> Callable[..., models.Profile]:
    """Factory creating profiles with a given role."""

    def _make(role: str = "reader", username: str | None = None) -> models.Profile:
        profile = models.Profile(
            id=uuid.uuid4(),
            username=username or f"{role}_{uuid.uuid4().hex[:8]}",
            display_name=f"{role.capitalize()} Person",
            role=role,
        )
        db.add(profile)
        db.commit()
        db.refresh(profile)
        return profile

    return _make


@pytest.fixture()
def author(make_profile) -> models.Profile:
    return make_profile("author")


@pytest.fixture()
def reader(make_profile) -> models.Profile:
    return make_profile("reader")


@pytest.fixture()
def editor(make_profile) -> models.Profile:
    return make_profile("editor")


@pytest.fixture()
def admin(make_profile) -> models.Profile:
    return make_profile("admin")


@pytest.fixture()
def make_post(db: Session, author: models.Profile) -> Callable[..., models.Post]:
    """Factory creating posts through the publishing service."""

    def _make(
        title: str = "Hello World",
        content: str = "Some words for the body of this post.",
        status: str = "published",
        owner: models.Profile | None = None,
        tags: list[str] | None = None,
        category_id: int | None = None,
        published_at: datetime | None = None,
    ) -> models.Post:
        post = publishing.create_post(
            db,
            owner or author,
            schemas.PostCreate(title=title, content=content, tags=tags or [], category_id=category_id),
        )
        if status == "published":
            post = publishing.change_status(db, post, "published")
            if published_at is not None:
                post.published_at = published_at
                db.commit()
                db.refresh(post)
        elif status == "scheduled":
            post = publishing.change_status(db, post, "scheduled", published_at)
        elif status == "archived":
            post = publishing.change_status(db, post, "archived")
        return post

    return _make
