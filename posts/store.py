"""
posts/store.py -- SQLAlchemy Core persistence for posts.

Pattern: Repository + Data Mapper, same as auth/store.py. Ownership checks are
the route layer's job (it needs to tell 403 from 404); this module only reads
and writes rows.

Security: all queries use bound parameters. No f-strings in SQL.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, MetaData, String, Table, Text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import StoreUnavailable
from auth.store import create_store_engine
from posts.models import Post

logger = logging.getLogger("tokengate.posts")

_metadata = MetaData()

_posts = Table(
    "posts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("title", Text, nullable=False),
    Column("content", Text, nullable=False),
    Column("author_id", String(64), nullable=False, index=True),
    Column("author_handle", String(255), nullable=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime),
)


def _now_db() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class PostStore:
    """Repository for Post entities.

    Usage:
        store = PostStore("sqlite:///tokengate.db")
        post_id = store.create_post(Post(title="t", content="c", author_id="1", author_handle="alice"))
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        self.engine: Engine = create_store_engine(db_url)
        _metadata.create_all(self.engine)

    def create_post(self, post: Post) -> int:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _posts.insert().values(
                        title=post.title,
                        content=post.content,
                        author_id=post.author_id,
                        author_handle=post.author_handle,
                        created_at=_now_db(),
                    )
                )
        except SQLAlchemyError as exc:
            logger.exception("Store failure during create_post")
            raise StoreUnavailable() from exc
        return result.inserted_primary_key[0]

    def get_post(self, post_id: int) -> Post | None:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(_posts.select().where(_posts.c.id == post_id)).fetchone()
        except SQLAlchemyError as exc:
            logger.exception("Store failure during get_post")
            raise StoreUnavailable() from exc
        return _row_to_post(row) if row is not None else None

    def list_posts(self, author_id: str | None = None) -> list[Post]:
        """Return posts newest first, optionally only those by author_id."""
        query = _posts.select().order_by(_posts.c.created_at.desc(), _posts.c.id.desc())
        if author_id is not None:
            query = query.where(_posts.c.author_id == author_id)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).fetchall()
        except SQLAlchemyError as exc:
            logger.exception("Store failure during list_posts")
            raise StoreUnavailable() from exc
        return [_row_to_post(r) for r in rows]

    def update_post(self, post_id: int, title: str, content: str) -> bool:
        """Returns True if a row was updated, False if post_id was not found."""
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _posts.update()
                    .where(_posts.c.id == post_id)
                    .values(title=title, content=content, updated_at=_now_db())
                )
        except SQLAlchemyError as exc:
            logger.exception("Store failure during update_post")
            raise StoreUnavailable() from exc
        return result.rowcount > 0

    def delete_post(self, post_id: int) -> bool:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(_posts.delete().where(_posts.c.id == post_id))
        except SQLAlchemyError as exc:
            logger.exception("Store failure during delete_post")
            raise StoreUnavailable() from exc
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


def _row_to_post(row) -> Post:
    return Post(
        id=row.id,
        title=row.title,
        content=row.content,
        author_id=row.author_id,
        author_handle=row.author_handle,
        created_at=row.created_at.replace(tzinfo=timezone.utc),
        updated_at=row.updated_at.replace(tzinfo=timezone.utc) if row.updated_at is not None else None,
    )
