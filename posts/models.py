"""
posts/models.py -- Domain dataclass for posts.

author_handle is copied from the principal at creation time. Handles never
change once registered, so the copy cannot go stale and list queries need no
join against the credential store.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Post:
    title: str
    content: str
    author_id: str
    author_handle: str
    id: int | None = None  # None before the record is written
    created_at: datetime | None = None  # set by store on insert
    updated_at: datetime | None = None
