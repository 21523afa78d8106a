"""
api/routes/posts.py -- Posts CRUD.

Routes:
  GET    /posts        -- public list, newest first
  GET    /posts/mine   -- caller's posts (requires auth)
  GET    /posts/{id}   -- public detail
  POST   /posts        -- create (requires auth)
  PUT    /posts/{id}   -- update (requires auth, author only)
  DELETE /posts/{id}   -- delete (requires auth, author only)

The author is always taken from the VerifiedPrincipal produced by the
Authentication Gate, never from the request body or a header. Ownership is
checked here so a missing post (404) and someone else's post (403) stay
distinguishable.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import MessageResponse, PostResponse, PostWrite
from auth.dependencies import get_current_principal, get_current_user
from auth.models import Principal, VerifiedPrincipal
from posts.models import Post
from posts.store import PostStore

logger = logging.getLogger("tokengate.posts")

router = APIRouter()


def _store(request: Request) -> PostStore:
    return request.app.state.post_store


@router.get("/posts", response_model=list[PostResponse])
def list_posts(request: Request) -> list[PostResponse]:
    return [_post_to_response(p) for p in _store(request).list_posts()]


@router.get("/posts/mine", response_model=list[PostResponse])
def list_my_posts(
    request: Request,
    caller: VerifiedPrincipal = Depends(get_current_principal),
) -> list[PostResponse]:
    return [_post_to_response(p) for p in _store(request).list_posts(author_id=caller.principal_id)]


@router.get("/posts/{post_id}", response_model=PostResponse)
def get_post(request: Request, post_id: int) -> PostResponse:
    post = _store(request).get_post(post_id)
    if post is None:
        raise _not_found()
    return _post_to_response(post)


@router.post("/posts", response_model=PostResponse, status_code=201)
def create_post(
    request: Request,
    body: PostWrite,
    author: Principal = Depends(get_current_user),
) -> PostResponse:
    _require_fields(body)
    store = _store(request)
    post_id = store.create_post(
        Post(title=body.title, content=body.content, author_id=author.id, author_handle=author.handle)
    )
    logger.info("Principal %s created post %d", author.id, post_id)
    return _post_to_response(store.get_post(post_id))


@router.put("/posts/{post_id}", response_model=PostResponse)
def update_post(
    request: Request,
    post_id: int,
    body: PostWrite,
    caller: VerifiedPrincipal = Depends(get_current_principal),
) -> PostResponse:
    store = _store(request)
    _require_owned(store, post_id, caller, action="update")
    _require_fields(body)
    store.update_post(post_id, body.title, body.content)
    return _post_to_response(store.get_post(post_id))


@router.delete("/posts/{post_id}", response_model=MessageResponse)
def delete_post(
    request: Request,
    post_id: int,
    caller: VerifiedPrincipal = Depends(get_current_principal),
) -> MessageResponse:
    store = _store(request)
    _require_owned(store, post_id, caller, action="delete")
    store.delete_post(post_id)
    logger.info("Principal %s deleted post %d", caller.principal_id, post_id)
    return MessageResponse(message="Post deleted successfully.")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _require_owned(store: PostStore, post_id: int, caller: VerifiedPrincipal, action: str) -> Post:
    post = store.get_post(post_id)
    if post is None:
        raise _not_found()
    if post.author_id != caller.principal_id:
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": f"You can only {action} your own posts."},
        )
    return post


def _require_fields(body: PostWrite) -> None:
    if not body.title or not body.content:
        raise HTTPException(
            status_code=400,
            detail={"code": "validation_error", "message": "Title and content are required."},
        )


def _not_found() -> HTTPException:
    return HTTPException(status_code=404, detail={"code": "not_found", "message": "Post not found."})


def _post_to_response(post: Post | None) -> PostResponse:
    if post is None:
        raise HTTPException(
            status_code=500,
            detail={"code": "internal_error", "message": "Post not found after write."},
        )
    return PostResponse(
        id=post.id,
        title=post.title,
        content=post.content,
        author_id=post.author_id,
        author_handle=post.author_handle,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )
