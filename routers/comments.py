import logging
from typing import Annotated, Any, List

from fastapi import APIRouter, Body, Depends, Query, Response, status

import AuthAndUser as auth
from domain.comments import Comment, build_thread, validate_comment
from domain.user import User
from errors import NotFoundError, ValidationError
from repositories.comments import CommentRepository, get_comment_repository

logger = logging.getLogger('uvicorn.error')

router = APIRouter(
    prefix="/api/v1",
    tags=["comments"]
)


@router.post("/posts/{post_id}/comments", response_model=Comment, status_code=status.HTTP_201_CREATED)
async def create_comment(
    post_id: str,
    current_user: Annotated[User, Depends(auth.get_current_user)],
    payload: Annotated[Any, Body()] = None,
    comments: CommentRepository = Depends(get_comment_repository),
):
    result = validate_comment(payload)
    if not result.ok:
        raise ValidationError(result.message, details=result.details())
    comment_in = result.value

    if comment_in.parent_comment is not None:
        parent = await comments.get(comment_in.parent_comment)
        if parent is None or parent.post != post_id:
            logger.warning(f"Reply by '{current_user.username}' to missing comment {comment_in.parent_comment} on post {post_id}")
            raise NotFoundError(f"Comment with id {comment_in.parent_comment} not found in post {post_id}.")

    comment = await comments.create(Comment(
        text=comment_in.text,
        post=post_id,
        user=current_user.id,
        parent_comment=comment_in.parent_comment,
    ))
    logger.info(f"User '{current_user.username}' created comment '{comment.id}' on post '{post_id}'")
    return comment


@router.get("/posts/{post_id}/comments", response_model=List[Comment])
async def get_comments_for_post(
    post_id: str,
    thread: bool = Query(default=False, description="Nest replies under their root comments"),
    comments: CommentRepository = Depends(get_comment_repository),
):
    all_comments = await comments.list_for_post(post_id)
    if thread:
        return build_thread(all_comments)
    return all_comments


@router.get("/comments/{comment_id}", response_model=Comment)
async def get_comment_by_id(
    comment_id: str,
    thread: bool = Query(default=False, description="Load replies to any depth"),
    comments: CommentRepository = Depends(get_comment_repository),
):
    comment = await comments.get(comment_id)
    if comment is None:
        raise NotFoundError(f"Comment with id {comment_id} not found.")
    if thread:
        comment = await comments.load_thread(comment)
    return comment


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: str,
    current_user: Annotated[User, Depends(auth.restrict_to("admin"))],
    comments: CommentRepository = Depends(get_comment_repository),
):
    comment = await comments.get(comment_id)
    if comment is None:
        raise NotFoundError(f"Comment with id {comment_id} not found.")
    deleted = await comments.delete_thread(comment)
    logger.info(f"Admin '{current_user.username}' deleted comment '{comment_id}' and {deleted - 1} repl(ies)")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
