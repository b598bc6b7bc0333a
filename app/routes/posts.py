"""
Post listing, creation and deletion routes.
Creation and deletion are protected by JWT authentication.

Creation is rate limited by the application's own limiter, so the create
route is attached per application by ``build_router``.
"""

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from pydantic import ValidationError
from slowapi import Limiter
from typing import List, Optional
from loguru import logger

from app.config import Settings
from app.dependencies import get_feed_query, get_image_storage, get_post_db
from app.middleware.auth_middleware import get_current_user
from app.models.post import (
    MessageResponse, PostCreate, PostCreateResponse, PostOut, PostType, PostTypeFilter
)
from app.models.user import CurrentUser
from app.services.database import PostDB
from app.services.feed import FeedFilter, FeedQuery, shape_post
from app.services.image_storage import LocalImageStorage
from app.utils.errors import InputValidationError

router = APIRouter(prefix="/api/posts", tags=["posts"])

FIELD_MESSAGES = {
    "type": "Type must be either NEED or HAVE",
    "content": "Content must be a string between 1 and 1000 characters"
}


def create_rate_limit(settings: Settings) -> str:
    return f"{settings.RATE_LIMIT_PER_MINUTE}/minute"


def _parse_post(post_type: Optional[str], content: Optional[str]) -> PostCreate:
    try:
        return PostCreate.model_validate({"type": post_type, "content": content})
    except ValidationError as e:
        field = e.errors()[0]["loc"][0]
        raise InputValidationError(FIELD_MESSAGES.get(field, "Validation failed")) from e


@router.get(
    "",
    response_model=List[PostOut],
    response_model_exclude_none=True
)
async def list_posts(
    user_id: Optional[str] = Query(None, alias="userId"),
    q: Optional[str] = Query(None),
    post_type: Optional[str] = Query(None, alias="type"),
    feed: FeedQuery = Depends(get_feed_query)
):
    """
    List posts, newest first.

    Args:
        user_id: only posts by this author ("my posts")
        q: case-insensitive literal substring of the content
        post_type: NEED, HAVE or ALL
    """
    return await feed.run(FeedFilter(
        user_id=user_id or None,
        q=q,
        type=PostTypeFilter.parse(post_type)
    ))


async def create_post(
    request: Request,
    post_type: Optional[str] = Form(None, alias="type"),
    content: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    current_user: CurrentUser = Depends(get_current_user),
    posts: PostDB = Depends(get_post_db),
    images: LocalImageStorage = Depends(get_image_storage)
):
    """
    Create a post as the authenticated user.

    An image is only stored for HAVE posts; it is uploaded before the post is
    written, and a failed upload aborts the whole request.

    Raises:
        InputValidationError: bad type/content, non-image or oversize upload
        UpstreamError: the image could not be stored
    """
    post_data = _parse_post(post_type, content)

    image_url = None
    if post_data.type == PostType.HAVE and image is not None and image.filename:
        contents = await image.read()
        image_url = await images.save(contents, image.filename, image.content_type)

    try:
        post = await posts.create_post(
            post_type=post_data.type,
            content=post_data.content,
            user_id=current_user.id,
            image_url=image_url
        )
    except Exception:
        if image_url:
            await images.delete(image_url)
        raise

    logger.info(f"Post {post.id} created by {current_user.email}")

    return PostCreateResponse(
        message="Post created successfully",
        data=shape_post(post, current_user.name)
    )


@router.delete("/{post_id}", response_model=MessageResponse)
async def delete_post(
    post_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    posts: PostDB = Depends(get_post_db)
):
    await posts.delete_post(post_id, current_user.id)

    logger.info(f"Post {post_id} deleted by {current_user.email}")

    return MessageResponse(message="Post deleted successfully")


def build_router(limiter: Limiter, settings: Settings) -> APIRouter:
    """Posts routes for one application, with creation limited by ``limiter``."""
    posts_router = APIRouter()
    posts_router.include_router(router)
    posts_router.add_api_route(
        "/api/posts",
        limiter.limit(create_rate_limit(settings))(create_post),
        methods=["POST"],
        response_model=PostCreateResponse,
        response_model_exclude_none=True,
        status_code=status.HTTP_201_CREATED,
        tags=["posts"]
    )
    return posts_router
