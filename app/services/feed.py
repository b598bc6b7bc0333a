"""
Feed query pipeline: filter composition, author-name hydration and
response shaping for the post listing endpoints.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from loguru import logger

from app.models.post import Post, PostOut, PostTypeFilter
from app.services.database import PostDB, UserDB, is_object_id

UNKNOWN_USER = "Unknown User"


@dataclass
class FeedFilter:
    user_id: Optional[str] = None
    q: Optional[str] = None
    type: PostTypeFilter = PostTypeFilter.ALL


def build_post_query(feed_filter: FeedFilter) -> Dict[str, Any]:
    """Translate a feed filter into a MongoDB query document."""
    query: Dict[str, Any] = {}

    if feed_filter.user_id:
        query["user_id"] = feed_filter.user_id

    if feed_filter.type != PostTypeFilter.ALL:
        query["type"] = feed_filter.type.value

    search = (feed_filter.q or "").strip()
    if search:
        # Escaped so user input is matched literally, never as a pattern
        query["content"] = {"$regex": re.escape(search), "$options": "i"}

    return query


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def shape_post(post: Post, user_name: str) -> PostOut:
    return PostOut(
        id=post.id,
        type=post.type,
        content=post.content,
        user_id=post.user_id,
        user_name=user_name,
        created_at=format_timestamp(post.created_at),
        image_url=post.image_url
    )


class FeedQuery:

    def __init__(self, posts: PostDB, users: UserDB):
        self.posts = posts
        self.users = users

    async def run(self, feed_filter: FeedFilter) -> List[PostOut]:
        posts = await self.posts.find_posts(build_post_query(feed_filter))

        if feed_filter.user_id:
            user_name = await self.resolve_name(feed_filter.user_id)
            return [shape_post(post, user_name) for post in posts]

        names = await self._batch_names(posts)
        return [
            shape_post(post, names.get(post.user_id, UNKNOWN_USER))
            for post in posts
        ]

    async def resolve_name(self, user_id: str) -> str:
        if not is_object_id(user_id):
            return UNKNOWN_USER

        try:
            user = await self.users.get_user_by_id(user_id)
        except Exception as e:
            logger.error(f"Error fetching user {user_id}: {e}")
            return UNKNOWN_USER

        return user.name if user else UNKNOWN_USER

    async def _batch_names(self, posts: List[Post]) -> Dict[str, str]:
        author_ids = {post.user_id for post in posts if is_object_id(post.user_id)}
        if not author_ids:
            return {}

        try:
            return await self.users.get_names_by_ids(author_ids)
        except Exception as e:
            logger.error(f"Error fetching users: {e}")
            return {}
