from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from typing import Optional, Dict, Any, Iterable, List
from datetime import datetime, timezone
from loguru import logger
from bson import ObjectId
import re

from app.models.post import Post, PostType
from app.models.user import User
from app.utils.errors import ForbiddenError, NotFoundError

OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")

# Newest first; _id breaks ties between posts created in the same millisecond
NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and bool(OBJECT_ID_PATTERN.match(value))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MongoDB:
    """
    Owns the Motor client for the lifetime of the process.

    Built by the application lifespan and handed to the repositories; nothing
    reaches for it globally.
    """

    def __init__(self, url: str, db_name: str):
        self.url = url
        self.db_name = db_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.db = None

    async def connect(self):
        try:
            self.client = AsyncIOMotorClient(self.url, tz_aware=True)
            self.db = self.client[self.db_name]

            await self.client.admin.command('ping')
            logger.info(f"Connected to MongoDB: {self.db_name}")

            await self.db.users.create_index("email", unique=True)
            await self.db.posts.create_index(
                [("user_id", ASCENDING), ("created_at", DESCENDING)])
            await self.db.posts.create_index(
                [("type", ASCENDING), ("created_at", DESCENDING)])

        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    async def disconnect(self):
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    async def ping(self) -> bool:
        if self.client is None:
            return False
        await self.client.admin.command('ping')
        return True

    def get_database(self):
        if self.db is None:
            raise RuntimeError("Database not connected")
        return self.db


class UserDB:

    def __init__(self, database):
        self.collection = database["users"]

    @staticmethod
    def _to_user(doc: Dict[str, Any]) -> User:
        return User(
            id=str(doc["_id"]),
            name=doc["name"],
            email=doc["email"],
            hashed_password=doc["hashed_password"],
            created_at=doc.get("created_at")
        )

    async def create_user(self, name: str, email: str, hashed_password: str) -> User:
        now = _utcnow()
        user_doc = {
            "name": name,
            "email": email,
            "hashed_password": hashed_password,
            "created_at": now,
            "updated_at": now
        }

        result = await self.collection.insert_one(user_doc)
        user_doc["_id"] = result.inserted_id

        return self._to_user(user_doc)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        user = await self.collection.find_one({"email": email.strip().lower()})
        return self._to_user(user) if user else None

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        if not is_object_id(user_id):
            return None

        user = await self.collection.find_one({"_id": ObjectId(user_id)})
        return self._to_user(user) if user else None

    async def get_names_by_ids(self, user_ids: Iterable[str]) -> Dict[str, str]:
        """Batch lookup of display names. Malformed ids are skipped."""
        object_ids = [ObjectId(uid) for uid in set(user_ids) if is_object_id(uid)]
        if not object_ids:
            return {}

        cursor = self.collection.find(
            {"_id": {"$in": object_ids}}, {"name": 1})
        users = await cursor.to_list(length=None)

        return {str(user["_id"]): user["name"] for user in users}


class PostDB:

    def __init__(self, database):
        self.collection = database["posts"]

    @staticmethod
    def _to_post(doc: Dict[str, Any]) -> Post:
        return Post(
            id=str(doc["_id"]),
            type=PostType(doc["type"]),
            content=doc["content"],
            user_id=str(doc["user_id"]),
            image_url=doc.get("image_url"),
            created_at=doc["created_at"]
        )

    async def create_post(
        self,
        post_type: PostType,
        content: str,
        user_id: str,
        image_url: Optional[str] = None
    ) -> Post:
        now = _utcnow()
        post_doc = {
            "type": PostType(post_type).value,
            "content": content,
            "user_id": user_id,
            "created_at": now,
            "updated_at": now
        }
        if image_url:
            post_doc["image_url"] = image_url

        result = await self.collection.insert_one(post_doc)
        post_doc["_id"] = result.inserted_id

        return self._to_post(post_doc)

    async def find_posts(self, query: Optional[Dict[str, Any]] = None) -> List[Post]:
        cursor = self.collection.find(query or {}).sort(NEWEST_FIRST)
        posts = await cursor.to_list(length=None)

        return [self._to_post(post) for post in posts]

    async def get_post(self, post_id: str) -> Optional[Post]:
        if not is_object_id(post_id):
            return None

        post = await self.collection.find_one({"_id": ObjectId(post_id)})
        return self._to_post(post) if post else None

    async def delete_post(self, post_id: str, requesting_user_id: str) -> None:
        """
        Delete a post owned by ``requesting_user_id``.

        Raises:
            NotFoundError: no post with this id
            ForbiddenError: the post belongs to someone else
        """
        post = await self.get_post(post_id)

        if post is None:
            raise NotFoundError("Post not found")

        if post.user_id != requesting_user_id:
            raise ForbiddenError("You can only delete your own posts")

        result = await self.collection.delete_one(
            {"_id": ObjectId(post_id), "user_id": requesting_user_id})

        if result.deleted_count == 0:
            # Removed by a concurrent request between the read and the delete
            raise NotFoundError("Post not found")
