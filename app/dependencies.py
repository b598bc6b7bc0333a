"""
Service wiring. The application lifespan builds the services once and parks
them on ``app.state``; route handlers receive them through these providers.
"""

from fastapi import Request

from app.config import Settings
from app.services.credentials import CredentialStore
from app.services.database import PostDB, UserDB
from app.services.feed import FeedQuery
from app.services.image_storage import LocalImageStorage
from app.utils.auth import TokenService


def bind_services(app, database, settings: Settings) -> None:
    users = UserDB(database)
    posts = PostDB(database)

    app.state.users = users
    app.state.posts = posts
    app.state.credentials = CredentialStore(users, bcrypt_rounds=settings.BCRYPT_ROUNDS)
    app.state.feed = FeedQuery(posts, users)
    app.state.images = LocalImageStorage(
        upload_dir=settings.UPLOAD_DIR,
        url_prefix=settings.UPLOAD_URL_PREFIX,
        max_bytes=settings.MAX_IMAGE_SIZE
    )


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_post_db(request: Request) -> PostDB:
    return request.app.state.posts


def get_feed_query(request: Request) -> FeedQuery:
    return request.app.state.feed


def get_image_storage(request: Request) -> LocalImageStorage:
    return request.app.state.images
