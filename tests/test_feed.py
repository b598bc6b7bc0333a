from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from app.models.post import PostType, PostTypeFilter
from app.services.feed import (
    UNKNOWN_USER,
    FeedFilter,
    FeedQuery,
    build_post_query,
    format_timestamp,
)

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def add_post(database, content, user_id, post_type="NEED", minutes=0):
    database["posts"].documents.append({
        "_id": ObjectId(),
        "type": post_type,
        "content": content,
        "user_id": user_id,
        "created_at": BASE_TIME + timedelta(minutes=minutes),
        "updated_at": BASE_TIME + timedelta(minutes=minutes),
    })


def test_empty_filter_matches_everything() -> None:
    assert build_post_query(FeedFilter()) == {}


def test_filter_composition() -> None:
    query = build_post_query(FeedFilter(user_id="abc", q="  desk ", type=PostTypeFilter.HAVE))

    assert query == {
        "user_id": "abc",
        "type": "HAVE",
        "content": {"$regex": "desk", "$options": "i"},
    }


def test_blank_search_is_ignored() -> None:
    assert build_post_query(FeedFilter(q="   ")) == {}


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, PostTypeFilter.ALL),
        ("", PostTypeFilter.ALL),
        ("need", PostTypeFilter.NEED),
        ("HAVE", PostTypeFilter.HAVE),
        ("all", PostTypeFilter.ALL),
        ("bogus", PostTypeFilter.ALL),
    ],
)
def test_type_filter_parse(raw, expected) -> None:
    assert PostTypeFilter.parse(raw) == expected


def test_format_timestamp_is_utc_iso_with_millis() -> None:
    value = datetime(2024, 5, 1, 12, 30, 15, 123456, tzinfo=timezone.utc)

    assert format_timestamp(value) == "2024-05-01T12:30:15.123Z"
    assert format_timestamp(value.replace(tzinfo=None)) == "2024-05-01T12:30:15.123Z"


@pytest.mark.asyncio
async def test_feed_is_newest_first_for_any_mixture(feed: FeedQuery, database) -> None:
    ann, bob = str(ObjectId()), str(ObjectId())
    add_post(database, "third", ann, "HAVE", minutes=30)
    add_post(database, "first", bob, "NEED", minutes=0)
    add_post(database, "fourth", bob, "HAVE", minutes=45)
    add_post(database, "second", ann, "NEED", minutes=10)

    result = await feed.run(FeedFilter())

    assert [post.content for post in result] == ["fourth", "third", "second", "first"]


@pytest.mark.asyncio
async def test_same_timestamp_falls_back_to_insertion_order(feed: FeedQuery, database) -> None:
    author = str(ObjectId())
    add_post(database, "older", author)
    add_post(database, "newer", author)

    result = await feed.run(FeedFilter())

    assert [post.content for post in result] == ["newer", "older"]


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["a.*b", "(x", "[", "\\", "$^", "+?"])
async def test_search_treats_metacharacters_literally(feed: FeedQuery, database, query) -> None:
    author = str(ObjectId())
    add_post(database, "axxxb and nothing else", author, minutes=0)
    add_post(database, f"literal {query} inside", author, minutes=1)

    result = await feed.run(FeedFilter(q=query))

    assert [post.content for post in result] == [f"literal {query} inside"]


@pytest.mark.asyncio
async def test_search_is_case_insensitive_and_type_filtered(
    feed: FeedQuery, posts, users
) -> None:
    ann = await users.create_user("Ann", "ann@example.com", "hash")
    await posts.create_post(PostType.NEED, "need office space", ann.id)

    found = await feed.run(FeedFilter(q="OFFICE"))
    have_only = await feed.run(FeedFilter(type=PostTypeFilter.HAVE))

    assert [post.content for post in found] == ["need office space"]
    assert found[0].user_name == "Ann"
    assert have_only == []


@pytest.mark.asyncio
async def test_hydration_batches_names_and_falls_back(feed: FeedQuery, users, database) -> None:
    ann = await users.create_user("Ann", "ann@example.com", "hash")
    ghost = str(ObjectId())
    add_post(database, "by ann", ann.id, minutes=3)
    add_post(database, "by a deleted user", ghost, minutes=2)
    add_post(database, "legacy author id", "not-an-object-id", minutes=1)

    result = await feed.run(FeedFilter())

    assert [(post.content, post.user_name) for post in result] == [
        ("by ann", "Ann"),
        ("by a deleted user", UNKNOWN_USER),
        ("legacy author id", UNKNOWN_USER),
    ]


@pytest.mark.asyncio
async def test_hydration_failure_degrades_to_unknown(feed: FeedQuery, users, database) -> None:
    ann = await users.create_user("Ann", "ann@example.com", "hash")
    add_post(database, "by ann", ann.id)
    database["users"].find_error = RuntimeError("users unavailable")

    result = await feed.run(FeedFilter())

    assert [post.user_name for post in result] == [UNKNOWN_USER]


@pytest.mark.asyncio
async def test_my_posts_resolves_single_author(feed: FeedQuery, users, database) -> None:
    ann = await users.create_user("Ann", "ann@example.com", "hash")
    bob = await users.create_user("Bob", "bob@example.com", "hash")
    add_post(database, "ann one", ann.id, minutes=1)
    add_post(database, "bob one", bob.id, minutes=2)
    add_post(database, "ann two", ann.id, minutes=3)

    result = await feed.run(FeedFilter(user_id=ann.id))

    assert [post.content for post in result] == ["ann two", "ann one"]
    assert {post.user_name for post in result} == {"Ann"}


@pytest.mark.asyncio
async def test_my_posts_for_unknown_author(feed: FeedQuery, database) -> None:
    add_post(database, "orphan", "legacy-id")

    result = await feed.run(FeedFilter(user_id="legacy-id"))

    assert [(post.content, post.user_name) for post in result] == [("orphan", UNKNOWN_USER)]


@pytest.mark.asyncio
async def test_shaped_record_fields(feed: FeedQuery, posts, users) -> None:
    ann = await users.create_user("Ann", "ann@example.com", "hash")
    created = await posts.create_post(PostType.HAVE, "spare chair", ann.id, "/uploads/c.png")

    [post] = await feed.run(FeedFilter())

    dumped = post.model_dump(by_alias=True)
    assert dumped["id"] == created.id
    assert dumped["userId"] == ann.id
    assert dumped["userName"] == "Ann"
    assert dumped["imageUrl"] == "/uploads/c.png"
    assert dumped["createdAt"].endswith("Z")
