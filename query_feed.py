#!/usr/bin/env python3
"""
Smoke script for the NEED/HAVE board: log in and print the feed for a query.

Usage: python query_feed.py [search text]
"""

import os
import sys

from app.clients.api_client import ClassifiedsClient, ClientError
from app.clients.session import SessionStore

# Configuration
BASE_URL = os.environ.get("BOARD_API_URL", "http://localhost:5000")
EMAIL = os.environ.get("BOARD_EMAIL", "demo@example.com")
PASSWORD = os.environ.get("BOARD_PASSWORD", "demo1234")
SESSION_FILE = os.environ.get("BOARD_SESSION_FILE", ".board_session.json")


def login(client: ClassifiedsClient) -> bool:
    """Reuse a cached session or log in again."""
    if client.session.initialize():
        print(f"🔐 Using cached session for {client.session.user['email']}\n")
        return True

    print("🔐 Logging in...")
    try:
        client.login(EMAIL, PASSWORD)
    except ClientError as e:
        print(f"❌ Login failed: {e.message}")
        return False

    print("✅ Login successful!\n")
    return True


def print_feed(client: ClassifiedsClient, query: str, post_type: str = None):
    print(f"📝 Query: {query or '(all posts)'}\n")
    print("=" * 80)

    try:
        posts = client.list_posts(q=query, post_type=post_type)
    except ClientError as e:
        print(f"❌ Error: {e.message}")
        return

    if not posts:
        print("No matching posts.")

    for post in posts:
        print(f"[{post['type']}] {post['userName']} @ {post['createdAt']}")
        print(f"    {post['content']}")
        if post.get("imageUrl"):
            print(f"    🖼  {BASE_URL}{post['imageUrl']}")

    print("=" * 80)
    print(f"✅ {len(posts)} post(s)")


def main():
    client = ClassifiedsClient(BASE_URL, session=SessionStore(SESSION_FILE))

    if not login(client):
        sys.exit(1)

    query = " ".join(sys.argv[1:])
    print_feed(client, query, post_type=os.environ.get("BOARD_POST_TYPE"))


if __name__ == "__main__":
    main()
