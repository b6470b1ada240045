from __future__ import annotations

import json
import sqlite3
from typing import Mapping, Sequence

MOVIES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS movies (
    imdb_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    poster TEXT,
    synopsis TEXT DEFAULT '',
    cast_json TEXT DEFAULT '[]',
    ratings_json TEXT DEFAULT '{}',
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

REVIEWS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS reviews (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    movie_id TEXT NOT NULL,
    movie_title TEXT,
    user_id TEXT NOT NULL DEFAULT 'anonymous',
    username TEXT NOT NULL DEFAULT 'Anonymous User',
    parent_id INTEGER REFERENCES reviews(id) ON DELETE CASCADE,
    review_text TEXT NOT NULL,
    upvotes INTEGER NOT NULL DEFAULT 0,
    downvotes INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

RATINGS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS ratings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    movie_id TEXT NOT NULL,
    movie_title TEXT,
    user_id TEXT NOT NULL DEFAULT 'anonymous',
    acting REAL,
    screenplay REAL,
    sound REAL,
    direction REAL,
    entertainment REAL,
    pacing REAL,
    cinematography REAL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT
);
"""

# Watchlist, likes and watched history share one shape.
SHELF_TABLES = {
    "watchlist": ("user_watchlist", "added_at"),
    "liked": ("user_liked_movies", "liked_at"),
    "watched": ("user_watched_movies", "watched_at"),
}

SHELF_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS {table} (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    movie_id TEXT NOT NULL,
    movie_title TEXT,
    poster_path TEXT,
    media_type TEXT NOT NULL DEFAULT 'movie',
    {stamp} TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (user_id, movie_id)
);
"""

COLLECTIONS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS user_collections (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT NOT NULL,
    name TEXT NOT NULL,
    description TEXT DEFAULT '',
    is_public INTEGER NOT NULL DEFAULT 1,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

COLLECTION_MOVIES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS collection_movies (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    collection_id INTEGER NOT NULL REFERENCES user_collections(id) ON DELETE CASCADE,
    movie_id TEXT NOT NULL,
    movie_title TEXT,
    poster_path TEXT,
    media_type TEXT NOT NULL DEFAULT 'movie',
    added_at TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (collection_id, movie_id)
);
"""

FOLLOWS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS user_follows (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    follower_id TEXT NOT NULL,
    following_id TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    UNIQUE (follower_id, following_id)
);
"""

PROFILES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS user_profiles (
    id TEXT PRIMARY KEY,
    username TEXT UNIQUE,
    display_name TEXT,
    avatar_id INTEGER,
    date_of_birth TEXT,
    is_onboarded INTEGER NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""

INDEX_SQL: Sequence[str] = (
    "CREATE INDEX IF NOT EXISTS ix_reviews_movie ON reviews (movie_id, created_at);",
    "CREATE INDEX IF NOT EXISTS ix_ratings_movie_user ON ratings (movie_id, user_id);",
    "CREATE INDEX IF NOT EXISTS ix_follows_following ON user_follows (following_id);",
)


def init_db(conn: sqlite3.Connection) -> None:
    """Create tables and indexes if they do not yet exist."""
    conn.execute(MOVIES_TABLE_SQL)
    conn.execute(REVIEWS_TABLE_SQL)
    conn.execute(RATINGS_TABLE_SQL)
    for table, stamp in SHELF_TABLES.values():
        conn.execute(SHELF_TABLE_SQL.format(table=table, stamp=stamp))
    conn.execute(COLLECTIONS_TABLE_SQL)
    conn.execute(COLLECTION_MOVIES_TABLE_SQL)
    conn.execute(FOLLOWS_TABLE_SQL)
    conn.execute(PROFILES_TABLE_SQL)
    for stmt in INDEX_SQL:
        conn.execute(stmt)
    conn.commit()


def movie_row_to_dict(row: Mapping[str, object]) -> dict:
    """Convert a sqlite3.Row from movies into the cached movie document."""
    data = dict(row)
    return {
        "imdb_id": data.get("imdb_id"),
        "title": data.get("title"),
        "poster": data.get("poster"),
        "synopsis": data.get("synopsis") or "",
        "cast": json.loads(data.get("cast_json") or "[]"),
        "ratings": json.loads(data.get("ratings_json") or "{}"),
    }


def collection_row_to_dict(row: Mapping[str, object]) -> dict:
    data = dict(row)
    data["is_public"] = bool(data.get("is_public"))
    return data


def profile_row_to_dict(row: Mapping[str, object]) -> dict:
    data = dict(row)
    data["is_onboarded"] = bool(data.get("is_onboarded"))
    return data
