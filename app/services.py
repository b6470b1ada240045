from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .models import SHELF_TABLES, collection_row_to_dict, movie_row_to_dict, profile_row_to_dict
from .threads import build_threads

ANONYMOUS = "anonymous"
RATING_CATEGORIES = ("acting", "screenplay", "sound", "direction", "entertainment", "pacing", "cinematography")
VOTE_DIRECTIONS = ("up", "down", "unup")


def _now() -> str:
    return datetime.utcnow().isoformat(timespec="seconds")


def _dicts(rows) -> List[dict]:
    return [dict(row) for row in rows]


# ----- movie cache -----

def upsert_movies(conn: sqlite3.Connection, docs: List[dict]) -> Tuple[int, int]:
    """Insert or update cached OMDb movies. Returns (inserted, updated)."""
    if not docs:
        return 0, 0

    inserted = updated = 0
    cur = conn.cursor()
    now = _now()

    for doc in docs:
        if not doc.get("imdb_id"):
            continue
        payload = (
            doc.get("title") or "Untitled",
            doc.get("poster"),
            doc.get("synopsis") or "",
            json.dumps(doc.get("cast") or []),
            json.dumps(doc.get("ratings") or {}),
        )
        cur.execute("SELECT 1 FROM movies WHERE imdb_id = ?", (doc["imdb_id"],))
        if cur.fetchone():
            cur.execute(
                """
                UPDATE movies
                SET title = ?, poster = ?, synopsis = ?, cast_json = ?, ratings_json = ?, updated_at = ?
                WHERE imdb_id = ?
                """,
                (*payload, now, doc["imdb_id"]),
            )
            updated += int(cur.rowcount > 0)
        else:
            cur.execute(
                """
                INSERT INTO movies (imdb_id, title, poster, synopsis, cast_json, ratings_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (doc["imdb_id"], *payload, now, now),
            )
            inserted += 1
    conn.commit()
    return inserted, updated


def get_movie(conn: sqlite3.Connection, imdb_id: str) -> Optional[dict]:
    row = conn.execute("SELECT * FROM movies WHERE imdb_id = ?", (imdb_id,)).fetchone()
    return movie_row_to_dict(row) if row else None


# ----- reviews -----

def list_reviews(conn: sqlite3.Connection, movie_id: str) -> List[dict]:
    rows = conn.execute(
        "SELECT * FROM reviews WHERE movie_id = ? ORDER BY created_at ASC, id ASC",
        (str(movie_id),),
    ).fetchall()
    return _dicts(rows)


def threaded_reviews(conn: sqlite3.Connection, movie_id: str) -> List[dict]:
    return build_threads(list_reviews(conn, movie_id))


def get_review(conn: sqlite3.Connection, review_id: int) -> Optional[dict]:
    row = conn.execute("SELECT * FROM reviews WHERE id = ?", (review_id,)).fetchone()
    return dict(row) if row else None


def create_review(
    conn: sqlite3.Connection,
    movie_id: str,
    review_text: str,
    movie_title: str | None = None,
    user_id: str = ANONYMOUS,
    username: str = "Anonymous User",
    parent_id: int | None = None,
) -> dict:
    """Store a top-level review, or a reply when ``parent_id`` is given."""
    movie_id = str(movie_id)
    if parent_id is not None:
        parent = get_review(conn, parent_id)
        if not parent or parent["movie_id"] != movie_id:
            raise LookupError("Parent review not found")

    cur = conn.execute(
        """
        INSERT INTO reviews (movie_id, movie_title, user_id, username, parent_id, review_text,
                             upvotes, downvotes, created_at)
        VALUES (?, ?, ?, ?, ?, ?, 0, 0, ?)
        """,
        (movie_id, movie_title, user_id or ANONYMOUS, username or "Anonymous User", parent_id, review_text, _now()),
    )
    conn.commit()
    return get_review(conn, cur.lastrowid)


def vote_review(conn: sqlite3.Connection, review_id: int, direction: str) -> dict:
    """Apply an upvote, a downvote, or take back an upvote (never below zero)."""
    if direction not in VOTE_DIRECTIONS:
        raise ValueError(f"direction must be one of: {', '.join(VOTE_DIRECTIONS)}")
    if not get_review(conn, review_id):
        raise LookupError("Review not found")

    if direction == "up":
        sql = "UPDATE reviews SET upvotes = upvotes + 1 WHERE id = ?"
    elif direction == "down":
        sql = "UPDATE reviews SET downvotes = downvotes + 1 WHERE id = ?"
    else:
        sql = "UPDATE reviews SET upvotes = MAX(0, upvotes - 1) WHERE id = ?"
    conn.execute(sql, (review_id,))
    conn.commit()
    return get_review(conn, review_id)


# ----- ratings -----

def get_user_rating(conn: sqlite3.Connection, user_id: str, movie_id: str) -> Optional[dict]:
    if not user_id or user_id == ANONYMOUS:
        return None
    row = conn.execute(
        "SELECT * FROM ratings WHERE user_id = ? AND movie_id = ? ORDER BY id LIMIT 1",
        (user_id, str(movie_id)),
    ).fetchone()
    return dict(row) if row else None


def submit_rating(
    conn: sqlite3.Connection,
    movie_id: str,
    scores: Dict[str, Any],
    movie_title: str | None = None,
    user_id: str = ANONYMOUS,
) -> Tuple[dict, bool]:
    """Insert or update a user's category ratings. Returns (row, updated)."""
    movie_id = str(movie_id)
    values = [scores.get(category) for category in RATING_CATEGORIES]
    existing = get_user_rating(conn, user_id, movie_id)

    if existing:
        assignments = ", ".join(f"{category} = ?" for category in RATING_CATEGORIES)
        conn.execute(
            f"UPDATE ratings SET {assignments}, updated_at = ? WHERE id = ?",
            (*values, _now(), existing["id"]),
        )
        conn.commit()
        row_id, updated = existing["id"], True
    else:
        columns = ", ".join(RATING_CATEGORIES)
        placeholders = ", ".join("?" for _ in RATING_CATEGORIES)
        cur = conn.execute(
            f"""
            INSERT INTO ratings (movie_id, movie_title, user_id, {columns}, created_at)
            VALUES (?, ?, ?, {placeholders}, ?)
            """,
            (movie_id, movie_title, user_id or ANONYMOUS, *values, _now()),
        )
        conn.commit()
        row_id, updated = cur.lastrowid, False

    row = conn.execute("SELECT * FROM ratings WHERE id = ?", (row_id,)).fetchone()
    return dict(row), updated


def aggregate_ratings(conn: sqlite3.Connection, movie_id: str) -> Optional[dict]:
    """Average every category over the ratings that filled it in."""
    rows = _dicts(conn.execute("SELECT * FROM ratings WHERE movie_id = ?", (str(movie_id),)).fetchall())
    if not rows:
        return None

    aggregates: Dict[str, Any] = {}
    for category in RATING_CATEGORIES:
        valid = [row[category] for row in rows if row[category] is not None]
        if valid:
            aggregates[category] = sum(valid) / len(valid)
    aggregates["totalRatings"] = len(rows)
    return aggregates


# ----- watchlist / likes / watched -----

def _shelf(shelf: str) -> Tuple[str, str]:
    try:
        return SHELF_TABLES[shelf]
    except KeyError:
        raise ValueError(f"shelf must be one of: {', '.join(SHELF_TABLES)}") from None


def toggle_shelf(
    conn: sqlite3.Connection,
    shelf: str,
    user_id: str,
    movie_id: str,
    movie_title: str | None = None,
    poster_path: str | None = None,
    media_type: str = "movie",
) -> bool:
    """Add the title when absent, remove it when present. Returns True when added."""
    table, stamp = _shelf(shelf)
    movie_id = str(movie_id)
    existing = conn.execute(
        f"SELECT id FROM {table} WHERE user_id = ? AND movie_id = ?",
        (user_id, movie_id),
    ).fetchone()

    with conn:
        if existing:
            conn.execute(f"DELETE FROM {table} WHERE id = ?", (existing["id"],))
            return False
        conn.execute(
            f"""
            INSERT INTO {table} (user_id, movie_id, movie_title, poster_path, media_type, {stamp})
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user_id, movie_id, movie_title, poster_path, media_type or "movie", _now()),
        )
    return True


def list_shelf(conn: sqlite3.Connection, shelf: str, user_id: str) -> List[dict]:
    table, stamp = _shelf(shelf)
    rows = conn.execute(
        f"SELECT * FROM {table} WHERE user_id = ? ORDER BY {stamp} DESC, id DESC",
        (user_id,),
    ).fetchall()
    return _dicts(rows)


def shelf_status(conn: sqlite3.Connection, user_id: str, movie_id: str) -> Dict[str, bool]:
    def present(shelf: str) -> bool:
        table, _ = SHELF_TABLES[shelf]
        row = conn.execute(
            f"SELECT 1 FROM {table} WHERE user_id = ? AND movie_id = ? LIMIT 1",
            (user_id, str(movie_id)),
        ).fetchone()
        return row is not None

    return {
        "inWatchlist": present("watchlist"),
        "isLiked": present("liked"),
        "isWatched": present("watched"),
    }


# ----- collections -----

def create_collection(
    conn: sqlite3.Connection,
    user_id: str,
    name: str,
    description: str = "",
    is_public: bool = True,
) -> dict:
    cur = conn.execute(
        "INSERT INTO user_collections (user_id, name, description, is_public, created_at) VALUES (?, ?, ?, ?, ?)",
        (user_id, name, description or "", int(bool(is_public)), _now()),
    )
    conn.commit()
    return get_collection(conn, cur.lastrowid)


def get_collection(conn: sqlite3.Connection, collection_id: int) -> Optional[dict]:
    row = conn.execute("SELECT * FROM user_collections WHERE id = ?", (collection_id,)).fetchone()
    if not row:
        return None
    collection = collection_row_to_dict(row)
    collection["movies"] = _dicts(
        conn.execute(
            "SELECT * FROM collection_movies WHERE collection_id = ? ORDER BY added_at ASC, id ASC",
            (collection_id,),
        ).fetchall()
    )
    return collection


def list_collections(conn: sqlite3.Connection, user_id: str) -> List[dict]:
    rows = conn.execute(
        "SELECT id FROM user_collections WHERE user_id = ? ORDER BY created_at DESC, id DESC",
        (user_id,),
    ).fetchall()
    return [get_collection(conn, row["id"]) for row in rows]


def update_collection(conn: sqlite3.Connection, collection_id: int, updates: Dict[str, Any]) -> Optional[dict]:
    fields = {key: updates[key] for key in ("name", "description", "is_public") if key in updates}
    if "is_public" in fields:
        fields["is_public"] = int(bool(fields["is_public"]))
    if fields:
        assignments = ", ".join(f"{key} = ?" for key in fields)
        conn.execute(
            f"UPDATE user_collections SET {assignments} WHERE id = ?",
            (*fields.values(), collection_id),
        )
        conn.commit()
    return get_collection(conn, collection_id)


def delete_collection(conn: sqlite3.Connection, collection_id: int) -> int:
    cur = conn.execute("DELETE FROM user_collections WHERE id = ?", (collection_id,))
    conn.commit()
    return cur.rowcount


def add_to_collection(
    conn: sqlite3.Connection,
    collection_id: int,
    movie_id: str,
    movie_title: str | None = None,
    poster_path: str | None = None,
    media_type: str = "movie",
) -> bool:
    """Returns False when the title was already in the collection."""
    cur = conn.execute(
        """
        INSERT OR IGNORE INTO collection_movies (collection_id, movie_id, movie_title, poster_path, media_type, added_at)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (collection_id, str(movie_id), movie_title, poster_path, media_type or "movie", _now()),
    )
    conn.commit()
    return cur.rowcount > 0


def remove_from_collection(conn: sqlite3.Connection, collection_id: int, movie_id: str) -> int:
    cur = conn.execute(
        "DELETE FROM collection_movies WHERE collection_id = ? AND movie_id = ?",
        (collection_id, str(movie_id)),
    )
    conn.commit()
    return cur.rowcount


# ----- follows -----

def follow(conn: sqlite3.Connection, follower_id: str, following_id: str) -> bool:
    if follower_id == following_id:
        raise ValueError("Users cannot follow themselves")
    cur = conn.execute(
        "INSERT OR IGNORE INTO user_follows (follower_id, following_id, created_at) VALUES (?, ?, ?)",
        (follower_id, following_id, _now()),
    )
    conn.commit()
    return cur.rowcount > 0


def unfollow(conn: sqlite3.Connection, follower_id: str, following_id: str) -> int:
    cur = conn.execute(
        "DELETE FROM user_follows WHERE follower_id = ? AND following_id = ?",
        (follower_id, following_id),
    )
    conn.commit()
    return cur.rowcount


def is_following(conn: sqlite3.Connection, follower_id: str, following_id: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM user_follows WHERE follower_id = ? AND following_id = ? LIMIT 1",
        (follower_id, following_id),
    ).fetchone()
    return row is not None


_FOLLOW_PROFILE_SQL = """
SELECT f.{other} AS user_id, p.username, p.display_name, p.avatar_id
FROM user_follows f
LEFT JOIN user_profiles p ON p.id = f.{other}
WHERE f.{own} = ?
ORDER BY f.created_at DESC, f.id DESC
"""


def followers(conn: sqlite3.Connection, user_id: str) -> List[dict]:
    """Users following ``user_id``, with whatever profile fields they have set."""
    sql = _FOLLOW_PROFILE_SQL.format(other="follower_id", own="following_id")
    return _dicts(conn.execute(sql, (user_id,)).fetchall())


def following(conn: sqlite3.Connection, user_id: str) -> List[dict]:
    sql = _FOLLOW_PROFILE_SQL.format(other="following_id", own="follower_id")
    return _dicts(conn.execute(sql, (user_id,)).fetchall())


def follow_counts(conn: sqlite3.Connection, user_id: str) -> Dict[str, int]:
    row = conn.execute(
        """
        SELECT
            (SELECT COUNT(*) FROM user_follows WHERE following_id = ?) AS followers,
            (SELECT COUNT(*) FROM user_follows WHERE follower_id = ?) AS following
        """,
        (user_id, user_id),
    ).fetchone()
    return {"followers": row["followers"], "following": row["following"]}


# ----- profiles -----

PROFILE_FIELDS = ("username", "display_name", "avatar_id", "date_of_birth", "is_onboarded")


def get_profile(conn: sqlite3.Connection, user_id: str) -> Optional[dict]:
    row = conn.execute("SELECT * FROM user_profiles WHERE id = ?", (user_id,)).fetchone()
    return profile_row_to_dict(row) if row else None


def get_profile_by_username(conn: sqlite3.Connection, username: str) -> Optional[dict]:
    if not username:
        return None
    row = conn.execute("SELECT * FROM user_profiles WHERE username = ?", (username.lower(),)).fetchone()
    return profile_row_to_dict(row) if row else None


def username_available(conn: sqlite3.Connection, username: str, user_id: str | None = None) -> bool:
    """True when nobody (other than ``user_id`` itself) holds the username."""
    row = conn.execute("SELECT id FROM user_profiles WHERE username = ?", (username.lower(),)).fetchone()
    return row is None or (user_id is not None and row["id"] == user_id)


def save_profile(conn: sqlite3.Connection, user_id: str, updates: Dict[str, Any]) -> dict:
    """
    Create or update a profile. Usernames are stored lowercased and must be
    unique; a taken one raises ValueError.
    """
    fields = {key: updates[key] for key in PROFILE_FIELDS if key in updates}
    if fields.get("username") is not None:
        fields["username"] = fields["username"].lower()
        if not username_available(conn, fields["username"], user_id):
            raise ValueError("This username is taken")
    if "is_onboarded" in fields:
        fields["is_onboarded"] = int(bool(fields["is_onboarded"]))

    now = _now()
    with conn:
        conn.execute(
            "INSERT OR IGNORE INTO user_profiles (id, created_at, updated_at) VALUES (?, ?, ?)",
            (user_id, now, now),
        )
        if fields:
            assignments = ", ".join(f"{key} = ?" for key in fields)
            conn.execute(
                f"UPDATE user_profiles SET {assignments}, updated_at = ? WHERE id = ?",
                (*fields.values(), now, user_id),
            )
    return get_profile(conn, user_id)


def search_profiles(conn: sqlite3.Connection, text: str, limit: int = 10) -> List[dict]:
    """Username substring search; fewer than two characters returns nothing."""
    if not text or len(text) < 2:
        return []
    pattern = "%" + text.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
    rows = conn.execute(
        """
        SELECT id, username, display_name, avatar_id
        FROM user_profiles
        WHERE username LIKE ? ESCAPE '\\'
        ORDER BY username
        LIMIT ?
        """,
        (pattern, limit),
    ).fetchall()
    return _dicts(rows)


def ratings_count(conn: sqlite3.Connection, user_id: str) -> int:
    if not user_id:
        return 0
    row = conn.execute("SELECT COUNT(*) AS cnt FROM ratings WHERE user_id = ?", (user_id,)).fetchone()
    return row["cnt"]
