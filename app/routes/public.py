# /theaterorstream/app/routes/public.py
import re
import sqlite3

import requests
from flask import Blueprint, jsonify, request, current_app

from backend.db import get_db, query
from ..omdb import OMDbClient
from ..parental_guide import classify, certification_from_content_ratings, certification_from_release_dates
from ..review_analysis import analyze_reviews, scrape_reviews
from ..services import (
    ANONYMOUS,
    RATING_CATEGORIES,
    add_to_collection,
    aggregate_ratings,
    create_collection,
    create_review,
    delete_collection,
    follow,
    follow_counts,
    followers,
    following,
    get_collection,
    get_movie,
    get_profile,
    get_profile_by_username,
    get_user_rating,
    is_following,
    list_collections,
    list_shelf,
    ratings_count,
    remove_from_collection,
    save_profile,
    search_profiles,
    shelf_status,
    submit_rating,
    threaded_reviews,
    toggle_shelf,
    unfollow,
    update_collection,
    upsert_movies,
    username_available,
    vote_review,
)
from ..models import SHELF_TABLES
from ..tmdb import TMDbClient

bp = Blueprint("public", __name__, url_prefix="/api")
scraper_bp = Blueprint("scraper", __name__, url_prefix="/scraper")


def _tmdb() -> TMDbClient:
    return current_app.config.get("TMDB_CLIENT") or TMDbClient(api_key=current_app.config.get("TMDB_API_KEY"))


def _omdb() -> OMDbClient:
    return current_app.config.get("OMDB_CLIENT") or OMDbClient(api_key=current_app.config.get("OMDB_API_KEY"))


def _get_int(param: str | None, default: int, minimum: int = 1, maximum: int | None = None) -> int:
    try:
        value = int(param) if param is not None else default
    except (TypeError, ValueError):
        value = default
    value = max(minimum, value)
    if maximum is not None:
        value = min(value, maximum)
    return value


def _upstream_error(exc: Exception):
    current_app.logger.warning("Upstream request failed: %s", exc)
    return jsonify({"ok": False, "error": f"upstream-error: {exc}"}), 502


def _not_configured(exc: RuntimeError):
    current_app.logger.error("%s", exc)
    return jsonify({"ok": False, "error": str(exc)}), 503


def _json_body() -> dict | None:
    """The JSON object sent with the request; None when the body is some other JSON value."""
    payload = request.get_json(force=True, silent=True)
    if payload is None:
        return {}
    return payload if isinstance(payload, dict) else None


def _bad_body():
    return jsonify({"ok": False, "error": "Request body must be a JSON object"}), 400


@bp.get("/health")
def health():
    try:
        query("SELECT 1")
    except sqlite3.Error as exc:
        return jsonify({"status": "unhealthy", "error": str(exc)}), 503
    return jsonify({"status": "healthy"})


# ----- catalog -----

@bp.get("/movies")
def search_movies():
    """Search OMDb for movies and cache every detailed result locally."""
    search = request.args.get("search")
    if not search or not search.strip():
        return jsonify({"error": "Invalid search query"}), 400

    try:
        movies = _omdb().search_detailed(search.strip())
    except RuntimeError as exc:
        return _not_configured(exc)
    except requests.RequestException as exc:
        return _upstream_error(exc)

    if not movies:
        return jsonify({"error": "No movies found"}), 404

    inserted, updated = upsert_movies(get_db(), movies)
    current_app.logger.info("Cached %d new and %d refreshed movies for %r", inserted, updated, search)
    return jsonify(movies)


@bp.get("/movies/<imdb_id>")
def movie_detail(imdb_id: str):
    movie = get_movie(get_db(), imdb_id)
    if not movie:
        return jsonify({"ok": False, "error": "Movie not found"}), 404
    return jsonify(movie)


@bp.get("/configuration")
def configuration():
    try:
        image_url = _tmdb().image_base_url()
    except RuntimeError as exc:
        return _not_configured(exc)
    except requests.RequestException as exc:
        return _upstream_error(exc)
    return jsonify({"image_url": image_url})


@bp.get("/trending")
def trending():
    window = request.args.get("window", "week")
    if window not in {"day", "week"}:
        return jsonify({"ok": False, "error": "window must be 'day' or 'week'"}), 400
    page = _get_int(request.args.get("page"), 1, maximum=500)
    try:
        data = _tmdb().trending_all(window, page)
    except RuntimeError as exc:
        return _not_configured(exc)
    except requests.RequestException as exc:
        return _upstream_error(exc)
    return jsonify({
        "page": data.get("page", page),
        "total_pages": data.get("total_pages", 1),
        "results": [TMDbClient.normalize(item) for item in data.get("results", [])],
    })


@bp.get("/search")
def search():
    q = (request.args.get("q") or "").strip()
    page = _get_int(request.args.get("page"), 1, maximum=500)
    try:
        data = _tmdb().search_multi(q, page)
    except RuntimeError as exc:
        return _not_configured(exc)
    except requests.RequestException as exc:
        return _upstream_error(exc)
    results = [
        TMDbClient.normalize(item)
        for item in data.get("results", [])
        if item.get("media_type") in (None, "movie", "tv")
    ]
    return jsonify({
        "page": data.get("page", page),
        "total_pages": data.get("total_pages", 1),
        "total_results": data.get("total_results", len(results)),
        "results": results,
    })


@bp.get("/parental-guide/<media_type>/<int:tmdb_id>")
def parental_guide(media_type: str, tmdb_id: int):
    """Certification and genres from TMDb, turned into parental-guide levels."""
    if media_type not in {"movie", "tv"}:
        return jsonify({"ok": False, "error": "media_type must be 'movie' or 'tv'"}), 400

    regions = current_app.config.get("CERTIFICATION", {})
    try:
        client = _tmdb()
        details = client.details(media_type, tmdb_id)
        if media_type == "movie":
            certification = certification_from_release_dates(
                client.movie_release_dates(tmdb_id), regions.get("movie_regions", ("US", "IN", "GB"))
            )
        else:
            certification = certification_from_content_ratings(
                client.tv_content_ratings(tmdb_id), regions.get("tv_regions", ("US", "IN"))
            )
    except RuntimeError as exc:
        return _not_configured(exc)
    except requests.RequestException as exc:
        return _upstream_error(exc)

    genres = details.get("genres") or []
    guide = classify(certification, genres)
    return jsonify({
        "ok": True,
        "certification": certification,
        "genres": [g.get("name") for g in genres],
        "guide": guide.to_dict(),
    })


# ----- reviews & votes -----

@bp.get("/titles/<movie_id>/reviews")
def get_reviews(movie_id: str):
    """All reviews for a title as a tree of root reviews with nested replies."""
    reviews = threaded_reviews(get_db(), movie_id)
    return jsonify({"ok": True, "reviews": reviews, "count": len(reviews)})


@bp.post("/titles/<movie_id>/reviews")
def post_review(movie_id: str):
    payload = _json_body()
    if payload is None:
        return _bad_body()
    review_text = (payload.get("review_text") or "").strip()
    if not review_text:
        return jsonify({"ok": False, "error": "review_text is required"}), 400

    parent_id = payload.get("parent_id")
    if parent_id is not None and (isinstance(parent_id, bool) or not isinstance(parent_id, int)):
        return jsonify({"ok": False, "error": "parent_id must be an integer"}), 400

    try:
        review = create_review(
            get_db(),
            movie_id,
            review_text,
            movie_title=payload.get("movie_title"),
            user_id=str(payload.get("user_id") or ANONYMOUS),
            username=payload.get("username") or "Anonymous User",
            parent_id=parent_id,
        )
    except LookupError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 404
    return jsonify({"ok": True, "review": review}), 201


def _vote(review_id: int, direction: str):
    try:
        review = vote_review(get_db(), review_id, direction)
    except LookupError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 404
    return jsonify({"ok": True, "review": review})


@bp.post("/reviews/<int:review_id>/upvote")
def upvote(review_id: int):
    return _vote(review_id, "up")


@bp.delete("/reviews/<int:review_id>/upvote")
def remove_upvote(review_id: int):
    return _vote(review_id, "unup")


@bp.post("/reviews/<int:review_id>/downvote")
def downvote(review_id: int):
    return _vote(review_id, "down")


# ----- ratings -----

@bp.get("/titles/<movie_id>/ratings")
def get_ratings(movie_id: str):
    return jsonify({"ok": True, "ratings": aggregate_ratings(get_db(), movie_id)})


@bp.get("/titles/<movie_id>/ratings/<user_id>")
def get_rating_for_user(movie_id: str, user_id: str):
    return jsonify({"ok": True, "rating": get_user_rating(get_db(), user_id, movie_id)})


@bp.post("/titles/<movie_id>/ratings")
def post_rating(movie_id: str):
    payload = _json_body()
    if payload is None:
        return _bad_body()
    scores = payload.get("ratings") or {}
    if not isinstance(scores, dict):
        return jsonify({"ok": False, "error": "ratings must be an object"}), 400

    for category in RATING_CATEGORIES:
        value = scores.get(category)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not 1 <= value <= 10:
            return jsonify({"ok": False, "error": f"{category} must be a number between 1 and 10"}), 400
    if all(scores.get(category) is None for category in RATING_CATEGORIES):
        return jsonify({"ok": False, "error": "At least one rating category is required"}), 400

    row, updated = submit_rating(
        get_db(),
        movie_id,
        scores,
        movie_title=payload.get("movie_title"),
        user_id=str(payload.get("user_id") or ANONYMOUS),
    )
    return jsonify({"ok": True, "rating": row, "updated": updated})


# ----- watchlist / likes / watched -----

@bp.get("/users/<user_id>/status/<movie_id>")
def title_status(user_id: str, movie_id: str):
    return jsonify({"ok": True, **shelf_status(get_db(), user_id, movie_id)})


@bp.get("/users/<user_id>/<shelf>")
def get_shelf(user_id: str, shelf: str):
    if shelf not in SHELF_TABLES:
        return jsonify({"ok": False, "error": f"Unknown list '{shelf}'"}), 404
    return jsonify({"ok": True, "items": list_shelf(get_db(), shelf, user_id)})


@bp.post("/users/<user_id>/<shelf>")
def toggle_shelf_entry(user_id: str, shelf: str):
    if shelf not in SHELF_TABLES:
        return jsonify({"ok": False, "error": f"Unknown list '{shelf}'"}), 404
    if user_id == ANONYMOUS:
        return jsonify({"ok": False, "error": "Not logged in"}), 401

    payload = _json_body()
    if payload is None:
        return _bad_body()
    movie_id = payload.get("movie_id")
    if movie_id in (None, ""):
        return jsonify({"ok": False, "error": "movie_id is required"}), 400

    added = toggle_shelf(
        get_db(),
        shelf,
        user_id,
        movie_id,
        movie_title=payload.get("movie_title"),
        poster_path=payload.get("poster_path"),
        media_type=payload.get("media_type") or "movie",
    )
    return jsonify({"ok": True, "added": added})


# ----- collections -----

@bp.get("/users/<user_id>/collections")
def get_user_collections(user_id: str):
    return jsonify({"ok": True, "collections": list_collections(get_db(), user_id)})


@bp.post("/users/<user_id>/collections")
def post_collection(user_id: str):
    payload = _json_body()
    if payload is None:
        return _bad_body()
    name = (payload.get("name") or "").strip()
    if not name:
        return jsonify({"ok": False, "error": "name is required"}), 400
    if not isinstance(payload.get("is_public", True), bool):
        return jsonify({"ok": False, "error": "is_public must be a boolean"}), 400
    collection = create_collection(
        get_db(),
        user_id,
        name,
        description=payload.get("description") or "",
        is_public=payload.get("is_public", True),
    )
    return jsonify({"ok": True, "collection": collection}), 201


@bp.get("/collections/<int:collection_id>")
def collection_detail(collection_id: int):
    collection = get_collection(get_db(), collection_id)
    if not collection:
        return jsonify({"ok": False, "error": "Collection not found"}), 404
    return jsonify({"ok": True, "collection": collection})


@bp.put("/collections/<int:collection_id>")
def put_collection(collection_id: int):
    payload = _json_body()
    if payload is None:
        return _bad_body()
    if "name" in payload and not (payload.get("name") or "").strip():
        return jsonify({"ok": False, "error": "name cannot be empty"}), 400
    if "is_public" in payload and not isinstance(payload["is_public"], bool):
        return jsonify({"ok": False, "error": "is_public must be a boolean"}), 400
    conn = get_db()
    if not get_collection(conn, collection_id):
        return jsonify({"ok": False, "error": "Collection not found"}), 404
    return jsonify({"ok": True, "collection": update_collection(conn, collection_id, payload)})


@bp.delete("/collections/<int:collection_id>")
def remove_collection(collection_id: int):
    if not delete_collection(get_db(), collection_id):
        return jsonify({"ok": False, "error": "Collection not found"}), 404
    return jsonify({"ok": True})


@bp.post("/collections/<int:collection_id>/movies")
def post_collection_movie(collection_id: int):
    payload = _json_body()
    if payload is None:
        return _bad_body()
    movie_id = payload.get("movie_id")
    if movie_id in (None, ""):
        return jsonify({"ok": False, "error": "movie_id is required"}), 400

    conn = get_db()
    if not get_collection(conn, collection_id):
        return jsonify({"ok": False, "error": "Collection not found"}), 404
    added = add_to_collection(
        conn,
        collection_id,
        movie_id,
        movie_title=payload.get("movie_title"),
        poster_path=payload.get("poster_path"),
        media_type=payload.get("media_type") or "movie",
    )
    return jsonify({"ok": True, "added": added})


@bp.delete("/collections/<int:collection_id>/movies/<movie_id>")
def delete_collection_movie(collection_id: int, movie_id: str):
    deleted = remove_from_collection(get_db(), collection_id, movie_id)
    return jsonify({"ok": True, "deleted": deleted})


# ----- follows -----

def _follower_id() -> str | None:
    payload = _json_body() or {}
    follower_id = payload.get("follower_id")
    return str(follower_id) if follower_id not in (None, "") else None


@bp.post("/users/<user_id>/follow")
def follow_user(user_id: str):
    follower_id = _follower_id()
    if not follower_id:
        return jsonify({"ok": False, "error": "follower_id is required"}), 400
    try:
        created = follow(get_db(), follower_id, user_id)
    except ValueError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 400
    return jsonify({"ok": True, "created": created})


@bp.delete("/users/<user_id>/follow")
def unfollow_user(user_id: str):
    follower_id = _follower_id()
    if not follower_id:
        return jsonify({"ok": False, "error": "follower_id is required"}), 400
    return jsonify({"ok": True, "deleted": unfollow(get_db(), follower_id, user_id)})


@bp.get("/users/<user_id>/followers")
def list_followers(user_id: str):
    viewer = request.args.get("viewer")
    conn = get_db()
    data = {"ok": True, "followers": followers(conn, user_id)}
    if viewer:
        data["is_following"] = is_following(conn, viewer, user_id)
    return jsonify(data)


@bp.get("/users/<user_id>/following")
def list_following(user_id: str):
    return jsonify({"ok": True, "following": following(get_db(), user_id)})


# ----- profiles -----

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,}$")


def _profile_error(payload: dict) -> str | None:
    username = payload.get("username")
    if username is not None and not (isinstance(username, str) and USERNAME_RE.match(username)):
        return "username must be at least 3 letters, digits or underscores"
    display_name = payload.get("display_name")
    if display_name is not None and not isinstance(display_name, str):
        return "display_name must be a string"
    avatar_id = payload.get("avatar_id")
    if avatar_id is not None and (isinstance(avatar_id, bool) or not isinstance(avatar_id, int)):
        return "avatar_id must be an integer"
    date_of_birth = payload.get("date_of_birth")
    if date_of_birth is not None and not isinstance(date_of_birth, str):
        return "date_of_birth must be a string"
    if "is_onboarded" in payload and not isinstance(payload["is_onboarded"], bool):
        return "is_onboarded must be a boolean"
    return None


@bp.get("/users/<user_id>/profile")
def user_profile(user_id: str):
    conn = get_db()
    profile = get_profile(conn, user_id)
    if not profile:
        return jsonify({"ok": False, "error": "Profile not found"}), 404
    profile["ratings_count"] = ratings_count(conn, user_id)
    profile.update(follow_counts(conn, user_id))
    return jsonify({"ok": True, "profile": profile})


@bp.put("/users/<user_id>/profile")
def put_user_profile(user_id: str):
    """Create or update the profile; usernames are unique regardless of case."""
    payload = _json_body()
    if payload is None:
        return _bad_body()
    error = _profile_error(payload)
    if error:
        return jsonify({"ok": False, "error": error}), 400
    try:
        profile = save_profile(get_db(), user_id, payload)
    except ValueError as exc:
        return jsonify({"ok": False, "error": str(exc)}), 409
    return jsonify({"ok": True, "profile": profile})


@bp.get("/profiles")
def profiles_search():
    text = (request.args.get("search") or "").strip()
    limit = _get_int(request.args.get("limit"), 10, maximum=50)
    return jsonify({"ok": True, "profiles": search_profiles(get_db(), text, limit=limit)})


@bp.get("/profiles/username-available")
def profiles_username_available():
    username = (request.args.get("username") or "").strip()
    if not USERNAME_RE.match(username):
        return jsonify({"ok": True, "available": False})
    available = username_available(get_db(), username, request.args.get("user_id") or None)
    return jsonify({"ok": True, "available": available})


@bp.get("/profiles/by-username/<username>")
def profile_by_username(username: str):
    profile = get_profile_by_username(get_db(), username)
    if not profile:
        return jsonify({"ok": False, "error": "Profile not found"}), 404
    return jsonify({"ok": True, "profile": profile})


# ----- theater vs. stream -----

@scraper_bp.get("/analyze/<imdb_id>")
def analyze(imdb_id: str):
    """Scrape IMDb reviews for a title and ask the model for a theater-or-stream verdict."""
    settings = current_app.config.get("ANALYSIS", {})
    try:
        reviews = scrape_reviews(
            imdb_id,
            session=current_app.config.get("HTTP_SESSION"),
            limit=int(settings.get("review_limit", 5)),
        )
    except requests.RequestException as exc:
        current_app.logger.exception("Review scrape failed for %s", imdb_id)
        return jsonify({"error": "An error occurred during analysis", "details": str(exc)}), 500

    ratings = analyze_reviews(
        reviews,
        client=current_app.config.get("OPENAI_CLIENT"),
        model=settings.get("model", "gpt-3.5-turbo"),
        max_tokens=int(settings.get("max_tokens", 300)),
    )
    current_app.logger.info("Analysis for %s: %s", imdb_id, ratings.get("verdict"))
    return jsonify({"message": "Analysis complete", "ratings": ratings})
