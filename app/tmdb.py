from __future__ import annotations

import os
from typing import Dict, Any

import requests


TMDB_BASE = "https://api.themoviedb.org/3"
DEFAULT_IMAGE_BASE = "https://image.tmdb.org/t/p/"


class TMDbClient:
    def __init__(self, api_key: str | None = None, session: requests.Session | None = None):
        self.api_key = api_key or os.getenv("TMDB_API_KEY")
        if not self.api_key:
            raise RuntimeError("TMDB_API_KEY is required. Put it in your environment or .env file.")
        self.session = session or requests.Session()

    def _get(self, path: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        params = {**(params or {}), "api_key": self.api_key}
        url = f"{TMDB_BASE}{path}"
        r = self.session.get(url, params=params, timeout=20)
        r.raise_for_status()
        return r.json()

    # ----- public helpers -----
    def configuration(self) -> Dict[str, Any]:
        return self._get("/configuration")

    def image_base_url(self, size: str = "original") -> str:
        images = self.configuration().get("images") or {}
        base = images.get("secure_base_url") or images.get("base_url") or DEFAULT_IMAGE_BASE
        return f"{base}{size}"

    def trending_all(self, window: str = "week", page: int = 1) -> Dict[str, Any]:
        return self._get(f"/trending/all/{window}", {"page": page})

    def search_multi(self, query: str, page: int = 1) -> Dict[str, Any]:
        if not query:
            return {"page": 1, "results": [], "total_pages": 1, "total_results": 0}
        return self._get("/search/multi", {"query": query, "page": page, "include_adult": False})

    def details(self, media_type: str, tmdb_id: int) -> Dict[str, Any]:
        return self._get(f"/{media_type}/{tmdb_id}")

    def movie_release_dates(self, tmdb_id: int) -> Dict[str, Any]:
        return self._get(f"/movie/{tmdb_id}/release_dates")

    def tv_content_ratings(self, tmdb_id: int) -> Dict[str, Any]:
        return self._get(f"/tv/{tmdb_id}/content_ratings")

    @staticmethod
    def normalize(item: Dict[str, Any]) -> Dict[str, Any]:
        media_type = item.get("media_type") or ("movie" if "title" in item else "tv")
        title = item.get("title") or item.get("name") or "Untitled"
        release = item.get("release_date") or item.get("first_air_date") or None
        return {
            "tmdb_id": item.get("id"),
            "media_type": media_type,
            "title": title,
            "overview": item.get("overview"),
            "poster_path": item.get("poster_path"),
            "backdrop_path": item.get("backdrop_path"),
            "vote_average": float(item.get("vote_average") or 0.0),
            "vote_count": int(item.get("vote_count") or 0),
            "popularity": float(item.get("popularity") or 0.0),
            "release_date": release,
            "genre_ids": list(item.get("genre_ids") or []),
            "original_language": item.get("original_language"),
        }
