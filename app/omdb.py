from __future__ import annotations

import os
from typing import Any, Dict, List

import requests


OMDB_BASE = "http://www.omdbapi.com/"


class OMDbClient:
    def __init__(self, api_key: str | None = None, session: requests.Session | None = None):
        self.api_key = api_key or os.getenv("OMDB_API_KEY")
        if not self.api_key:
            raise RuntimeError("OMDB_API_KEY is required. Put it in your environment or .env file.")
        self.session = session or requests.Session()

    def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        r = self.session.get(OMDB_BASE, params={**params, "apikey": self.api_key}, timeout=20)
        r.raise_for_status()
        return r.json()

    def search(self, query: str) -> List[Dict[str, Any]]:
        """Title search restricted to movies. OMDb answers misses with Response=False."""
        data = self._get({"s": query, "type": "movie"})
        return list(data.get("Search") or [])

    def details(self, imdb_id: str) -> Dict[str, Any]:
        return self._get({"i": imdb_id})

    @staticmethod
    def to_movie(details: Dict[str, Any]) -> Dict[str, Any]:
        """Shape an OMDb detail payload into the cached movie document."""
        actors = details.get("Actors") or ""
        cast = [] if actors in ("", "N/A") else [{"name": name} for name in actors.split(", ") if name]
        ratings = {}
        for rating in details.get("Ratings") or []:
            ratings[rating.get("Source")] = rating.get("Value")
        return {
            "imdb_id": details.get("imdbID"),
            "title": details.get("Title"),
            "poster": details.get("Poster"),
            "synopsis": details.get("Plot"),
            "cast": cast,
            "ratings": ratings,
        }

    def search_detailed(self, query: str) -> List[Dict[str, Any]]:
        return [self.to_movie(self.details(hit["imdbID"])) for hit in self.search(query)]
