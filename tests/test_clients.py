import pytest

from app.omdb import OMDbClient
from app.tmdb import TMDbClient
from conftest import FakeResponse, FakeSession

OMDB_DETAILS = {
    "tt0133093": {
        "Title": "The Matrix",
        "Poster": "https://img/matrix.jpg",
        "Plot": "A hacker learns the truth.",
        "Actors": "Keanu Reeves, Laurence Fishburne",
        "Ratings": [
            {"Source": "Internet Movie Database", "Value": "8.7/10"},
            {"Source": "Rotten Tomatoes", "Value": "83%"},
        ],
        "imdbID": "tt0133093",
    },
    "tt0234215": {
        "Title": "The Matrix Reloaded",
        "Poster": "N/A",
        "Plot": "Neo returns.",
        "Actors": "N/A",
        "imdbID": "tt0234215",
    },
}


def omdb_handler(url, params):
    if "s" in params:
        if params["s"] == "matrix":
            return FakeResponse({"Search": [{"imdbID": key} for key in OMDB_DETAILS], "Response": "True"})
        return FakeResponse({"Response": "False", "Error": "Movie not found!"})
    return FakeResponse(OMDB_DETAILS[params["i"]])


def test_omdb_requires_key(monkeypatch):
    monkeypatch.delenv("OMDB_API_KEY", raising=False)
    with pytest.raises(RuntimeError):
        OMDbClient()


def test_omdb_search_detailed_builds_movie_documents():
    session = FakeSession(omdb_handler)
    movies = OMDbClient(api_key="k", session=session).search_detailed("matrix")

    assert movies[0] == {
        "imdb_id": "tt0133093",
        "title": "The Matrix",
        "poster": "https://img/matrix.jpg",
        "synopsis": "A hacker learns the truth.",
        "cast": [{"name": "Keanu Reeves"}, {"name": "Laurence Fishburne"}],
        "ratings": {"Internet Movie Database": "8.7/10", "Rotten Tomatoes": "83%"},
    }
    assert movies[1]["cast"] == []
    assert movies[1]["ratings"] == {}
    assert session.calls[0]["params"] == {"s": "matrix", "type": "movie", "apikey": "k"}


def test_omdb_search_without_results():
    assert OMDbClient(api_key="k", session=FakeSession(omdb_handler)).search("nothing") == []


def test_tmdb_requires_key(monkeypatch):
    monkeypatch.delenv("TMDB_API_KEY", raising=False)
    with pytest.raises(RuntimeError):
        TMDbClient()


def test_tmdb_get_adds_api_key_and_path():
    session = FakeSession(lambda url, params: FakeResponse({"results": []}))
    TMDbClient(api_key="k", session=session).movie_release_dates(603)

    assert session.calls[0]["url"] == "https://api.themoviedb.org/3/movie/603/release_dates"
    assert session.calls[0]["params"] == {"api_key": "k"}


def test_tmdb_empty_search_skips_request():
    session = FakeSession(lambda url, params: FakeResponse({}))
    data = TMDbClient(api_key="k", session=session).search_multi("")
    assert data["results"] == []
    assert session.calls == []


def test_tmdb_image_base_url():
    payload = {"images": {"secure_base_url": "https://image.tmdb.org/t/p/"}}
    client = TMDbClient(api_key="k", session=FakeSession(lambda url, params: FakeResponse(payload)))
    assert client.image_base_url() == "https://image.tmdb.org/t/p/original"

    bare = TMDbClient(api_key="k", session=FakeSession(lambda url, params: FakeResponse({})))
    assert bare.image_base_url("w500") == "https://image.tmdb.org/t/p/w500"


def test_tmdb_normalize_tv_row():
    row = TMDbClient.normalize({"id": 1399, "name": "Game of Thrones", "first_air_date": "2011-04-17", "genre_ids": [18]})
    assert row["media_type"] == "tv"
    assert row["title"] == "Game of Thrones"
    assert row["release_date"] == "2011-04-17"
    assert row["genre_ids"] == [18]
