import pytest

from app.parental_guide import (
    ContentAdvisory,
    Level,
    certification_from_content_ratings,
    certification_from_release_dates,
    classify,
)


def _levels(advisory: ContentAdvisory):
    return {k: v for k, v in advisory.to_dict().items() if k != "is_family_friendly"}


def test_animation_rated_g_is_family_friendly():
    guide = classify("G", [{"name": "Animation"}])
    assert _levels(guide) == {"violence": "none", "nudity": "none", "profanity": "none", "frightening": "none"}
    assert guide.is_family_friendly


def test_r_rated_horror():
    guide = classify("R", [{"name": "Horror"}])
    assert guide.violence is Level.SEVERE
    assert guide.frightening is Level.SEVERE
    assert guide.profanity is Level.MODERATE
    assert guide.nudity is Level.NONE
    assert not guide.is_family_friendly


def test_pg13_action():
    guide = classify("PG-13", [{"name": "Action"}])
    assert _levels(guide) == {"violence": "moderate", "nudity": "none", "profanity": "mild", "frightening": "none"}


def test_no_certification_no_genres():
    guide = classify(None, [])
    assert guide.is_family_friendly
    assert guide.to_dict()["is_family_friendly"] is True


def test_pg_family_comedy_is_overridden():
    guide = classify("PG", [{"name": "Comedy"}, {"name": "Family"}])
    assert guide.is_family_friendly


def test_family_override_needs_childrens_certification():
    guide = classify("PG-13", [{"name": "Animation"}, {"name": "Action"}])
    assert guide.violence is Level.MODERATE
    assert not guide.is_family_friendly


def test_thriller_only_applies_without_horror():
    assert classify(None, [{"name": "Thriller"}]).frightening is Level.MODERATE
    assert classify(None, [{"name": "Thriller"}]).violence is Level.MILD
    both = classify(None, [{"name": "Horror"}, {"name": "Thriller"}])
    assert both.frightening is Level.SEVERE
    assert both.violence is Level.MODERATE


def test_crime_never_lowers_certification_floor():
    guide = classify("TV-MA", [{"name": "Crime"}])
    assert guide.violence is Level.MODERATE
    assert guide.profanity is Level.MODERATE


def test_romance_depends_on_adult_rating():
    assert classify("R", [{"name": "Romance"}]).nudity is Level.MODERATE
    assert classify("PG-13", [{"name": "Romance"}]).nudity is Level.MILD


def test_comedy_adds_mild_profanity():
    assert classify(None, [{"name": "Comedy"}]).profanity is Level.MILD
    assert classify(None, [{"name": "Comedy"}, {"name": "Family"}]).profanity is Level.NONE


def test_case_insensitive_and_plain_strings():
    guide = classify("r", ["WAR"])
    assert guide.violence is Level.SEVERE


def test_unknown_values_are_ignored():
    guide = classify("ZZ-99", [{"name": "Documentary"}, {}])
    assert guide.is_family_friendly


@pytest.mark.parametrize("cert", ["R", "18", "NC-17", "A", "TV-MA", "X", "PG-13", "12A", "12", "15", "TV-14", "UA"])
@pytest.mark.parametrize("genre", ["Horror", "Thriller", "Action", "War", "Crime", "Romance", "Comedy"])
def test_genre_rules_keep_certification_floor(cert, genre):
    floor = classify(cert, [])
    raised = classify(cert, [{"name": genre}])
    assert raised.violence >= floor.violence
    assert raised.profanity >= floor.profanity


def test_release_dates_prefers_us_then_falls_back():
    payload = {
        "results": [
            {"iso_3166_1": "FR", "release_dates": [{"certification": "12"}]},
            {"iso_3166_1": "GB", "release_dates": [{"certification": "15"}]},
            {"iso_3166_1": "US", "release_dates": [{"certification": ""}, {"certification": "R"}]},
        ]
    }
    assert certification_from_release_dates(payload) == "R"
    payload["results"].pop()
    assert certification_from_release_dates(payload) == "15"
    assert certification_from_release_dates({"results": payload["results"][:1]}) == "12"
    assert certification_from_release_dates({"results": []}) is None
    assert certification_from_release_dates(None) is None


def test_content_ratings_prefers_us_then_in():
    payload = {
        "results": [
            {"iso_3166_1": "DE", "rating": "16"},
            {"iso_3166_1": "IN", "rating": "UA"},
            {"iso_3166_1": "US", "rating": "TV-14"},
        ]
    }
    assert certification_from_content_ratings(payload) == "TV-14"
    assert certification_from_content_ratings({"results": payload["results"][:2]}) == "UA"
    assert certification_from_content_ratings({"results": payload["results"][:1]}) == "16"
    assert certification_from_content_ratings({}) is None
