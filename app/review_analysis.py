"""
Theater-or-stream verdicts.

Scrapes a handful of IMDb user reviews for a title and asks a chat model to
score them. Whatever goes wrong on the model side, callers always receive a
record with the same keys; scraping errors are left to the caller.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import requests
from bs4 import BeautifulSoup
from openai import OpenAI, OpenAIError

logger = logging.getLogger(__name__)

IMDB_REVIEWS_URL = "https://www.imdb.com/title/{imdb_id}/reviews"
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)

RATING_CATEGORIES = ("acting", "pacing", "cinematicQuality", "plot", "sound", "entertainmentValue")
THEATER_THRESHOLD = 7
DEFAULT_MODEL = "gpt-3.5-turbo"

SYSTEM_PROMPT = (
    "You are a movie critic assistant. Analyze the given reviews and provide ratings. "
    "Respond with a JSON object only, no additional text or formatting."
)
USER_PROMPT = (
    "Analyze the following movie reviews and rate the movie on a scale of 1-10 for each of "
    "these categories: acting, pacing, cinematicQuality, plot, sound, and entertainmentValue. "
    "Also, calculate the average rating from these categories. If the average rating is above 7, "
    "recommend watching in theaters; otherwise, recommend streaming. Provide a short verdict "
    "(max 20 characters). Present all ratings and the verdict as a JSON object. Reviews: {reviews}"
)

_FENCE_RE = re.compile(r"```(?:json)?\s*|```")


def fallback_ratings() -> Dict[str, Any]:
    ratings: Dict[str, Any] = {category: 0 for category in RATING_CATEGORIES}
    ratings["averageRating"] = 0
    ratings["verdict"] = "Unable to decide"
    return ratings


def scrape_reviews(imdb_id: str, session: Optional[requests.Session] = None, limit: int = 5) -> List[str]:
    """Fetch up to ``limit`` review bodies from the IMDb reviews page."""
    http = session or requests.Session()
    resp = http.get(
        IMDB_REVIEWS_URL.format(imdb_id=imdb_id),
        headers={"User-Agent": BROWSER_USER_AGENT},
        timeout=20,
    )
    resp.raise_for_status()
    soup = BeautifulSoup(resp.text, "html.parser")

    reviews: List[str] = []
    for item in soup.select(".lister-item-content"):
        body = item.select_one(".text.show-more__control")
        text = body.get_text(strip=True) if body else ""
        if text:
            reviews.append(text)
        if len(reviews) >= limit:
            break
    return reviews


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = _FENCE_RE.sub("", text)
    return text.strip()


def _as_number(value: Any) -> float | int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def parse_ratings(content: str) -> Dict[str, Any]:
    """Turn the model's reply into the fixed rating record. Raises ValueError on bad JSON."""
    parsed = json.loads(_strip_fences(content))
    if not isinstance(parsed, dict):
        raise ValueError("model reply is not a JSON object")

    ratings = dict(parsed)
    for category in RATING_CATEGORIES:
        ratings[category] = _as_number(parsed.get(category))
    average = sum(ratings[c] for c in RATING_CATEGORIES) / len(RATING_CATEGORIES)
    ratings["averageRating"] = average
    ratings["verdict"] = "Watch in theaters" if average > THEATER_THRESHOLD else "Stream it"
    return ratings


def analyze_reviews(
    reviews: Sequence[str],
    client: Optional[OpenAI] = None,
    model: str = DEFAULT_MODEL,
    max_tokens: int = 300,
) -> Dict[str, Any]:
    combined = " ".join(reviews)
    try:
        llm = client or OpenAI()
        response = llm.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": USER_PROMPT.format(reviews=combined)},
            ],
            max_tokens=max_tokens,
        )
        content = response.choices[0].message.content or ""
        return parse_ratings(content)
    except (OpenAIError, ValueError, IndexError, AttributeError) as exc:
        logger.error("Review analysis failed, using fallback ratings: %s", exc)
        return fallback_ratings()
