"""Sentiment scoring for case and email text.

Calls an external HTTP sentiment service. Every function fails open: on any
error it logs a warning and returns a result carrying an 'error' key, so the
caller's create/update still goes through.
"""
import logging
from typing import Any, Dict

import requests

import config

logger = logging.getLogger(__name__)

SENTIMENT_LABELS = ("positive", "neutral", "negative")


def _headers() -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if config.SENTIMENT_API_KEY:
        headers["Authorization"] = f"Bearer {config.SENTIMENT_API_KEY}"
    return headers


def label_for(score: float) -> str:
    """Map a -1..1 polarity score to a sentiment label."""
    if score > 0.25:
        return "positive"
    if score < -0.25:
        return "negative"
    return "neutral"


def analyze_sentiment(text: str) -> Dict[str, Any]:
    """Score the sentiment of a block of text.

    Args:
        text: Case description, email body or similar free text.

    Returns:
        Dict with 'sentiment' (positive/neutral/negative or None) and 'score'.
        On failure 'sentiment' is None and 'error' holds the reason.
    """
    if not config.SENTIMENT_API_URL:
        return {"sentiment": None, "score": None, "error": "SENTIMENT_API_URL not configured"}
    try:
        resp = requests.post(
            config.SENTIMENT_API_URL,
            headers=_headers(),
            json={"text": text},
            timeout=config.SENTIMENT_TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
        score = float(data.get("score", 0))
        sentiment = data.get("sentiment")
        if sentiment not in SENTIMENT_LABELS:
            sentiment = label_for(score)
        return {"sentiment": sentiment, "score": score}
    except Exception as exc:
        logger.warning("Sentiment analysis failed: %s", exc)
        return {"sentiment": None, "score": None, "error": str(exc)}
