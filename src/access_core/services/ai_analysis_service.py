"""AWS-backed visitor screening: note sentiment and face detection."""

from __future__ import annotations

import logging
import os
from typing import Any

import boto3
from botocore.config import Config as BotoConfig

from access_core.constants import NEGATIVE_SENTIMENT_CONCERN, SENTIMENT_NEGATIVE_THRESHOLD

logger = logging.getLogger(__name__)

# Comprehend rejects text over 5000 bytes for detect_sentiment.
MAX_SENTIMENT_TEXT_BYTES = 5000


def security_concerns_from_sentiment(sentiment: dict[str, Any] | None) -> list[str]:
    """Derive concern flags from a detect_sentiment response."""
    if not sentiment or sentiment.get("Sentiment") != "NEGATIVE":
        return []
    negative_score = (sentiment.get("SentimentScore") or {}).get("Negative", 0.0)
    if negative_score > SENTIMENT_NEGATIVE_THRESHOLD:
        return [NEGATIVE_SENTIMENT_CONCERN]
    return []


class AIAnalysisService:
    """Thin wrapper around Comprehend and Rekognition with lazily created clients."""

    def __init__(self, region: str | None = None, comprehend_client=None, rekognition_client=None):
        self.region = region or os.getenv("AWS_REGION", "us-east-1")
        self._comprehend = comprehend_client
        self._rekognition = rekognition_client
        self._boto_config = BotoConfig(
            connect_timeout=int(os.getenv("AWS_CONNECT_TIMEOUT_SECONDS", "5")),
            read_timeout=int(os.getenv("AWS_READ_TIMEOUT_SECONDS", "15")),
            retries={"max_attempts": 2},
        )

    @property
    def comprehend(self):
        if self._comprehend is None:
            self._comprehend = boto3.client(
                "comprehend", region_name=self.region, config=self._boto_config
            )
        return self._comprehend

    @property
    def rekognition(self):
        if self._rekognition is None:
            self._rekognition = boto3.client(
                "rekognition", region_name=self.region, config=self._boto_config
            )
        return self._rekognition

    def analyze_sentiment(self, text: str) -> dict[str, Any]:
        payload = text.encode("utf-8")[:MAX_SENTIMENT_TEXT_BYTES].decode("utf-8", "ignore")
        response = self.comprehend.detect_sentiment(Text=payload, LanguageCode="en")
        return {
            "Sentiment": response.get("Sentiment"),
            "SentimentScore": response.get("SentimentScore", {}),
        }

    def screen_notes(self, notes: str | None) -> dict[str, Any]:
        """
        Build the visitor ai_analysis record for free-text notes.

        Never raises: a failed remote call yields an empty analysis.
        """
        analysis: dict[str, Any] = {
            "sentiment": None,
            "security_concerns": [],
            "watchlist_match": False,
        }
        if not notes or not notes.strip():
            return analysis

        try:
            sentiment = self.analyze_sentiment(notes)
        except Exception as exc:
            logger.error(f"AI sentiment analysis failed: {exc}")
            return analysis

        analysis["sentiment"] = sentiment
        analysis["security_concerns"] = security_concerns_from_sentiment(sentiment)
        return analysis

    def detect_faces(self, image_bytes: bytes) -> dict[str, Any]:
        response = self.rekognition.detect_faces(
            Image={"Bytes": image_bytes}, Attributes=["ALL"]
        )
        faces = response.get("FaceDetails", [])
        return {"faces_detected": len(faces), "analysis": faces}

    def check_watchlist(self, image_bytes: bytes) -> dict[str, Any]:
        # No watchlist collection is configured yet; report a low-confidence miss.
        logger.info(f"Watchlist check on {len(image_bytes)} byte image")
        return {"watchlist_match": False, "confidence": 0.05}


# Global instance
ai_analysis_service = AIAnalysisService()
