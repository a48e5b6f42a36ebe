"""
Audio analysis client

Thin HTTP client for the external speech analysis service used by the IELTS
pronunciation and question-and-answer tasks.
"""

from typing import Any, Dict, Optional

import requests

from config import settings
from schemas.validation import PronunciationAnalyzeRequest, QuestionAnswerAnalyzeRequest
from utils.error_handling import ExternalServiceError
from utils.structured_logging import LogCategory, get_logger

logger = get_logger("services.audio_analysis")


def _headers() -> Dict[str, str]:
    headers = {"Content-Type": "application/json", "Accept": "application/json"}
    if settings.AUDIO_ANALYSIS_API_KEY:
        headers["X-API-Key"] = settings.AUDIO_ANALYSIS_API_KEY
    return headers


def _post(path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    url = f"{settings.AUDIO_ANALYSIS_URL.rstrip('/')}{path}"
    logger.debug(f"Calling audio analysis service: {url}", category=LogCategory.EXTERNAL_SERVICE)
    try:
        response = requests.post(url, json=payload, headers=_headers(), timeout=settings.AUDIO_ANALYSIS_TIMEOUT)
    except requests.RequestException as e:
        logger.error("Audio analysis service unreachable", category=LogCategory.EXTERNAL_SERVICE, exception=e)
        raise ExternalServiceError("Audio analysis service is unavailable") from e

    if not response.ok:
        detail: Optional[Any]
        try:
            detail = response.json()
        except ValueError:
            detail = response.text[:500] or None
        logger.warning(
            f"Audio analysis service returned {response.status_code}",
            category=LogCategory.EXTERNAL_SERVICE,
            extra={"url": url, "status": response.status_code},
        )
        raise ExternalServiceError(
            f"Audio analysis failed with status {response.status_code}",
            details={"status": response.status_code, "response": detail},
        )

    try:
        return response.json()
    except ValueError as e:
        raise ExternalServiceError("Audio analysis service returned invalid JSON") from e


def analyze_pronunciation(payload: PronunciationAnalyzeRequest) -> Dict[str, Any]:
    """Score a recording against the text the student was asked to read"""
    return _post(
        f"/pronunciation-analysis/assess/{payload.accent}",
        {
            "audio_base64": payload.audioBase64,
            "audio_format": payload.audioFormat,
            "expected_text": payload.expectedText,
            "raw_transcription": payload.rawTranscription,
        },
    )


def analyze_freestyle_speech(payload: QuestionAnswerAnalyzeRequest) -> Dict[str, Any]:
    """Score a spoken answer to an open question with IELTS criteria"""
    return _post(
        "/freestyle-speech/analyze",
        {
            "audio_base64": payload.audioBase64,
            "audio_format": payload.audioFormat,
            "question": payload.question,
            "expected_language_level": payload.expectedLanguageLevel,
            "scoring_criteria": "ielts",
            "raw_transcription": payload.rawTranscription,
        },
    )
