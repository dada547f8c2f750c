"""
Similarity Service - external before/after evidence comparison

The collaborator answers whether the after photo differs enough from the
before photo to show a real cleanup. Its answer is advisory and comes back
as a three-valued signal:
- pass:        collaborator says the scene changed
- fail:        collaborator says the scene did not change
- unavailable: not configured, or configured but unreachable/invalid

Configuration via environment variables:
- SIMILARITY_API_URL: base URL of the comparison service (empty = not configured)
- SIMILARITY_API_KEY: bearer token for the service
- SIMILARITY_SCORE_THRESHOLD: minimum change score for a pass
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from cleanup_trust.config import settings
from cleanup_trust.services.errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)

SIGNAL_PASS = "pass"
SIGNAL_FAIL = "fail"
SIGNAL_UNAVAILABLE = "unavailable"

REASON_NOT_CONFIGURED = "not_configured"
REASON_ERROR = "error"


@dataclass(frozen=True)
class SignalResult:
    outcome: str
    score: Optional[float] = None
    reason: Optional[str] = None

    @property
    def configured(self) -> bool:
        return self.reason != REASON_NOT_CONFIGURED


class SimilarityService:
    """Client for the evidence-similarity collaborator"""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        score_threshold: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.api_url = (settings.SIMILARITY_API_URL if api_url is None else api_url).rstrip("/")
        self.api_key = settings.SIMILARITY_API_KEY if api_key is None else api_key
        self.timeout = settings.SIMILARITY_TIMEOUT_SEC if timeout is None else timeout
        self.score_threshold = (
            settings.SIMILARITY_SCORE_THRESHOLD if score_threshold is None else score_threshold
        )
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_url)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.HTTPStatusError)),
        reraise=True
    )
    def _request_comparison(self, before_ref: str, after_ref: str) -> Dict[str, Any]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
            response = client.post(
                f"{self.api_url}/compare",
                json={"before": before_ref, "after": after_ref},
                headers=headers
            )
            response.raise_for_status()
            return response.json()

    def _interpret(self, payload: Dict[str, Any]) -> SignalResult:
        if "changed" in payload:
            changed = payload["changed"]
            if not isinstance(changed, bool):
                raise CollaboratorUnavailable("Similarity response 'changed' is not a boolean")
            return SignalResult(SIGNAL_PASS if changed else SIGNAL_FAIL)

        if "score" in payload:
            try:
                score = float(payload["score"])
            except (TypeError, ValueError):
                raise CollaboratorUnavailable("Similarity response 'score' is not numeric")
            outcome = SIGNAL_PASS if score >= self.score_threshold else SIGNAL_FAIL
            return SignalResult(outcome, score=score)

        raise CollaboratorUnavailable("Similarity response has neither 'changed' nor 'score'")

    def compare(self, before_ref: str, after_ref: str) -> SignalResult:
        """Compare two evidence references. Never raises."""
        if not self.configured:
            return SignalResult(SIGNAL_UNAVAILABLE, reason=REASON_NOT_CONFIGURED)

        try:
            payload = self._request_comparison(before_ref, after_ref)
            if not isinstance(payload, dict):
                raise CollaboratorUnavailable("Similarity response is not an object")
            return self._interpret(payload)
        except (httpx.HTTPError, ValueError, CollaboratorUnavailable) as e:
            logger.error(f"Image similarity check failed (non-blocking): {e}")
            return SignalResult(SIGNAL_UNAVAILABLE, reason=REASON_ERROR)


# Singleton instance
similarity_service = SimilarityService()
