"""Best-effort webhook delivery of terminal job outcomes."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from .errors import NotificationFailure

logger = logging.getLogger(__name__)


class Notifier:
    """Posts one JSON payload per terminal job. Never retries, never raises."""

    def __init__(self, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self._client = client

    @staticmethod
    def build_payload(job_id: str, outcome: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "jobId": job_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **outcome,
        }

    async def _post(self, client: httpx.AsyncClient, endpoint: str, payload: Dict[str, Any]) -> httpx.Response:
        return await client.post(
            endpoint,
            json=payload,
            headers={"User-Agent": "Flutter-Generator-Webhook"},
            timeout=self.timeout,
        )

    async def deliver(self, endpoint: str, job_id: str, outcome: Dict[str, Any]) -> None:
        """Send the webhook. Raises ``NotificationFailure`` on any problem."""
        payload = self.build_payload(job_id, outcome)
        try:
            if self._client is not None:
                response = await self._post(self._client, endpoint, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, endpoint, payload)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise NotificationFailure(f"Webhook error for job {job_id}: {e}") from e
        if not response.is_success:
            raise NotificationFailure(
                f"Webhook failed for job {job_id}: {response.status_code} {response.reason_phrase}"
            )

    async def notify(self, endpoint: Optional[str], job_id: str, outcome: Dict[str, Any]) -> bool:
        """Deliver if ``endpoint`` is set. Returns True on a 2xx response."""
        if not endpoint:
            return False
        logger.info("Sending webhook to %s for job %s", endpoint, job_id)
        try:
            await self.deliver(endpoint, job_id, outcome)
        except NotificationFailure as e:
            logger.error("%s", e)
            return False
        logger.info("Webhook sent successfully for job %s", job_id)
        return True
