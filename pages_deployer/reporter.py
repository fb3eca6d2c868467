# reporter.py
import asyncio
import logging
from typing import Optional

import httpx

from .models import ReportPayload

logger = logging.getLogger("pages_deployer.reporter")

BACKOFF_SCHEDULE = (1, 2, 4, 8, 16, 32, 64, 128, 256, 512)
MAX_ATTEMPTS = len(BACKOFF_SCHEDULE)


class Reporter:
    """Delivers the completion payload to the evaluator's callback URL."""

    def __init__(self, timeout: float = 10, transport: Optional[httpx.AsyncBaseTransport] = None, sleep=asyncio.sleep):
        self.timeout = timeout
        self.transport = transport
        self.sleep = sleep

    async def report(self, url: str, payload: ReportPayload) -> bool:
        """POST ``payload`` to ``url`` until it answers 200 or the schedule runs out.

        After failed attempt n the reporter waits BACKOFF_SCHEDULE[n-1] seconds;
        the 10th failure ends delivery without a further wait.
        """
        body = payload.model_dump()
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(1, MAX_ATTEMPTS + 1):
                logger.info(f"[NOTIFY] Attempt {attempt}: posting to {url}")
                try:
                    resp = await client.post(url, json=body)
                    if resp.status_code == 200:
                        logger.info("[NOTIFY] Successfully reported to evaluation URL")
                        return True
                    logger.warning(f"[NOTIFY] Attempt {attempt} got HTTP {resp.status_code}")
                except httpx.HTTPError as e:
                    logger.warning(f"[NOTIFY] Attempt {attempt} failed: {e!r}")
                if attempt < MAX_ATTEMPTS:
                    delay = BACKOFF_SCHEDULE[attempt - 1]
                    logger.info(f"[NOTIFY] Retrying in {delay}s...")
                    await self.sleep(delay)
        logger.error("[NOTIFY] Max retries exceeded.")
        return False
