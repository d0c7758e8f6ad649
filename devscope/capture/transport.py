"""
Best-effort delivery of capture records to the collector
"""
import asyncio
from typing import Optional

import httpx

from devscope.config.settings import settings
from devscope.models.records import CaptureRecord
from devscope.utils.logger import StructuredLogger, diagnostic_sink


class Transport:
    """
    At-most-once record delivery.

    A send is bounded by ``timeout`` seconds end to end, is never retried and
    never raises. The collector's response body and status are ignored.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        diagnostics: Optional[StructuredLogger] = None,
    ):
        self.endpoint = endpoint or settings.ingest_url
        self.timeout = timeout if timeout is not None else settings.transport_timeout
        self.http_transport = http_transport
        self.diagnostics = diagnostics or diagnostic_sink(settings.capture_debug_log)

    async def deliver(self, record: CaptureRecord) -> bool:
        """
        Send one record.

        Returns:
            bool: True if the collector accepted the connection and request
        """
        payload = record.model_dump(mode="json")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.http_transport) as client:
                await asyncio.wait_for(
                    client.post(self.endpoint, json=payload),
                    timeout=self.timeout,
                )
            self.diagnostics.debug("Sent", uri=record.uri)
            return True

        except Exception as e:
            self.diagnostics.debug(
                "Failed to reach collector",
                endpoint=self.endpoint,
                error=repr(e),
            )
            return False
