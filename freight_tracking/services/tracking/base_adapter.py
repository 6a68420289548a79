import asyncio
import logging
from typing import Optional

import httpx

from freight_tracking.core.settings import (
    CarrierIntegrationSettings,
    get_carrier_integration_settings,
    get_tracking_settings,
)
from freight_tracking.services.interfaces.tracking_adapter_interface import ITrackingAdapter

logger = logging.getLogger(__name__)


class BaseTrackingAdapter(ITrackingAdapter):
    """HTTP plumbing shared by the REST/HTML adapters"""

    carrier_label = "Carrier"

    def __init__(
        self,
        settings: Optional[CarrierIntegrationSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
    ):
        tracking_settings = get_tracking_settings()
        self.settings = settings or get_carrier_integration_settings()
        self._transport = transport
        self.max_retries = tracking_settings.rate_limit_max_retries if max_retries is None else max_retries
        self.backoff_seconds = (
            tracking_settings.rate_limit_backoff_seconds if backoff_seconds is None else backoff_seconds
        )

    def _client(self, timeout: float, **kwargs) -> httpx.AsyncClient:
        """New client per call; the injected transport replaces the network in tests"""
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(timeout=timeout, **kwargs)

    async def _make_request_with_retry(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request retrying only on 429, with linear backoff

        Timeouts and connection errors propagate immediately. After the retry
        budget is spent the 429 is raised as httpx.HTTPStatusError.
        """
        for attempt in range(self.max_retries + 1):
            response = await client.request(method, url, **kwargs)
            if response.status_code != 429:
                return response

            if attempt < self.max_retries:
                delay = self.backoff_seconds * (attempt + 1)
                logger.warning(
                    f"{self.carrier_label} API rate limited (429), "
                    f"retrying in {delay}s (attempt {attempt + 1}/{self.max_retries + 1})"
                )
                await asyncio.sleep(delay)
                continue

            logger.error(f"{self.carrier_label} API still rate limited after {self.max_retries} retries")
            response.raise_for_status()

        raise RuntimeError("Unexpected retry loop exit")
