import logging
from typing import Optional

from temporalio.client import Client

from brandguard.config import settings

logger = logging.getLogger(__name__)

_client: Optional[Client] = None


async def get_temporal_client() -> Client:
    """Shared client for the queue worker and schedule setup; connects on first use."""
    global _client
    if _client is None:
        logger.info(
            "temporal.connecting",
            extra={"address": settings.TEMPORAL_ADDRESS, "namespace": settings.TEMPORAL_NAMESPACE},
        )
        _client = await Client.connect(settings.TEMPORAL_ADDRESS, namespace=settings.TEMPORAL_NAMESPACE)
    return _client
