"""
API connection probe

Issues a one-row query before the main load so an unreachable portal is
reported quickly instead of after the full paging timeout.
"""

import time
from dataclasses import dataclass
from typing import Optional

from loguru import logger

from .api_client import SocrataAPIClient, SocrataAPIError


@dataclass
class APIStatus:
    connected: bool
    response_time_ms: int
    error: Optional[str] = None


def validate_api_connection(client: Optional[SocrataAPIClient] = None) -> APIStatus:
    client = client or SocrataAPIClient()
    api = client.api
    start = time.perf_counter()

    try:
        client.get(
            api.chicago_base_url,
            api.community_areas_dataset,
            client.build_params(limit=1),
            timeout=api.probe_timeout,
        )
    except SocrataAPIError as e:
        elapsed = int((time.perf_counter() - start) * 1000)
        logger.warning(f"API unreachable after {elapsed}ms: {e}")
        return APIStatus(connected=False, response_time_ms=elapsed, error=str(e))

    elapsed = int((time.perf_counter() - start) * 1000)
    logger.info(f"API OK - Response time: {elapsed}ms")
    return APIStatus(connected=True, response_time_ms=elapsed)
