"""
Socrata open-data API client

Handles communication with the City of Chicago and Cook County portals:
- App token headers (tokens are domain specific)
- SoQL query parameters and paging
- Retry logic
"""

import os
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv
from loguru import logger

from ...config import APIConfig, get_config


class SocrataAPIError(RuntimeError):
    """Raised when a Socrata request fails after all retries"""


def _load_env() -> None:
    """Load a .env file from the project root or working directory"""
    for env_path in (Path(__file__).parents[3] / ".env", Path.cwd() / ".env"):
        if env_path.exists():
            load_dotenv(env_path, override=False)  # Don't override existing env vars
            logger.debug(f"Loaded .env file from {env_path}")
            return


class SocrataAPIClient:
    """Client for Socrata /resource/ endpoints"""

    def __init__(self, api: Optional[APIConfig] = None, session: Optional[requests.Session] = None):
        _load_env()
        self.api = api or get_config().api
        self.session = session or requests.Session()

    def headers_for(self, base_url: str) -> Dict[str, str]:
        """Accept/User-Agent headers plus the app token for the URL's domain"""
        headers = {
            "Accept": "application/json",
            "User-Agent": self.api.user_agent,
        }
        token_env = (
            self.api.cook_county_token_env
            if base_url.startswith(self.api.cook_county_base_url)
            else self.api.chicago_token_env
        )
        token = os.getenv(token_env, "")
        if token:
            headers["X-App-Token"] = token
        return headers

    @staticmethod
    def build_params(
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        where: Optional[str] = None,
        select: Optional[str] = None,
        order: Optional[str] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        if select:
            params["$select"] = select
        if where:
            params["$where"] = where
        if order:
            params["$order"] = order
        if limit is not None:
            params["$limit"] = limit
        if offset:
            params["$offset"] = offset
        return params

    def get(
        self,
        base_url: str,
        dataset: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> List[Dict[str, Any]]:
        """
        GET one page of a dataset with retry logic

        Raises:
            SocrataAPIError: If the request fails after all retries
        """
        url = f"{base_url}/{dataset}.json"
        max_retries = self.api.max_retries

        for attempt in range(max_retries):
            try:
                response = self.session.get(
                    url,
                    params=params or {},
                    headers=self.headers_for(base_url),
                    timeout=timeout or self.api.request_timeout,
                )
                response.raise_for_status()
                data = response.json()
                return data if isinstance(data, list) else []
            except requests.exceptions.HTTPError as e:
                status = e.response.status_code if e.response is not None else None
                if status in (429, 503, 504) and attempt < max_retries - 1:
                    wait_time = self.api.retry_delay * (attempt + 1)
                    logger.warning(f"Socrata {status} (attempt {attempt + 1}/{max_retries}). Retrying in {wait_time}s...")
                    time.sleep(wait_time)
                else:
                    raise SocrataAPIError(f"Socrata HTTP error {status} for {dataset}") from e
            except (requests.exceptions.RequestException, ValueError) as e:
                logger.warning(f"Socrata request failed for {dataset} (attempt {attempt + 1}): {e}")
                if attempt < max_retries - 1:
                    time.sleep(self.api.retry_delay * (attempt + 1))
                else:
                    raise SocrataAPIError(f"Socrata request failed after {max_retries} attempts: {e}") from e

        return []

    def get_all(self, base_url: str, dataset: str, page_limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Fetch every row of a dataset, page by page"""
        limit = page_limit or self.api.page_limit
        rows: List[Dict[str, Any]] = []
        offset = 0
        while True:
            page = self.get(base_url, dataset, self.build_params(limit=limit, offset=offset, order=":id"))
            rows.extend(page)
            if len(page) < limit:
                break
            offset += limit
        return rows
