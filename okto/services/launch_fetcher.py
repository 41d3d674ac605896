"""Launch Library 2 poller feeding the launch cache"""
from typing import Any, Dict, List, Optional

import requests

from .launch_cache import LaunchCache
from .launch_transformer import LaunchTransformError, transform
from ..storage.models import LaunchRecord
from ..utils.logger import setup_logger

logger = setup_logger(__name__)


class LaunchFetcher:
    """Fetcher for upcoming launches from the Launch Library 2 API"""

    def __init__(
        self,
        api_url: str = "https://ll.thespacedevs.com/2.2.0",
        limit: int = 50,
        user_agent: str = "okto-launch-reminders",
        session: Optional[requests.Session] = None
    ):
        """
        Initialize launch fetcher

        Args:
            api_url: Base URL of the Launch Library 2 API, including version
            limit: Maximum number of upcoming launches to request
            user_agent: User-Agent header sent with every request
            session: Optional requests session to reuse connections
        """
        self.api_url = api_url.rstrip('/')
        self.limit = limit
        self.user_agent = user_agent
        self.session = session or requests.Session()

    def fetch(self) -> List[Dict[str, Any]]:
        """
        Fetch raw upcoming launches

        Returns:
            List of raw launch dictionaries, empty if the request failed
        """
        url = f"{self.api_url}/launch/upcoming/"
        params = {"mode": "detailed", "limit": self.limit}

        try:
            logger.debug(f"Fetching launches from {url}")
            response = self.session.get(
                url,
                params=params,
                headers={"User-Agent": self.user_agent},
                timeout=30
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch launches from {url}: {e}")
            return []
        except ValueError as e:
            logger.error(f"Launch provider returned invalid JSON: {e}")
            return []

        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            logger.error("Launch provider response has no results list")
            return []

        logger.info(f"Fetched {len(results)} launches from provider")
        return results

    def transform_all(self, raw_launches: List[Dict[str, Any]]) -> List[LaunchRecord]:
        """
        Transform raw launches, dropping the ones that cannot be transformed

        Sequence ids follow the order of the successfully transformed launches.
        """
        records = []
        for raw in raw_launches:
            try:
                records.append(transform(raw, seq_id=len(records)))
            except LaunchTransformError as e:
                logger.warning(str(e))
        return records

    def refresh(self, cache: LaunchCache) -> bool:
        """
        Fetch, transform and publish launches to the cache

        The cache keeps its previous generation when nothing was fetched.

        Returns:
            True if a new generation was published
        """
        raw_launches = self.fetch()
        if not raw_launches:
            logger.warning("No launches fetched, keeping the cached launches")
            return False

        records = self.transform_all(raw_launches)
        generation = cache.replace(records)
        logger.info(f"Launch cache refreshed with {len(records)} launches (generation {generation})")
        return True
