"""
REST client the manager uses to read CMS settings from the API server
"""
import logging
from typing import Optional

import httpx

from cromwell.core.config import settings
from cromwell.domain.cms import CmsSettings

logger = logging.getLogger(__name__)

SETTINGS_PATH = "/api/v1/cms/settings"


class CmsApiClient:
    def __init__(self, base_url: Optional[str] = None, timeout: float = 5.0):
        self.base_url = (base_url or settings.CMS_API_URL).rstrip("/")
        self.timeout = timeout

    def get_cms_settings(self, disable_log: bool = False) -> Optional[CmsSettings]:
        """
        Current CMS settings

        Returns:
            CmsSettings, or None if the server is unreachable or answers with an error
        """
        try:
            response = httpx.get(f"{self.base_url}{SETTINGS_PATH}", timeout=self.timeout)
            response.raise_for_status()
            return CmsSettings(**response.json())
        except (httpx.HTTPError, ValueError) as e:
            if not disable_log:
                logger.error(f"Failed to fetch CMS settings from {self.base_url}: {e}")
            return None


def get_rest_api_client() -> CmsApiClient:
    return CmsApiClient()
