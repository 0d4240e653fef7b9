"""Apigee management API client for proxy bundles and hostnames."""

import logging
from typing import Any, Dict, List, Optional

import requests

from .config import DEFAULT_BASE_URL, DEFAULT_TIMEOUT
from .errors import ApigeeApiError

logger = logging.getLogger(__name__)


class ApigeeClient:
    """
    Fetches proxy bundles and environment group hostnames for an organization
    """

    def __init__(self, org: str, access_token: str, base_url: str = DEFAULT_BASE_URL,
                 timeout: float = DEFAULT_TIMEOUT, session: Optional[requests.Session] = None):
        """
        Initialize the client

        Args:
            org: Apigee organization name
            access_token: OAuth access token for authentication
            base_url: Base URL for Apigee Management API
            timeout: Per-request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.org = org
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        })

    def _url(self, path: str) -> str:
        return f"{self.base_url}/organizations/{self.org}/{path}"

    def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> requests.Response:
        url = self._url(path)
        logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise ApigeeApiError(f"GET {url} failed: {e}", status_code=status) from e
        except requests.RequestException as e:
            raise ApigeeApiError(f"GET {url} failed: {e}") from e
        return response

    def list_proxies(self) -> List[Dict[str, Any]]:
        """
        List API proxies with their revisions

        Returns:
            Proxy records, each with ``name`` and ``revision`` (list of strings)
        """
        data = self._get("apis", params={"includeRevisions": "true"}).json()
        return data.get('proxies', [])

    def list_revisions(self, api_name: str) -> List[str]:
        return self._get(f"apis/{api_name}/revisions").json()

    def latest_revision(self, api_name: str) -> str:
        revisions = self.list_revisions(api_name)
        if not revisions:
            raise ApigeeApiError(f"API proxy {api_name} has no revisions")
        return str(max(int(r) for r in revisions))

    def get_bundle(self, api_name: str, revision: Optional[str] = None) -> bytes:
        """
        Download a proxy revision as a zip bundle

        Args:
            api_name: Name of the API proxy
            revision: Revision number; the highest revision when omitted

        Returns:
            Zip archive bytes
        """
        if not revision:
            revision = self.latest_revision(api_name)
        logger.info(f"Downloading {api_name} revision {revision}")
        return self._get(f"apis/{api_name}/revisions/{revision}", params={"format": "bundle"}).content

    def get_hostnames(self) -> List[str]:
        """Hostnames of every environment group in the organization"""
        data = self._get("envgroups").json()
        return [
            hostname
            for group in data.get('environmentGroups', [])
            for hostname in group.get('hostnames', [])
        ]
