"""
Overpass API client

Handles communication with the Overpass API:
- One HTTP request per query, no retry and no backoff
- Non-2xx status and malformed payloads surface as structured errors
"""

from typing import Any, Dict, Optional

import requests
from loguru import logger

from ...config import ExplorerConfig, get_config
from ...errors import MalformedResponseError, NetworkError


class OverpassAPIClient:
    """Client for interacting with Overpass API"""

    def __init__(self, config: Optional[ExplorerConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or get_config()
        self.overpass_url = self.config.api.overpass_url
        self.timeout = self.config.api.request_timeout
        # One session per client for connection reuse
        self.session = session or requests.Session()

    def query(self, query: str, method: Optional[str] = None) -> Dict[str, Any]:
        """
        Execute an Overpass QL query

        Args:
            query: Overpass QL query string
            method: "POST" (body `data=<query>`) or "GET" (query string);
                defaults to the configured method

        Returns:
            JSON response from Overpass API, guaranteed to carry an `elements` list

        Raises:
            NetworkError: request failed or returned a non-2xx status
            MalformedResponseError: body is not JSON or has no `elements` array
        """
        method = (method or self.config.api.http_method).upper()
        headers = {"User-Agent": self.config.api.user_agent}

        logger.debug(f"Overpass {method} {self.overpass_url}\n{query}")

        try:
            if method == "GET":
                response = self.session.get(
                    self.overpass_url,
                    params={"data": query},
                    headers=headers,
                    timeout=self.timeout,
                )
            else:
                headers["Content-Type"] = "application/x-www-form-urlencoded"
                response = self.session.post(
                    self.overpass_url,
                    data={"data": query},
                    headers=headers,
                    timeout=self.timeout,
                )
        except requests.exceptions.RequestException as e:
            logger.error(f"Overpass request failed: {e}")
            raise NetworkError(f"Overpass request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            body = response.text
            logger.error(f"Overpass API error: HTTP {response.status_code}")
            raise NetworkError(
                f"Overpass API error: {response.status_code} {body}".strip(),
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Overpass returned a non-JSON body: {e}")
            raise MalformedResponseError(f"Overpass returned a non-JSON body: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("elements"), list):
            raise MalformedResponseError("Overpass response has no 'elements' array")

        logger.info(f"Overpass returned {len(data['elements'])} elements")
        return data

    def close(self):
        self.session.close()
