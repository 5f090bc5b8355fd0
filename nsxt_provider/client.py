"""
NSX-T Manager REST client
=========================

A thin wrapper around ``requests.Session`` shared by every resource handler.

AUTHENTICATION:
    Two methods are supported:
    1. Session-based authentication (POST to /api/session/create)
    2. Basic authentication with Base64-encoded credentials

    With auth_method="auto" session auth is tried first; if it fails, basic
    auth is used automatically.

ERRORS:
    - HTTP status >= 400 raises NsxApiError (NotFoundError for 404)
    - Transport failures propagate as requests.exceptions.RequestException
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus, urljoin

import requests
import urllib3

from .errors import ConfigError, NsxApiError

logger = logging.getLogger(__name__)

AUTH_METHODS = ("auto", "session", "basic")


class NsxClient:
    """
    REST client for the NSX-T Manager, Policy and Global Manager APIs.

    The client holds a single HTTP session. Every call is synchronous and
    there are no retries: one request per call, one status code to check.

    Example:
        client = NsxClient(
            host="nsx.example.com",
            username="admin",
            password="secret"
        )
        response = client.get("/api/v1/ns-services/abc")
        print(response.json()["display_name"])
    """

    # =========================================================================
    # INITIALIZATION & AUTHENTICATION
    # =========================================================================

    def __init__(
        self,
        host: str,
        username: str,
        password: str,
        verify_ssl: bool = False,
        auth_method: str = "auto",
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client and authenticate with NSX Manager.

        Args:
            host:        NSX Manager hostname or IP address
                         Example: "nsx-manager.example.com" or "192.168.1.100"
            username:    API username
            password:    API password (supports special characters)
            verify_ssl:  Whether to verify SSL certificates
                         Set to False for self-signed certs (common in labs)
            auth_method: "auto", "session" or "basic"
            session:     Pre-built session (tests inject a fake one here)

        Raises:
            ConfigError: Unknown auth_method
            requests.exceptions.HTTPError: If forced session auth fails
            ValueError: If session token cannot be obtained
        """
        if auth_method not in AUTH_METHODS:
            raise ConfigError(
                f"Unknown auth method '{auth_method}' (expected one of {', '.join(AUTH_METHODS)})"
            )

        self.host = host
        self.base_url = f"https://{host}"
        self.username = username
        self.password = password
        self.verify_ssl = verify_ssl
        self.auth_method = auth_method

        self.session = session if session is not None else requests.Session()
        self.session.verify = verify_ssl
        if not verify_ssl:
            # Self-signed certificates are the norm on lab managers
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        # XSRF token for session-based authentication (populated during auth)
        self._xsrf_token: Optional[str] = None

        self._authenticate()

    def _authenticate(self) -> None:
        """
        Authenticate with NSX Manager using the configured method.

        "auto" tries session-based authentication first and falls back to
        basic authentication if the manager rejects it (older versions, or
        session auth disabled).
        """
        if self.auth_method == "basic":
            self._basic_auth()
            return

        if self.auth_method == "session":
            self._session_auth()
            return

        try:
            self._session_auth()
            return
        except requests.exceptions.HTTPError as e:
            logger.info("Session auth failed (%s), trying basic auth...", e)

        self._basic_auth()

    def _session_auth(self) -> None:
        """
        Authenticate using NSX session-based authentication.

        Process:
            1. POST credentials to /api/session/create
            2. JSESSIONID cookie is stored automatically in the session
            3. Keep the x-xsrf-token header for subsequent requests

        Raises:
            requests.exceptions.HTTPError: If authentication fails (401/403)
            ValueError: If x-xsrf-token is not in response headers
        """
        url = f"{self.base_url}/api/session/create"

        # Format: j_username=admin&j_password=MyP%40ss
        data = f"j_username={quote_plus(self.username)}&j_password={quote_plus(self.password)}"

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
        }

        response = self.session.post(url, data=data, headers=headers)
        response.raise_for_status()

        self._xsrf_token = response.headers.get("x-xsrf-token")
        if not self._xsrf_token:
            raise ValueError("Failed to get x-xsrf-token from session creation response")

        logger.debug("Session authentication with %s succeeded", self.host)

    def _basic_auth(self) -> None:
        """
        Configure HTTP Basic authentication with Base64-encoded credentials.

        Example:
            admin:VMware1! -> YWRtaW46Vk13YXJlMSE= -> "Basic YWRtaW46Vk13YXJlMSE="
        """
        credentials = f"{self.username}:{self.password}"
        encoded = base64.b64encode(credentials.encode("utf-8")).decode("ascii")
        self.session.headers["Authorization"] = f"Basic {encoded}"
        logger.debug("Using basic authentication with %s", self.host)

    # =========================================================================
    # LOW-LEVEL API METHODS
    # =========================================================================

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        body: Optional[dict] = None,
    ) -> requests.Response:
        """
        Make a request to the NSX API.

        This is the core method for all API communication. It:
            - Constructs the full URL from base_url and endpoint
            - Adds x-xsrf-token header if using session auth
            - Maps HTTP errors to NsxApiError / NotFoundError

        Args:
            method:   HTTP method ("GET", "POST", "PUT", "PATCH", "DELETE")
            endpoint: API endpoint path (e.g., "/api/v1/ns-services")
            params:   Optional query parameters (e.g., {"cursor": "abc123"})
            body:     Optional JSON body

        Returns:
            The requests.Response, with a status code below 400

        Raises:
            NsxApiError: For 4xx/5xx responses (NotFoundError for 404)
            requests.exceptions.RequestException: For transport failures
        """
        url = urljoin(self.base_url, endpoint)

        headers = {"Accept": "application/json"}
        if self._xsrf_token:
            headers["x-xsrf-token"] = self._xsrf_token

        logger.debug("%s %s params=%s", method, endpoint, params)
        response = self.session.request(
            method, url, params=params, json=body, headers=headers
        )

        if response.status_code >= 400:
            raise NsxApiError.from_response(response)
        return response

    def get(self, endpoint: str, params: Optional[dict] = None) -> requests.Response:
        return self.request("GET", endpoint, params=params)

    def post(
        self, endpoint: str, body: Optional[dict] = None, params: Optional[dict] = None
    ) -> requests.Response:
        return self.request("POST", endpoint, params=params, body=body)

    def put(
        self, endpoint: str, body: Optional[dict] = None, params: Optional[dict] = None
    ) -> requests.Response:
        return self.request("PUT", endpoint, params=params, body=body)

    def patch(
        self, endpoint: str, body: Optional[dict] = None, params: Optional[dict] = None
    ) -> requests.Response:
        return self.request("PATCH", endpoint, params=params, body=body)

    def delete(self, endpoint: str, params: Optional[dict] = None) -> requests.Response:
        return self.request("DELETE", endpoint, params=params)

    def get_all_paginated(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        result_key: str = "results",
    ) -> List[dict]:
        """
        Fetch all results from a paginated NSX API endpoint.

        NSX API uses cursor-based pagination for large result sets.

        Pagination Flow:
            1. Make initial request
            2. If response contains "cursor", make another request with cursor
            3. Repeat until no more cursors

        Args:
            endpoint:   API endpoint path
            params:     Extra query parameters sent with every page
            result_key: Key in response containing the results array

        Returns:
            Combined list of all results across all pages
        """
        all_results: List[dict] = []
        cursor = None

        while True:
            page_params = dict(params or {})
            if cursor:
                page_params["cursor"] = cursor

            page = self.get(endpoint, page_params).json()
            all_results.extend(page.get(result_key, []))

            cursor = page.get("cursor")
            if not cursor:
                break

        return all_results
