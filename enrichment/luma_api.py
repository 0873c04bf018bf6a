"""Client for the Luma public API."""
import logging
from typing import Any, Dict, Optional

import requests

from errors import ApiResponseError, ConfigurationError, FetchError

logger = logging.getLogger(__name__)

API_BASE_URL = "https://api.lu.ma/public/v1"
LOOKUP_PATH = "/entity/lookup"
ADD_EVENT_PATH = "/calendar/add-event"
API_KEY_ENV = "LUMA_API_KEY"


class LumaApiClient:
    """Client for looking up and submitting Luma events."""

    def __init__(
        self,
        api_key: Optional[str],
        timeout: int = 10,
        base_url: str = API_BASE_URL
    ):
        """
        Initialize the API client.

        Args:
            api_key: Bearer token; calls fail with ConfigurationError if None
            timeout: HTTP request timeout in seconds (default: 10)
            base_url: API root URL
        """
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url.rstrip('/')

    @classmethod
    def from_settings(cls, settings) -> 'LumaApiClient':
        return cls(api_key=settings.luma_api_key, timeout=settings.timeout_seconds)

    @property
    def has_api_key(self) -> bool:
        return bool(self.api_key)

    def lookup_event_id(self, slug: str) -> str:
        """
        Look up the API id of an event by its slug.

        Args:
            slug: Event slug from the lu.ma URL

        Returns:
            The value at entity.event.api_id

        Raises:
            ConfigurationError: If no API key is configured
            FetchError: On transport failure
            ApiResponseError: On non-200 status or unexpected body
        """
        response = self._request(
            'GET',
            LOOKUP_PATH,
            params={'slug': slug}
        )

        if response.status_code != 200:
            raise ApiResponseError(
                f"API request failed with status: {response.status_code}",
                status_code=response.status_code
            )

        body = self._json(response)
        api_id = None
        if isinstance(body, dict):
            entity = body.get('entity')
            if isinstance(entity, dict):
                event = entity.get('event')
                if isinstance(event, dict):
                    api_id = event.get('api_id')

        if not isinstance(api_id, str) or not api_id:
            raise ApiResponseError(
                "API ID not found in response",
                status_code=response.status_code
            )
        return api_id

    def add_event(self, api_id: str) -> Dict[str, Any]:
        """
        Add an event to the caller's Luma calendar.

        Args:
            api_id: Event API id obtained from lookup_event_id

        Returns:
            Decoded response body (may contain calendar_event_id)

        Raises:
            ConfigurationError: If no API key is configured
            FetchError: On transport failure
            ApiResponseError: On a status other than 200/201
        """
        payload = {
            'platform': 'luma',
            'event_api_id': api_id,
            'manual_address': {
                'type': 'manual',
                'address': 'TBD'
            }
        }
        response = self._request('POST', ADD_EVENT_PATH, json=payload)

        if response.status_code not in (200, 201):
            raise ApiResponseError(
                f"Add event failed with status: {response.status_code}",
                status_code=response.status_code
            )

        if not response.content:
            return {}
        body = self._json(response)
        return body if isinstance(body, dict) else {}

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        if not self.api_key:
            raise ConfigurationError(
                f"No API key available. Set {API_KEY_ENV} environment variable"
            )

        headers = {
            'Authorization': f"Bearer {self.api_key}",
            'Accept': 'application/json'
        }
        url = f"{self.base_url}{path}"
        try:
            return requests.request(
                method,
                url,
                headers=headers,
                timeout=self.timeout,
                **kwargs
            )
        except requests.RequestException as e:
            raise FetchError(f"API request failed: {e}") from e

    @staticmethod
    def _json(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ApiResponseError(
                f"Failed to parse API response: {e}",
                status_code=response.status_code
            ) from e
