import logging
import uuid
from typing import Any

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from slskd.errors import BackendUnavailableError, MalformedResponseError, SlskdError
from slskd.models import SearchStatus, parse_responses

logger = logging.getLogger(__name__)

__all__ = [
    "BackendUnavailableError",
    "MalformedResponseError",
    "SlskdClient",
    "SlskdError",
]

SEARCHES_ENDPOINT = "/api/v0/searches"
REQUEST_TIMEOUT_SECONDS = 15.0
_MISSING_STATUSES = (401, 403, 404)


class SlskdClient:
    """Search backend talking to a slskd instance over its HTTP API."""

    def __init__(self, settings, *, session=None, timeout_seconds=REQUEST_TIMEOUT_SECONDS) -> None:
        self.settings = settings
        self.base_url = (settings.base_url or "").rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._session = session or requests.Session()
        if session is None:
            retry = Retry(
                total=3,
                backoff_factor=0.4,
                status_forcelist=(429, 500, 502, 503, 504),
                allowed_methods=frozenset({"GET", "DELETE"}),
                respect_retry_after_header=True,
            )
            adapter = HTTPAdapter(max_retries=retry)
            self._session.mount("https://", adapter)
            self._session.mount("http://", adapter)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.settings.api_key:
            headers["X-API-KEY"] = self.settings.api_key
        return headers

    def _request(self, method: str, path: str, **kwargs: Any):
        url = f"{self.base_url}{path}"
        try:
            resp = self._session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.timeout_seconds,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise BackendUnavailableError(f"slskd request failed: {method} {path}: {exc}") from exc
        if resp.status_code in _MISSING_STATUSES:
            logger.warning("[SLSKD] %s %s status=%s", method, path, resp.status_code)
            return None
        if resp.status_code >= 400:
            raise BackendUnavailableError(
                f"slskd returned {resp.status_code} for {method} {path}",
                status_code=resp.status_code,
            )
        return resp

    @staticmethod
    def _json(resp):
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponseError(f"slskd returned invalid JSON: {exc}") from exc

    def build_search_payload(self, text: str, search_id: str) -> dict[str, Any]:
        settings = self.settings
        return {
            "id": search_id,
            "fileLimit": settings.file_limit,
            "filterResponses": True,
            "maximumPeerQueueLength": settings.maximum_peer_queue_length,
            "minimumPeerUploadSpeed": settings.minimum_peer_upload_speed_bytes,
            "minimumResponseFileCount": settings.minimum_response_file_count,
            "responseLimit": settings.response_limit,
            "searchText": text,
            "searchTimeout": int(settings.timeout_seconds * 1000),
        }

    def start_search(self, text: str, *, search_id: str | None = None) -> str | None:
        search_id = search_id or str(uuid.uuid4())
        payload = self.build_search_payload(text, search_id)
        logger.info("[SLSKD] starting search id=%s text=%r", search_id, text)
        resp = self._request("POST", SEARCHES_ENDPOINT, json=payload)
        if resp is None:
            return None
        data = self._json(resp)
        if isinstance(data, dict) and data.get("id"):
            return str(data["id"])
        return search_id

    def get_status(self, search_id: str) -> SearchStatus | None:
        resp = self._request("GET", f"{SEARCHES_ENDPOINT}/{search_id}")
        if resp is None:
            return None
        return SearchStatus.from_payload(self._json(resp))

    def get_results(self, search_id: str):
        resp = self._request("GET", f"{SEARCHES_ENDPOINT}/{search_id}/responses")
        if resp is None:
            return None
        data = self._json(resp)
        if data is None:
            return []
        return parse_responses(data)

    def cancel_search(self, search_id: str) -> bool:
        try:
            resp = self._request("PUT", f"{SEARCHES_ENDPOINT}/{search_id}")
        except SlskdError:
            logger.warning("[SLSKD] failed to cancel search id=%s", search_id, exc_info=True)
            return False
        return resp is not None

    def remove_search(self, search_id: str) -> bool:
        try:
            resp = self._request("DELETE", f"{SEARCHES_ENDPOINT}/{search_id}")
        except SlskdError:
            logger.warning("[SLSKD] failed to remove search id=%s", search_id, exc_info=True)
            return False
        return resp is not None

    def info_url(self, search_id: str) -> str:
        return f"{self.settings.info_base_url}/searches/{search_id}"
