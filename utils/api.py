# utils/api.py
from __future__ import annotations

import time
import requests
import logging
import random
from typing import Dict, Any, Optional, Union, List, Tuple
from urllib.parse import urljoin

from utils.config import DEFAULT_TIMEOUT, Settings

# --- Tunables ---------------------------------------------------------------
DEFAULT_PER_PAGE = 100
USER_AGENT = "CanvasMassAction/1.0 (+https://example.org)"  # customize
API_PREFIX = "/api/v1"
MAX_ATTEMPTS = 4

log = logging.getLogger(__name__)


class CanvasAPI:
    def __init__(
        self,
        base_url: str | None,
        token: str | None,
        *,
        timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
    ) -> None:
        if not base_url or not token:
            raise ValueError("CanvasAPI base_url and token are required (check CANVAS_URL / CANVAS_TOKEN)")

        base = base_url.rstrip("/")
        # Ensure exactly one /api/v1 for the API root; keep host root separately
        if base.endswith(API_PREFIX):
            api_root = base
            host_root = base[: -len(API_PREFIX)]
        else:
            api_root = base + API_PREFIX
            host_root = base

        self.base_url = host_root + "/"   # host root (trailing slash)
        self.api_root = api_root + "/"    # canonical API root (trailing slash)
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "User-Agent": USER_AGENT,
        })

    @classmethod
    def from_settings(cls, settings: Settings) -> "CanvasAPI":
        return cls(settings.canvas_url, settings.canvas_token, timeout=settings.http_timeout)

    # Accept endpoints with or without /api/v1 and build a full API URL
    def _full_url(self, endpoint: str) -> str:
        ep = (endpoint or "").strip()
        if ep.startswith(API_PREFIX):
            ep = ep[len(API_PREFIX):]
        ep = ep.lstrip("/")
        return urljoin(self.api_root, ep)

    def _backoff(self, delay: float) -> float:
        return delay + random.uniform(0, 0.25 * delay)

    # Basic retry/backoff for 429/5xx + timeouts
    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        delay = 1.0
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                resp = self.session.request(method, url, timeout=self.timeout, **kwargs)

                if resp.status_code == 429 and attempt < MAX_ATTEMPTS:
                    retry_after = float(resp.headers.get("Retry-After", delay))
                    wait_time = retry_after + random.uniform(0, 0.25 * retry_after)
                    log.warning(
                        "Rate limited: 429 received. Retrying after %.2fs (attempt %s/%s)",
                        wait_time, attempt, MAX_ATTEMPTS,
                        extra={"url": url, "retry_after": retry_after},
                    )
                    time.sleep(wait_time)
                    continue

                resp.raise_for_status()
                return resp

            except requests.HTTPError as e:
                status = getattr(e.response, "status_code", None)
                if status and status >= 500 and attempt < MAX_ATTEMPTS:
                    wait_time = self._backoff(delay)
                    log.warning(
                        "Server error %s. Retrying after %.2fs (attempt %s/%s)",
                        status, wait_time, attempt, MAX_ATTEMPTS,
                        extra={"url": url},
                    )
                    time.sleep(wait_time)
                    delay *= 2
                    continue
                raise

            except (requests.ConnectionError, requests.Timeout):
                if attempt < MAX_ATTEMPTS:
                    wait_time = self._backoff(delay)
                    log.warning(
                        "Connection/timeout error. Retrying after %.2fs (attempt %s/%s)",
                        wait_time, attempt, MAX_ATTEMPTS,
                        extra={"url": url},
                    )
                    time.sleep(wait_time)
                    delay *= 2
                    continue
                raise
        raise requests.HTTPError(f"{method} {url} failed after {MAX_ATTEMPTS} attempts")

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
        """
        GET with transparent pagination.
        - If the endpoint returns a list, we return a combined list across pages.
        - If it returns a single object, we return that dict.
        """
        url: Optional[str] = self._full_url(endpoint)

        params = dict(params or {})
        params.setdefault("per_page", DEFAULT_PER_PAGE)

        results: List[Dict[str, Any]] = []
        first = True
        while url:
            # Only send params on the first request; follow-ups use absolute next URLs.
            r = self._request("GET", url, params=params if first else None)
            first = False
            data = r.json()

            if isinstance(data, list):
                results.extend(data)
            else:
                return data  # single object; no pagination

            url = self._next_link(r.headers)

        return results

    def post(self, endpoint: str, *, json: Optional[Dict[str, Any]] = None,
             data: Optional[Dict[str, Any]] = None, params=None) -> requests.Response:
        """Raw POST; returns Response."""
        url = self._full_url(endpoint)
        return self._request("POST", url, json=json, data=data, params=params)

    def put(self, endpoint: str, *, json: Optional[Dict[str, Any]] = None,
            data: Optional[Dict[str, Any]] = None, params=None) -> requests.Response:
        """Raw PUT; returns Response."""
        url = self._full_url(endpoint)
        return self._request("PUT", url, json=json, data=data, params=params)

    def delete(self, endpoint: str, *, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        """Raw DELETE; returns Response."""
        url = self._full_url(endpoint)
        return self._request("DELETE", url, params=params)

    def post_json(self, endpoint: str, *, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Convenience: POST with JSON body and return parsed JSON (or {})."""
        return self._json_or_empty(self.post(endpoint, json=payload))

    def _next_link(self, headers: Dict[str, Any]) -> Optional[str]:
        """
        Extract the 'next' URL from an RFC5988 Link header.
        Accepts rel=next and rel="next". Returns None if not present.
        """
        link_hdr = headers.get("Link") or headers.get("link")
        if not link_hdr:
            return None
        for raw in link_hdr.split(","):
            parts = [p.strip() for p in raw.split(";")]
            if not parts or not (parts[0].startswith("<") and ">" in parts[0]):
                continue
            url_part = parts[0]
            rel_parts = [p.lower() for p in parts[1:]]
            if any(r == "rel=next" or r == 'rel="next"' for r in rel_parts):
                return url_part[url_part.find("<") + 1 : url_part.find(">")]
        return None

    @staticmethod
    def _json_or_empty(resp: requests.Response) -> dict:
        """
        Return parsed JSON if the response looks like JSON; otherwise {}.
        Handles 204, empty bodies, and malformed JSON.
        """
        if resp.status_code == 204 or not resp.content:
            return {}
        ctype = resp.headers.get("Content-Type", "")
        if "json" in ctype.lower():
            try:
                body = resp.json()
            except ValueError:
                return {}
            return body if isinstance(body, dict) else {}
        return {}


__all__ = [
    "CanvasAPI",
    "DEFAULT_PER_PAGE",
    "USER_AGENT",
    "API_PREFIX",
]
