from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter


class HttpClient:
    """Pooled JSON-over-HTTP session.

    Requests are never retried; every call carries the configured timeout.
    """

    def __init__(self, timeout: float, user_agent: str, api_key: Optional[str] = None) -> None:
        self.timeout = timeout
        self.session = requests.Session()
        adapter = HTTPAdapter(max_retries=0, pool_connections=4, pool_maxsize=16)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)
        self.session.headers.update({"User-Agent": user_agent, "Accept": "application/json"})
        if api_key:
            self.session.headers["x-api-key"] = api_key

    def get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def post_json(self, url: str, payload: Dict[str, Any]) -> Any:
        response = self.session.post(url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        self.session.close()
