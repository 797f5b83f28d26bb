"""
REST client for the registration, login and catalog endpoints.
"""
from typing import Any, Dict, Optional

import httpx

from exam_portal.config import settings


class ExamApiClient:
    """
    Thin JSON client. Pass `client` to reuse an existing httpx.Client
    (for example FastAPI's TestClient); otherwise one is created against
    `base_url`.
    """

    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.Client] = None, timeout: float = 30.0):
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._owns_client = client is None
        self.client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _request(self, method: str, path: str, action: str, **kwargs) -> Any:
        try:
            response = self.client.request(method, path, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPError as e:
            print(f"❌ Error {action}: {e}")
            raise

    # Registration
    def register_student(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/register_student", "registering student", json=data)

    def register_teacher(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/register_teacher", "registering teacher", json=data)

    # Login
    def login_student(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/login_student", "logging in student", json=data)

    def login_teacher(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/login_teacher", "logging in teacher", json=data)

    # Catalog
    def get_questions(self, **filters) -> Any:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._request("GET", "/questions", "fetching questions", params=params)

    def get_subjects(self) -> Any:
        return self._request("GET", "/subjects", "fetching subjects")
