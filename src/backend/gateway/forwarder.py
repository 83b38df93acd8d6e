import logging
import os

import requests
from dotenv import load_dotenv
from fastapi.responses import JSONResponse

load_dotenv()

logger = logging.getLogger(__name__)


class BackendForwarder:
    """Relays a request to the backend and returns its JSON verbatim.

    Any non-2xx answer or transport failure becomes a 500 carrying a generic
    message; the backend's own error body is not passed through.
    """

    def __init__(self, base_url: str = None, timeout: int = None):
        self.base_url = (base_url or os.getenv("BACKEND_URL", "http://localhost:3001")).rstrip("/")
        self.timeout = timeout or int(os.getenv("PROXY_TIMEOUT", "30"))

    def forward(self, method: str, path: str, authorization: str | None, *,
                error: str, status_code: int = 200, **kwargs) -> JSONResponse:
        headers = {"Authorization": authorization} if authorization else {}
        try:
            r = requests.request(method, f"{self.base_url}{path}", headers=headers,
                                 timeout=self.timeout, **kwargs)
            r.raise_for_status()
            data = r.json()
        except (requests.RequestException, ValueError):
            logger.exception("[API] %s %s error", method, path)
            return JSONResponse({"error": error}, status_code=500)
        return JSONResponse(data, status_code=status_code)
