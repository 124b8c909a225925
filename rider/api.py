"""Client for the ride upload and new-miles service."""

from typing import Optional

import requests

from .config import CONFIG
from .errors import ApiError
from .gpx import gpx_filename


class WandrerClient:
    """HTTP client for activity upload and new-miles preview"""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or CONFIG["api_base_url"]).rstrip("/")
        self.timeout = timeout if timeout is not None else CONFIG["api_timeout"]
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if CONFIG["api_token"]:
            self.set_auth(CONFIG["api_token"], CONFIG["athlete_id"])

    def set_auth(self, token: str, athlete_id=None):
        """Authenticate subsequent requests with an issued token"""
        value = f"Token token={token}"
        if athlete_id is not None:
            value += f", id={athlete_id}"
        self.session.headers["Authorization"] = value

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _post(self, path: str, **kwargs) -> dict:
        try:
            response = self.session.post(self._url(path), timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise ApiError(f"POST {path} returned {status}", status_code=status) from e
        except requests.RequestException as e:
            raise ApiError(f"POST {path} failed: {e}") from e
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(f"POST {path} returned invalid JSON", status_code=response.status_code) from e

    def upload_gpx(self, gpx: str, name: str, activity_type: str) -> dict:
        """Upload a ride as a GPX activity; returns the response body"""
        files = {
            "gpx_activity[gpx]": (gpx_filename(name), gpx.encode("utf-8"), "application/gpx+xml"),
        }
        data = {
            "gpx_activity[name]": name,
            "gpx_activity[activity_type]": activity_type,
        }
        return self._post(CONFIG["upload_endpoint"], files=files, data=data)

    def preview_new_miles(self, gpx: str) -> float:
        """New miles the given track would add, without saving it"""
        body = self._post(CONFIG["preview_endpoint"], json={"gpx": gpx})
        return float(body.get("new_miles") or 0)

    def is_reachable(self) -> bool:
        """Whether the service answers at all"""
        try:
            self.session.head(self.base_url, timeout=min(self.timeout, 10))
        except requests.RequestException:
            return False
        return True
