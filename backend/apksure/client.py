# apksure/client.py

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import requests

from . import config


class ApiError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthError(ApiError):
    pass


@dataclass(frozen=True)
class AuthSession:
    """Proof of a successful sign-in, passed to everything that needs auth."""

    email: str
    token: str
    expires_at: Optional[str] = None

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}


def _message(resp: requests.Response, fallback: str) -> str:
    try:
        data = resp.json()
    except ValueError:
        return fallback
    if isinstance(data, dict):
        return data.get("message") or fallback
    return fallback


def _raise_for_status(resp: requests.Response, fallback: str) -> None:
    if resp.ok:
        return
    message = _message(resp, fallback)
    if resp.status_code == 401:
        raise AuthError(message, status_code=401)
    raise ApiError(message, status_code=resp.status_code)


class ApiClient:
    def __init__(self, base_url: Optional[str] = None, timeout: float = 60, http: Optional[requests.Session] = None):
        self.base_url = (base_url or config.API_BASE).rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def signin(self, email: str, password: str) -> AuthSession:
        resp = self.http.post(
            self._url("/api/signin"),
            json={"email": email, "password": password},
            timeout=self.timeout,
        )
        _raise_for_status(resp, "Sign-in failed.")
        data = resp.json()
        logging.info(f"Login successful: {data.get('message')}")
        return AuthSession(email=email.strip().lower(), token=data["token"], expires_at=data.get("expires_at"))

    def signout(self, session: AuthSession) -> None:
        resp = self.http.post(self._url("/api/signout"), headers=session.headers, timeout=self.timeout)
        _raise_for_status(resp, "Sign-out failed.")

    def upload(self, path: Path, session: AuthSession) -> str:
        path = Path(path)
        with open(path, "rb") as f:
            files = {"apk": (path.name, f, "application/vnd.android.package-archive")}
            resp = self.http.post(
                self._url("/api/upload"),
                files=files,
                headers=session.headers,
                timeout=self.timeout,
            )
        _raise_for_status(resp, "Failed to upload APK.")
        return resp.json()["jobid"]

    def result(self, jobid: str, session: AuthSession) -> Dict[str, Any]:
        resp = self.http.get(self._url(f"/api/result/{jobid}"), headers=session.headers, timeout=self.timeout)
        _raise_for_status(resp, "Failed to fetch analysis result.")
        return resp.json()
