"""
Python client for the Blue Carbon Registry API.

Wraps ``requests`` with bearer-token handling, durable session state, and
status-specific errors. Every successful body has the shape
``{"success": bool, "data": ..., "message": ...}``.
"""

import logging
import os
import time
from typing import Any, Dict, Optional

import jwt
import requests

from client.errors import HttpError, error_for
from client.session import Session, SessionStore

API_BASE_URL = os.getenv("API_BASE_URL", "http://localhost:5000/api")
REQUEST_TIMEOUT = 30


class ApiClient:
    """
    One object per user session.

    Args:
        base_url: API root, e.g. http://localhost:5000/api
        store: Where token/role/user are persisted.
        http: Optional pre-configured requests.Session.
    """

    def __init__(self, base_url: Optional[str] = None, store: Optional[SessionStore] = None,
                 http: Optional[requests.Session] = None):
        self.base_url = (base_url or API_BASE_URL).rstrip("/")
        self.store = store or SessionStore()
        self.http = http or requests.Session()

    # --- transport ---
    def request(self, method: str, endpoint: str, json: Optional[Dict[str, Any]] = None,
                params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send one request and return the parsed JSON body.

        Raises:
            AuthenticationRequired, AccessDenied, RateLimited, HttpError
            requests.RequestException: Network failure.
        """
        url = f"{self.base_url}{endpoint}"
        headers = {"Content-Type": "application/json"}
        token = self.store.token
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = self.http.request(method, url, json=json, params=params,
                                         headers=headers, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            logging.error(f"API request failed: {method} {url}: {e}")
            raise

        if not response.ok:
            raise error_for(response.status_code, self._parse(response))

        return self._parse(response)

    @staticmethod
    def _parse(response: requests.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    # --- session ---
    def _remember(self, response: Dict[str, Any]) -> None:
        data = response.get("data") or {}
        if response.get("success") and data.get("token") and data.get("user"):
            self.store.set(data["token"], data["user"])

    def current_session(self) -> Optional[Session]:
        return self.store.get()

    def is_authenticated(self) -> bool:
        """
        Local, best-effort check that the stored token has not expired.

        Decodes the payload without verifying the signature (the server checks
        every request anyway). On expiry or an undecodable token the whole
        session is cleared.
        """
        token = self.store.token
        if not token:
            return False
        try:
            payload = jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
            expires_at = float(payload["exp"])
        except (jwt.InvalidTokenError, KeyError, TypeError, ValueError):
            self.store.clear()
            return False
        if expires_at <= time.time():
            self.store.clear()
            return False
        return True

    def has_role(self, *roles: str) -> bool:
        session = self.store.get()
        return bool(session and session.role in roles and self.is_authenticated())

    # --- auth ---
    def register(self, user_data: Dict[str, Any]) -> Dict[str, Any]:
        response = self.request("POST", "/auth/register", json=user_data)
        self._remember(response)
        return response

    def login(self, email: str, password: str) -> Dict[str, Any]:
        response = self.request("POST", "/auth/login", json={"email": email, "password": password})
        self._remember(response)
        return response

    def logout(self) -> None:
        """Tell the server, then always drop local state."""
        try:
            if self.store.token:
                self.request("POST", "/auth/logout")
        except (HttpError, requests.RequestException) as e:
            logging.warning(f"Logout request failed: {e}")
        finally:
            self.store.clear()

    def get_current_user(self) -> Dict[str, Any]:
        response = self.request("GET", "/auth/me")
        user = (response.get("data") or {}).get("user")
        if user:
            self.store.update_user(user)
        return response

    def refresh_token(self) -> Dict[str, Any]:
        response = self.request("POST", "/auth/refresh")
        token = (response.get("data") or {}).get("token")
        if token:
            self.store.update_token(token)
        return response

    def forgot_password(self, email: str) -> Dict[str, Any]:
        return self.request("POST", "/auth/forgot-password", json={"email": email})

    def reset_password(self, token: str, password: str) -> Dict[str, Any]:
        return self.request("POST", "/auth/reset-password", json={"token": token, "password": password})

    def send_verification(self) -> Dict[str, Any]:
        return self.request("POST", "/auth/send-verification")

    def verify_email(self, token: str) -> Dict[str, Any]:
        return self.request("POST", "/auth/verify-email", json={"token": token})

    # --- users ---
    def get_users(self, **params: Any) -> Dict[str, Any]:
        return self.request("GET", "/users", params=params or None)

    def get_user_stats(self) -> Dict[str, Any]:
        return self.request("GET", "/users/stats/overview")

    def get_user_by_id(self, user_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/users/{user_id}")

    def update_user(self, user_id: int, user_data: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", f"/users/{user_id}", json=user_data)

    def update_user_role(self, user_id: int, role: str) -> Dict[str, Any]:
        return self.request("PUT", f"/users/{user_id}/role", json={"role": role})

    def update_user_status(self, user_id: int, is_active: bool) -> Dict[str, Any]:
        return self.request("PUT", f"/users/{user_id}/status", json={"isActive": is_active})

    def verify_user(self, user_id: int) -> Dict[str, Any]:
        return self.request("PUT", f"/users/{user_id}/verify", json={})

    # --- community ---
    def get_my_community_profile(self) -> Dict[str, Any]:
        return self.request("GET", "/community/my-profile")

    def get_community_profile_by_id(self, profile_id: int) -> Dict[str, Any]:
        return self.request("GET", f"/community/profile/{profile_id}")

    def list_community_profiles(self, **params: Any) -> Dict[str, Any]:
        return self.request("GET", "/community/profiles", params=params or None)

    def get_community_stats(self) -> Dict[str, Any]:
        return self.request("GET", "/community/stats")

    def create_community_profile(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("POST", "/community/profile", json=payload)

    def update_community_profile(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self.request("PUT", "/community/profile", json=payload)

    def submit_community_profile(self) -> Dict[str, Any]:
        return self.request("POST", "/community/profile/submit")

    def delete_community_profile(self) -> Dict[str, Any]:
        return self.request("DELETE", "/community/profile")

    # --- misc ---
    def health_check(self) -> Dict[str, Any]:
        return self.request("GET", "/health")
