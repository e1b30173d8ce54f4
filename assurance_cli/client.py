from __future__ import annotations

from typing import Any, Dict, Optional

import requests

from assurance_cli import __version__
from assurance_cli.exceptions import ApiError, AuthenticationError
from assurance_cli.models.config import AppConfig

_TIMEOUT_SECONDS = 30


class AssuranceClient:
    def __init__(self, config: AppConfig) -> None:
        self._base_url = config.api_url
        self.client_id = config.client_id
        self._session = requests.Session()
        self._session.headers.update({
            "Authorization": f"Bearer {config.bearer_token}",
            "x-client-id": str(config.client_id),
            "User-Agent": f"assurance-cli/{__version__}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("POST", path, json=json)

    def put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Any:
        return self._request("PUT", path, json=json)

    def list_risk_assessments(self) -> Any:
        return self.get("/risk-assessments", params={"clientId": str(self.client_id)})

    def get_risk_assessment(self, assessment_id: int) -> Any:
        return self.get(f"/risk-assessments/{assessment_id}")

    def update_risk_assessment(self, assessment_id: int, payload: Dict[str, Any]) -> Any:
        return self.put(f"/risk-assessments/{assessment_id}", json=payload)

    def list_maturity_assessments(self) -> Any:
        return self.get("/essential-eight/assessments", params={"clientId": str(self.client_id)})

    def update_maturity(self, payload: Dict[str, Any]) -> Any:
        body = dict(payload)
        body["clientId"] = self.client_id
        return self.post("/essential-eight/maturity", json=body)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        normalized_path = path.lstrip("/")
        url = self._base_url + normalized_path
        try:
            response = self._session.request(method, url, timeout=_TIMEOUT_SECONDS, **kwargs)
        except requests.Timeout as exc:
            raise ApiError(
                f"Request to {self._base_url} timed out after {_TIMEOUT_SECONDS} seconds."
            ) from exc
        except requests.RequestException as exc:
            raise ApiError(
                f"Cannot connect to {self._base_url}. "
                "Check your network connection and API URL."
            ) from exc

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Authentication failed. Your bearer token may have expired. "
                "Run assurance-cli --init to set a new token."
            )
        if response.status_code == 404:
            raise ApiError(
                f"Resource not found: {normalized_path}. "
                "The assurance API may have changed."
            )
        if response.status_code >= 500:
            raise ApiError(
                f"Assurance API server error ({response.status_code}). "
                "Please try again later."
            )

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise ApiError(
                f"Assurance API request failed ({response.status_code}) for {normalized_path}. "
                "Please verify the request and try again."
            ) from exc

        if response.status_code == 204:
            return None

        try:
            return response.json()
        except ValueError as exc:
            raise ApiError(
                f"Invalid response from assurance API for {normalized_path}. Expected JSON data."
            ) from exc
