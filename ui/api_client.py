# ABOUTME: Thin requests wrapper around the tracker API; one method per route, JSON in and out.
# ABOUTME: Non-2xx responses and network failures raise APIError carrying the server's {"message"} text.

from typing import Any, Optional

import requests

from core.config import API_URL

DEFAULT_TIMEOUT = 10
BRIEFING_TIMEOUT = 60


class APIError(Exception):
    """A request failed. status_code is 0 when the API could not be reached."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _safe_json(response: requests.Response):
    """Parse response body as JSON; return dict or empty dict on failure."""
    try:
        return response.json()
    except ValueError:
        return {}


class TrackerAPI:
    def __init__(
        self,
        base_url: str = API_URL,
        token: Optional[str] = None,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self._http = http or requests.Session()

    def _headers(self) -> dict:
        """Bearer header for authenticated calls, or empty dict when signed out."""
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}

    def _request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> Any:
        try:
            r = self._http.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=params,
                headers=self._headers(),
                timeout=timeout,
            )
        except requests.RequestException as e:
            raise APIError(0, f"Could not reach the API: {e}") from e
        if r.status_code >= 400:
            body = _safe_json(r)
            text = body.get("message") or body.get("detail") or f"Unexpected error: {r.status_code}"
            raise APIError(r.status_code, str(text))
        if r.status_code == 204:
            return {}
        return _safe_json(r)

    # Auth

    def signup(self, email: str, password: str, name: str) -> dict:
        return self._request("POST", "/auth/signup", json={"email": email, "password": password, "name": name})

    def login(self, email: str, password: str) -> dict:
        return self._request("POST", "/auth/login", json={"email": email, "password": password})

    def session(self) -> dict:
        return self._request("GET", "/auth/session")

    def resend_confirmation(self, email: str) -> dict:
        return self._request("POST", "/auth/resend-confirmation", json={"email": email})

    # Planning

    def list_goals(self) -> list[dict]:
        return self._request("GET", "/goals").get("goals", [])

    def create_goal(self, goal: dict) -> dict:
        return self._request("POST", "/goals", json=goal)

    def update_goal(self, goal_id: str, fields: dict) -> dict:
        return self._request("PATCH", f"/goals/{goal_id}", json=fields)

    def delete_goal(self, goal_id: str) -> None:
        self._request("DELETE", f"/goals/{goal_id}")

    def reorder_goals(self, ids: list[str]) -> list[dict]:
        return self._request("PUT", "/goals/order", json={"ids": ids}).get("goals", [])

    def list_tactics(self, goal_id: Optional[str] = None) -> list[dict]:
        params = {"goal_id": goal_id} if goal_id else None
        return self._request("GET", "/tactics", params=params).get("tactics", [])

    def create_tactic(self, tactic: dict) -> dict:
        return self._request("POST", "/tactics", json=tactic)

    def update_tactic(self, tactic_id: str, fields: dict, confirm_reset: bool = False) -> dict:
        return self._request("PATCH", f"/tactics/{tactic_id}", json={**fields, "confirm_reset": confirm_reset})

    def delete_tactic(self, tactic_id: str) -> None:
        self._request("DELETE", f"/tactics/{tactic_id}")

    def set_completion(self, tactic_id: str, week_num: int, value: Any) -> dict:
        return self._request("PUT", f"/tactics/{tactic_id}/completions/{week_num}", json={"value": value})

    def reorder_tactics(self, goal_id: str, ids: list[str]) -> list[dict]:
        return self._request("PUT", f"/goals/{goal_id}/tactics/order", json={"ids": ids}).get("tactics", [])

    # Tracking

    def list_measurements(self) -> list[dict]:
        return self._request("GET", "/measurements").get("measurements", [])

    def upsert_measurement(self, goal_id: str, config_id: str, week_num: int, value: float) -> dict:
        body = {"goal_id": goal_id, "config_id": config_id, "week_num": week_num, "value": value}
        return self._request("PUT", "/measurements", json=body)

    def get_vision(self) -> dict:
        return self._request("GET", "/vision")

    def update_vision(self, fields: dict) -> dict:
        return self._request("PUT", "/vision", json=fields)

    def get_cycle(self) -> dict:
        return self._request("GET", "/cycle")

    def set_cycle_start(self, start_date: str) -> dict:
        return self._request("PUT", "/cycle/start-date", json={"start_date": start_date})

    def reset_cycle(self, confirm: bool) -> dict:
        return self._request("POST", "/cycle/reset", json={"confirm": confirm})

    def get_scores(self, week: Optional[int] = None) -> dict:
        params = {"week": week} if week else None
        return self._request("GET", "/scores", params=params)

    def briefing(self, week: Optional[int] = None) -> dict:
        return self._request("POST", "/briefing", json={"week": week}, timeout=BRIEFING_TIMEOUT)
