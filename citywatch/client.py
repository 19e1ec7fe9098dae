# citywatch/client.py
"""
HTTP client for the incident API, plus the fixed-interval poller behind the
live feed and dashboards.

Reads degrade to the bundled dataset when the API cannot be reached; writes
raise ApiError and are never retried.
"""
import logging
import os
import threading

import requests

from .models.incident import canonicalize_incident, load_mock_incidents
from .utils.normalize import normalize_incident
from .utils.pipeline import apply_filters, responder_queue

log = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:5001/api"
POLL_INTERVAL_SECONDS = 5.0


class ApiError(Exception):
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


def fallback_incidents():
    return [normalize_incident(canonicalize_incident(r)) for r in load_mock_incidents()]


class IncidentClient:
    def __init__(self, base_url=None, token=None, timeout=10, session=None):
        self.base_url = (base_url or os.getenv("CITYWATCH_API_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self):
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method, path, **kwargs):
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ApiError(f"{method} {path} failed: {e}")
        if not resp.ok:
            try:
                message = resp.json().get("message")
            except ValueError:
                message = None
            raise ApiError(message or f"{method} {path} returned {resp.status_code}", resp.status_code)
        try:
            return resp.json()
        except ValueError:
            raise ApiError(f"{method} {path} returned invalid JSON", resp.status_code)

    # --- incidents (reads fall back to local data)
    def list_incidents(self):
        try:
            data = self._request("GET", "/incidents")
        except ApiError as e:
            log.warning("Falling back to local incidents: %s", e)
            return fallback_incidents()
        return [normalize_incident(d) for d in (data if isinstance(data, list) else [])]

    def get_incident(self, incident_id):
        try:
            return normalize_incident(self._request("GET", f"/incidents/{incident_id}"))
        except ApiError as e:
            for inc in fallback_incidents():
                if inc["id"] == incident_id:
                    log.warning("Serving incident %s from local data: %s", incident_id, e)
                    return inc
            raise

    def create_incident(self, payload):
        return normalize_incident(self._request("POST", "/incidents", json=payload))

    def update_incident(self, incident_id, changes):
        return normalize_incident(self._request("PATCH", f"/incidents/{incident_id}", json=changes))

    def confirm_incident(self, incident_id):
        return normalize_incident(self._request("POST", f"/incidents/{incident_id}/confirm"))

    def delete_incident(self, incident_id):
        return self._request("DELETE", f"/incidents/{incident_id}")

    def responder_queue(self, sort_by="severity"):
        """(open incidents, the assigned subset), both sorted for the responder dashboard."""
        return responder_queue(self.list_incidents(), sort_by)

    # --- auth
    def register(self, email, password, name, role="citizen"):
        data = self._request("POST", "/auth/register", json={
            "email": email, "password": password, "name": name, "role": role,
        })
        self.token = data.get("token")
        return data

    def login(self, email, password):
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        self.token = data.get("token")
        return data

    # --- admin
    def list_users(self):
        return self._request("GET", "/admin/users")

    def update_user_role(self, user_id, role):
        return self._request("PATCH", f"/admin/users/{user_id}/role", json={"role": role})

    def delete_user(self, user_id):
        return self._request("DELETE", f"/admin/users/{user_id}")


class FeedPoller:
    """
    Re-fetch the whole incident list every `interval` seconds and pass the
    filtered result to `on_update`. A poll that finishes after stop() is dropped.
    """

    def __init__(self, client, on_update, filters=None, user_location=None, interval=POLL_INTERVAL_SECONDS):
        self.client = client
        self.on_update = on_update
        self.filters = filters or {}
        self.user_location = user_location
        self.interval = interval
        self._stop = threading.Event()
        self._thread = None
        self._previous_count = 0

    def poll_once(self):
        incidents = self.client.list_incidents()
        if self._stop.is_set():
            return None
        if self._previous_count and len(incidents) > self._previous_count:
            new = len(incidents) - self._previous_count
            log.info("%d new incident%s reported", new, "s" if new > 1 else "")
        self._previous_count = len(incidents)

        visible = apply_filters(incidents, self.filters, self.user_location)
        self.on_update(visible)
        return visible

    def _run(self):
        while not self._stop.is_set():
            try:
                self.poll_once()
            except Exception:
                log.exception("Feed poll failed")
            if self._stop.wait(self.interval):
                break

    def start(self):
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="feed-poller", daemon=True)
        self._thread.start()

    def stop(self, timeout=None):
        self._stop.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout)
            self._thread = None

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()
