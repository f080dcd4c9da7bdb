"""Zoom service - Server-to-Server OAuth client for the Zoom meetings API"""

import logging
import secrets
import string
import time
from datetime import datetime
from typing import Any, Optional

import httpx

from ...config import ZOOM_ACCOUNT_ID, ZOOM_CLIENT_ID, ZOOM_CLIENT_SECRET

logger = logging.getLogger(__name__)

ZOOM_API_BASE = "https://api.zoom.us/v2"
ZOOM_TOKEN_URL = "https://zoom.us/oauth/token"

# Refresh the token this many seconds before Zoom says it expires
TOKEN_EXPIRY_MARGIN = 60

PASSWORD_ALPHABET = string.ascii_letters + string.digits


class ZoomAPIError(Exception):
    """Zoom returned an error or could not be reached"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def generate_meeting_password(length: int = 8) -> str:
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


class ZoomService:
    """Service for Zoom API operations"""

    def __init__(self):
        self.account_id = ZOOM_ACCOUNT_ID
        self.client_id = ZOOM_CLIENT_ID
        self.client_secret = ZOOM_CLIENT_SECRET
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

        if not self.is_available():
            logger.warning("ZOOM credentials not set; online consultations will have no meeting link")

    def is_available(self) -> bool:
        return bool(self.account_id and self.client_id and self.client_secret)

    async def get_access_token(self) -> str:
        """Return the cached token or fetch a new one with account credentials"""
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        try:
            async with httpx.AsyncClient(timeout=15.0) as client:
                response = await client.post(
                    ZOOM_TOKEN_URL,
                    params={"grant_type": "account_credentials", "account_id": self.account_id},
                    auth=(self.client_id, self.client_secret),
                )
            response.raise_for_status()
            tokens = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"❌ Error getting Zoom access token: {e}")
            raise ZoomAPIError("Failed to authenticate with Zoom API") from e

        self._access_token = tokens["access_token"]
        self._token_expires_at = time.monotonic() + int(tokens.get("expires_in", 3600)) - TOKEN_EXPIRY_MARGIN
        logger.info("🔄 Zoom access token refreshed")
        return self._access_token

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> Optional[dict]:
        if not self.is_available():
            raise ZoomAPIError("Zoom is not configured")

        token = await self.get_access_token()
        try:
            async with httpx.AsyncClient(base_url=ZOOM_API_BASE, timeout=15.0) as client:
                response = await client.request(
                    method, path, json=json, headers={"Authorization": f"Bearer {token}"}
                )
        except httpx.HTTPError as e:
            logger.error(f"❌ Zoom API request failed: {method} {path}: {e}")
            raise ZoomAPIError(f"Zoom API Error: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get("message", response.text)
            code = body.get("code", response.status_code)
            logger.error(f"❌ Zoom API Error {code}: {message}")
            raise ZoomAPIError(f"Zoom API Error {code}: {message}", response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def create_meeting(
        self, topic: str, start_time: datetime, duration: int, agenda: str = ""
    ) -> dict[str, Any]:
        """Create a scheduled meeting on the account's default user"""
        payload = {
            "topic": topic,
            "type": 2,  # scheduled meeting
            "start_time": start_time.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "duration": duration,
            "timezone": "UTC",
            "password": generate_meeting_password(),
            "agenda": agenda,
            "settings": {
                "host_video": True,
                "participant_video": True,
                "join_before_host": False,
                "mute_upon_entry": True,
                "approval_type": 0,
                "audio": "both",
                "auto_recording": "none",
                "waiting_room": True,
            },
        }
        meeting = await self._request("POST", "/users/me/meetings", json=payload)
        logger.info(f"✅ Zoom meeting created: {meeting.get('id')}")
        return meeting

    async def update_meeting(self, zoom_meeting_id: str, **changes) -> None:
        payload = {}
        if changes.get("topic"):
            payload["topic"] = changes["topic"]
        if changes.get("start_time"):
            payload["start_time"] = changes["start_time"].strftime("%Y-%m-%dT%H:%M:%SZ")
        if changes.get("duration"):
            payload["duration"] = changes["duration"]
        if payload:
            await self._request("PATCH", f"/meetings/{zoom_meeting_id}", json=payload)
            logger.info(f"✅ Zoom meeting {zoom_meeting_id} updated")

    async def delete_meeting(self, zoom_meeting_id: str) -> None:
        await self._request("DELETE", f"/meetings/{zoom_meeting_id}")
        logger.info(f"🗑️ Zoom meeting {zoom_meeting_id} deleted")


# Singleton instance
zoom_service = ZoomService()
