"""HTTP client for the hunt sync API."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

import httpx
import pydantic

from hunt_sync.domain.active import ActiveData
from hunt_sync.domain.locks import LockGrant
from hunt_sync.domain.progress import ProgressSnapshot, dump_snapshot, parse_snapshot
from hunt_sync.domain.uploads import ImageInput, UploadReceipt
from hunt_sync.errors import (
    HuntError,
    InvalidTeamCode,
    LockConflict,
    ServerError,
    UploadError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_VALIDATION_STATUSES = {400, 413, 415, 422}


class HuntApiClient(Protocol):
    """Interface for the server endpoints the device talks to."""

    async def acquire_lock(
        self, team_code: str, device_fingerprint: str | None
    ) -> LockGrant:
        """Acquire or refresh the team lock."""

    async def release_lock(self, lock_token: str) -> None:
        """Release the team lock."""

    async def get_active(self, org_id: str, team_id: str, hunt_id: str) -> ActiveData:
        """Fetch the aggregated read model."""

    async def get_progress(
        self, org_id: str, team_id: str, hunt_id: str
    ) -> ProgressSnapshot:
        """Fetch the team's stored snapshot."""

    async def put_progress(  # noqa: PLR0913
        self,
        org_id: str,
        team_id: str,
        hunt_id: str,
        snapshot: ProgressSnapshot,
        session_id: str | None,
    ) -> ProgressSnapshot:
        """Overwrite the team's snapshot."""

    async def upload(
        self, endpoint: str, image: ImageInput, fields: dict[str, str]
    ) -> str:
        """Post a multipart upload to ``/upload/{endpoint}``; return the reference."""


@dataclass
class HttpxHuntApiClient(HuntApiClient):
    """API client using httpx."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 20.0
    lock_token: str | None = None

    @classmethod
    def create(cls, base_url: str, timeout: float = 20.0) -> "HttpxHuntApiClient":
        """Create an API client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=httpx.AsyncClient(),
            timeout=timeout,
        )

    async def acquire_lock(
        self, team_code: str, device_fingerprint: str | None
    ) -> LockGrant:
        """Acquire the lock and remember its token for later requests."""
        payload: dict[str, object] = {"teamCode": team_code}
        if device_fingerprint:
            payload["deviceFingerprint"] = device_fingerprint
        data = await self._request("POST", "/lock/acquire", json=payload)
        try:
            grant = LockGrant(
                team_identifier=str(data["teamIdentifier"]),
                team_name=str(data.get("teamName") or data["teamIdentifier"]),
                org_id=str(data["orgId"]),
                hunt_id=str(data["huntId"]),
                lock_token=str(data["lockToken"]),
                expires_at=datetime.fromisoformat(str(data["expiresAt"])),
            )
        except (KeyError, ValueError) as exc:
            raise ServerError(f"Malformed lock grant: {exc}") from exc
        self.lock_token = grant.lock_token
        return grant

    async def release_lock(self, lock_token: str) -> None:
        """Release the lock on logout."""
        await self._request("DELETE", "/lock", headers={"X-Team-Lock": lock_token})
        if self.lock_token == lock_token:
            self.lock_token = None

    async def get_active(self, org_id: str, team_id: str, hunt_id: str) -> ActiveData:
        """Fetch the aggregated read model."""
        data = await self._request("GET", f"/active/{org_id}/{team_id}/{hunt_id}")
        try:
            return ActiveData.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ServerError(f"Malformed active data: {exc}") from exc

    async def get_progress(
        self, org_id: str, team_id: str, hunt_id: str
    ) -> ProgressSnapshot:
        """Fetch the team's stored snapshot."""
        data = await self._request("GET", f"/progress/{org_id}/{team_id}/{hunt_id}")
        try:
            return parse_snapshot(data)
        except pydantic.ValidationError as exc:
            raise ServerError(f"Malformed progress data: {exc}") from exc

    async def put_progress(  # noqa: PLR0913
        self,
        org_id: str,
        team_id: str,
        hunt_id: str,
        snapshot: ProgressSnapshot,
        session_id: str | None,
    ) -> ProgressSnapshot:
        """Overwrite the team's snapshot."""
        data = await self._request(
            "PUT",
            f"/progress/{org_id}/{team_id}/{hunt_id}",
            json={"snapshot": dump_snapshot(snapshot), "sessionId": session_id},
        )
        try:
            return parse_snapshot(data.get("snapshot", {}))
        except pydantic.ValidationError as exc:
            raise ServerError(f"Malformed progress data: {exc}") from exc

    async def upload(
        self, endpoint: str, image: ImageInput, fields: dict[str, str]
    ) -> str:
        """Post a multipart upload; any failure becomes an ``UploadError``."""
        try:
            data = await self._request(
                "POST",
                f"/upload/{endpoint}",
                data=fields,
                files={"photo": (image.filename, image.content, image.mime_type)},
            )
            return UploadReceipt.model_validate(data).photo_reference
        except (HuntError, pydantic.ValidationError) as exc:
            raise UploadError(f"{endpoint} upload failed: {exc}") from exc

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        headers: dict[str, str] | None = None,
        **kwargs: object,
    ) -> dict[str, object]:
        request_headers = {"Accept": "application/json"}
        if self.lock_token:
            request_headers["X-Team-Lock"] = self.lock_token
        request_headers.update(headers or {})
        try:
            response = await self.http_client.request(
                method,
                f"{self.base_url}{path}",
                headers=request_headers,
                timeout=self.timeout,
                **kwargs,
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ServerError(f"Network error: {exc}", status_code=503) from exc
        if not response.is_success:
            raise _error_from_response(response)
        try:
            data = response.json()
        except ValueError as exc:
            raise ServerError(
                f"Malformed response from {path}", status_code=502
            ) from exc
        if not isinstance(data, dict):
            raise ServerError(
                f"Unexpected response from {path}", status_code=502
            )
        return data


def _error_from_response(response: httpx.Response) -> HuntError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    message = str(body.get("error") or f"HTTP {response.status_code}")
    status = response.status_code
    if status == 409 and body.get("code") == LockConflict.code:
        return LockConflict(int(body.get("remainingTtlSeconds") or 0))
    if status == 401:
        return InvalidTeamCode(message)
    if status in _VALIDATION_STATUSES:
        return ValidationError(message)
    return ServerError(message, status_code=status)
