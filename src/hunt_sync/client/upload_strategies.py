"""Upload strategies tried in order by the capture pipeline."""

from dataclasses import dataclass
from typing import Protocol

from hunt_sync.client.api_client import HuntApiClient
from hunt_sync.domain.uploads import ImageInput, UploadContext


class UploadStrategy(Protocol):
    """One way of turning image bytes into a stored photo reference."""

    name: str
    compress: bool

    def is_available(self, context: UploadContext) -> bool:
        """Return whether this strategy can run with the given context."""

    async def upload(
        self,
        image: ImageInput,
        stop_id: str,
        stop_title: str,
        context: UploadContext,
    ) -> str:
        """Store the image and return its reference; raise ``UploadError``."""


def _tag_fields(stop_title: str, context: UploadContext) -> dict[str, str]:
    fields = {"stopTitle": stop_title, "sessionId": context.session_id}
    optional = {
        "teamName": context.team_name,
        "locationName": context.location_name,
        "eventName": context.event_name,
    }
    fields.update({key: value for key, value in optional.items() if value})
    return fields


@dataclass
class OrchestratedUploadStrategy(UploadStrategy):
    """Server stores the image and marks the stop done in one request."""

    api: HuntApiClient
    name: str = "orchestrated"
    compress: bool = True

    def is_available(self, context: UploadContext) -> bool:
        return context.has_full_context()

    async def upload(
        self,
        image: ImageInput,
        stop_id: str,
        stop_title: str,
        context: UploadContext,
    ) -> str:
        fields = {
            "stopId": stop_id,
            "stopTitle": stop_title,
            "sessionId": context.session_id,
            "teamId": context.team_identifier or "",
            "orgId": context.org_id or "",
            "huntId": context.hunt_id or "",
        }
        if context.team_name:
            fields["teamName"] = context.team_name
        return await self.api.upload(self.name, image, fields)


@dataclass
class SignedUploadStrategy(UploadStrategy):
    """Server stores the image through a signed target; linking is separate."""

    api: HuntApiClient
    name: str = "signed"
    compress: bool = True

    def is_available(self, context: UploadContext) -> bool:
        return bool(context.session_id)

    async def upload(
        self,
        image: ImageInput,
        stop_id: str,
        stop_title: str,
        context: UploadContext,
    ) -> str:
        return await self.api.upload(self.name, image, _tag_fields(stop_title, context))


@dataclass
class LegacyUploadStrategy(UploadStrategy):
    """Last resort: original bytes, no resize and no server size limit."""

    api: HuntApiClient
    name: str = "legacy"
    compress: bool = False

    def is_available(self, context: UploadContext) -> bool:
        return bool(context.session_id)

    async def upload(
        self,
        image: ImageInput,
        stop_id: str,
        stop_title: str,
        context: UploadContext,
    ) -> str:
        return await self.api.upload(self.name, image, _tag_fields(stop_title, context))


def default_strategies(api: HuntApiClient) -> list[UploadStrategy]:
    """Return the standard fallback chain."""
    return [
        OrchestratedUploadStrategy(api),
        SignedUploadStrategy(api),
        LegacyUploadStrategy(api),
    ]
