"""Tests for the photo capture pipeline."""

import asyncio
import base64
from dataclasses import dataclass, field

import httpx
import pytest

from hunt_sync.client.api_client import HttpxHuntApiClient
from hunt_sync.client.capture import PhotoCapturePipeline
from hunt_sync.client.progress_store import ProgressStore
from hunt_sync.client.upload_strategies import default_strategies
from hunt_sync.domain.progress import StopState, TeamScope
from hunt_sync.domain.uploads import ImageInput, UploadContext
from hunt_sync.errors import CaptureInProgress, UploadError, ValidationError
from tests.conftest import T0, FakeHuntApiClient, MutableClock, make_jpeg

SCOPE = TeamScope(org_id="org-1", team_id="t1", hunt_id="hunt-1")
FULL_CONTEXT = UploadContext(
    session_id="s1",
    team_identifier="t1",
    org_id="org-1",
    hunt_id="hunt-1",
    team_name="Team One",
    location_name="Old Town",
)
PARTIAL_CONTEXT = UploadContext(session_id="s1", team_name="Team One")


def _pipeline(
    api: FakeHuntApiClient, max_upload_bytes: int = 10 * 1024 * 1024
) -> PhotoCapturePipeline:
    store = ProgressStore(api, SCOPE, session_id="s1", debounce_seconds=0.01)
    store.seed({"bridge": {"revealedHints": 2, "notes": "look up"}})
    return PhotoCapturePipeline(
        store=store,
        strategies=default_strategies(api),
        max_upload_bytes=max_upload_bytes,
        clock=MutableClock(),
    )


def _run(pipeline: PhotoCapturePipeline, coro):  # type: ignore[no-untyped-def]
    async def scenario():  # type: ignore[no-untyped-def]
        try:
            return await coro
        finally:
            await pipeline.store.close()

    return asyncio.run(scenario())


def test_capture_marks_stop_done(api) -> None:
    pipeline = _pipeline(api)

    reference = _run(
        pipeline,
        pipeline.capture("bridge", make_jpeg(), "Covered Bridge", FULL_CONTEXT),
    )

    state = pipeline.store.snapshot["bridge"]
    assert reference
    assert state.done is True
    assert state.photo_reference == reference
    assert state.completed_at == T0
    assert state.revealed_hints == 2
    assert state.notes == "look up"
    assert [call[0] for call in api.uploads] == ["orchestrated"]
    assert not pipeline.is_uploading("bridge")


def test_orchestrated_sends_team_context(api) -> None:
    pipeline = _pipeline(api)

    _run(pipeline, pipeline.capture("bridge", make_jpeg(), "Bridge", FULL_CONTEXT))

    _, image, fields = api.uploads[0]
    assert fields["stopId"] == "bridge"
    assert fields["teamId"] == "t1"
    assert fields["orgId"] == "org-1"
    assert image.mime_type == "image/jpeg"


def test_missing_context_falls_back_to_signed(api) -> None:
    pipeline = _pipeline(api)

    reference = _run(
        pipeline, pipeline.capture("bridge", make_jpeg(), "Bridge", PARTIAL_CONTEXT)
    )

    assert [call[0] for call in api.uploads] == ["signed"]
    assert api.uploads[0][2]["teamName"] == "Team One"
    assert "signed" in reference


def test_orchestrated_failure_falls_back_silently(api) -> None:
    api.failing_endpoints = {"orchestrated"}
    pipeline = _pipeline(api)

    reference = _run(
        pipeline, pipeline.capture("bridge", make_jpeg(), "Bridge", FULL_CONTEXT)
    )

    assert [call[0] for call in api.uploads] == ["orchestrated", "signed"]
    assert pipeline.store.snapshot["bridge"].photo_reference == reference


def test_legacy_receives_original_bytes(api) -> None:
    api.failing_endpoints = {"orchestrated", "signed"}
    original = make_jpeg(3000, 2000)
    pipeline = _pipeline(api)

    _run(pipeline, pipeline.capture("bridge", original, "Bridge", FULL_CONTEXT))

    sizes = {endpoint: image.content for endpoint, image, _ in api.uploads}
    assert sizes["legacy"] == original
    assert sizes["signed"] != original


def test_all_strategies_failing_keeps_prior_state(api) -> None:
    api.failing_endpoints = {"orchestrated", "signed", "legacy"}
    pipeline = _pipeline(api)

    with pytest.raises(UploadError) as exc_info:
        _run(pipeline, pipeline.capture("bridge", make_jpeg(), "Bridge", FULL_CONTEXT))

    assert len(exc_info.value.failures) == 3
    assert pipeline.store.snapshot["bridge"] == StopState(
        revealed_hints=2, notes="look up"
    )
    assert not pipeline.is_uploading("bridge")


def test_duplicate_capture_is_rejected(api) -> None:
    pipeline = _pipeline(api)
    pipeline.uploading.add("bridge")

    with pytest.raises(CaptureInProgress):
        _run(pipeline, pipeline.capture("bridge", make_jpeg(), "Bridge", FULL_CONTEXT))

    assert api.uploads == []


def test_concurrent_captures_for_same_stop() -> None:
    class SlowApi(FakeHuntApiClient):
        async def upload(self, endpoint, image, fields):  # type: ignore[no-untyped-def]
            await asyncio.sleep(0.01)
            return await super().upload(endpoint, image, fields)

    api = SlowApi()
    pipeline = _pipeline(api)

    async def both():  # type: ignore[no-untyped-def]
        return await asyncio.gather(
            pipeline.capture("bridge", make_jpeg(), "Bridge", FULL_CONTEXT),
            pipeline.capture("bridge", make_jpeg(), "Bridge", FULL_CONTEXT),
            return_exceptions=True,
        )

    results = _run(pipeline, both())

    assert isinstance(results[0], str)
    assert isinstance(results[1], CaptureInProgress)
    assert len(api.uploads) == 1


def test_validation_is_terminal(api) -> None:
    pipeline = _pipeline(api, max_upload_bytes=100)

    with pytest.raises(ValidationError, match="too large"):
        _run(pipeline, pipeline.capture("bridge", make_jpeg(), "Bridge", FULL_CONTEXT))
    not_image = ImageInput(
        content=b"%PDF", mime_type="application/pdf", filename="a.pdf"
    )
    with pytest.raises(ValidationError, match="valid image"):
        _run(pipeline, pipeline.capture("bridge", not_image, "Bridge", FULL_CONTEXT))

    assert api.uploads == []


def test_unknown_stop_rejected_when_stop_list_known(api) -> None:
    pipeline = _pipeline(api)
    pipeline.store.stop_ids = ["bridge"]

    with pytest.raises(ValidationError, match="Unknown stop"):
        _run(pipeline, pipeline.capture("mill", make_jpeg(), "Mill", FULL_CONTEXT))


def test_inline_data_url_is_accepted(api) -> None:
    pipeline = _pipeline(api)
    data_url = "data:image/jpeg;base64," + base64.b64encode(make_jpeg()).decode()

    reference = _run(
        pipeline, pipeline.capture("bridge", data_url, "Bridge", FULL_CONTEXT)
    )

    assert reference


def test_capture_is_persisted_with_snapshot(api) -> None:
    pipeline = _pipeline(api)

    async def scenario() -> str:
        reference = await pipeline.capture(
            "bridge", make_jpeg(), "Covered Bridge", PARTIAL_CONTEXT
        )
        await pipeline.store.flush()
        await pipeline.store.close()
        return reference

    reference = asyncio.run(scenario())

    assert api.puts[-1]["bridge"].done is True
    assert api.puts[-1]["bridge"].photo_reference == reference


def test_concurrent_captures_for_different_stops() -> None:
    class SlowApi(FakeHuntApiClient):
        async def upload(self, endpoint, image, fields):  # type: ignore[no-untyped-def]
            await asyncio.sleep(0.01)
            return await super().upload(endpoint, image, fields)

    api = SlowApi()
    pipeline = _pipeline(api)
    pipeline.store.seed({"bridge": {"revealedHints": 2}, "mill": {"notes": "wheel"}})

    async def both():  # type: ignore[no-untyped-def]
        return await asyncio.gather(
            pipeline.capture("bridge", make_jpeg(), "Bridge", FULL_CONTEXT),
            pipeline.capture("mill", make_jpeg(), "Mill", FULL_CONTEXT),
        )

    bridge, mill = _run(pipeline, both())

    snapshot = pipeline.store.snapshot
    assert snapshot["bridge"].done is True
    assert snapshot["bridge"].photo_reference == bridge
    assert snapshot["bridge"].revealed_hints == 2
    assert snapshot["mill"].done is True
    assert snapshot["mill"].photo_reference == mill
    assert snapshot["mill"].notes == "wheel"
    assert bridge != mill
    assert pipeline.uploading == set()


@dataclass
class RecordingStrategy:
    name: str = "recording"
    compress: bool = False
    contexts: list[UploadContext] = field(default_factory=list)

    def is_available(self, context: UploadContext) -> bool:
        return True

    async def upload(  # type: ignore[no-untyped-def]
        self, image, stop_id, stop_title, context
    ) -> str:
        self.contexts.append(context)
        return f"https://storage.test/{stop_id}.jpg"


def test_strategies_receive_stop_in_context(api) -> None:
    strategy = RecordingStrategy()
    pipeline = _pipeline(api)
    pipeline.strategies = [strategy]

    _run(pipeline, pipeline.capture("bridge", make_jpeg(), "Bridge", FULL_CONTEXT))

    assert strategy.contexts[0].stop_id == "bridge"
    assert strategy.contexts[0].team_identifier == "t1"
    assert FULL_CONTEXT.stop_id is None


def test_html_answer_from_orchestrated_falls_back_to_signed() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        if request.url.path == "/upload/orchestrated":
            return httpx.Response(200, text="<html>Please sign in</html>")
        return httpx.Response(200, json={"photoReference": "https://cdn.test/b.jpg"})

    client = HttpxHuntApiClient(
        base_url="https://hunt.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    store = ProgressStore(client, SCOPE, session_id="s1", debounce_seconds=10)
    pipeline = PhotoCapturePipeline(
        store=store,
        strategies=default_strategies(client),
        max_upload_bytes=10 * 1024 * 1024,
        clock=MutableClock(),
    )

    reference = _run(
        pipeline, pipeline.capture("bridge", make_jpeg(), "Bridge", FULL_CONTEXT)
    )

    assert reference == "https://cdn.test/b.jpg"
    assert paths == ["/upload/orchestrated", "/upload/signed"]
    assert store.snapshot["bridge"].photo_reference == reference
