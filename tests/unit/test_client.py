from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List

import pytest

from fitlink.core.errors import (
    EmptyResponse,
    HttpError,
    InvalidResponseShape,
    NetworkUnavailable,
    NotInitializedError,
    QueueDeferred,
    RemoteRejected,
    RequestTimeout,
    TransportError,
)
from fitlink.core.models import QueueEvent, RequestKind, UploadProgress


def test_offline_config_fetch_is_queued_then_falls_back_after_500(make_client, fake_api) -> None:
    api = fake_api(get_exercise_config=[HttpError(500, "boom")])
    client = make_client(api)
    events: List[QueueEvent] = []
    client.queue.add_listener(events.append)

    async def scenario() -> None:
        assert await client.initialize()
        client.on_network_change({"isConnected": False, "type": "none"})

        with pytest.raises(QueueDeferred) as excinfo:
            await client.get_exercise_config("squat")
        assert excinfo.value.kind == "config"
        assert excinfo.value.request_id.startswith("config_")
        assert api.calls == []
        assert client.queued_count() == 1

        client.on_network_change({"isConnected": True, "type": "wifi"})
        await client.join()

        cached = await client.get_exercise_config("squat")
        assert cached is events[0].result
        await client.close()

    asyncio.run(scenario())

    assert [event.outcome for event in events] == ["replayed"]
    fallback = events[0].result
    assert fallback.degraded is True
    assert fallback.thresholds["minAngle"] == 90
    assert api.count("get_exercise_config") == 4
    assert client.queued_count() == 0


def test_repeated_frame_401_always_degrades_without_retrying(make_client, fake_api) -> None:
    api = fake_api(analyze_frame=[HttpError(401, "unauthorized")])
    client = make_client(api)

    async def scenario() -> list:
        await client.initialize()
        return [await client.analyze_frame("b64", "squat") for _ in range(3)]

    poses = asyncio.run(scenario())

    assert all(pose.degraded for pose in poses)
    assert api.count("analyze_frame") == 3


def test_frame_server_error_retried_once_before_degrading(make_client, fake_api, clock) -> None:
    api = fake_api(analyze_frame=[HttpError(503)])
    client = make_client(api)

    async def scenario():
        await client.initialize()
        return await client.analyze_frame("b64", "push_up")

    pose = asyncio.run(scenario())
    assert pose.degraded
    assert api.count("analyze_frame") == 2
    assert len(clock.sleeps) == 1


def test_frame_timeout_degrades(make_client, fake_api) -> None:
    client = make_client(fake_api(analyze_frame=[RequestTimeout("slow")]))

    async def scenario():
        await client.initialize()
        return await client.analyze_frame("b64", "squat")

    assert asyncio.run(scenario()).degraded


def test_frame_not_found_propagates(make_client, fake_api) -> None:
    client = make_client(fake_api(analyze_frame=[HttpError(404)]))

    async def scenario():
        await client.initialize()
        return await client.analyze_frame("b64", "squat")

    with pytest.raises(HttpError) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.status == 404


def test_frame_success_is_validated(make_client, fake_api, pose_payload) -> None:
    api = fake_api(analyze_frame=[pose_payload])
    client = make_client(api)

    async def scenario():
        await client.initialize()
        return await client.analyze_frame("b64", "squat")

    pose = asyncio.run(scenario())
    assert pose.degraded is False
    assert pose.form_score == 87.0
    assert api.calls == [("analyze_frame", "b64", "squat")]


def test_offline_frame_analysis_is_refused(make_client, fake_api) -> None:
    api = fake_api()
    client = make_client(api)

    async def scenario():
        await client.initialize()
        client.on_network_change({"isConnected": False})
        return await client.analyze_frame("b64", "squat")

    with pytest.raises(NetworkUnavailable, match="real-time analysis"):
        asyncio.run(scenario())
    assert api.calls == []
    assert client.queued_count() == 0


def test_offline_mutations_are_queued_without_network_calls(make_client, fake_api, tmp_path: Path) -> None:
    api = fake_api()
    client = make_client(api)
    video = tmp_path / "set.mp4"
    video.write_bytes(b"\x00" * 16)

    async def scenario() -> None:
        await client.initialize()
        client.on_network_change({"isConnected": False})
        with pytest.raises(QueueDeferred):
            await client.upload_video(video, "squat")
        with pytest.raises(QueueDeferred):
            await client.submit_session_summary({"exerciseType": "squat", "totalReps": 10})
        with pytest.raises(QueueDeferred):
            await client.get_exercise_config("push_up")

    asyncio.run(scenario())

    assert api.calls == []
    kinds = [request.kind for request in client.queue.pending()]
    assert kinds == [RequestKind.VIDEO, RequestKind.SUMMARY, RequestKind.CONFIG]
    assert client.queue.pending()[0].payload == {"videoPath": str(video), "exerciseType": "squat"}


def test_config_cached_within_ttl_and_refetched_after(make_client, fake_api, clock, config_payload) -> None:
    api = fake_api(get_exercise_config=[config_payload])
    client = make_client(api)

    async def scenario() -> None:
        await client.initialize()
        first = await client.get_exercise_config("squat")
        clock.advance(1799)
        second = await client.get_exercise_config("squat")
        assert second is first
        assert api.count("get_exercise_config") == 1

        clock.advance(1)
        await client.get_exercise_config("squat")
        assert api.count("get_exercise_config") == 2

    asyncio.run(scenario())
    assert client.cache_stats() == {"size": 1, "entries": ["squat"]}


def test_cached_config_served_while_offline(make_client, fake_api, config_payload) -> None:
    api = fake_api(get_exercise_config=[config_payload])
    client = make_client(api)

    async def scenario():
        await client.initialize()
        await client.get_exercise_config("squat")
        client.on_network_change({"isConnected": False})
        return await client.get_exercise_config("squat")

    config = asyncio.run(scenario())
    assert config.thresholds["minAngle"] == 85
    assert client.queued_count() == 0


def test_config_bad_request_is_not_degraded(make_client, fake_api) -> None:
    client = make_client(fake_api(get_exercise_config=[HttpError(400)]))

    async def scenario():
        await client.initialize()
        return await client.get_exercise_config("squat")

    with pytest.raises(HttpError):
        asyncio.run(scenario())
    assert client.cache_stats()["size"] == 0


def test_invalid_shape_is_retried_then_raised(make_client, fake_api, clock) -> None:
    api = fake_api(submit_session_summary=[{"sessionId": {"nested": True}}])
    client = make_client(api)

    async def scenario():
        await client.initialize()
        return await client.submit_session_summary({"exerciseType": "squat"})

    with pytest.raises(InvalidResponseShape):
        asyncio.run(scenario())
    assert api.count("submit_session_summary") == 4
    assert len(clock.sleeps) == 3


def test_summary_submission_adds_timestamp(make_client, fake_api) -> None:
    api = fake_api(submit_session_summary=[{"success": True, "data": {"sessionId": "s-1", "summary": "ok"}}])
    client = make_client(api)

    async def scenario():
        await client.initialize()
        return await client.submit_session_summary({"exerciseType": "squat", "totalReps": 12})

    summary = asyncio.run(scenario())
    assert summary.session_id == "s-1"
    sent = api.calls[0][1]
    assert sent["totalReps"] == 12
    assert sent["timestamp"].startswith("2023-11-14T22:13:20")


def test_upload_reports_progress_and_result(make_client, fake_api, tmp_path: Path, analysis_payload) -> None:
    api = fake_api(analyze_video=[analysis_payload])
    client = make_client(api)
    video = tmp_path / "set.mp4"
    video.write_bytes(b"\x00" * 16)
    updates: List[UploadProgress] = []

    async def scenario():
        await client.initialize()
        return await client.upload_video(f"file://{video}", "squat", on_progress=updates.append)

    result = asyncio.run(scenario())
    assert result.total_reps == 12
    assert [update.percentage for update in updates] == [0, 50, 100]
    assert api.calls[0][1] == video


def test_upload_payload_too_large_fails_fast(make_client, fake_api, tmp_path: Path) -> None:
    api = fake_api(analyze_video=[HttpError(413)])
    client = make_client(api)
    video = tmp_path / "big.mp4"
    video.write_bytes(b"\x00")

    async def scenario():
        await client.initialize()
        return await client.upload_video(video, "squat")

    with pytest.raises(HttpError):
        asyncio.run(scenario())
    assert api.count("analyze_video") == 1


def test_without_backend_reads_degrade_and_writes_fail(make_client, tmp_path: Path) -> None:
    client = make_client(url=None)

    async def scenario() -> None:
        assert not await client.initialize()
        pose = await client.analyze_frame("b64", "squat")
        assert pose.degraded
        config = await client.get_exercise_config("squat")
        assert config.degraded
        with pytest.raises(NotInitializedError):
            await client.submit_session_summary({"exerciseType": "squat"})
        with pytest.raises(NotInitializedError):
            await client.upload_video(tmp_path / "x.mp4", "squat")

    asyncio.run(scenario())
    assert client.cache_stats()["size"] == 0


def test_health_check(make_client, fake_api) -> None:
    healthy = make_client(fake_api(health=[{"message": "ok"}]))
    broken = make_client(fake_api(health=[HttpError(500)]))
    missing = make_client(url=None)

    assert asyncio.run(healthy.check_health()) is True
    assert asyncio.run(broken.check_health()) is False
    assert asyncio.run(missing.check_health()) is False


def test_reset_and_policy_update(make_client, fake_api, config_payload) -> None:
    client = make_client(fake_api(get_exercise_config=[config_payload]))

    async def scenario() -> None:
        await client.initialize()
        await client.get_exercise_config("squat")
        client.on_network_change({"isConnected": False})
        with pytest.raises(QueueDeferred):
            await client.submit_session_summary({"exerciseType": "squat"})

    asyncio.run(scenario())
    policy = client.update_retry_policy(max_retries=5, base_delay=0.5)
    assert policy.max_retries == 5
    assert client.queue.max_retries == 5

    client.reset()
    assert client.base_url is None
    assert client.queued_count() == 0
    assert client.cache_stats()["size"] == 0


def test_token_and_housekeeping(make_client, fake_api, config_payload) -> None:
    api = fake_api(get_exercise_config=[config_payload])
    client = make_client(api)

    async def scenario() -> None:
        await client.initialize()
        await client.get_exercise_config("squat")
        client.on_network_change({"isConnected": False})
        with pytest.raises(QueueDeferred):
            await client.submit_session_summary({"exerciseType": "squat"})

    asyncio.run(scenario())
    client.set_auth_token("fresh")
    assert api.token == "fresh"

    assert client.queued_count() == 1
    client.clear_queue()
    assert client.queued_count() == 0

    assert client.cache_stats()["size"] == 1
    client.clear_cache()
    assert client.cache_stats()["size"] == 0


@pytest.mark.parametrize(
    "outcome",
    [
        {"success": False, "error": "model busy"},
        {"success": True, "data": None},
        {"keypoints": [], "confidence": "high"},
        RemoteRejected("model busy"),
        EmptyResponse("no data"),
    ],
)
def test_unusable_frame_response_degrades(make_client, fake_api, outcome) -> None:
    client = make_client(fake_api(analyze_frame=[outcome]))

    async def scenario():
        await client.initialize()
        return await client.analyze_frame("b64", "squat")

    assert asyncio.run(scenario()).degraded


@pytest.mark.parametrize(
    "outcome",
    [
        RequestTimeout("slow"),
        TransportError("connection refused"),
        {"success": False, "error": "model busy"},
        {"exercise_type": 7},
    ],
)
def test_unusable_config_response_degrades_and_is_cached(make_client, fake_api, outcome) -> None:
    api = fake_api(get_exercise_config=[outcome])
    client = make_client(api)
    client.update_retry_policy(max_retries=0)

    async def scenario():
        await client.initialize()
        first = await client.get_exercise_config("push_up")
        second = await client.get_exercise_config("push_up")
        return first, second

    first, second = asyncio.run(scenario())
    assert first.degraded is True
    assert first.thresholds["minAngle"] == 45
    assert second is first
    assert api.count("get_exercise_config") == 1


def test_upload_with_malformed_feedback_raises_shape_error(make_client, fake_api, tmp_path: Path, analysis_payload) -> None:
    analysis_payload["formFeedback"] = [{"timestamp": "2026-10-18T10:00:03Z"}]
    client = make_client(fake_api(analyze_video=[analysis_payload]))
    client.update_retry_policy(max_retries=0)

    async def scenario():
        await client.initialize()
        return await client.upload_video(tmp_path / "set.mp4", "squat")

    with pytest.raises(InvalidResponseShape) as excinfo:
        asyncio.run(scenario())
    assert excinfo.value.field == "formFeedback[0].timestamp"


def test_bad_replay_does_not_block_later_queued_requests(make_client, fake_api, analysis_payload, config_payload) -> None:
    analysis_payload["formFeedback"] = [{"timestamp": "2026-10-18T10:00:03Z"}]
    api = fake_api(analyze_video=[analysis_payload], get_exercise_config=[config_payload])
    client = make_client(api)
    client.update_retry_policy(max_retries=0)
    events: List[QueueEvent] = []
    client.queue.add_listener(events.append)

    async def scenario() -> None:
        await client.initialize()
        client.on_network_change({"isConnected": False})
        with pytest.raises(QueueDeferred):
            await client.upload_video("/videos/set.mp4", "squat")
        with pytest.raises(QueueDeferred):
            await client.get_exercise_config("squat")

        client.on_network_change({"isConnected": True})
        await client.join()

    asyncio.run(scenario())

    assert [event.outcome for event in events] == ["dropped", "replayed"]
    assert isinstance(events[0].error, InvalidResponseShape)
    assert events[1].result.thresholds["minAngle"] == 85
    assert api.count("get_exercise_config") == 1
    assert client.queued_count() == 0


def test_queued_request_waits_out_a_second_outage(make_client, fake_api) -> None:
    api = fake_api(submit_session_summary=[HttpError(503)])
    client = make_client(api)
    client.update_retry_policy(max_retries=0)
    client.queue.max_retries = 3
    events: List[QueueEvent] = []

    def drop_network(event: QueueEvent) -> None:
        events.append(event)
        client.on_network_change({"isConnected": False})

    client.queue.add_listener(drop_network)

    async def scenario() -> None:
        await client.initialize()
        client.on_network_change({"isConnected": False})
        with pytest.raises(QueueDeferred):
            await client.submit_session_summary({"exerciseType": "squat"})
        client.on_network_change({"isConnected": True})
        await client.join()

    asyncio.run(scenario())

    assert [event.outcome for event in events] == ["requeued"]
    assert client.queued_count() == 1
    assert api.count("submit_session_summary") == 1


def test_reset_cancels_recovery_drain(make_client, fake_api) -> None:
    api = fake_api(submit_session_summary=[{"sessionId": "s-1"}])
    client = make_client(api)

    async def scenario() -> None:
        await client.initialize()
        client.on_network_change({"isConnected": False})
        with pytest.raises(QueueDeferred):
            await client.submit_session_summary({"exerciseType": "squat"})
        client.on_network_change({"isConnected": True})
        client.reset()
        await asyncio.sleep(0)
        await client.join()

    asyncio.run(scenario())

    assert api.calls == []
    assert client.queued_count() == 0
