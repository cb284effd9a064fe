from datetime import UTC, datetime, timedelta

import pytest

from src.resultbridge.application.services import CallbackService, ReconciliationService
from src.resultbridge.application.stuck_recovery import StuckTaskRecovery
from src.resultbridge.domain.exceptions import ProviderExhaustedError
from src.resultbridge.domain.models import MediaKind, ResultSource, TaskStatus
from src.setup.provider_config import ProviderSettings


def _service(cache, provider, **settings) -> ReconciliationService:
    recovery = StuckTaskRecovery(provider, ProviderSettings(**settings))
    return ReconciliationService(cache=cache, provider=provider, recovery=recovery)


@pytest.mark.asyncio
async def test_cache_hit_makes_no_outbound_calls(cache, provider) -> None:
    await cache.put("abc", TaskStatus.SUCCESS, ["https://x/a.mp4"])

    outcome = await _service(cache, provider).poll("abc", MediaKind.VIDEO)

    assert outcome.status is TaskStatus.SUCCESS
    assert outcome.result_urls == ["https://x/a.mp4"]
    assert outcome.source is ResultSource.CACHE
    assert provider.outbound_calls == 0


@pytest.mark.asyncio
async def test_cached_failure_is_final(cache, provider) -> None:
    await cache.put("abc", TaskStatus.FAILED, error="policy")

    outcome = await _service(cache, provider).poll("abc", MediaKind.VIDEO)

    assert outcome.status is TaskStatus.FAILED
    assert outcome.error == "policy"
    assert provider.outbound_calls == 0


@pytest.mark.asyncio
async def test_cached_processing_falls_through_to_provider(cache, provider) -> None:
    await cache.put("abc", TaskStatus.PROCESSING)
    provider.status_payloads["abc"] = {
        "code": 200,
        "data": {"state": "success", "resultJson": '{"resultUrls": ["https://x/v.mp4"]}'},
    }

    outcome = await _service(cache, provider).poll("abc", MediaKind.VIDEO)

    assert outcome.source is ResultSource.PROVIDER
    assert outcome.result_urls == ["https://x/v.mp4"]
    assert (await cache.get("abc")).status is TaskStatus.SUCCESS


@pytest.mark.asyncio
async def test_provider_processing_is_not_cached(cache, provider) -> None:
    provider.status_payloads["abc"] = {"code": 200, "data": {"successFlag": 0}}

    outcome = await _service(cache, provider).poll("abc", MediaKind.VIDEO)

    assert outcome.status is TaskStatus.PROCESSING
    assert await cache.get("abc") is None


@pytest.mark.asyncio
async def test_provider_failure_is_reported(cache, provider) -> None:
    provider.status_payloads["abc"] = {"data": {"successFlag": 2, "failReason": "nsfw"}}

    outcome = await _service(cache, provider).poll("abc", MediaKind.IMAGE)

    assert outcome.status is TaskStatus.FAILED
    assert outcome.error == "nsfw"
    assert provider.history_calls == []


@pytest.mark.asyncio
async def test_video_exhaustion_raises_last_error(cache, provider) -> None:
    with pytest.raises(ProviderExhaustedError) as exc_info:
        await _service(cache, provider).poll("unknown", MediaKind.VIDEO)

    assert "Not Found" in exc_info.value.last_error
    assert provider.history_calls == []


@pytest.mark.asyncio
async def test_image_exhaustion_checks_history_first(cache, provider) -> None:
    provider.history["img-1"] = {
        "taskId": "img-1",
        "successFlag": 1,
        "response": {"resultUrls": ["https://x/img.png"]},
    }

    outcome = await _service(cache, provider).poll("img-1", MediaKind.IMAGE)

    assert outcome.source is ResultSource.HISTORY
    assert outcome.result_urls == ["https://x/img.png"]
    assert (await cache.get("img-1")).result_urls == ["https://x/img.png"]


@pytest.mark.asyncio
async def test_image_processing_history_record_keeps_polling(cache, provider) -> None:
    provider.history["img-1"] = {"taskId": "img-1", "successFlag": 0}

    outcome = await _service(cache, provider).poll("img-1", MediaKind.IMAGE)

    assert outcome.status is TaskStatus.PROCESSING
    assert provider.probed == []


@pytest.mark.asyncio
async def test_image_without_any_source_raises(cache, provider) -> None:
    with pytest.raises(ProviderExhaustedError):
        await _service(cache, provider).poll("img-1", MediaKind.IMAGE)

    assert provider.history_calls == ["img-1"]


@pytest.mark.asyncio
async def test_stuck_recovery_disabled_by_default(cache, provider) -> None:
    old = datetime.now(UTC) - timedelta(minutes=30)
    provider.history["img-1"] = {
        "taskId": "img-1",
        "successFlag": 0,
        "createTime": int(old.timestamp() * 1000),
    }

    outcome = await _service(cache, provider).poll("img-1", MediaKind.IMAGE)

    assert outcome.status is TaskStatus.PROCESSING
    assert provider.probed == []


@pytest.mark.asyncio
async def test_stuck_recovery_probes_guessed_urls(cache, provider) -> None:
    old = datetime.now(UTC).replace(microsecond=0) - timedelta(minutes=30)
    provider.history["img-1"] = {
        "taskId": "img-1",
        "successFlag": 0,
        "createTime": int(old.timestamp() * 1000),
    }
    ts = int(old.timestamp())
    hit = f"https://files.test/img-1_{ts + 1}_b.png"
    provider.live_urls.add(hit)
    service = _service(
        cache,
        provider,
        STUCK_RECOVERY_ENABLED=True,
        STUCK_GUESS_URL_TEMPLATE="https://files.test/{task_id}_{timestamp}_{candidate}.png",
        STUCK_GUESS_CANDIDATES=["a", "b"],
    )

    outcome = await service.poll("img-1", MediaKind.IMAGE)

    assert outcome.source is ResultSource.STUCK_RECOVERY
    assert outcome.result_urls == [hit]
    assert provider.probed == [
        f"https://files.test/img-1_{ts}_a.png",
        f"https://files.test/img-1_{ts}_b.png",
        f"https://files.test/img-1_{ts + 1}_a.png",
        hit,
    ]


@pytest.mark.asyncio
async def test_stuck_recovery_respects_attempt_budget(cache, provider) -> None:
    old = datetime.now(UTC) - timedelta(minutes=30)
    provider.history["img-1"] = {
        "taskId": "img-1",
        "successFlag": 0,
        "createTime": int(old.timestamp() * 1000),
    }
    service = _service(
        cache,
        provider,
        STUCK_RECOVERY_ENABLED=True,
        STUCK_GUESS_CANDIDATES=[str(n) for n in range(20)],
        STUCK_GUESS_MAX_ATTEMPTS=10,
    )

    outcome = await service.poll("img-1", MediaKind.IMAGE)

    assert outcome.status is TaskStatus.PROCESSING
    assert len(provider.probed) == 10


@pytest.mark.asyncio
async def test_young_task_is_not_stuck(cache, provider) -> None:
    provider.history["img-1"] = {
        "taskId": "img-1",
        "successFlag": 0,
        "createTime": int(datetime.now(UTC).timestamp() * 1000),
    }
    service = _service(cache, provider, STUCK_RECOVERY_ENABLED=True)

    await service.poll("img-1", MediaKind.IMAGE)

    assert provider.probed == []


@pytest.mark.asyncio
async def test_callback_ingest_records_by_extracted_task_id(cache) -> None:
    service = CallbackService(cache=cache)

    stored = await service.ingest(
        {"data": {"taskId": "cb-1", "state": "success", "resultJson": '{"resultUrls":["https://x/1.mp4"]}'}},
        MediaKind.VIDEO,
    )

    assert stored is not None
    assert stored.task_id == "cb-1"
    assert (await cache.get("cb-1")).result_urls == ["https://x/1.mp4"]


@pytest.mark.asyncio
async def test_callback_without_task_id_writes_nothing(cache) -> None:
    service = CallbackService(cache=cache)

    assert await service.ingest({"status": "SUCCESS"}, MediaKind.IMAGE) is None
    assert (await cache.stats())["size"] == 0


@pytest.mark.asyncio
async def test_callback_uses_fallback_task_id(cache) -> None:
    service = CallbackService(cache=cache)

    stored = await service.ingest({"status": "processing"}, MediaKind.VIDEO, fallback_task_id="q-1")

    assert stored is not None
    assert stored.task_id == "q-1"
