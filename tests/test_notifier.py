"""Tests for the in-process change notifier."""

from __future__ import annotations

import uuid

from toil_engine.models.enums import MonthState
from toil_engine.schemas.events import ChangeEvent, ChangeTopic, MonthStateUpdatedEvent
from toil_engine.services.notifier import ChangeNotifier

USER_ID = uuid.uuid4()


def _event() -> MonthStateUpdatedEvent:
    return MonthStateUpdatedEvent(user_id=USER_ID, month="2025-03", state=MonthState.IN_PROGRESS)


async def test_publish_reaches_sync_and_async_handlers() -> None:
    notifier = ChangeNotifier()
    seen: list[str] = []

    def sync_handler(event: ChangeEvent) -> None:
        seen.append("sync")

    async def async_handler(event: ChangeEvent) -> None:
        seen.append("async")

    notifier.subscribe(ChangeTopic.MONTH_STATE_UPDATED, sync_handler)
    notifier.subscribe(ChangeTopic.MONTH_STATE_UPDATED, async_handler)

    delivered = await notifier.publish(ChangeTopic.MONTH_STATE_UPDATED, _event())

    assert delivered == 2
    assert seen == ["sync", "async"]


async def test_failing_handler_does_not_stop_the_others() -> None:
    notifier = ChangeNotifier()
    seen: list[ChangeEvent] = []

    def broken(event: ChangeEvent) -> None:
        raise RuntimeError("subscriber bug")

    notifier.subscribe(ChangeTopic.MONTH_STATE_UPDATED, broken)
    notifier.subscribe(ChangeTopic.MONTH_STATE_UPDATED, seen.append)

    delivered = await notifier.publish(ChangeTopic.MONTH_STATE_UPDATED, _event())

    assert delivered == 1
    assert len(seen) == 1


async def test_unsubscribe_and_topic_isolation() -> None:
    notifier = ChangeNotifier()
    seen: list[ChangeEvent] = []
    unsubscribe = notifier.subscribe(ChangeTopic.MONTH_STATE_UPDATED, seen.append)

    assert await notifier.publish(ChangeTopic.TOIL_UPDATED, _event()) == 0
    assert notifier.subscriber_count(ChangeTopic.MONTH_STATE_UPDATED) == 1

    unsubscribe()
    unsubscribe()

    assert notifier.subscriber_count(ChangeTopic.MONTH_STATE_UPDATED) == 0
    assert await notifier.publish(ChangeTopic.MONTH_STATE_UPDATED, _event()) == 0
    assert seen == []
