"""Worker process for the duplicate synthetic entry sweep.

Concurrent clients in separate processes can each create a synthetic entry
for the same day action. The sweep collapses those duplicates for every user
that owns synthetic entries, once per ``SWEEP_INTERVAL_SECONDS``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from toil_engine.config import get_settings
from toil_engine.db import get_session_factory
from toil_engine.models.enums import JobNumber
from toil_engine.services.ledger_store import LedgerStore
from toil_engine.services.reconciler import cleanup_duplicates

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    users: int = 0
    removed: int = 0
    errors: int = 0


async def run_duplicate_sweep() -> SweepResult:
    """Run one cleanup pass over every user with synthetic entries."""
    session_factory = get_session_factory()
    result = SweepResult()

    async with session_factory() as session:
        user_ids = await LedgerStore(session).users_with_synthetic_entries([j.value for j in JobNumber])

    for user_id in user_ids:
        result.users += 1
        try:
            async with session_factory() as session:
                result.removed += await cleanup_duplicates(session, user_id)
        except Exception:
            logger.exception("Duplicate sweep failed for user=%s", user_id)
            result.errors += 1
    return result


async def run_sweep_loop() -> None:
    """Main worker loop."""
    interval = get_settings().sweep_interval_seconds
    logger.info("Duplicate sweep worker started (every %ds)", interval)

    while True:
        try:
            result = await run_duplicate_sweep()
            logger.info(
                "Duplicate sweep complete: users=%d removed=%d errors=%d",
                result.users,
                result.removed,
                result.errors,
            )
        except Exception:
            logger.exception("Duplicate sweep failed")

        await asyncio.sleep(interval)


def main() -> None:
    """Entry point for the worker process."""
    logging.basicConfig(level=get_settings().log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    asyncio.run(run_sweep_loop())


if __name__ == "__main__":
    main()
