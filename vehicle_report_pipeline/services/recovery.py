"""
Stale job recovery

A job whose terminal state never got persisted stays in processing and
blocks its chain. The sweep fails such jobs once they exceed the stale
threshold and advances their chains. Inspections left in finalizing past the
same threshold with no open jobs are finalized again.
"""

from datetime import datetime, timedelta
from typing import List

from ..models.job import Job
from ..utils.logger import get_logger
from ..utils.store import RecordStore
from .chain_driver import ChainDriver

DEFAULT_STALE_AFTER = timedelta(minutes=5)


class StaleJobRecovery:
    """Fails jobs stuck in processing and restarts their chains."""

    def __init__(self, store: RecordStore, driver: ChainDriver, stale_after: timedelta = DEFAULT_STALE_AFTER):
        self.store = store
        self.driver = driver
        self.stale_after = stale_after
        self.logger = get_logger(__name__)

    async def sweep(self) -> List[Job]:
        """
        Run one recovery pass.

        Returns:
            Jobs this pass marked failed
        """
        cutoff = datetime.utcnow() - self.stale_after
        stale = await self.store.find_stale_jobs(cutoff)
        recovered: List[Job] = []

        for job in stale:
            job.fail(
                f"Job marked failed after exceeding stale threshold of "
                f"{int(self.stale_after.total_seconds())} seconds in processing"
            )
            if not await self.store.update_job(job):
                # Finished between the lookup and the update
                continue

            self.logger.warning("Recovered stale job", extra={
                "inspection_id": job.inspection_id,
                "job_id": job.job_id,
                "sequence_order": job.sequence_order,
                "started_at": job.started_at.isoformat() if job.started_at else None
            })
            recovered.append(job)
            await self.driver.advance(job.inspection_id, job.sequence_order)

        resumed = await self.resume_finalizations(cutoff)

        if recovered or resumed:
            self.logger.info("Stale job sweep finished", extra={
                "recovered_jobs": len(recovered),
                "resumed_finalizations": len(resumed)
            })
        return recovered

    async def resume_finalizations(self, cutoff: datetime) -> List[str]:
        """
        Finalize inspections stuck in finalizing since before ``cutoff``.

        Returns:
            IDs of inspections finalized by this pass
        """
        resumed: List[str] = []
        for inspection_id in await self.store.find_stalled_finalizations(cutoff):
            if await self.store.count_open_jobs(inspection_id):
                continue
            try:
                if await self.driver.finalize(inspection_id, resume=True):
                    resumed.append(inspection_id)
            except Exception:
                # Status was restored by the driver; the next sweep retries
                self.logger.error("Resumed finalization failed", exc_info=True, extra={
                    "inspection_id": inspection_id
                })
        return resumed
