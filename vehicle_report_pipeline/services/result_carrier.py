"""
Result carrying between jobs

Chunk analyses build on the immediately preceding job; downstream stages
read the latest completed chunk analysis regardless of position.
"""

from typing import Any, Dict, Optional

from ..utils.store import RecordStore


class ResultCarrier:
    """Read-only access to results of earlier jobs."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def get_preceding_result(self, inspection_id: str, sequence_order: int) -> Optional[Dict[str, Any]]:
        """
        Result of the completed job directly before ``sequence_order``.

        Returns:
            The stored result, or None when that job is missing, not
            completed, or has an empty result
        """
        if sequence_order <= 1:
            return None
        result = await self.store.get_completed_result(inspection_id, sequence_order - 1)
        return result or None

    async def get_latest_chunk_analysis_result(self, inspection_id: str) -> Optional[Dict[str, Any]]:
        """
        Result of the highest-sequence completed chunk analysis.

        Returns:
            The stored result, or None when no chunk analysis completed with a result
        """
        result = await self.store.get_latest_chunk_result(inspection_id)
        return result or None
