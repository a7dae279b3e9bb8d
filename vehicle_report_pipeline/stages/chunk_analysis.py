"""
Chunk analysis stage.

The first chunk is analysed with inspection-level context (VIN, mileage,
zip, OBD2 codes). Every later chunk is analysed on top of the result of
the job just before it, so the report is built up incrementally.
"""

import json
from typing import List, Optional

from .base import StageProcessor
from .prompts import CHUNK_ANALYSIS_PROMPT, MERGE_INSTRUCTIONS
from .schemas import VehicleReport
from ..models.analysis import AnalysisRequest
from ..models.evidence import AssessableItem
from ..models.inspection import Inspection, OBD2Code, VehicleContext
from ..models.job import Job, JobType


class ChunkAnalysisProcessor(StageProcessor):
    """Analyses one chunk of images into a merged vehicle report."""

    job_type = JobType.CHUNK_ANALYSIS
    response_model = VehicleReport

    async def build_request(self, job: Job, inspection: Inspection) -> AnalysisRequest:
        images = [AssessableItem.from_dict(image) for image in job.images]
        blocks: List[str] = []

        if job.chunk_index == 1:
            context = await self.load_vehicle_context(inspection)
            blocks.append(f"DATA_BLOCK: {json.dumps(context.to_data_block())}")
            for obd2 in context.obd2_codes:
                blocks.append(f"Code: {obd2.code}\nDescription: {obd2.description}")
        else:
            previous = await self.load_merge_base(job)
            if previous is not None:
                blocks.append(MERGE_INSTRUCTIONS)
                blocks.append(f"PREVIOUS_ANALYSIS: {json.dumps(previous)}")

        return AnalysisRequest(
            prompt=CHUNK_ANALYSIS_PROMPT,
            context_blocks=blocks,
            images=images,
            response_schema=self.schema,
            inspection_id=job.inspection_id,
            job_type=job.job_type.value
        )

    async def load_vehicle_context(self, inspection: Inspection) -> VehicleContext:
        """Inspection identity plus every OBD2 code recorded for it."""
        evidence = await self.store.fetch_evidence(inspection.inspection_id)
        codes = [
            OBD2Code(code=row["code"], description=row.get("description") or "")
            for row in evidence.get("obd2_codes", [])
            if row.get("code")
        ]
        return VehicleContext(
            vin=inspection.vin,
            mileage=inspection.mileage,
            zip=inspection.zip,
            obd2_codes=codes
        )

    async def load_merge_base(self, job: Job) -> Optional[dict]:
        """
        Result to merge this chunk into.

        Normally the immediately preceding job. When that job did not
        complete, the latest completed chunk analysis stands in; with none
        at all the chunk is analysed on its own.
        """
        previous = await self.carrier.get_preceding_result(job.inspection_id, job.sequence_order)
        if previous is not None:
            return previous

        fallback = await self.carrier.get_latest_chunk_analysis_result(job.inspection_id)
        self.logger.warning("Preceding chunk result unavailable", extra={
            "inspection_id": job.inspection_id,
            "sequence_order": job.sequence_order,
            "fallback": "latest_completed_chunk" if fallback is not None else "none"
        })
        return fallback
