"""
Test suite for job, evidence and inspection models.
"""

import json
import uuid
from datetime import datetime

import pytest

from vehicle_report_pipeline.core.exceptions import InvalidTransitionError
from vehicle_report_pipeline.models.evidence import AssessableItem, ItemType, parse_size
from vehicle_report_pipeline.models.inspection import Inspection, InspectionStatus, VehicleInfo
from vehicle_report_pipeline.models.job import (
    Job,
    JobStatus,
    JobType,
    UsageMetrics,
    can_transition_to,
    get_valid_transitions
)


@pytest.fixture
def job() -> Job:
    """Provide a pending chunk analysis job."""
    return Job(inspection_id="i-1", job_type=JobType.CHUNK_ANALYSIS, sequence_order=1)


class TestJobTransitions:
    """Test suite for the job status machine."""

    def test_complete_records_result_and_usage(self, job):
        # Act
        job.start_processing()
        job.complete({"score": 9}, UsageMetrics(cost=0.5, total_tokens=42, web_search_count=2,
                                                web_search_results=["a", "b"]))

        # Assert
        assert job.status == JobStatus.COMPLETED
        assert job.is_terminal
        assert (job.cost, job.total_tokens, job.web_search_count) == (0.5, 42, 2)
        assert job.get_duration() is not None

    def test_fail_sets_message(self, job):
        job.start_processing()
        job.fail("engine down")

        assert job.status == JobStatus.FAILED
        assert job.error_message == "engine down"

    def test_pending_job_cannot_complete(self, job):
        with pytest.raises(InvalidTransitionError):
            job.complete({})

    def test_terminal_states_are_final(self, job):
        job.start_processing()
        job.fail("x")

        with pytest.raises(InvalidTransitionError):
            job.start_processing()
        assert get_valid_transitions(JobStatus.COMPLETED) == []
        assert not can_transition_to(JobStatus.FAILED, JobStatus.PENDING)


class TestJobFromDict:
    """Test suite for building jobs from database rows."""

    def test_row_with_encoded_json_and_uuid(self):
        # Arrange
        job_id = uuid.uuid4()
        row = {
            "id": job_id,
            "inspection_id": uuid.UUID(int=1),
            "job_type": "fair_market_value",
            "sequence_order": 4,
            "status": "completed",
            "chunk_data": "{}",
            "chunk_result": json.dumps({"finalFairValueUSD": "$1"}),
            "web_search_results": None,
            "cost": "0.25",
            "created_at": datetime(2024, 1, 1),
            "updated_at": datetime(2024, 1, 2),
        }

        # Act
        job = Job.from_dict(row)

        # Assert
        assert job.job_id == str(job_id)
        assert job.job_type == JobType.FAIR_MARKET_VALUE
        assert job.status == JobStatus.COMPLETED
        assert job.chunk_result == {"finalFairValueUSD": "$1"}
        assert job.web_search_results == []
        assert job.cost == 0.25


class TestEvidenceModels:
    """Test suite for assessable items."""

    @pytest.mark.parametrize("value,expected", [(None, 0), ("1024", 1024), ("12.7", 12), ("n/a", 0), (-5, 0), (True, 0)])
    def test_parse_size(self, value, expected):
        assert parse_size(value) == expected

    def test_item_payload_round_trip_keeps_obd_fields(self):
        item = AssessableItem(item_id="o1", size_bytes=10, category="obd", path="scan.png",
                              item_type=ItemType.OBD2_IMAGE, code="P0420", description="Catalyst")

        assert AssessableItem.from_dict(item.to_dict()) == item
        assert item.is_obd


class TestInspectionModels:
    """Test suite for inspection helpers."""

    def test_vehicle_info_prefers_inspection_zip_and_analysed_mileage(self):
        inspection = Inspection(inspection_id="i-1", mileage="70000", zip="10001")
        results = {"vehicle": {"Year": 2019, "Make": "Honda", "Model": "Civic", "Mileage": 68000, "Location": "NY"}}

        vehicle = VehicleInfo.from_results(results, inspection)

        assert vehicle.label == "2019 Honda Civic"
        assert vehicle.mileage == "68000"
        assert vehicle.location == "10001"

    def test_inspection_from_row(self):
        inspection = Inspection.from_dict({"id": uuid.UUID(int=7), "mileage": 1200, "status": "analyzing"})

        assert inspection.inspection_id == str(uuid.UUID(int=7))
        assert inspection.mileage == "1200"
        assert inspection.status == InspectionStatus.ANALYZING
        assert not inspection.status.is_terminal
