"""
Inspection data models for the Vehicle Report Pipeline

The inspection row is owned elsewhere; the pipeline reads its vehicle data
and updates its status as jobs progress.
"""

from enum import Enum
from datetime import datetime
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field


class InspectionStatus(Enum):
    """Inspection status enumeration."""
    PENDING = "pending"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    CREATING_JOBS = "creating_jobs"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (InspectionStatus.DONE, InspectionStatus.FAILED)


@dataclass
class Inspection:
    """Inspection record as read by the pipeline."""

    inspection_id: str
    vin: Optional[str] = None
    mileage: Optional[str] = None
    zip: Optional[str] = None
    email: Optional[str] = None
    status: InspectionStatus = InspectionStatus.PENDING
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inspection_id": self.inspection_id,
            "vin": self.vin,
            "mileage": self.mileage,
            "zip": self.zip,
            "email": self.email,
            "status": self.status.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Inspection":
        """Create inspection from a dictionary or database row."""
        inspection_id = data.get("inspection_id", data.get("id"))
        mileage = data.get("mileage")
        return cls(
            inspection_id=str(inspection_id),
            vin=data.get("vin"),
            mileage=str(mileage) if mileage is not None else None,
            zip=data.get("zip"),
            email=data.get("email"),
            status=InspectionStatus(data.get("status") or InspectionStatus.PENDING.value),
            created_at=data.get("created_at") or datetime.utcnow(),
            updated_at=data.get("updated_at") or datetime.utcnow()
        )


@dataclass
class OBD2Code:
    code: str
    description: str = ""


@dataclass
class VehicleContext:
    """Inspection-level context handed to the first chunk analysis."""

    vin: Optional[str] = None
    mileage: Optional[str] = None
    zip: Optional[str] = None
    obd2_codes: List[OBD2Code] = field(default_factory=list)

    def to_data_block(self) -> Dict[str, Any]:
        return {
            "vin": self.vin,
            "mileage": self.mileage,
            "zip": self.zip,
        }


@dataclass
class VehicleInfo:
    """Vehicle identity used to build research search terms."""

    year: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    mileage: Optional[str] = None
    location: Optional[str] = None

    @classmethod
    def from_results(cls, results: Dict[str, Any], inspection: Optional[Inspection] = None) -> "VehicleInfo":
        """
        Extract vehicle identity from a merged chunk analysis.

        Mileage prefers the analysed value and location prefers the
        inspection zip, each falling back to the other source.
        """
        vehicle = results.get("vehicle") or {}
        mileage = vehicle.get("Mileage") or (inspection.mileage if inspection else None)
        location = (inspection.zip if inspection else None) or vehicle.get("Location")
        return cls(
            year=_as_text(vehicle.get("Year")),
            make=vehicle.get("Make"),
            model=vehicle.get("Model"),
            mileage=_as_text(mileage),
            location=_as_text(location)
        )

    @property
    def label(self) -> str:
        return " ".join(part for part in (self.year, self.make, self.model) if part)


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)
