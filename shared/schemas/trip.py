"""Trip records captured while the backend is unreachable."""

import uuid
from datetime import datetime, UTC
from typing import Optional, Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class OfflineTripRecord(BaseModel):
    """One trip queued locally until the bulk sync endpoint accepts it.

    Serialized with camelCase keys, the shape the backend's
    ``/trips/bulk-sync`` endpoint expects. Unknown keys are kept as-is so a
    record round-trips through the store unchanged.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    trip_id: Optional[str] = None
    vendor_id: str
    vehicle_number: str
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    start_location: str
    end_location: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    distance: Optional[float] = None
    fare: Optional[float] = None
    status: str = "pending"
    gr_number: Optional[str] = None
    notes: Optional[str] = None
    is_offline: bool = True
    created_at: str = Field(default_factory=_now_iso)

    def to_dict(self) -> dict[str, Any]:
        """Wire representation with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OfflineTripRecord":
        """Build a record from camelCase or snake_case keys."""
        return cls.model_validate(data)

    @classmethod
    def from_json(cls, text: str) -> "OfflineTripRecord":
        return cls.model_validate_json(text)


class BulkSyncRequest(BaseModel):
    """Body of ``POST /trips/bulk-sync``."""
    trips: list[OfflineTripRecord]

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")
