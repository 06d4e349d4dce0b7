"""
API request/response schemas. Pydantic only in api layer.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class CrewAssignmentSchema(BaseModel):
    crewId: int
    crewName: str
    estimatedSize: int
    zoneId: int
    zoneName: str
    nextRotation: datetime
    walkMinutes: int | None = None
    walkTime: str | None = None


class CrewResponse(BaseModel):
    success: bool = True
    crew: CrewAssignmentSchema
    timestamp: datetime


class CrewSummarySchema(BaseModel):
    id: int
    name: str
    size: int


class ZoneStatusSchema(BaseModel):
    id: int
    name: str
    type: str
    center_lat: float
    center_lng: float
    crews: list[CrewSummarySchema]
    totalParticipants: int
    danger: str | None = None  # severidad activa más alta, si hay


class ZoneStatsSchema(BaseModel):
    totalCrews: int
    totalParticipants: int
    activeZones: int
    nextRotation: datetime


class ZonesResponse(BaseModel):
    success: bool = True
    zones: list[ZoneStatusSchema]
    stats: ZoneStatsSchema
    timestamp: datetime


class RotationEntrySchema(BaseModel):
    crew_id: int
    from_zone_id: int
    to_zone_id: int
    estimated_size: int
    reason: str


class RotationResponse(BaseModel):
    success: bool
    rotated: bool
    rotations: int
    degraded: bool
    message: str
    plan: list[RotationEntrySchema] = []
    timestamp: datetime


class SignalRequest(BaseModel):
    zone_id: int
    severity: str
    description: str = ""
    source: str = "citizen"
    ttl_minutes: int = Field(default=120, gt=0)


class SignalResponse(BaseModel):
    success: bool = True
    zone_id: int
    severity: str
    expires_at: datetime


class NextZoneSchema(BaseModel):
    crewId: int
    crewName: str
    zoneId: int
    zoneName: str
    nextRotation: datetime
    walkMinutes: int
    walkTime: str
    message: str


class NextZoneResponse(BaseModel):
    success: bool = True
    crew: NextZoneSchema
    timestamp: datetime


class EvacuationRequest(BaseModel):
    zone_ids: list[int] = Field(min_length=1)
