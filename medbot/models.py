from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DrugRecord(BaseModel):
    """One pharmaceutical product as known to MedBot."""
    drug_id: Optional[str] = None
    brand_name: Optional[str] = None
    generic_name: Optional[str] = None
    manufacturer: Optional[str] = None
    indications: Optional[str] = None
    fetched_at: Optional[datetime] = None

    @field_validator("fetched_at")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def primary_name(self) -> Optional[str]:
        """Brand name when present, otherwise the generic name."""
        return self.brand_name or self.generic_name

    def is_nameless(self) -> bool:
        return not (self.brand_name or "").strip() and not (self.generic_name or "").strip()


class RecallRecord(BaseModel):
    """One openFDA enforcement report."""
    recall_id: Optional[str] = None
    product_description: Optional[str] = None
    reason_for_recall: Optional[str] = None
    classification: Optional[str] = None
    recall_date: Optional[str] = None


# openFDA payload shapes. Only the fields MedBot reads are declared.

class OpenFDAFields(BaseModel):
    model_config = ConfigDict(extra="ignore")

    brand_name: List[str] = []
    generic_name: List[str] = []
    manufacturer_name: List[str] = []


class LabelResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    openfda: OpenFDAFields = Field(default_factory=OpenFDAFields)
    indications_and_usage: List[str] = []


class EnforcementResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    recall_number: Optional[str] = None
    product_description: Optional[str] = None
    reason_for_recall: Optional[str] = None
    classification: Optional[str] = None
    report_date: Optional[str] = None


# API responses

class DrugSearchResponse(BaseModel):
    query: str
    results: List[DrugRecord]
    total_found: int
    processing_time_ms: float


class RecallSearchResponse(BaseModel):
    query: str
    results: List[RecallRecord]
    total_found: int
    processing_time_ms: float


class UserStats(BaseModel):
    caller_id: int
    search_count: int


class CacheStats(BaseModel):
    cached_drugs: int
    total_users: int
    total_searches: int
    ttl_hours: float
