# -*- coding: utf-8 -*-
"""History: Pydantic models."""

from __future__ import annotations

from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

RiskLevel = Literal["Low", "Medium", "High"]
ScanType = Literal["food", "recipe"]


class GlucosePoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    time: float = Field(..., ge=0, description="Minutes after consumption")
    value: float = Field(..., description="Simulated glucose level (mg/dL)")


class FoodImpact(BaseModel):
    """Blood-glucose impact estimate produced by the analysis capability."""

    model_config = ConfigDict(frozen=True)

    name: str
    portion: str
    calories: float = Field(..., ge=0)
    carbs: float = Field(..., ge=0)
    gi: float = Field(..., ge=0)
    estimated_spike: float = Field(..., description="Max predicted rise in mg/dL")
    risk_level: RiskLevel
    summary: str
    glucose_curve: List[GlucosePoint] = Field(default_factory=list)
    scan_type: ScanType = "food"

    @field_validator("glucose_curve")
    @classmethod
    def _order_by_time(cls, value: List[GlucosePoint]) -> List[GlucosePoint]:
        return sorted(value, key=lambda p: p.time)


class TranslatedText(BaseModel):
    """The human-readable fields the translation capability re-derives."""

    name: str
    portion: str
    summary: str


class ScanRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: int = Field(..., description="Epoch milliseconds")
    image: str = Field(..., description="Data URI, or the placeholder icon for text scans")
    data: FoodImpact


# ---- API payloads ----


class ImageScanRequest(BaseModel):
    image_mime: str = Field("image/jpeg", pattern=r"^image/(jpeg|jpg|png|heic|webp)$")
    image_base64: str = Field(..., min_length=16, description="Raw base64 without data-url prefix")


class TextScanRequest(BaseModel):
    text: str = Field(..., max_length=8000)


class SearchRequest(BaseModel):
    term: str = Field(..., max_length=200)


class HistoryResponse(BaseModel):
    count: int
    records: List[ScanRecord]
