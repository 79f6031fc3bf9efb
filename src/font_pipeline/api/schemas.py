from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from ..models import ConversionConfig, CustomFontRecord, FontRequirement


class RequirementModel(BaseModel):
    family: str
    weight: int
    style: Literal["normal", "italic"]
    origin: Literal["system", "custom", "remote"]

    @classmethod
    def from_requirement(cls, requirement: FontRequirement) -> "RequirementModel":
        return cls(
            family=requirement.family,
            weight=requirement.weight,
            style=requirement.style,
            origin=requirement.origin,
        )


class DetectRequest(BaseModel):
    text: str
    default_family: str | None = None
    bypass_cache: bool = False


class DetectResponse(BaseModel):
    requirements: list[RequirementModel]
    digest: str
    from_cache: bool


class FontRecordModel(BaseModel):
    id: str
    family: str
    weight: int
    style: Literal["normal", "italic"]
    size_bytes: int

    @classmethod
    def from_record(cls, record: CustomFontRecord) -> "FontRecordModel":
        return cls(
            id=record.id,
            family=record.family,
            weight=record.weight,
            style=record.style,
            size_bytes=record.size_bytes,
        )


class StoreStatsModel(BaseModel):
    count: int
    total_bytes: int
    max_bytes: int
    percent_used: float


class CacheStatsModel(BaseModel):
    size: int
    capacity: int
    evictions: int


class CacheInfo(BaseModel):
    fonts: CacheStatsModel
    detection: CacheStatsModel


class MarginModel(BaseModel):
    top: float = 0.5
    right: float = 0.5
    bottom: float = 0.5
    left: float = 0.5


class ConversionOptionsModel(BaseModel):
    page_size: Literal["Letter", "A4", "Legal"] = "Letter"
    margin: MarginModel = Field(default_factory=MarginModel)
    font_size: float = 11.0
    font_family: str = "Helvetica"
    filename: str | None = None
    compress: bool = True
    include_metadata: bool = True

    def to_config(self) -> ConversionConfig:
        return ConversionConfig.from_dict(self.model_dump())


class ConversionRequest(BaseModel):
    document_source: str
    config: ConversionOptionsModel = Field(default_factory=ConversionOptionsModel)
    job_id: str | None = None


__all__ = [
    "CacheInfo",
    "CacheStatsModel",
    "ConversionOptionsModel",
    "ConversionRequest",
    "DetectRequest",
    "DetectResponse",
    "FontRecordModel",
    "MarginModel",
    "RequirementModel",
    "StoreStatsModel",
]
