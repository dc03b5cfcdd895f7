from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProcessJobResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    message: str
    jobId: Optional[int] = None
    assetId: Optional[str] = None


class RetryAssetResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool
    message: Optional[str] = None
    jobId: Optional[int] = None
    error: Optional[str] = None


class RetryCampaignResponse(BaseModel):
    model_config = ConfigDict(extra="forbid")

    success: bool
    retriedCount: int
    failedCount: int
    details: list[dict[str, Any]] = Field(default_factory=list)
