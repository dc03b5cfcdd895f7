from enum import Enum


class AssetStatusEnum(str, Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class AnalysisJobStatusEnum(str, Enum):
    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class CreativeTypeEnum(str, Enum):
    UGC = "UGC"
    Branded = "Branded"
    NON_MARKETING = "Non-Marketing"
