from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_INDUSTRY = "consumer goods"


class BrandGuidelines(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    industry: str = DEFAULT_INDUSTRY
    description: Optional[str] = None
    color_palette: list[Any] = Field(default_factory=list)
    logo_files_count: int = 0
    tone_keywords: list[str] = Field(default_factory=list)
    approved_terms: list[str] = Field(default_factory=list)
    banned_terms: list[str] = Field(default_factory=list)
    required_disclaimers: list[str] = Field(default_factory=list)
    phonetic_pronunciation: Optional[str] = None

    @classmethod
    def from_brand(cls, brand: Any) -> "BrandGuidelines":
        return cls(
            name=brand.name,
            industry=brand.industry or DEFAULT_INDUSTRY,
            description=brand.description,
            color_palette=list(brand.color_palette or []),
            logo_files_count=len(brand.logo_files or []),
            tone_keywords=list(brand.tone_keywords or []),
            approved_terms=list(brand.approved_terms or []),
            banned_terms=list(brand.banned_terms or []),
            required_disclaimers=list(brand.required_disclaimers or []),
            phonetic_pronunciation=brand.phonetic_pronunciation,
        )


class TranscriptWord(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: str
    start: Optional[int] = None
    end: Optional[int] = None
    confidence: Optional[float] = None


class TranscriptResult(BaseModel):
    """A completed transcript. Unknown provider fields are kept for persistence."""

    model_config = ConfigDict(extra="allow")

    id: str
    status: str
    text: Optional[str] = None
    words: list[TranscriptWord] = Field(default_factory=list)
    audio_duration: Optional[float] = None
    confidence: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return not (self.text or "").strip()

    def leading_words(self, limit: int = 100) -> list[dict[str, Any]]:
        return [
            {"text": word.text, "start": word.start, "end": word.end, "confidence": word.confidence}
            for word in self.words[:limit]
        ]
