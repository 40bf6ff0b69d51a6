"""Vision analysis Pydantic schemas: canonical metadata and model payloads."""

import re
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

EntryType = Literal["original", "shorter", "more_options", "shorter_term"]
RewriteMode = Literal["shorter", "more_options", "shorter_term"]

REWRITE_MODES: tuple[str, ...] = ("shorter", "more_options", "shorter_term")

_KEYWORD_SPLIT = re.compile(r"[,;\n]")


def _as_string_list(value: Any) -> list[str]:
    """Coerce None / str / list into a list of non-blank strings."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _as_keyword_list(value: Any) -> list[str]:
    """Keywords may arrive as a comma-separated string or as a list."""
    if isinstance(value, str):
        value = _KEYWORD_SPLIT.split(value)
    return _as_string_list(value)


def _as_notes(value: Any) -> str:
    """Notes may arrive as a string or a list of strings."""
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return "\n".join(_as_string_list(value))
    return str(value).strip()


class VisionVariations(BaseModel):
    """Alternative phrasings returned by the ``more_options`` rewrite."""

    inspirational: list[str] = Field(default_factory=list)
    measurable: list[str] = Field(default_factory=list)

    @field_validator("inspirational", "measurable", mode="before")
    @classmethod
    def normalize_lists(cls, v: Any) -> list[str]:
        return _as_string_list(v)


class VersionHistoryEntry(BaseModel):
    """One generated or rewritten vision pair."""

    model_config = ConfigDict(frozen=True)

    type: EntryType
    timestamp: datetime
    vision_inspirational: str
    vision_measurable: str
    variations: VisionVariations | None = None
    processing_time_ms: int | None = None

    @field_validator("timestamp")
    @classmethod
    def assume_utc(cls, v: datetime) -> datetime:
        """Legacy rows may carry naive timestamps; they were written in UTC."""
        return v if v.tzinfo is not None else v.replace(tzinfo=UTC)

    def to_json(self) -> dict[str, Any]:
        """Serialize for the ``meta.version_history`` JSON column."""
        return self.model_dump(mode="json", exclude_none=True)


class AnalysisMeta(BaseModel):
    """Canonical shape of ``VisionAnalysis.meta``.

    Older rows stored keywords/insights/notes in varying shapes; everything is
    normalized here so read sites never branch on shape. Unknown keys survive
    a read/write cycle.
    """

    model_config = ConfigDict(extra="allow")

    keywords: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    notes: str = ""
    processing_time_ms: int | None = None
    version_history: list[VersionHistoryEntry] = Field(default_factory=list)

    @field_validator("keywords", mode="before")
    @classmethod
    def normalize_keywords(cls, v: Any) -> list[str]:
        return _as_keyword_list(v)

    @field_validator("insights", mode="before")
    @classmethod
    def normalize_insights(cls, v: Any) -> list[str]:
        return _as_string_list(v)

    @field_validator("notes", mode="before")
    @classmethod
    def normalize_notes(cls, v: Any) -> str:
        return _as_notes(v)

    @field_validator("version_history", mode="before")
    @classmethod
    def default_history(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_json(self) -> dict[str, Any]:
        """Serialize for the JSON column."""
        data = self.model_dump(mode="json", exclude={"version_history"})
        data["version_history"] = [entry.to_json() for entry in self.version_history]
        return data


class _VisionPair(BaseModel):
    vision_inspirational: str = Field(..., min_length=1)
    vision_measurable: str = Field(..., min_length=1)

    @field_validator("vision_inspirational", "vision_measurable", mode="before")
    @classmethod
    def strip_vision(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v


class AnalysisPayload(_VisionPair):
    """Structured output expected from the analyze prompt."""

    keywords: list[str] = Field(default_factory=list)
    insights: list[str] = Field(default_factory=list)
    notes: str = ""

    @field_validator("keywords", mode="before")
    @classmethod
    def normalize_keywords(cls, v: Any) -> list[str]:
        return _as_keyword_list(v)

    @field_validator("insights", mode="before")
    @classmethod
    def normalize_insights(cls, v: Any) -> list[str]:
        return _as_string_list(v)

    @field_validator("notes", mode="before")
    @classmethod
    def normalize_notes(cls, v: Any) -> str:
        return _as_notes(v)


class RewritePayload(_VisionPair):
    """Structured output expected from a rewrite prompt."""

    variations: VisionVariations | None = None
