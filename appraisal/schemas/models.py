# appraisal/schemas/models.py

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from appraisal.schemas.labels import DEFAULT_CURRENCY, GroupingMode, Language

# =========================
# Coercion helpers
# =========================


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        s = value.strip()
        if s.lstrip("-").isdigit():
            return int(s)
    return None


def clean_indexes(value: Any) -> list[int]:
    """Integer, non-negative, first-occurrence-unique view of an index list."""
    if not isinstance(value, list | tuple):
        return []
    out: list[int] = []
    for raw in value:
        i = _as_int(raw)
        if i is None or i < 0 or i in out:
            continue
        out.append(i)
    return out


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        s = value.strip()
        return s or None
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return None


# =========================
# Images
# =========================


class ImageRef(BaseModel):
    """One source image: its stable 0-based index and its locator."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Position in the ImageSet; the image's only identity.")
    url: str = Field(..., description="Image locator (URL or path) as uploaded.")


class ImageSet(BaseModel):
    """
    Ordered, immutable collection of source images for one pipeline run.

    Built by the resolver; never reordered or resized afterwards.
    """

    model_config = ConfigDict(frozen=True)

    refs: tuple[ImageRef, ...] = Field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.refs)

    @property
    def urls(self) -> list[str]:
        return [r.url for r in self.refs]

    def url_at(self, index: int) -> str | None:
        if isinstance(index, bool) or not isinstance(index, int):
            return None
        if 0 <= index < len(self.refs):
            return self.refs[index].url
        return None

    def index_of(self, url: str | None) -> int | None:
        if not url:
            return None
        for r in self.refs:
            if r.url == url:
                return r.index
        return None

    def subset(self, indexes: list[int]) -> list[ImageRef]:
        return [self.refs[i] for i in indexes if 0 <= i < len(self.refs)]


# =========================
# Lots
# =========================


class CatalogueItem(BaseModel):
    """A saleable item listed inside a catalogue lot."""

    model_config = ConfigDict(frozen=True, extra="allow")

    title: str = ""
    sn_vin: str | None = None
    description: str = ""
    condition: str | None = None
    details: str | None = None
    estimated_value: str | None = None
    image_local_index: int | None = Field(None, description="0-based index within the analyzed segment subset.")
    image_index: int | None = Field(None, description="Global ImageSet index, filled in by the catalogue strategy.")
    image_url: str | None = None

    @field_validator("title", "description", mode="before")
    @classmethod
    def _text(cls, v: Any) -> str:
        return _optional_text(v) or ""

    @field_validator("sn_vin", "condition", "details", "estimated_value", "image_url", mode="before")
    @classmethod
    def _opt_text(cls, v: Any) -> str | None:
        return _optional_text(v)

    @field_validator("image_local_index", "image_index", mode="before")
    @classmethod
    def _opt_index(cls, v: Any) -> int | None:
        i = _as_int(v)
        return i if i is not None and i >= 0 else None


class Lot(BaseModel):
    """
    One distinct physical item or item-group in the inventory.

    Candidate lots come straight from an analyzer strategy; final lots have
    been deduplicated and assembled (``image_urls`` populated). Instances are
    frozen: pipeline stages derive new lots with ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    lot_id: str = Field("", description="Opaque id, unique within one analyzer invocation.")
    title: str = Field(..., min_length=1, description="Short descriptive title.")
    description: str = Field("", description="Summary of key details.")
    condition: str | None = None
    estimated_value: str | None = None
    tags: list[str] = Field(default_factory=list)

    serial_no_or_label: str | None = Field(None, description="Serial/VIN/label text; authoritative identity when present.")
    serial_number: str | None = Field(None, description="Fallback identity source used by some responses.")
    details: str | None = None

    image_url: str | None = Field(None, description="Single representative image (per-item, catalogue cover).")
    image_indexes: list[int] = Field(default_factory=list, description="Indices into the ImageSet.")
    extra_image_indexes: list[int] = Field(default_factory=list, description="Supplemental imagery resolved by the assembler.")
    image_urls: list[str] = Field(default_factory=list, description="Resolved locators; assembler output only.")

    items: list[CatalogueItem] = Field(default_factory=list, description="Catalogue-mode item rows.")

    @field_validator("lot_id", mode="before")
    @classmethod
    def _lot_id(cls, v: Any) -> str:
        return _optional_text(v) or ""

    @field_validator("title", mode="before")
    @classmethod
    def _title(cls, v: Any) -> str:
        return _optional_text(v) or ""

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v: Any) -> str:
        return _optional_text(v) or ""

    @field_validator(
        "condition", "estimated_value", "serial_no_or_label", "serial_number", "details", "image_url", mode="before"
    )
    @classmethod
    def _opt_text(cls, v: Any) -> str | None:
        return _optional_text(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> list[str]:
        if isinstance(v, str):
            v = [v]
        if not isinstance(v, list | tuple):
            return []
        return [t.strip() for t in v if isinstance(t, str) and t.strip()]

    @field_validator("image_indexes", "extra_image_indexes", mode="before")
    @classmethod
    def _indexes(cls, v: Any) -> list[int]:
        return clean_indexes(v)

    @field_validator("image_urls", mode="before")
    @classmethod
    def _urls(cls, v: Any) -> list[str]:
        if not isinstance(v, list | tuple):
            return []
        return [u for u in v if isinstance(u, str) and u]

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, v: Any) -> list[Any]:
        if not isinstance(v, list | tuple):
            return []
        return [it for it in v if isinstance(it, dict | CatalogueItem)]

    def summary(self) -> str:
        bits = [self.lot_id or "lot-?", self.title]
        if self.serial_no_or_label:
            bits.append(f"serial={self.serial_no_or_label}")
        if self.image_indexes:
            bits.append("images=" + ",".join(str(i) for i in self.image_indexes))
        if self.estimated_value:
            bits.append(self.estimated_value)
        return " | ".join(bits)


class CatalogueSegment(BaseModel):
    """Client-declared run of consecutive images forming one catalogue lot."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    count: int = Field(0, ge=0, description="Number of consecutive images in this segment.")
    cover_index: int = Field(
        0,
        ge=0,
        validation_alias=AliasChoices("cover_index", "coverIndex"),
        description="Cover image, relative to the segment start.",
    )

    @field_validator("count", mode="before")
    @classmethod
    def _count(cls, v: Any) -> int:
        i = _as_int(v)
        return i if i is not None and i > 0 else 0

    @field_validator("cover_index", mode="before")
    @classmethod
    def _cover(cls, v: Any) -> int:
        i = _as_int(v)
        return i if i is not None and i > 0 else 0


# =========================
# Stage outputs
# =========================


class AnalyzerResult(BaseModel):
    """Candidate lots emitted by one analyzer strategy invocation."""

    model_config = ConfigDict(frozen=True)

    mode: GroupingMode
    lots: list[Lot] = Field(default_factory=list)
    summary: str | None = Field(None, description="Free-text summary from the last AI response that supplied one.")
    language: Language = Language.en
    currency: str = DEFAULT_CURRENCY
    calls: int = Field(0, ge=0, description="Number of AI collaborator calls performed.")
    dropped_responses: int = Field(0, ge=0, description="Calls whose response could not be parsed.")
    warnings: list[str] = Field(default_factory=list)


class DedupSummary(BaseModel):
    """Diagnostics for one deduplication pass."""

    model_config = ConfigDict(frozen=True)

    input_count: int = Field(0, ge=0)
    output_count: int = Field(0, ge=0)
    dropped_by_serial: int = Field(0, ge=0)
    dropped_by_frame: int = Field(0, ge=0)

    @property
    def dropped(self) -> int:
        return self.input_count - self.output_count

    def summary(self) -> str:
        return (
            f"[Dedup] {self.input_count} → {self.output_count} "
            f"(serial: -{self.dropped_by_serial}, same-frame: -{self.dropped_by_frame})"
        )

    def __str__(self) -> str:
        return self.summary()


class ReportMetadata(BaseModel):
    """Report-level fields passed through untouched to document generation."""

    model_config = ConfigDict(frozen=True, extra="allow")

    client_name: str | None = None
    owner_name: str | None = None
    appraiser: str | None = None
    appraisal_company: str | None = None
    appraisal_purpose: str | None = None
    industry: str | None = None
    effective_date: date | None = None
    inspection_date: date | None = None

    @field_validator("effective_date", "inspection_date", mode="before")
    @classmethod
    def _lenient_date(cls, v: Any) -> Any:
        if v in ("", None):
            return None
        if isinstance(v, str):
            try:
                return date.fromisoformat(v.strip()[:10])
            except ValueError:
                return None
        return v


class AssembledReport(BaseModel):
    """Final, fully resolved lot collection handed to document generation."""

    model_config = ConfigDict(frozen=True)

    grouping_mode: GroupingMode | None = None
    image_urls: list[str] = Field(default_factory=list)
    lots: list[Lot] = Field(default_factory=list)
    metadata: ReportMetadata = Field(default_factory=ReportMetadata)
    summary: str | None = None
    language: Language = Language.en
    currency: str = DEFAULT_CURRENCY


class LotPipelineResult(BaseModel):
    """Everything one pipeline run produces."""

    model_config = ConfigDict(frozen=True)

    mode: GroupingMode | None = Field(None, description="Resolved grouping mode; None for an unknown selector.")
    image_set: ImageSet = Field(default_factory=ImageSet)
    report: AssembledReport
    dedup: DedupSummary = Field(default_factory=DedupSummary)
    views: dict[str, list[Lot]] = Field(default_factory=dict, description="Combined mode only: derived lot lists per view.")
    warnings: list[str] = Field(default_factory=list)
    calls: int = Field(0, ge=0)

    @property
    def lots(self) -> list[Lot]:
        return self.report.lots

    def summary(self) -> str:
        mode = self.report.grouping_mode.value if self.report.grouping_mode else "none"
        return (
            f"[LotPipeline] mode={mode} | images={len(self.report.image_urls)} | "
            f"lots={len(self.report.lots)} | {self.dedup.summary()} | calls={self.calls}"
            + (f" | warnings={len(self.warnings)}" if self.warnings else "")
        )

    def __str__(self) -> str:
        return self.summary()


__all__ = [
    "clean_indexes",
    "ImageRef",
    "ImageSet",
    "CatalogueItem",
    "Lot",
    "CatalogueSegment",
    "AnalyzerResult",
    "DedupSummary",
    "ReportMetadata",
    "AssembledReport",
    "LotPipelineResult",
]
