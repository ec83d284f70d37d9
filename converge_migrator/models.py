"""
Data model for converge_migrator.

Rules and mapping entries are immutable once loaded. Detections and endpoint
records live for a single scan pass.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any, Callable


class EndpointType(str, Enum):
    """The five legacy endpoint families."""

    HOSTED_PAYMENTS = "hosted-payments"
    CHECKOUT = "Checkout.js"
    PROCESS_TRANSACTION = "ProcessTransactionOnline"
    BATCH_PROCESSING = "batch-processing"
    DEVICE_MANAGEMENT = "NonElavonCertifiedDevice"


# Catalog family key -> endpoint type. Order is the catalog order.
FAMILY_TYPES: dict[str, EndpointType] = {
    "hosted_payments": EndpointType.HOSTED_PAYMENTS,
    "checkout": EndpointType.CHECKOUT,
    "process_transaction": EndpointType.PROCESS_TRANSACTION,
    "batch_processing": EndpointType.BATCH_PROCESSING,
    "device_management": EndpointType.DEVICE_MANAGEMENT,
}


class Language(str, Enum):
    """Source languages with a dedicated classification strategy."""

    JAVASCRIPT = "javascript"
    PHP = "php"
    PYTHON = "python"
    JAVA = "java"
    CSHARP = "csharp"
    RUBY = "ruby"
    GENERIC = "generic"


# Pattern categories and their fixed ranking weights
CATEGORY_ENDPOINT = "endpoint"
CATEGORY_SSL_FIELD = "ssl_field"
CATEGORY_URL = "url"
CATEGORY_API_CALL = "api_call"

CATEGORY_WEIGHTS: dict[str, float] = {
    CATEGORY_API_CALL: 0.9,
    CATEGORY_ENDPOINT: 0.8,
    CATEGORY_URL: 0.7,
    CATEGORY_SSL_FIELD: 0.6,
}


@dataclass(frozen=True)
class PatternRule:
    """A single compiled catalog rule."""

    id: str
    category: str
    kind: str
    source_pattern: str
    language_scope: tuple[str, ...] = ("*",)
    weight: float = 0.0
    regex: re.Pattern[str] | None = field(default=None, compare=False, repr=False)

    def applies_to(self, language: str | None) -> bool:
        """Whether the rule is in scope for the given language."""
        if language is None or "*" in self.language_scope:
            return True
        return language in self.language_scope


@dataclass(frozen=True)
class Detection:
    """A raw match produced by the pattern matcher."""

    kind: str
    matched_text: str
    line_number: int
    confidence: float
    category: str = CATEGORY_ENDPOINT
    column: int = 0
    rule_id: str = ""


@dataclass
class EndpointRecord:
    """A canonical legacy-API usage found in a source file."""

    id: str
    file_path: str
    line_number: int
    endpoint_type: EndpointType
    code_snippet: str
    ssl_fields: list[str] = field(default_factory=list)
    confidence: float = 0.0

    @property
    def key(self) -> tuple[str, int, EndpointType]:
        """The (file, line, type) identity used for deduplication."""
        return (self.file_path, self.line_number, self.endpoint_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "file_path": self.file_path,
            "line_number": self.line_number,
            "endpoint_type": self.endpoint_type.value,
            "code_snippet": self.code_snippet,
            "ssl_fields": list(self.ssl_fields),
            "confidence": self.confidence,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EndpointRecord":
        return cls(
            id=data["id"],
            file_path=data["file_path"],
            line_number=int(data["line_number"]),
            endpoint_type=EndpointType(data["endpoint_type"]),
            code_snippet=data.get("code_snippet", ""),
            ssl_fields=list(data.get("ssl_fields", [])),
            confidence=float(data.get("confidence", 0.0)),
        )


@dataclass(frozen=True)
class FieldMapping:
    """Legacy field -> target field translation."""

    source_field: str
    target_field: str
    data_type: str
    required: bool = False
    max_length: int | None = None
    transformation: str | None = None
    deprecated: bool = False
    valid_values: tuple[str, ...] = ()
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldMapping":
        return cls(
            source_field=data["convergeField"],
            target_field=data["elavonField"],
            data_type=data["dataType"],
            required=bool(data.get("required", False)),
            max_length=data.get("maxLength"),
            transformation=data.get("transformation"),
            deprecated=bool(data.get("deprecated", False)),
            valid_values=tuple(data.get("validValues") or ()),
            notes=data.get("notes"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EndpointMapping:
    """Legacy endpoint -> target endpoint translation."""

    source_endpoint: str
    target_endpoint: str
    method: str
    description: str = ""
    field_mappings: tuple[FieldMapping, ...] = ()
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EndpointMapping":
        return cls(
            source_endpoint=data["convergeEndpoint"],
            target_endpoint=data["elavonEndpoint"],
            method=data["method"],
            description=data.get("description", ""),
            field_mappings=tuple(
                FieldMapping.from_dict(fm) for fm in data.get("fieldMappings", [])
            ),
            notes=data.get("notes"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MappingDictionary:
    """A loaded, validated mapping knowledge base."""

    version: str
    last_updated: str
    endpoint_mappings: tuple[EndpointMapping, ...] = ()
    common_field_mappings: tuple[FieldMapping, ...] = ()
    transformation_rules: dict[str, str] = field(default_factory=dict)
    migration_notes: tuple[str, ...] = ()

    def all_field_mappings(self) -> list[FieldMapping]:
        """Per-endpoint field mappings first, then common ones, in file order."""
        fields = [fm for ep in self.endpoint_mappings for fm in ep.field_mappings]
        fields.extend(self.common_field_mappings)
        return fields


@dataclass
class ScanCacheEntry:
    """Cached classification of one file, keyed by content digest."""

    content_digest: str
    cached_endpoints: list[EndpointRecord] = field(default_factory=list)


@dataclass(frozen=True)
class SearchResult:
    """One hit from a fuzzy mapping search."""

    type: str  # "field" | "endpoint"
    source_item: str
    target_item: str
    mapping: FieldMapping | EndpointMapping
    confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "source_item": self.source_item,
            "target_item": self.target_item,
            "confidence": self.confidence,
            "mapping": self.mapping.to_dict(),
        }


@dataclass(frozen=True)
class ComplexityReport:
    """Migration complexity for a set of legacy fields."""

    score: float
    complexity: str  # "low" | "medium" | "high"
    total_fields: int
    mapped_fields: int
    unmapped_fields: int
    deprecated_fields: int
    transformation_required: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EndpointAnalysis:
    """Per-endpoint migration analysis."""

    ssl_fields: list[str]
    endpoint_type: EndpointType
    complexity: str  # "simple" | "moderate" | "complex"
    migration_notes: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ssl_fields": list(self.ssl_fields),
            "endpoint_type": self.endpoint_type.value,
            "complexity": self.complexity,
            "migration_notes": list(self.migration_notes),
        }


@dataclass(frozen=True)
class ScanProgress:
    files_processed: int
    total_files: int | None
    current_file: str
    endpoints_found: int


@dataclass(frozen=True)
class ScanError:
    file_path: str
    error: str


@dataclass
class ScanOptions:
    """Options for a workspace or file-list scan."""

    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    max_file_size: int | None = None
    use_cache: bool = True
    progress_callback: Callable[[ScanProgress], None] | None = None
    cancellation: Any = None  # anything with is_set(), e.g. threading.Event


@dataclass
class ScanResult:
    endpoints: list[EndpointRecord] = field(default_factory=list)
    scanned_files: int = 0
    cache_hits: int = 0
    skipped_files: int = 0
    total_files: int = 0
    errors: list[ScanError] = field(default_factory=list)
    duration_ms: int = 0
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoints": [ep.to_dict() for ep in self.endpoints],
            "scanned_files": self.scanned_files,
            "cache_hits": self.cache_hits,
            "skipped_files": self.skipped_files,
            "total_files": self.total_files,
            "errors": [asdict(e) for e in self.errors],
            "duration_ms": self.duration_ms,
            "cancelled": self.cancelled,
        }
