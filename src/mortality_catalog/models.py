"""
mortality_catalog/models.py - Converted Table Document Model

Schema of the JSON documents produced by the XTbML converter, plus the
lightweight catalog records derived from them.

DOCUMENT STRUCTURE:
- ConvertedTable: one converted XTbML file
  - ClassificationPayload: provider, content type, keywords, free text
  - TablePayload[]: one entry per rate table in the file
    - TableMeta: axis definitions and table-level classification
    - RateEntry[]: (age, duration, rate) points

CATALOG RECORDS:
- TableSummary: immutable row shown in the catalog list
- TableIndexEntry: TableSummary plus the storage location of its document

All pydantic models accept the converter's camelCase field names and dump
back to them with by_alias=True.

License: MIT
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ParseError

Number = Union[int, float]


# =============================================================================
# DOCUMENT MODELS
# =============================================================================

class _Document(BaseModel):
    """Shared configuration for converter payloads."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ClassifiedValue(_Document):
    """A coded value with its human-readable label."""
    code: str = ""
    label: str = ""

    def describe(self) -> str:
        return f"{self.label} ({self.code})"


class AxisDefinition(_Document):
    """One axis of a rate table. Range values are kept as strings."""
    id: str = ""
    scale_type: ClassifiedValue = Field(default_factory=ClassifiedValue, alias="scaleType")
    axis_name: str = Field("", alias="axisName")
    min_value: str = Field("", alias="minValue")
    max_value: str = Field("", alias="maxValue")
    increment: str = ""


class TableMeta(_Document):
    """Table-level metadata attached to a payload."""
    scaling_factor: Optional[str] = Field(None, alias="scalingFactor")
    data_type: Optional[ClassifiedValue] = Field(None, alias="dataType")
    nation: Optional[ClassifiedValue] = None
    table_description: Optional[str] = Field(None, alias="tableDescription")
    axes: Optional[List[AxisDefinition]] = None


class RateEntry(_Document):
    """A single rate point. Duration is absent for attained-age tables."""
    age: Number
    duration: Optional[Number] = None
    rate: Optional[float] = None


class TablePayload(_Document):
    """One rate table variant inside a document."""
    index: Optional[int] = None
    metadata: Optional[TableMeta] = None
    rates: Optional[List[RateEntry]] = None

    def number(self, position: int) -> int:
        """Declared table index, falling back to the payload's position."""
        return self.index if self.index is not None else position

    @property
    def rate_count(self) -> int:
        return len(self.rates or [])

    def has_duration(self) -> bool:
        """True when any rate entry carries a numeric duration."""
        return any(entry.duration is not None for entry in self.rates or [])


class ClassificationPayload(_Document):
    """Descriptive metadata from the XTbML ContentClassification block."""
    table_identity: Optional[str] = Field(None, alias="tableIdentity")
    provider_domain: Optional[str] = Field(None, alias="providerDomain")
    provider_name: Optional[str] = Field(None, alias="providerName")
    table_reference: Optional[str] = Field(None, alias="tableReference")
    content_type: Optional[ClassifiedValue] = Field(None, alias="contentType")
    table_name: Optional[str] = Field(None, alias="tableName")
    table_description: Optional[str] = Field(None, alias="tableDescription")
    comments: Optional[str] = None
    keywords: Optional[List[str]] = None


class ConvertedTable(_Document):
    """A full detail document."""
    identifier: Optional[str] = None
    version: Optional[str] = None
    classification: Optional[ClassificationPayload] = None
    tables: Optional[List[TablePayload]] = None

    @property
    def table_count(self) -> int:
        return len(self.tables or [])

    def get_table(self, index: int) -> Optional[TablePayload]:
        """Payload at a position, or None when out of range."""
        tables = self.tables or []
        if 0 <= index < len(tables):
            return tables[index]
        return None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


def parse_detail(raw: Union[str, bytes], path: str = "<memory>") -> ConvertedTable:
    """
    Parse a detail document.

    Raises:
        ParseError: when the payload is not JSON or does not fit the schema
    """
    try:
        return ConvertedTable.model_validate_json(raw)
    except ValidationError as e:
        raise ParseError(path, f"malformed detail document ({e.error_count()} errors)") from e


# =============================================================================
# CATALOG RECORDS
# =============================================================================

@dataclass(frozen=True)
class TableSummary:
    """
    Lightweight catalog row, uniquely keyed by detail_path.

    Attributes:
        identifier: Document identifier (used in file names)
        table_identity: Sortable identity shown in the ID column
        name: Display name
        provider: Provider name
        summary: Description or comments
        keywords: Classification keywords
        version: XTbML version string
        detail_path: Canonical retrieval path of the full document
    """
    identifier: str
    table_identity: str
    name: str
    provider: str
    summary: str
    keywords: Tuple[str, ...]
    version: str
    detail_path: str

    @property
    def key(self) -> str:
        return self.detail_path

    def to_dict(self) -> Dict[str, Any]:
        """camelCase record as published in index.json."""
        return {
            'identifier': self.identifier,
            'tableIdentity': self.table_identity,
            'name': self.name,
            'provider': self.provider,
            'summary': self.summary,
            'keywords': list(self.keywords),
            'version': self.version,
            'detailPath': self.detail_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TableSummary':
        return cls(
            identifier=str(data.get('identifier') or ''),
            table_identity=str(data.get('tableIdentity') or ''),
            name=str(data.get('name') or ''),
            provider=str(data.get('provider') or ''),
            summary=str(data.get('summary') or ''),
            keywords=tuple(data.get('keywords') or ()),
            version=str(data.get('version') or ''),
            detail_path=str(data['detailPath']),
        )


@dataclass(frozen=True)
class TableIndexEntry(TableSummary):
    """Summary plus the on-disk location of its document."""
    file_path: str = ""
