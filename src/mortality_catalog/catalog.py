"""
mortality_catalog/catalog.py - Catalog Index Builder

Builds the searchable catalog from a directory of converted JSON documents.

RESOLUTION ORDER (per document):
- identity:  classification.tableIdentity -> identifier -> file name stem
- name:      classification.tableName -> identifier -> identity
- provider:  classification.providerName -> "Unknown provider"
- summary:   classification.tableDescription -> classification.comments -> ""

ORDERING:
Numeric identities sort first and by value; everything else sorts by
collated identity, then collated name. The order is total, so the catalog
is stable across rebuilds even with duplicate identities.

The index is built once per directory and cached for the process lifetime.

License: MIT
"""

import functools
import logging
import math
import re
import unicodedata
from pathlib import Path
from typing import Dict, List, Tuple, Union
from urllib.parse import quote

from .errors import FetchError
from .models import ConvertedTable, TableIndexEntry, parse_detail

logger = logging.getLogger(__name__)


UNKNOWN_PROVIDER = "Unknown provider"
DETAIL_PREFIX = "/detail/"

# Characters encodeURIComponent leaves untouched besides alphanumerics
_URI_COMPONENT_SAFE = "-_.!~*'()"

_JSON_SUFFIX = re.compile(r"\.json$", re.IGNORECASE)
_RADIX_PREFIX = {'0x': 16, '0o': 8, '0b': 2}

# Process-wide cache keyed by resolved directory
_INDEX_CACHE: Dict[str, List[TableIndexEntry]] = {}


# =============================================================================
# IDENTITY HELPERS
# =============================================================================

def _first_present(*values):
    """First value that is not None (the last one is the default)."""
    for value in values:
        if value is not None:
            return value
    return values[-1]


def detail_path_for(identifier: str) -> str:
    """Canonical retrieval path: /detail/{percent-encoded identifier}.json"""
    return f"{DETAIL_PREFIX}{quote(identifier, safe=_URI_COMPONENT_SAFE)}.json"


def parse_identity(identity: str) -> Tuple[float, bool]:
    """
    Parse an identity the way a JavaScript Number() conversion does.

    The whole string must be numeric (surrounding whitespace allowed, the
    empty string counts as 0). Hex/octal/binary literals and Infinity are
    accepted; Python-only spellings such as "nan", "inf" or "1_000" are not.

    Returns:
        (value, is_numeric)
    """
    text = identity.strip()
    if not text:
        return 0.0, True
    if '_' in text:
        return 0.0, False

    radix = _RADIX_PREFIX.get(text[:2].lower())
    if radix is not None:
        try:
            return float(int(text[2:], radix)), True
        except ValueError:
            return 0.0, False

    unsigned = text.lstrip('+-')
    if unsigned == 'Infinity':
        return (-math.inf if text.startswith('-') else math.inf), True
    if not unsigned or unsigned[0] not in '0123456789.':
        return 0.0, False
    try:
        return float(text), True
    except ValueError:
        return 0.0, False


def collation_key(text: str) -> Tuple[str, str, str]:
    """
    Locale-style sort key: accents and case are secondary/tertiary.

    "apple" < "Apple" < "Banana" < "banane", and distinct strings never
    collate equal.
    """
    decomposed = unicodedata.normalize('NFKD', text)
    base = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), decomposed.casefold(), text.swapcase()


def _collate(a: str, b: str) -> int:
    ka, kb = collation_key(a), collation_key(b)
    return (ka > kb) - (ka < kb)


def compare_identities(a_id: str, b_id: str, a_name: str, b_name: str) -> int:
    """
    Composite catalog comparator.

    1. Both numeric and different -> numeric order
    2. Numeric before non-numeric
    3. Different identity strings -> collated identity order
    4. Identical identities -> collated name order
    """
    a_num, a_is_number = parse_identity(a_id)
    b_num, b_is_number = parse_identity(b_id)

    if a_is_number and b_is_number and a_num != b_num:
        return -1 if a_num < b_num else 1
    if a_is_number and not b_is_number:
        return -1
    if not a_is_number and b_is_number:
        return 1
    if a_id != b_id:
        return _collate(a_id, b_id)
    return _collate(a_name, b_name)


def sort_entries(entries: List[TableIndexEntry]) -> List[TableIndexEntry]:
    """Return entries in catalog order."""
    return sorted(entries, key=functools.cmp_to_key(
        lambda a, b: compare_identities(a.table_identity, b.table_identity, a.name, b.name)
    ))


# =============================================================================
# INDEX BUILDER
# =============================================================================

def build_index_entry(detail: ConvertedTable, file_path: Union[str, Path],
                      file_name: str) -> TableIndexEntry:
    """
    Derive the catalog record for one detail document.

    Args:
        detail: Parsed detail document
        file_path: Storage location of the document
        file_name: File name, used when the document carries no identity
    """
    classification = detail.classification
    c_identity = classification.table_identity if classification else None
    c_name = classification.table_name if classification else None

    # Only missing values fall through; an empty string is kept as given
    table_identity = _first_present(c_identity, detail.identifier, _JSON_SUFFIX.sub('', file_name))
    name = _first_present(c_name, detail.identifier, table_identity)

    provider = UNKNOWN_PROVIDER
    summary = ""
    keywords: Tuple[str, ...] = ()
    if classification is not None:
        provider = _first_present(classification.provider_name, UNKNOWN_PROVIDER)
        summary = _first_present(classification.table_description, classification.comments, "")
        keywords = tuple(_first_present(classification.keywords, ()))

    identifier = _first_present(detail.identifier, table_identity)

    return TableIndexEntry(
        identifier=identifier,
        table_identity=table_identity,
        name=name,
        provider=provider,
        summary=summary,
        keywords=keywords,
        version=_first_present(detail.version, ""),
        detail_path=detail_path_for(identifier),
        file_path=str(file_path),
    )


def load_table_index(directory: Union[str, Path]) -> List[TableIndexEntry]:
    """
    Build (or return the cached) catalog for a directory of JSON documents.

    Only regular *.json files directly inside the directory are indexed.

    Raises:
        FetchError: directory missing or unreadable file
        ParseError: a document is malformed
    """
    root = Path(directory).resolve()
    cache_key = str(root)
    cached = _INDEX_CACHE.get(cache_key)
    if cached is not None:
        return cached

    if not root.is_dir():
        raise FetchError(cache_key, "catalog directory not found")

    entries = []
    for path in sorted(root.iterdir()):
        if not path.is_file() or path.suffix != '.json':
            continue
        try:
            raw = path.read_bytes()
        except OSError as e:
            raise FetchError(str(path), f"read failed: {e}") from e
        detail = parse_detail(raw, str(path))
        entries.append(build_index_entry(detail, path, path.name))

    ordered = sort_entries(entries)
    _INDEX_CACHE[cache_key] = ordered
    logger.info(f"Catalog indexed: {len(ordered)} tables from {root}")
    return ordered


def clear_index_cache() -> None:
    """Drop cached catalogs (test isolation only)."""
    _INDEX_CACHE.clear()
