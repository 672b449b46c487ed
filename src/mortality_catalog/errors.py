"""
mortality_catalog/errors.py - Catalog Error Taxonomy

FetchError  - the transfer of a detail document did not succeed
ParseError  - the payload arrived but is not a well-formed detail document

Both carry the retrieval path so callers can log which table failed.

License: MIT
"""

from typing import Optional


class CatalogError(Exception):
    """Base class for catalog failures."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"{path}: {reason}")


class FetchError(CatalogError):
    """Transport or status failure while retrieving a document."""

    def __init__(self, path: str, reason: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(path, reason)


class ParseError(CatalogError):
    """Document payload is not valid JSON or does not match the schema."""
