"""
mortality_catalog/provider.py - Data Provider Interface (Strategy Pattern)

The presentation core never touches files or URLs directly. It asks a
DataProvider for:
- list_catalog(): the ordered catalog summaries (cached)
- fetch_raw(path): the raw bytes of a detail document
- fetch_detail(path): the parsed detail document

IMPLEMENTATIONS:
- DirectoryProvider: converted JSON files in a local directory
- HttpProvider: a static site serving /index.json and /detail/{id}.json

License: MIT
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .catalog import load_table_index
from .errors import FetchError, ParseError
from .models import ConvertedTable, TableIndexEntry, TableSummary, parse_detail

logger = logging.getLogger(__name__)


INDEX_PATH = "/index.json"


# =============================================================================
# ABSTRACT PROVIDER (STRATEGY INTERFACE)
# =============================================================================

class DataProvider(ABC):
    """
    Abstract source of catalog summaries and detail documents.

    Implementations raise FetchError when a transfer fails and ParseError
    when a payload is not a well-formed document.
    """

    @abstractmethod
    def list_catalog(self) -> List[TableSummary]:
        """Ordered catalog summaries. Idempotent and cached."""
        pass

    @abstractmethod
    def fetch_raw(self, detail_path: str) -> bytes:
        """Raw document bytes at a retrieval path."""
        pass

    def fetch_detail(self, detail_path: str) -> ConvertedTable:
        """Parsed document at a retrieval path."""
        return parse_detail(self.fetch_raw(detail_path), detail_path)

    def describe(self) -> str:
        return self.__class__.__name__


# =============================================================================
# DIRECTORY PROVIDER
# =============================================================================

class DirectoryProvider(DataProvider):
    """
    Serves the converted JSON documents of one directory.

    Retrieval paths are resolved through the catalog index, so only indexed
    documents can be fetched.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self._paths: Optional[Dict[str, str]] = None

    def _entries(self) -> List[TableIndexEntry]:
        return load_table_index(self.directory)

    def list_catalog(self) -> List[TableSummary]:
        return list(self._entries())

    def _file_for(self, detail_path: str) -> Path:
        if self._paths is None:
            self._paths = {entry.detail_path: entry.file_path for entry in self._entries()}
        file_path = self._paths.get(detail_path)
        if file_path is None:
            raise FetchError(detail_path, "no document at this path", status_code=404)
        return Path(file_path)

    def fetch_raw(self, detail_path: str) -> bytes:
        path = self._file_for(detail_path)
        try:
            return path.read_bytes()
        except OSError as e:
            raise FetchError(detail_path, f"read failed: {e}") from e

    def describe(self) -> str:
        return f"directory {self.directory}"


# =============================================================================
# HTTP PROVIDER
# =============================================================================

def build_retry_session(max_retries: int = 3) -> requests.Session:
    """
    requests Session with conservative GET retries.

    Static hosts occasionally answer 429/5xx under load.
    """
    session = requests.Session()

    retry = Retry(
        total=max_retries,
        connect=max_retries,
        read=max_retries,
        status=max_retries,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
        raise_on_status=False,
    )

    adapter = HTTPAdapter(max_retries=retry, pool_connections=4, pool_maxsize=4)
    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


class HttpProvider(DataProvider):
    """
    Reads a published catalog site.

    The site exposes index.json (camelCase TableSummary records, already in
    catalog order) and one JSON document per retrieval path.
    """

    def __init__(self, base_url: str, timeout: float = 30.0,
                 max_retries: int = 3, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or build_retry_session(max_retries)
        self._catalog: Optional[List[TableSummary]] = None

    def _url(self, path: str) -> str:
        if not path.startswith('/'):
            path = '/' + path
        return f"{self.base_url}{path}"

    def _get(self, path: str) -> requests.Response:
        try:
            resp = self.session.get(self._url(path), timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(path, f"request failed: {e}") from e
        if not resp.ok:
            raise FetchError(path, f"HTTP {resp.status_code}", status_code=resp.status_code)
        return resp

    def list_catalog(self) -> List[TableSummary]:
        if self._catalog is not None:
            return self._catalog

        resp = self._get(INDEX_PATH)
        try:
            records = json.loads(resp.content)
            catalog = [TableSummary.from_dict(record) for record in records]
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise ParseError(INDEX_PATH, f"malformed catalog index: {e}") from e

        self._catalog = catalog
        logger.info(f"Catalog loaded: {len(catalog)} tables from {self.base_url}")
        return catalog

    def fetch_raw(self, detail_path: str) -> bytes:
        return self._get(detail_path).content

    def describe(self) -> str:
        return f"site {self.base_url}"


def create_provider(source: Union[str, Path], timeout: float = 30.0,
                    max_retries: int = 3) -> DataProvider:
    """
    Factory: http(s) URLs get an HttpProvider, anything else is a directory.
    """
    text = str(source)
    if text.startswith(('http://', 'https://')):
        return HttpProvider(text, timeout=timeout, max_retries=max_retries)
    return DirectoryProvider(text)
