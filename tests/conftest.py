"""
tests/conftest.py - Shared fixtures: an on-disk catalog of converted tables.
"""

import json
import os
import sys

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from mortality_catalog.catalog import clear_index_cache
from mortality_catalog.errors import FetchError
from mortality_catalog.models import TableSummary
from mortality_catalog.provider import DataProvider


def make_document(identifier, identity=None, name=None, provider="Society of Actuaries",
                  description=None, keywords=None, version="1.0", tables=None):
    classification = {
        'tableIdentity': identity if identity is not None else identifier,
        'providerName': provider,
        'tableName': name or f"Table {identifier}",
        'keywords': keywords or [],
    }
    if description is not None:
        classification['tableDescription'] = description
    doc = {'identifier': identifier, 'version': version, 'classification': classification}
    if tables is not None:
        doc['tables'] = tables
    return doc


def select_ultimate_payload(index=0):
    return {
        'index': index,
        'metadata': {
            'scalingFactor': '0',
            'dataType': {'code': 'Float', 'label': 'Floating Point'},
            'nation': {'code': 'US', 'label': 'United States of America'},
            'tableDescription': 'Select rates',
            'axes': [
                {'id': 'Age', 'scaleType': {'code': 'Age', 'label': 'Age'},
                 'axisName': 'Issue Age', 'minValue': '30', 'maxValue': '31', 'increment': '1'},
            ],
        },
        'rates': [
            {'age': 30, 'duration': 1, 'rate': 0.001},
            {'age': 30, 'duration': 2, 'rate': 0.002},
            {'age': 31, 'duration': 1, 'rate': None},
        ],
    }


def summary(identity, name=None, **kwargs):
    values = dict(
        identifier=identity,
        table_identity=identity,
        name=name or f"Table {identity}",
        provider="Society of Actuaries",
        summary="",
        keywords=(),
        version="1.0",
        detail_path=f"/detail/{identity}.json",
    )
    values.update(kwargs)
    return TableSummary(**values)


@pytest.fixture(autouse=True)
def _fresh_index_cache():
    clear_index_cache()
    yield
    clear_index_cache()


@pytest.fixture
def catalog_dir(tmp_path):
    """Four converted tables plus a non-JSON file that must be ignored."""
    docs = {
        '10.json': make_document('10', name='1980 CSO Basic Male', keywords=['CSO', 'Basic'],
                                 description='Commissioners Standard Ordinary',
                                 tables=[select_ultimate_payload(0),
                                         {'index': 1, 'rates': [{'age': 5, 'rate': 0.01}]}]),
        '2.json': make_document('2', name='Annuity 2000 Female', keywords=['Annuity'],
                                provider='Life Office Association',
                                tables=[{'index': 0, 'rates': [{'age': 5, 'duration': None, 'rate': 0.01}]}]),
        '1.json': make_document('1', name='GAM-94 Male', keywords=['Group Annuity']),
        'A.json': make_document('A', name='Sample Alpha', provider='Example Insurer',
                                tables=[]),
    }
    for file_name, doc in docs.items():
        (tmp_path / file_name).write_text(json.dumps(doc))
    (tmp_path / 'README.txt').write_text('not a table')
    return tmp_path


class StaticProvider(DataProvider):
    """In-memory provider; paths listed in `failing` answer HTTP 500."""

    def __init__(self, documents, failing=()):
        self.summaries = [summary(identity, name=doc['classification']['tableName'],
                                  identifier=doc.get('identifier') or '')
                          for identity, doc in documents]
        self.raw = {s.detail_path: json.dumps(doc).encode('utf-8')
                    for s, (_, doc) in zip(self.summaries, documents)}
        self.failing = set(failing)
        self.requests = []

    def list_catalog(self):
        return list(self.summaries)

    def fetch_raw(self, detail_path):
        self.requests.append(detail_path)
        if detail_path in self.failing:
            raise FetchError(detail_path, "HTTP 500", status_code=500)
        if detail_path not in self.raw:
            raise FetchError(detail_path, "HTTP 404", status_code=404)
        return self.raw[detail_path]
