"""
Shared fakes for the import pipeline tests.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import json
import threading
from types import SimpleNamespace

import pytest

from app.utils.candidates import PropertyCatalogEntry
from app.utils.errors import CatalogUnavailable, ExtractionFailure


class ScriptedClient:
    """
    Provider client answering by marker.

    `responses` maps a marker (text expected in the document) to either a
    raw response string, a dict (serialized to JSON), or an exception to raise.
    """

    def __init__(self, responses, on_call=None):
        self.responses = responses
        self.on_call = on_call
        self.requests = []
        self._lock = threading.Lock()

    def extract_structured(self, request, cancel_event=None):
        with self._lock:
            self.requests.append(request)

        for marker, response in self.responses.items():
            if marker in request.document_text:
                if self.on_call is not None:
                    self.on_call(marker, cancel_event)
                if isinstance(response, Exception):
                    raise response
                if isinstance(response, dict):
                    return "```json\n" + json.dumps(response, ensure_ascii=False) + "\n```"
                return response

        raise ExtractionFailure("no scripted response")


class FakeRepository:
    """In-memory stand-in for ReservationRepository."""

    def __init__(self, catalog=None, catalog_error=False):
        self.catalog = list(catalog or [])
        self.catalog_error = catalog_error
        self.saved = []
        self.activities = []
        self.imported = {}

    def get_property_catalog(self):
        if self.catalog_error:
            raise CatalogUnavailable("connection refused")
        return list(self.catalog)

    def save_reservation(self, reservation, property_id):
        self.saved.append((reservation, property_id))
        return len(self.saved)

    def save_activity_log(self, activity_type, description, entity_id=None, entity_type=None, metadata=None):
        self.activities.append({
            'type': activity_type,
            'description': description,
            'entity_id': entity_id,
            'metadata': metadata or {},
        })

    def is_document_imported(self, file_hash):
        return file_hash in self.imported

    def mark_document_imported(self, file_hash, filename, role):
        self.imported[file_hash] = (filename, role)


@pytest.fixture
def catalog():
    return [
        PropertyCatalogEntry(id=1, canonical_name="Aroeira II", aliases=frozenset({"Aroeira 2"})),
        PropertyCatalogEntry(id=2, canonical_name="Apartamento Central Lisboa", aliases=frozenset({"Central Lisboa"})),
        PropertyCatalogEntry(id=3, canonical_name="Casa do Mar Azul", aliases=frozenset()),
        PropertyCatalogEntry(id=4, canonical_name="Casa do Mar", aliases=frozenset({"Mar House"})),
    ]


@pytest.fixture
def repository(catalog):
    return FakeRepository(catalog=catalog)


@pytest.fixture
def config():
    return SimpleNamespace(
        MATCH_MIN_SCORE=60,
        CONFIDENT_MATCH_SCORE=80,
        SUGGESTION_LIMIT=3,
        MAX_STAY_NIGHTS=30,
        MAX_RESERVATION_AMOUNT="50000",
        IMPORT_MAX_WORKERS=4,
    )
