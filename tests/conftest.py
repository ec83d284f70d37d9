"""Shared test fixtures for converge_migrator tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Generator

import pytest

from converge_migrator.mapping import MappingDictionaryService, reset_dictionaries
from converge_migrator.patterns import reset_catalog


SAMPLE_DICTIONARY = {
    "version": "1.0.0",
    "lastUpdated": "2024-01-01",
    "endpoints": [
        {
            "convergeEndpoint": "/hosted-payments",
            "elavonEndpoint": "/v1/payments",
            "method": "POST",
            "description": "Process hosted payments",
            "fieldMappings": [
                {
                    "convergeField": "ssl_merchant_id",
                    "elavonField": "merchant_id",
                    "dataType": "string",
                    "required": True,
                    "maxLength": 50,
                },
                {
                    "convergeField": "ssl_amount",
                    "elavonField": "amount",
                    "dataType": "number",
                    "required": True,
                    "transformation": "currency_conversion",
                },
            ],
        },
        {
            "convergeEndpoint": "/ProcessTransactionOnline",
            "elavonEndpoint": "/v1/transactions",
            "method": "POST",
            "description": "Server-to-server transactions",
            "fieldMappings": [],
        },
    ],
    "commonFields": [
        {
            "convergeField": "ssl_card_number",
            "elavonField": "card_number",
            "dataType": "string",
            "required": True,
            "maxLength": 19,
        },
        {
            "convergeField": "ssl_exp_date",
            "elavonField": "expiry_date",
            "dataType": "string",
            "required": True,
            "transformation": "date_format",
            "deprecated": False,
        },
        {
            "convergeField": "ssl_old_field",
            "elavonField": "new_field",
            "dataType": "string",
            "required": False,
            "deprecated": True,
        },
    ],
    "transformationRules": {
        "currency_conversion": "Convert the decimal amount to minor units",
        "date_format": "Convert MMYY to separate month and year",
    },
    "migrationNotes": ["Credentials move to API keys"],
}


@pytest.fixture(autouse=True)
def fresh_state() -> Generator[None, None, None]:
    """Start every test with the default catalog and no memoised dictionaries."""
    reset_catalog()
    reset_dictionaries()
    yield
    reset_catalog()
    reset_dictionaries()


@pytest.fixture
def dictionary_data() -> dict:
    """A private copy of the sample dictionary document."""
    return json.loads(json.dumps(SAMPLE_DICTIONARY))


@pytest.fixture
def dictionary_file(tmp_path: Path, dictionary_data: dict) -> Path:
    """The sample dictionary written to disk."""
    path = tmp_path / "mapping.json"
    path.write_text(json.dumps(dictionary_data), encoding="utf-8")
    return path


@pytest.fixture
def mapping_service(dictionary_file: Path) -> MappingDictionaryService:
    return MappingDictionaryService(dictionary_file)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """An empty workspace root."""
    root = tmp_path / "workspace"
    root.mkdir()
    return root


@pytest.fixture
def write_file(workspace: Path) -> Callable[[str, str], Path]:
    """Write a file under the workspace, creating parent directories."""

    def _write(rel_path: str, content: str) -> Path:
        path = workspace / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
