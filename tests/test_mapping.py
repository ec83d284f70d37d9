"""Tests for the mapping dictionary resolver."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from converge_migrator.errors import ConfigurationError, ValidationError
from converge_migrator.mapping import (
    MappingDictionaryService,
    dictionary_to_dict,
    parse_dictionary,
)


def _write(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Loading and validation
# ---------------------------------------------------------------------------


def test_load(mapping_service):
    dictionary = mapping_service.load()
    assert dictionary.version == "1.0.0"
    assert len(dictionary.endpoint_mappings) == 2
    assert dictionary.migration_notes == ("Credentials move to API keys",)


def test_missing_endpoints_fails(tmp_path, dictionary_data):
    """A dictionary without endpoints is rejected with a message naming them."""
    del dictionary_data["endpoints"]
    service = MappingDictionaryService(_write(tmp_path / "m.json", dictionary_data))
    with pytest.raises(ValidationError, match="missing or invalid endpoints"):
        service.load()


def test_missing_version_fails(tmp_path, dictionary_data):
    del dictionary_data["version"]
    service = MappingDictionaryService(_write(tmp_path / "m.json", dictionary_data))
    with pytest.raises(ValidationError, match="missing version"):
        service.load()


def test_non_semver_version_fails(tmp_path, dictionary_data):
    dictionary_data["version"] = "1.0"
    service = MappingDictionaryService(_write(tmp_path / "m.json", dictionary_data))
    with pytest.raises(ValidationError, match="MAJOR.MINOR.PATCH"):
        service.load()


def test_bad_method_fails(tmp_path, dictionary_data):
    dictionary_data["endpoints"][0]["method"] = "FETCH"
    service = MappingDictionaryService(_write(tmp_path / "m.json", dictionary_data))
    with pytest.raises(ValidationError, match="/hosted-payments"):
        service.load()


def test_first_violation_is_reported(tmp_path, dictionary_data):
    """Validation stops at the first problem instead of collecting them."""
    del dictionary_data["commonFields"][0]["dataType"]
    dictionary_data["commonFields"][1]["elavonField"] = ""
    service = MappingDictionaryService(_write(tmp_path / "m.json", dictionary_data))
    with pytest.raises(ValidationError, match="ssl_card_number: missing data type"):
        service.load()


def test_non_string_field_name_fails(tmp_path, dictionary_data):
    dictionary_data["commonFields"].append({"convergeField": 5, "elavonField": "x", "dataType": "string"})
    service = MappingDictionaryService(_write(tmp_path / "m.json", dictionary_data))
    with pytest.raises(ValidationError, match="convergeField 5 is not a string"):
        service.load()


def test_non_string_endpoint_url_fails(tmp_path, dictionary_data):
    dictionary_data["endpoints"][1]["elavonEndpoint"] = ["/v1/transactions"]
    service = MappingDictionaryService(_write(tmp_path / "m.json", dictionary_data))
    with pytest.raises(ValidationError, match="elavonEndpoint"):
        service.load()


def test_invalid_json_fails(tmp_path):
    path = tmp_path / "m.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="invalid JSON"):
        MappingDictionaryService(path).load()


def test_missing_file_fails(tmp_path):
    service = MappingDictionaryService(tmp_path / "nope.json")
    assert not service.exists()
    with pytest.raises(ConfigurationError):
        service.load()


def test_optional_sections_default_to_empty(tmp_path, dictionary_data):
    del dictionary_data["transformationRules"]
    del dictionary_data["migrationNotes"]
    dictionary = MappingDictionaryService(_write(tmp_path / "m.json", dictionary_data)).load()
    assert dictionary.transformation_rules == {}
    assert dictionary.migration_notes == ()


def test_serialise_and_parse_again(dictionary_data):
    dictionary = parse_dictionary(dictionary_data)
    assert parse_dictionary(dictionary_to_dict(dictionary)) == dictionary


def test_bundled_dictionary():
    service = MappingDictionaryService()
    assert service.exists()
    assert service.load().version == "1.2.0"
    assert service.get_field_mapping("ssl_merchant_id").target_field == "merchantAlias"


def test_bundled_field_pairs_are_retrievable():
    """Each legacy field in the shipped dictionary has a single target."""
    service = MappingDictionaryService()
    for fm in service.load().all_field_mappings():
        found = service.get_field_mapping(fm.source_field)
        assert (found.source_field, found.target_field) == (fm.source_field, fm.target_field)


# ---------------------------------------------------------------------------
# Memoisation and reload
# ---------------------------------------------------------------------------


def test_dictionary_is_memoised_per_path(dictionary_file):
    first = MappingDictionaryService(dictionary_file).load()
    second = MappingDictionaryService(dictionary_file).load()
    assert first is second


def test_reload_replaces_memo(dictionary_file, dictionary_data):
    service = MappingDictionaryService(dictionary_file)
    assert service.load().version == "1.0.0"

    dictionary_data["version"] = "1.1.0"
    _write(dictionary_file, dictionary_data)
    assert service.load().version == "1.0.0"

    assert service.reload().version == "1.1.0"
    assert MappingDictionaryService(dictionary_file).load().version == "1.1.0"


def test_failed_reload_keeps_previous(dictionary_file):
    service = MappingDictionaryService(dictionary_file)
    before = service.load()
    dictionary_file.write_text("{", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        service.reload()
    assert service.load() is before


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def test_field_lookup_is_case_insensitive(mapping_service):
    assert mapping_service.get_field_mapping("SSL_CARD_NUMBER").target_field == "card_number"
    assert mapping_service.get_field_mapping("non_existent") is None


def test_every_field_pair_is_retrievable(mapping_service):
    for fm in mapping_service.load().all_field_mappings():
        found = mapping_service.get_field_mapping(fm.source_field.upper())
        assert (found.source_field, found.target_field) == (fm.source_field, fm.target_field)


def test_endpoint_fields_win_over_common(tmp_path, dictionary_data):
    dictionary_data["commonFields"].append({
        "convergeField": "ssl_amount",
        "elavonField": "common_amount",
        "dataType": "number",
    })
    service = MappingDictionaryService(_write(tmp_path / "m.json", dictionary_data))
    assert service.get_field_mapping("ssl_amount").target_field == "amount"


def test_get_field_mappings_skips_unmapped(mapping_service):
    mappings = mapping_service.get_field_mappings(["ssl_amount", "nope"])
    assert list(mappings) == ["ssl_amount"]


def test_endpoint_lookup(mapping_service):
    assert mapping_service.get_endpoint_mapping("/hosted-payments").target_endpoint == "/v1/payments"
    assert mapping_service.get_endpoint_mapping("/HOSTED-PAYMENTS").target_endpoint == "/v1/payments"


def test_endpoint_lookup_by_substring(mapping_service):
    """Either side may contain the other."""
    longer = mapping_service.get_endpoint_mapping("/hosted-payments/transaction_token")
    shorter = mapping_service.get_endpoint_mapping("ProcessTransaction")
    assert longer.target_endpoint == "/v1/payments"
    assert shorter.target_endpoint == "/v1/transactions"


def test_endpoint_lookup_miss(mapping_service):
    assert mapping_service.get_endpoint_mapping("/unknown") is None
    assert mapping_service.get_endpoint_mapping("") is None


def test_deprecated_fields(mapping_service):
    assert [fm.source_field for fm in mapping_service.get_deprecated_fields()] == ["ssl_old_field"]


def test_transformation_rule(mapping_service):
    assert mapping_service.get_transformation_rule("ssl_amount") == "Convert the decimal amount to minor units"
    assert mapping_service.get_transformation_rule("ssl_card_number") is None


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def test_search_ranking_is_non_increasing(mapping_service):
    results = mapping_service.search_mappings("ssl")
    assert results
    confidences = [r.confidence for r in results]
    assert confidences == sorted(confidences, reverse=True)
    assert all(0 < c < 1 for c in confidences)


def test_search_exact_match_first(mapping_service):
    results = mapping_service.search_mappings("card_number")
    assert results[0].source_item == "ssl_card_number"
    assert results[0].confidence == 1.0


def test_search_ties_keep_dictionary_order(mapping_service):
    names = [r.source_item for r in mapping_service.search_mappings("ssl_")]
    assert names.index("ssl_merchant_id") < names.index("ssl_card_number")


def test_search_includes_endpoints(mapping_service):
    results = mapping_service.search_mappings("payments")
    endpoints = [r for r in results if r.type == "endpoint"]
    assert [r.source_item for r in endpoints] == ["/hosted-payments"]
    assert endpoints[0].confidence == pytest.approx(8 / 12)


def test_search_blank_term(mapping_service):
    assert mapping_service.search_mappings("  ") == []


# ---------------------------------------------------------------------------
# Complexity
# ---------------------------------------------------------------------------


def test_complexity_mostly_unmapped(mapping_service):
    report = mapping_service.get_migration_complexity(["non_existent1", "non_existent2", "ssl_card_number"])
    assert report.total_fields == 3
    assert report.mapped_fields == 1
    assert report.unmapped_fields == 2
    assert report.score == pytest.approx(73.33, abs=0.01)
    assert report.complexity == "low"


def test_complexity_one_unmapped_with_transforms(mapping_service):
    """100 - 1/3 * 40 - 2/3 * 20"""
    report = mapping_service.get_migration_complexity(["ssl_amount", "ssl_exp_date", "non_existent"])
    assert report.transformation_required == 2
    assert report.score == pytest.approx(73.33, abs=0.01)
    assert report.complexity == "low"


def test_complexity_boundary_is_medium(mapping_service):
    report = mapping_service.get_migration_complexity(["a", "b", "c", "ssl_card_number"])
    assert report.score == pytest.approx(70.0)
    assert report.complexity == "medium"


def test_complexity_high(dictionary_file):
    service = MappingDictionaryService(dictionary_file, transform_weight=100)
    report = service.get_migration_complexity(["ssl_amount", "ssl_exp_date", "non_existent"])
    assert report.score == pytest.approx(20.0)
    assert report.complexity == "high"


def test_complexity_counts_deprecated_without_penalty(mapping_service):
    report = mapping_service.get_migration_complexity(["ssl_card_number", "non_existent", "ssl_old_field"])
    assert report.mapped_fields == 2
    assert report.deprecated_fields == 1
    assert report.score == pytest.approx(86.67, abs=0.01)


def test_complexity_of_nothing(mapping_service):
    report = mapping_service.get_migration_complexity([])
    assert report.score == 100.0
    assert report.complexity == "low"


# ---------------------------------------------------------------------------
# Code generation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("language,expected", [
    ("javascript", "const card_number = convergeData.ssl_card_number;"),
    ("php", "$card_number = $convergeData['ssl_card_number'];"),
    ("python", "card_number = converge_data['ssl_card_number']"),
    ("java", "String card_number = convergeData.getSslCardNumber();"),
    ("csharp", "var card_number = convergeData.SslCardNumber;"),
    ("ruby", "card_number = converge_data[:ssl_card_number]"),
])
def test_generate_code(mapping_service, language, expected):
    code = mapping_service.generate_migration_code("ssl_card_number", language)
    assert "Migration: ssl_card_number -> card_number" in code
    assert expected in code
    assert "Transformation required" not in code


def test_generate_code_with_transformation(mapping_service):
    code = mapping_service.generate_migration_code("ssl_amount", "javascript")
    assert "// Transformation required: Convert the decimal amount to minor units" in code
    assert "const amount = transformSslAmount(convergeData.ssl_amount);" in code


def test_generate_code_dotted_target():
    code = MappingDictionaryService().generate_migration_code("ssl_amount", "python")
    assert "total_amount = transform_ssl_amount(converge_data['ssl_amount'])" in code


def test_generate_code_misses(mapping_service):
    assert mapping_service.generate_migration_code("non_existent", "javascript") is None
    assert mapping_service.generate_migration_code("ssl_card_number", "cobol") is None


def test_generate_code_custom_template(tmp_path, dictionary_file):
    templates = tmp_path / "templates"
    templates.mkdir()
    (templates / "javascript.j2").write_text("custom {{ source }} => {{ target }}", encoding="utf-8")
    config = {"mapping": {"dictionary_path": str(dictionary_file), "template_dir": str(templates)}}

    service = MappingDictionaryService.from_config(config)

    assert service.generate_migration_code("ssl_card_number") == "custom ssl_card_number => card_number"
    assert "converge_data" in service.generate_migration_code("ssl_card_number", "python")


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


def test_mapping_statistics(mapping_service):
    assert mapping_service.get_mapping_statistics() == {
        "total_endpoints": 2,
        "total_field_mappings": 5,
        "common_fields": 3,
        "deprecated_fields": 1,
        "transformation_rules": 2,
        "version": "1.0.0",
        "last_updated": "2024-01-01",
    }
