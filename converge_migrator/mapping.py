"""
Mapping dictionary resolver.

Loads the versioned legacy -> target mapping knowledge base from JSON,
validates it, and answers field/endpoint lookups, fuzzy searches,
complexity scoring and snippet generation against it.

Loaded dictionaries are memoised per resolved file path for the life of the
process. A reload builds the new dictionary completely before replacing the
memo entry, and every query works on the snapshot it read when it started.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from converge_migrator.codegen import SnippetRenderer
from converge_migrator.config import DEFAULT_TRANSFORM_WEIGHT
from converge_migrator.errors import ConfigurationError, ValidationError
from converge_migrator.models import (
    ComplexityReport,
    EndpointMapping,
    FieldMapping,
    MappingDictionary,
    SearchResult,
)

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


BUNDLED_DICTIONARY = Path(__file__).parent / "resources" / "mapping.json"

ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE", "PATCH"})

_SEMVER = re.compile(r"^\d+\.\d+\.\d+$")


def _is_iso_timestamp(value: str) -> bool:
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        datetime.fromisoformat(text)
    except ValueError:
        return False
    return True


def _validate_field(entry: Any) -> None:
    if not isinstance(entry, dict):
        raise ValidationError("Invalid field mapping: entry is not an object")
    for key in ("convergeField", "elavonField"):
        value = entry.get(key)
        if not value:
            raise ValidationError("Invalid field mapping: missing field names")
        if not isinstance(value, str):
            raise ValidationError(f"Invalid field mapping: {key} {value!r} is not a string")
    data_type = entry.get("dataType")
    if not data_type:
        raise ValidationError(f"Invalid field mapping for {entry['convergeField']}: missing data type")
    if not isinstance(data_type, str):
        raise ValidationError(
            f"Invalid field mapping for {entry['convergeField']}: dataType {data_type!r} is not a string"
        )


def validate_dictionary(data: Any) -> None:
    """
    Check a parsed mapping document, stopping at the first problem.

    Raises:
        ValidationError: With a message naming the first violation found.
    """
    if not isinstance(data, dict):
        raise ValidationError("Mapping dictionary must be a JSON object")

    version = data.get("version")
    if not version:
        raise ValidationError("Mapping dictionary missing version")
    if not isinstance(version, str) or not _SEMVER.match(version):
        raise ValidationError(f"Mapping dictionary version {version!r} is not MAJOR.MINOR.PATCH")

    last_updated = data.get("lastUpdated")
    if not last_updated:
        raise ValidationError("Mapping dictionary missing lastUpdated")
    if not isinstance(last_updated, str) or not _is_iso_timestamp(last_updated):
        raise ValidationError(f"Mapping dictionary lastUpdated {last_updated!r} is not an ISO-8601 timestamp")

    endpoints = data.get("endpoints")
    if not isinstance(endpoints, list):
        raise ValidationError("Mapping dictionary missing or invalid endpoints")

    common = data.get("commonFields")
    if not isinstance(common, list):
        raise ValidationError("Mapping dictionary missing or invalid common fields")

    for endpoint in endpoints:
        if not isinstance(endpoint, dict):
            raise ValidationError("Invalid endpoint mapping: entry is not an object")
        for key in ("convergeEndpoint", "elavonEndpoint"):
            value = endpoint.get(key)
            if not value:
                raise ValidationError("Invalid endpoint mapping: missing endpoint URLs")
            if not isinstance(value, str):
                raise ValidationError(f"Invalid endpoint mapping: {key} {value!r} is not a string")
        method = endpoint.get("method")
        if method not in ALLOWED_METHODS:
            raise ValidationError(
                f"Invalid endpoint mapping for {endpoint['convergeEndpoint']}: "
                f"method {method!r} not in {sorted(ALLOWED_METHODS)}"
            )
        if not isinstance(endpoint.get("fieldMappings"), list):
            raise ValidationError(
                f"Invalid endpoint mapping for {endpoint['convergeEndpoint']}: missing field mappings"
            )

    for endpoint in endpoints:
        for entry in endpoint["fieldMappings"]:
            _validate_field(entry)
    for entry in common:
        _validate_field(entry)

    rules = data.get("transformationRules", {})
    if not isinstance(rules, dict):
        raise ValidationError("Mapping dictionary transformationRules must be an object")
    notes = data.get("migrationNotes", [])
    if not isinstance(notes, list):
        raise ValidationError("Mapping dictionary migrationNotes must be a list")


def parse_dictionary(data: Any) -> MappingDictionary:
    """Validate a parsed mapping document and build the typed model."""
    validate_dictionary(data)
    return MappingDictionary(
        version=data["version"],
        last_updated=data["lastUpdated"],
        endpoint_mappings=tuple(EndpointMapping.from_dict(e) for e in data["endpoints"]),
        common_field_mappings=tuple(FieldMapping.from_dict(f) for f in data["commonFields"]),
        transformation_rules={str(k): str(v) for k, v in (data.get("transformationRules") or {}).items()},
        migration_notes=tuple(str(n) for n in (data.get("migrationNotes") or [])),
    )


def dictionary_to_dict(dictionary: MappingDictionary) -> dict[str, Any]:
    """Serialise a dictionary back to the on-disk JSON shape."""

    def field_dict(fm: FieldMapping) -> dict[str, Any]:
        out: dict[str, Any] = {
            "convergeField": fm.source_field,
            "elavonField": fm.target_field,
            "dataType": fm.data_type,
            "required": fm.required,
        }
        if fm.max_length is not None:
            out["maxLength"] = fm.max_length
        if fm.valid_values:
            out["validValues"] = list(fm.valid_values)
        if fm.transformation:
            out["transformation"] = fm.transformation
        if fm.notes:
            out["notes"] = fm.notes
        if fm.deprecated:
            out["deprecated"] = True
        return out

    endpoints = []
    for ep in dictionary.endpoint_mappings:
        entry: dict[str, Any] = {
            "convergeEndpoint": ep.source_endpoint,
            "elavonEndpoint": ep.target_endpoint,
            "method": ep.method,
            "description": ep.description,
            "fieldMappings": [field_dict(fm) for fm in ep.field_mappings],
        }
        if ep.notes:
            entry["notes"] = ep.notes
        endpoints.append(entry)

    return {
        "version": dictionary.version,
        "lastUpdated": dictionary.last_updated,
        "endpoints": endpoints,
        "commonFields": [field_dict(fm) for fm in dictionary.common_field_mappings],
        "transformationRules": dict(dictionary.transformation_rules),
        "migrationNotes": list(dictionary.migration_notes),
    }


def load_dictionary_file(path: Path) -> MappingDictionary:
    """
    Read, parse and validate a mapping dictionary file.

    Raises:
        ConfigurationError: If the file can't be read or isn't valid JSON.
        ValidationError: If the document is structurally invalid.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Failed to load mapping dictionary {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Failed to load mapping dictionary {path}: invalid JSON ({e})") from e

    return parse_dictionary(data)


@dataclass
class _SearchEntry:
    type: str
    source: str
    target: str
    keys: tuple[str, ...]
    mapping: FieldMapping | EndpointMapping


@dataclass
class MappingIndex:
    """A loaded dictionary with its lookup tables, built together."""

    dictionary: MappingDictionary
    fields: dict[str, FieldMapping] = field(default_factory=dict)
    endpoints: dict[str, EndpointMapping] = field(default_factory=dict)
    search_entries: list[_SearchEntry] = field(default_factory=list)

    @classmethod
    def build(cls, dictionary: MappingDictionary) -> "MappingIndex":
        index = cls(dictionary)

        # Per-endpoint mappings take precedence over common ones
        for fm in dictionary.all_field_mappings():
            index.fields.setdefault(fm.source_field.lower(), fm)
            index.search_entries.append(_SearchEntry(
                type="field",
                source=fm.source_field,
                target=fm.target_field,
                keys=(fm.source_field.lower(), fm.target_field.lower()),
                mapping=fm,
            ))

        for ep in dictionary.endpoint_mappings:
            index.endpoints.setdefault(ep.source_endpoint.lower(), ep)
            index.search_entries.append(_SearchEntry(
                type="endpoint",
                source=ep.source_endpoint,
                target=ep.target_endpoint,
                keys=(ep.source_endpoint.lower(), ep.target_endpoint.lower()),
                mapping=ep,
            ))

        return index


# Resolved path -> loaded index. Entries are replaced, never mutated.
_dictionaries: dict[str, MappingIndex] = {}


def _memo_key(path: Path) -> str:
    return str(Path(path).resolve())


def get_mapping_index(path: Path | None = None) -> MappingIndex:
    """Return the memoised index for a dictionary file, loading it on first use."""
    path = Path(path) if path else BUNDLED_DICTIONARY
    key = _memo_key(path)
    index = _dictionaries.get(key)
    if index is None:
        index = MappingIndex.build(load_dictionary_file(path))
        _dictionaries[key] = index
        logger.info(
            "Mapping dictionary loaded from %s (version %s)",
            path, index.dictionary.version,
        )
    return index


def reload_mapping_index(path: Path | None = None) -> MappingIndex:
    """Re-read a dictionary file and swap it in; on failure the old entry stays."""
    path = Path(path) if path else BUNDLED_DICTIONARY
    index = MappingIndex.build(load_dictionary_file(path))
    _dictionaries[_memo_key(path)] = index
    logger.info("Mapping dictionary reloaded from %s (version %s)", path, index.dictionary.version)
    return index


def reset_dictionaries() -> None:
    """Forget every memoised dictionary."""
    _dictionaries.clear()


def _partial_score(query: str, key: str) -> float:
    if not key:
        return 0.0
    if key == query:
        return 1.0
    if query in key or key in query:
        shorter, longer = sorted((len(query), len(key)))
        return shorter / longer
    return 0.0


def complexity_bucket(score: float) -> str:
    if score > 70:
        return "low"
    if score >= 40:
        return "medium"
    return "high"


class MappingDictionaryService:
    """
    Query interface over one mapping dictionary file.

    Lookups that find nothing return None (or an empty collection); only
    loading can raise.
    """

    def __init__(
        self,
        dictionary_path: Path | str | None = None,
        transform_weight: float = DEFAULT_TRANSFORM_WEIGHT,
        renderer: SnippetRenderer | None = None,
    ) -> None:
        """
        Args:
            dictionary_path: Mapping JSON file. Defaults to the bundled one.
            transform_weight: Score penalty for a field set where every
                mapped field needs a transformation.
            renderer: Snippet renderer; a default one is created if omitted.
        """
        self.dictionary_path = Path(dictionary_path) if dictionary_path else BUNDLED_DICTIONARY
        self.transform_weight = float(transform_weight)
        self.renderer = renderer or SnippetRenderer()

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "MappingDictionaryService":
        """Build a service from the ``mapping`` section of a config."""
        section = config.get("mapping", {}) or {}
        template_dir = section.get("template_dir")
        return cls(
            dictionary_path=section.get("dictionary_path"),
            transform_weight=section.get("transform_weight", DEFAULT_TRANSFORM_WEIGHT),
            renderer=SnippetRenderer(Path(template_dir)) if template_dir else None,
        )

    def _index(self) -> MappingIndex:
        return get_mapping_index(self.dictionary_path)

    def load(self) -> MappingDictionary:
        """Load (or return the memoised) dictionary."""
        return self._index().dictionary

    def reload(self) -> MappingDictionary:
        """Discard the memoised dictionary for this path and load it again."""
        return reload_mapping_index(self.dictionary_path).dictionary

    def exists(self) -> bool:
        return self.dictionary_path.is_file()

    def get_field_mapping(self, field_name: str) -> FieldMapping | None:
        """Case-insensitive lookup; per-endpoint mappings win over common ones."""
        return self._index().fields.get(field_name.lower())

    def get_endpoint_mapping(self, endpoint: str) -> EndpointMapping | None:
        """
        Look up an endpoint mapping.

        An exact (case-insensitive) match wins; otherwise the first mapping
        whose legacy path contains, or is contained in, the query.
        """
        query = endpoint.strip().lower()
        if not query:
            return None
        index = self._index()
        exact = index.endpoints.get(query)
        if exact is not None:
            return exact
        for ep in index.dictionary.endpoint_mappings:
            path = ep.source_endpoint.lower()
            if query in path or path in query:
                return ep
        return None

    def get_field_mappings(self, field_names: list[str]) -> dict[str, FieldMapping]:
        """Resolve several fields; unmapped names are left out."""
        index = self._index()
        mappings: dict[str, FieldMapping] = {}
        for name in field_names:
            mapping = index.fields.get(name.lower())
            if mapping is not None:
                mappings[name] = mapping
        return mappings

    def search_mappings(self, term: str) -> list[SearchResult]:
        """
        Fuzzy search over field and endpoint mappings.

        Exact key matches score 1.0; a substring overlap in either direction
        scores len(shorter) / len(longer). Results are sorted by descending
        confidence, ties in dictionary order, one per (source, target) pair.
        """
        query = term.strip().lower()
        if not query:
            return []

        hits: list[SearchResult] = []
        for entry in self._index().search_entries:
            score = max(_partial_score(query, key) for key in entry.keys)
            if score > 0:
                hits.append(SearchResult(
                    type=entry.type,
                    source_item=entry.source,
                    target_item=entry.target,
                    mapping=entry.mapping,
                    confidence=score,
                ))

        hits.sort(key=lambda r: -r.confidence)

        results: list[SearchResult] = []
        seen: set[tuple[str, str]] = set()
        for hit in hits:
            pair = (hit.source_item, hit.target_item)
            if pair not in seen:
                seen.add(pair)
                results.append(hit)
        return results

    def get_transformation_rule(self, field_name: str) -> str | None:
        """
        Describe the transformation a field needs, if any.

        A mapping's ``transformation`` id resolves through the rules table
        (falling back to the id itself); fields without one may still have a
        rule keyed by their own name.
        """
        index = self._index()
        return self._rule_for(index, field_name)

    @staticmethod
    def _rule_for(index: MappingIndex, field_name: str) -> str | None:
        rules = index.dictionary.transformation_rules
        mapping = index.fields.get(field_name.lower())
        if mapping is not None and mapping.transformation:
            return rules.get(mapping.transformation, mapping.transformation)
        return rules.get(field_name)

    def get_deprecated_fields(self) -> list[FieldMapping]:
        return [fm for fm in self.load().all_field_mappings() if fm.deprecated]

    def get_migration_complexity(self, field_names: list[str]) -> ComplexityReport:
        """
        Score the porting effort for a set of legacy fields.

        score = 100 - unmapped/total * 40 - transform/total * transform_weight,
        clamped to 0..100. Deprecated fields are reported but not penalised.
        """
        total = len(field_names)
        if total == 0:
            return ComplexityReport(
                score=100.0,
                complexity="low",
                total_fields=0,
                mapped_fields=0,
                unmapped_fields=0,
                deprecated_fields=0,
                transformation_required=0,
            )

        index = self._index()
        mapped = deprecated = transforms = 0
        for name in field_names:
            mapping = index.fields.get(name.lower())
            if mapping is None:
                continue
            mapped += 1
            if mapping.deprecated:
                deprecated += 1
            if mapping.transformation:
                transforms += 1

        unmapped = total - mapped
        score = 100.0 - (unmapped / total) * 40.0 - (transforms / total) * self.transform_weight
        score = max(0.0, min(100.0, score))

        return ComplexityReport(
            score=score,
            complexity=complexity_bucket(score),
            total_fields=total,
            mapped_fields=mapped,
            unmapped_fields=unmapped,
            deprecated_fields=deprecated,
            transformation_required=transforms,
        )

    def generate_migration_code(self, field_name: str, language: str = "javascript") -> str | None:
        """
        Render a migration snippet for one field.

        Returns:
            The snippet, or None if the field is unmapped or the language
            has no template.
        """
        index = self._index()
        mapping = index.fields.get(field_name.lower())
        if mapping is None:
            return None
        rule = self._rule_for(index, field_name)
        return self.renderer.render(language, mapping.source_field, mapping.target_field, rule)

    def get_mapping_statistics(self) -> dict[str, Any]:
        dictionary = self.load()
        all_fields = dictionary.all_field_mappings()
        return {
            "total_endpoints": len(dictionary.endpoint_mappings),
            "total_field_mappings": len(all_fields),
            "common_fields": len(dictionary.common_field_mappings),
            "deprecated_fields": sum(1 for fm in all_fields if fm.deprecated),
            "transformation_rules": len(dictionary.transformation_rules),
            "version": dictionary.version,
            "last_updated": dictionary.last_updated,
        }
