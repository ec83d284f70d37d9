"""
Base strategy class and registry for per-language classification.

A strategy turns one file's text into EndpointRecords. Every strategy sees
the same matcher output; language strategies differ in which extra lines
("trigger lines") they treat as usages on top of endpoint detections.

To add a language:
1. Create a class inheriting from BaseParser
2. Set ``language`` and override ``is_trigger_line``
3. Register it with the @ParserRegistry.register decorator

Example:
    @ParserRegistry.register("go", [".go"])
    class GoParser(BaseParser):
        language = "go"

        def is_trigger_line(self, line, lines, index):
            return "http.Post" in line or "ssl_" in line
"""

from __future__ import annotations

import logging
import re
import uuid
from abc import ABC
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar

from converge_migrator.config import DEFAULT_CONTEXT_LINES
from converge_migrator.models import (
    CATEGORY_SSL_FIELD,
    Detection,
    EndpointRecord,
    EndpointType,
)
from converge_migrator.patterns import PatternMatcher, canonical_field_name
from converge_migrator.utils import extract_code_block, split_lines

if TYPE_CHECKING:
    from typing import Any, Callable, Type

logger = logging.getLogger(__name__)


# Declaration signatures: (regex, group holding the declared name)
_DECLARATIONS: list[tuple[re.Pattern[str], int]] = [
    (re.compile(
        r"^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+|final\s+|sealed\s+|partial\s+|public\s+|private\s+|internal\s+|static\s+)*"
        r"(?:class|interface|trait|enum|struct|module|record)\s+(\w+)"
    ), 1),
    (re.compile(r"^\s*(?:async\s+)?def\s+(?:self\.)?(\w+[?!]?)"), 1),
    (re.compile(r"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*(\w+)"), 1),
    (re.compile(
        r"^\s*(?:(?:public|private|protected|internal|static|final|abstract|virtual|override|async|synchronized|sealed)\s+)+"
        r"(?:function\s+)?[\w<>\[\],.?]*\s*(\w+)\s*\("
    ), 1),
    (re.compile(r"^\s*(?:async\s+)?(?!(?:if|for|while|switch|catch|return|function|with)\b)(\w+)\s*\([^)]*\)\s*\{\s*$"), 1),
]

_COMMENT_PREFIXES = ("//", "#", "/*", "*", "<!--")

_CALL_SYNTAX = re.compile(r"\w\s*\(")

_PROTOCOL_LITERAL = re.compile(
    r"https?://|\bfetch\b|\baxios\b|\bcurl\b|\brequests\b|HttpClient|RestTemplate|WebRequest|Net::HTTP",
    re.IGNORECASE,
)

_NON_ALNUM = re.compile(r"[^a-z0-9]")

# Confidence for a record anchored only by a legacy-API mention
_CONTEXT_CONFIDENCE = 0.5


def _squash(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


def declared_name(line: str) -> str | None:
    """Return the name a declaration signature declares, or None."""
    for pattern, group in _DECLARATIONS:
        match = pattern.match(line)
        if match:
            return match.group(group)
    return None


def is_declaration(line: str, matched_text: str) -> bool:
    """
    Whether the line is a class/interface/function/method signature whose
    declared name contains (or is contained in) the matched text.
    """
    name = declared_name(line)
    if not name:
        return False
    name_key, text_key = _squash(name), _squash(matched_text)
    if not name_key or not text_key:
        return False
    return text_key in name_key or name_key in text_key


def is_comment_only(line: str) -> bool:
    return line.strip().startswith(_COMMENT_PREFIXES)


def is_bare_comment_mention(lines: list[str], index: int) -> bool:
    """
    A comment-only line with no call syntax on it and no protocol or
    HTTP-library literal on it or on the adjacent lines.
    """
    line = lines[index]
    if not is_comment_only(line):
        return False
    if _CALL_SYNTAX.search(line):
        return False
    for i in range(max(0, index - 1), min(len(lines), index + 2)):
        if _PROTOCOL_LITERAL.search(lines[i]):
            return False
    return True


def is_spurious(lines: list[str], index: int, matched_text: str) -> bool:
    """Reject declarations naming the match and bare mentions in comments."""
    return is_declaration(lines[index], matched_text) or is_bare_comment_mention(lines, index)


def infer_endpoint_type(field_names: list[str]) -> EndpointType:
    """
    Infer an endpoint family from field names alone.

    Precedence: batch > device/terminal > checkout/auth token >
    transaction token > process transaction.
    """
    names = [f.lower() for f in field_names]
    if any("batch" in f for f in names):
        return EndpointType.BATCH_PROCESSING
    if any("device" in f or "terminal" in f for f in names):
        return EndpointType.DEVICE_MANAGEMENT
    if any("checkout" in f or "txn_auth_token" in f for f in names):
        return EndpointType.CHECKOUT
    if any("transaction_token" in f for f in names):
        return EndpointType.HOSTED_PAYMENTS
    return EndpointType.PROCESS_TRANSACTION


class ParserRegistry:
    """
    Registry for language strategies.

    Maps file extensions to language names and language names to strategy
    classes. Files with an unregistered extension use the generic strategy.
    """

    _parser_classes: ClassVar[dict[str, Type["BaseParser"]]] = {}
    _extension_map: ClassVar[dict[str, str]] = {}  # .ext -> language name

    @classmethod
    def register(
        cls,
        language: str,
        extensions: list[str],
    ) -> Callable[[Type["BaseParser"]], Type["BaseParser"]]:
        """
        Decorator to register a strategy class.

        Args:
            language: Language name (e.g., "python", "ruby").
            extensions: List of file extensions (e.g., [".py"]).

        Returns:
            Decorator function.
        """
        def decorator(parser_class: Type["BaseParser"]) -> Type["BaseParser"]:
            cls.register_parser(language, extensions, parser_class)
            return parser_class
        return decorator

    @classmethod
    def register_parser(
        cls,
        language: str,
        extensions: list[str],
        parser_class: Type["BaseParser"],
    ) -> None:
        cls._parser_classes[language] = parser_class

        for ext in extensions:
            ext_lower = ext.lower()
            if not ext_lower.startswith("."):
                ext_lower = "." + ext_lower
            cls._extension_map[ext_lower] = language

        logger.debug("Registered parser for %s: %s", language, extensions)

    @classmethod
    def language_for(cls, filepath: str | Path) -> str:
        """Language name for a file, ``generic`` for unknown extensions."""
        return cls._extension_map.get(Path(filepath).suffix.lower(), "generic")

    @classmethod
    def create(
        cls,
        language: str,
        matcher: PatternMatcher | None = None,
        config: dict[str, Any] | None = None,
    ) -> "BaseParser":
        """Instantiate the strategy for a language (generic if unknown)."""
        parser_class = cls._parser_classes.get(language) or cls._parser_classes["generic"]
        parser = parser_class(matcher)
        if config:
            parser.configure(config)
        return parser

    @classmethod
    def list_languages(cls) -> list[str]:
        return list(cls._parser_classes.keys())

    @classmethod
    def list_extensions(cls) -> dict[str, str]:
        return dict(cls._extension_map)


class BaseParser(ABC):
    """
    Base class for classification strategies.

    ``scan`` builds one record per endpoint detection that survives
    disambiguation, then one per trigger line (as decided by the subclass)
    that carries legacy fields or a legacy-API reference and doesn't
    already anchor a record.
    """

    language: ClassVar[str] = "generic"
    # Trigger lines must carry legacy fields, a legacy mention alone is not enough
    trigger_needs_fields: ClassVar[bool] = False

    def __init__(self, matcher: PatternMatcher | None = None) -> None:
        self.matcher = matcher or PatternMatcher()
        self.context_lines = DEFAULT_CONTEXT_LINES
        self.context_range = 3

    def configure(self, config: dict[str, Any]) -> None:
        """Pick up the ``classifier`` section of a config."""
        section = config.get("classifier", {}) or {}
        self.context_lines = int(section.get("context_lines", self.context_lines))
        self.context_range = int(section.get("context_range", self.context_range))

    @property
    def call_language(self) -> str | None:
        """Language used to scope API-call idioms (None = all idioms)."""
        return None if self.language == "generic" else self.language

    def is_trigger_line(self, line: str, lines: list[str], index: int) -> bool:
        """Whether a line is a language-specific usage candidate."""
        return False

    def scan(self, content: str, file_path: str) -> list[EndpointRecord]:
        """
        Classify one file's content.

        Raises:
            MatcherFailure: If the pattern engine fails.
        """
        lines = split_lines(content)
        analysis = self.matcher.analyze(content, self.call_language)
        fields_by_line = self._group_fields(analysis["ssl_fields"])
        calls_by_line = self._group(analysis["api_calls"])

        records = self.endpoint_records(file_path, lines, analysis["endpoints"], fields_by_line, calls_by_line)
        anchored = {r.line_number for r in records}

        for index, line in enumerate(lines):
            line_number = index + 1
            if line_number in anchored:
                continue
            line_fields = fields_by_line.get(line_number, [])
            # A legacy API-call idiom always qualifies
            if line_number not in calls_by_line:
                if self.trigger_needs_fields and not line_fields:
                    continue
                if not self.is_trigger_line(line, lines, index):
                    continue
                if not line_fields and not self.matcher.mentions_legacy_api(line):
                    continue
            probe = line_fields[0][0] if line_fields else line.strip()
            if is_spurious(lines, index, probe):
                continue

            confidences = [c for _, c in line_fields] + [d.confidence for d in calls_by_line.get(line_number, [])]
            window_fields = self._window_fields(fields_by_line, lines, index)
            records.append(self.make_record(
                file_path,
                lines,
                index,
                infer_endpoint_type(window_fields),
                max(confidences, default=_CONTEXT_CONFIDENCE),
                window_fields,
            ))
            anchored.add(line_number)

        return records

    def endpoint_records(
        self,
        file_path: str,
        lines: list[str],
        endpoints: list[Detection],
        fields_by_line: dict[int, list[tuple[str, float]]],
        calls_by_line: dict[int, list[Detection]],
    ) -> list[EndpointRecord]:
        """One record per (line, endpoint type) among accepted endpoint detections."""
        best: dict[tuple[int, str], float] = {}
        for detection in endpoints:
            index = detection.line_number - 1
            if is_spurious(lines, index, detection.matched_text):
                logger.debug(
                    "%s:%d: ignoring %r (declaration or comment)",
                    file_path, detection.line_number, detection.matched_text,
                )
                continue
            key = (detection.line_number, detection.kind)
            confidence = max(
                [detection.confidence] + [c.confidence for c in calls_by_line.get(detection.line_number, [])]
            )
            if confidence > best.get(key, -1.0):
                best[key] = confidence

        records = []
        for (line_number, kind), confidence in best.items():
            index = line_number - 1
            records.append(self.make_record(
                file_path,
                lines,
                index,
                EndpointType(kind),
                confidence,
                self._window_fields(fields_by_line, lines, index),
            ))
        return records

    def make_record(
        self,
        file_path: str,
        lines: list[str],
        index: int,
        endpoint_type: EndpointType,
        confidence: float,
        ssl_fields: list[str],
    ) -> EndpointRecord:
        return EndpointRecord(
            id=uuid.uuid4().hex,
            file_path=file_path,
            line_number=index + 1,
            endpoint_type=endpoint_type,
            code_snippet=extract_code_block(lines, index, self.context_lines),
            ssl_fields=ssl_fields,
            confidence=confidence,
        )

    def _window_fields(
        self,
        fields_by_line: dict[int, list[tuple[str, float]]],
        lines: list[str],
        index: int,
    ) -> list[str]:
        """Distinct canonical field names within the context window, first seen first."""
        start = max(0, index - self.context_lines) + 1
        end = min(len(lines) - 1, index + self.context_lines) + 1
        names: dict[str, None] = {}
        for line_number in range(start, end + 1):
            for name, _ in fields_by_line.get(line_number, []):
                names.setdefault(name, None)
        return list(names)

    @staticmethod
    def _group(detections: list[Detection]) -> dict[int, list[Detection]]:
        grouped: dict[int, list[Detection]] = {}
        for detection in detections:
            grouped.setdefault(detection.line_number, []).append(detection)
        return grouped

    @staticmethod
    def _group_fields(detections: list[Detection]) -> dict[int, list[tuple[str, float]]]:
        """Line number -> [(canonical name, confidence)], in column order."""
        grouped: dict[int, list[Detection]] = {}
        for detection in detections:
            if detection.category == CATEGORY_SSL_FIELD:
                grouped.setdefault(detection.line_number, []).append(detection)
        return {
            line_number: [
                (canonical_field_name(d.matched_text), d.confidence)
                for d in sorted(found, key=lambda d: d.column)
            ]
            for line_number, found in grouped.items()
        }

