"""
Lexical fallback used when the pattern matcher fails on a file.

Uses only fixed substring checks and one fixed regex, so it keeps working
when a configured catalog rule blows up. Produces at most one record per
file, anchored at the first line that shows any sign of the legacy API.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import TYPE_CHECKING

from converge_migrator.config import DEFAULT_CONFIG, DEFAULT_CONTEXT_LINES
from converge_migrator.models import EndpointRecord, EndpointType
from converge_migrator.utils import extract_code_block, split_lines

if TYPE_CHECKING:
    from typing import Iterable

logger = logging.getLogger(__name__)

_FIELD_PREFIX = re.compile(r"ssl_[a-zA-Z_][a-zA-Z0-9_]*")

FALLBACK_CONFIDENCE = 0.4


class LexicalFallback:
    """Field prefix, host literal and core-field checks, line by line."""

    def __init__(
        self,
        host_literals: Iterable[str] | None = None,
        core_fields: Iterable[str] | None = None,
        context_lines: int = DEFAULT_CONTEXT_LINES,
    ) -> None:
        patterns = DEFAULT_CONFIG["patterns"]
        hosts = patterns["host_literals"] if host_literals is None else host_literals
        core = patterns["core_fields"] if core_fields is None else core_fields
        self.host_literals = tuple(h.lower() for h in hosts)
        self.core_fields = tuple(f.lower() for f in core)
        self.context_lines = context_lines

    def is_anchor(self, line: str) -> bool:
        if _FIELD_PREFIX.search(line):
            return True
        lower = line.lower()
        return any(h in lower for h in self.host_literals) or any(f in lower for f in self.core_fields)

    def scan(self, content: str, file_path: str) -> list[EndpointRecord]:
        lines = split_lines(content)
        for index, line in enumerate(lines):
            if self.is_anchor(line):
                break
        else:
            return []

        fields = list(dict.fromkeys(_FIELD_PREFIX.findall(content)))
        logger.debug("%s: lexical fallback anchored at line %d", file_path, index + 1)
        return [EndpointRecord(
            id=uuid.uuid4().hex,
            file_path=file_path,
            line_number=index + 1,
            endpoint_type=EndpointType.PROCESS_TRANSACTION,
            code_snippet=extract_code_block(lines, index, self.context_lines),
            ssl_fields=fields,
            confidence=FALLBACK_CONFIDENCE,
        )]
