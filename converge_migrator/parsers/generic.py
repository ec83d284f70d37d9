"""
Generic strategy for files without a language-specific one.
"""

from __future__ import annotations

import logging

from converge_migrator.models import EndpointRecord, EndpointType
from converge_migrator.parsers.base import BaseParser, ParserRegistry
from converge_migrator.utils import split_lines

logger = logging.getLogger(__name__)


@ParserRegistry.register("generic", [])
class GenericParser(BaseParser):
    """
    Endpoint detections only.

    When a file has legacy fields but no endpoint reference, a single
    process-transaction record is synthesised at the first field.
    """

    language = "generic"

    def scan(self, content: str, file_path: str) -> list[EndpointRecord]:
        lines = split_lines(content)
        analysis = self.matcher.analyze(content)
        fields_by_line = self._group_fields(analysis["ssl_fields"])

        records = self.endpoint_records(
            file_path,
            lines,
            analysis["endpoints"],
            fields_by_line,
            self._group(analysis["api_calls"]),
        )
        if records or not analysis["ssl_fields"]:
            return records

        first = analysis["ssl_fields"][0]
        index = first.line_number - 1
        logger.debug("%s: no endpoint reference, synthesising record at line %d", file_path, first.line_number)
        return [self.make_record(
            file_path,
            lines,
            index,
            EndpointType.PROCESS_TRANSACTION,
            first.confidence,
            self._window_fields(fields_by_line, lines, index),
        )]
