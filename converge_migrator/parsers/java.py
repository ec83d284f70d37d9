"""
Java strategy.
"""

from __future__ import annotations

from converge_migrator.parsers.base import BaseParser, ParserRegistry

_TRIGGERS = ("HttpClient", "HttpPost", "RestTemplate", "restTemplate", "@XmlElement", "ssl_")


@ParserRegistry.register("java", [".java"])
class JavaParser(BaseParser):
    """
    HTTP client construction, JAXB-annotated DTO fields and legacy field
    names.
    """

    language = "java"

    def is_trigger_line(self, line: str, lines: list[str], index: int) -> bool:
        return any(token in line for token in _TRIGGERS)
