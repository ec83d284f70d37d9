"""
PHP strategy.
"""

from __future__ import annotations

from converge_migrator.parsers.base import BaseParser, ParserRegistry


@ParserRegistry.register("php", [".php"])
class PHPParser(BaseParser):
    """cURL option lines and ``$ssl_`` variables."""

    language = "php"

    def is_trigger_line(self, line: str, lines: list[str], index: int) -> bool:
        return "curl_setopt" in line or "$ssl_" in line
