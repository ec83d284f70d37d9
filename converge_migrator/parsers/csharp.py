"""
C# strategy.
"""

from __future__ import annotations

from converge_migrator.parsers.base import BaseParser, ParserRegistry

_TRIGGERS = ("HttpClient", "WebRequest", "RestClient", "ssl_")


@ParserRegistry.register("csharp", [".cs"])
class CSharpParser(BaseParser):
    language = "csharp"

    def is_trigger_line(self, line: str, lines: list[str], index: int) -> bool:
        return any(token in line for token in _TRIGGERS)
