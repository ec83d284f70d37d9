"""
Ruby strategy.
"""

from __future__ import annotations

from converge_migrator.parsers.base import BaseParser, ParserRegistry

_TRIGGERS = ("Net::HTTP", "HTTParty", "Faraday", "RestClient", "ssl_")


@ParserRegistry.register("ruby", [".rb"])
class RubyParser(BaseParser):
    """Net::HTTP and the common gem clients, plus legacy field names."""

    language = "ruby"

    def is_trigger_line(self, line: str, lines: list[str], index: int) -> bool:
        return any(token in line for token in _TRIGGERS)
