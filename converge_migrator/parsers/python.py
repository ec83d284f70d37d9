"""
Python strategy.
"""

from __future__ import annotations

import re

from converge_migrator.parsers.base import BaseParser, ParserRegistry

_HTTP_CLIENT = re.compile(r"\brequests\.|\burllib\b|\bhttpx\b|\baiohttp\b")


@ParserRegistry.register("python", [".py"])
class PythonParser(BaseParser):
    """
    HTTP client calls (requests, urllib, httpx, aiohttp) and lines naming
    legacy fields.
    """

    language = "python"

    def is_trigger_line(self, line: str, lines: list[str], index: int) -> bool:
        return "ssl_" in line or bool(_HTTP_CLIENT.search(line))
