"""
JavaScript/TypeScript strategy.
"""

from __future__ import annotations

from converge_migrator.parsers.base import BaseParser, ParserRegistry


@ParserRegistry.register("javascript", [".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs"])
class JavaScriptParser(BaseParser):
    """
    Field lines count as usages only when the legacy API is mentioned
    within ``context_range`` lines of them.
    """

    language = "javascript"
    trigger_needs_fields = True

    def is_trigger_line(self, line: str, lines: list[str], index: int) -> bool:
        start = max(0, index - self.context_range)
        end = min(len(lines), index + self.context_range + 1)
        return any(self.matcher.mentions_legacy_api(lines[i]) for i in range(start, end))
