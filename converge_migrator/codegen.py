"""
Migration snippet templates.

Provides Jinja2-based per-language templates for field migration snippets,
with support for a directory of user overrides.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from jinja2 import ChoiceLoader, DictLoader, Environment, FileSystemLoader, StrictUndefined, TemplateNotFound

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)


# Accepted language names -> template language
LANGUAGE_ALIASES: dict[str, str] = {
    "javascript": "javascript",
    "js": "javascript",
    "typescript": "javascript",
    "ts": "javascript",
    "php": "php",
    "python": "python",
    "py": "python",
    "java": "java",
    "csharp": "csharp",
    "cs": "csharp",
    "c#": "csharp",
    "ruby": "ruby",
    "rb": "ruby",
}


DEFAULT_TEMPLATES: dict[str, str] = {
    "javascript.j2": (
        "// Migration: {{ source }} -> {{ target }}\n"
        "{% if rule %}// Transformation required: {{ rule | oneline }}\n"
        "const {{ target | identifier }} = transform{{ source | pascal }}(convergeData.{{ source }});"
        "{% else %}const {{ target | identifier }} = convergeData.{{ source }};{% endif %}"
    ),
    "php.j2": (
        "// Migration: {{ source }} -> {{ target }}\n"
        "{% if rule %}// Transformation required: {{ rule | oneline }}\n"
        "${{ target | identifier }} = transform_{{ source }}($convergeData['{{ source }}']);"
        "{% else %}${{ target | identifier }} = $convergeData['{{ source }}'];{% endif %}"
    ),
    "python.j2": (
        "# Migration: {{ source }} -> {{ target }}\n"
        "{% if rule %}# Transformation required: {{ rule | oneline }}\n"
        "{{ target | identifier }} = transform_{{ source }}(converge_data['{{ source }}'])"
        "{% else %}{{ target | identifier }} = converge_data['{{ source }}']{% endif %}"
    ),
    "java.j2": (
        "// Migration: {{ source }} -> {{ target }}\n"
        "{% if rule %}// Transformation required: {{ rule | oneline }}\n"
        "String {{ target | identifier }} = transform{{ source | pascal }}(convergeData.get{{ source | pascal }}());"
        "{% else %}String {{ target | identifier }} = convergeData.get{{ source | pascal }}();{% endif %}"
    ),
    "csharp.j2": (
        "// Migration: {{ source }} -> {{ target }}\n"
        "{% if rule %}// Transformation required: {{ rule | oneline }}\n"
        "var {{ target | identifier }} = Transform{{ source | pascal }}(convergeData.{{ source | pascal }});"
        "{% else %}var {{ target | identifier }} = convergeData.{{ source | pascal }};{% endif %}"
    ),
    "ruby.j2": (
        "# Migration: {{ source }} -> {{ target }}\n"
        "{% if rule %}# Transformation required: {{ rule | oneline }}\n"
        "{{ target | identifier }} = transform_{{ source }}(converge_data[:{{ source }}])"
        "{% else %}{{ target | identifier }} = converge_data[:{{ source }}]{% endif %}"
    ),
}


def to_identifier(name: str) -> str:
    """Make a dotted or hyphenated field path usable as a variable name."""
    ident = re.sub(r"[^A-Za-z0-9_]", "_", name)
    if ident and ident[0].isdigit():
        ident = "_" + ident
    return ident


def to_pascal(name: str) -> str:
    """ssl_merchant_id -> SslMerchantId"""
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[^A-Za-z0-9]+", name) if part)


def to_oneline(text: str) -> str:
    return " ".join(str(text).split())


class SnippetRenderer:
    """
    Render migration snippets.

    Supports both default templates and custom user templates named
    ``<language>.j2``.
    """

    def __init__(self, custom_template_dir: Path | None = None) -> None:
        """
        Args:
            custom_template_dir: Optional directory with template overrides.
        """
        loaders: list[Any] = []
        if custom_template_dir and custom_template_dir.exists():
            loaders.append(FileSystemLoader(str(custom_template_dir)))
        loaders.append(DictLoader(DEFAULT_TEMPLATES))

        self.env = Environment(
            loader=ChoiceLoader(loaders),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )
        self.env.filters["identifier"] = to_identifier
        self.env.filters["pascal"] = to_pascal
        self.env.filters["oneline"] = to_oneline

    def supports(self, language: str) -> bool:
        return language.lower() in LANGUAGE_ALIASES

    def render(
        self,
        language: str,
        source: str,
        target: str,
        rule: str | None = None,
    ) -> str | None:
        """
        Render the snippet for one field in one language.

        Returns:
            The snippet, or None if the language is not supported.
        """
        template_language = LANGUAGE_ALIASES.get(language.lower())
        if template_language is None:
            logger.debug("No snippet template for language %r", language)
            return None
        try:
            template = self.env.get_template(f"{template_language}.j2")
        except TemplateNotFound:
            return None
        return template.render(source=source, target=target, rule=rule)
