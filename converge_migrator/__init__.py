"""
Converge Migrator - find legacy Converge payment API usage in a codebase
and map it to the Elavon API.

Regex-based detection for JavaScript/TypeScript, PHP, Python, Java, C#,
Ruby and a generic fallback for everything else.
"""

__version__ = "0.4.0"

from converge_migrator.classifier import SourceClassifier
from converge_migrator.config import DEFAULT_CONFIG, load_config
from converge_migrator.mapping import MappingDictionaryService
from converge_migrator.patterns import PatternMatcher, configure_catalog
from converge_migrator.scanner import WorkspaceScanner

__all__ = [
    "DEFAULT_CONFIG",
    "MappingDictionaryService",
    "PatternMatcher",
    "SourceClassifier",
    "WorkspaceScanner",
    "configure_catalog",
    "load_config",
    "__version__",
]
