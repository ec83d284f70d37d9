"""
Classification strategies for converge_migrator.

Each strategy turns a file's text into endpoint records. Strategies are
registered per language; unknown extensions use the generic one.
"""

from converge_migrator.parsers.base import BaseParser, ParserRegistry, infer_endpoint_type
from converge_migrator.parsers.generic import GenericParser
from converge_migrator.parsers.javascript import JavaScriptParser
from converge_migrator.parsers.php import PHPParser
from converge_migrator.parsers.python import PythonParser
from converge_migrator.parsers.java import JavaParser
from converge_migrator.parsers.csharp import CSharpParser
from converge_migrator.parsers.ruby import RubyParser
from converge_migrator.parsers.fallback import LexicalFallback

__all__ = [
    "BaseParser",
    "ParserRegistry",
    "infer_endpoint_type",
    "GenericParser",
    "JavaScriptParser",
    "PHPParser",
    "PythonParser",
    "JavaParser",
    "CSharpParser",
    "RubyParser",
    "LexicalFallback",
]
