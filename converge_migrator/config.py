"""
Configuration constants and loading utilities for converge_migrator.
"""

from __future__ import annotations

import copy
import logging
from pathlib import Path
from typing import Any

import yaml

from converge_migrator.errors import ConfigurationError

logger = logging.getLogger(__name__)


# Directories that are never scanned, whatever the user's include globs say
ALWAYS_EXCLUDED_DIRS = frozenset({
    "node_modules",
    "vendor",
    "dist",
    "build",
    "out",
    "target",
    ".git",
    ".svn",
    ".hg",
    "coverage",
    ".nyc_output",
    "__pycache__",
    ".venv",
    "venv",
    ".tox",
    ".mypy_cache",
    ".pytest_cache",
})

# Minified/bundled assets and lock files
ALWAYS_EXCLUDED_FILES = [
    "*.min.js",
    "*.bundle.js",
    "*.map",
    "package-lock.json",
    "yarn.lock",
    ".DS_Store",
    "Thumbs.db",
]

SUPPORTED_EXTENSIONS = [
    ".js", ".jsx", ".ts", ".tsx", ".mjs", ".cjs",
    ".php", ".py", ".java", ".cs", ".rb",
    ".go", ".vue", ".svelte", ".html", ".htm",
]

DEFAULT_MAX_FILE_SIZE = 1024 * 1024  # 1 MiB

DEFAULT_TRANSFORM_WEIGHT = 20.0

DEFAULT_CONTEXT_LINES = 5


DEFAULT_CONFIG: dict[str, Any] = {
    # Legacy API usage patterns. Entries are regexes unless given as
    # {"literal": "..."}; API-call entries carry a "kind".
    "patterns": {
        "endpoints": {
            "hosted_payments": [
                {"literal": "/hosted-payments/transaction_token"},
                {"literal": "hosted-payments/transaction_token"},
                {"literal": "hostedpayments/transactiontoken"},
                {"literal": "hosted_payments_transaction_token"},
            ],
            "checkout": [
                {"literal": "Checkout.js"},
                r"converge.*checkout",
                r"checkout.*converge",
            ],
            "process_transaction": [
                {"literal": "/ProcessTransactionOnline"},
                r"ProcessTransactionOnline\b",
                r"process_transaction_online",
                r"processtransaction",
                r"transaction.*process.*\(",
                r"processxml\.do",
            ],
            "batch_processing": [
                {"literal": "/batch-processing"},
                r"batch-processing",
                r"batch_processing",
                r"batchprocessing",
                r"batch.*process",
            ],
            "device_management": [
                {"literal": "/NonElavonCertifiedDevice"},
                r"NonElavonCertifiedDevice",
                r"non_elavon_certified_device",
                r"device.*management",
                r"terminal.*management",
            ],
        },
        "ssl_fields": {
            "core": r"ssl_[a-zA-Z_][a-zA-Z0-9_]*",
            "variations": [
                r"SSL_[A-Z_][A-Z0-9_]*",
                r"\bssl[A-Z][a-zA-Z0-9]*",
                r"ssl\[[\"'][a-zA-Z_][a-zA-Z0-9_]*[\"']\]",
            ],
        },
        "urls": {
            "converge": [
                r"https?://[^\s'\"`]*converge[^\s'\"`]*",
                r"convergepay\.com[^\s'\"`]*",
                r"VirtualMerchantDemo[^\s'\"`]*",
            ],
            "elavon": [
                r"https?://[^\s'\"`]*elavon[^\s'\"`]*",
                r"elavon\.com[^\s'\"`]*",
            ],
        },
        # Known legacy host literals, used for context checks and the lexical fallback
        "host_literals": [
            "convergepay.com",
            "api.demo.convergepay.com",
            "VirtualMerchantDemo",
            "processxml.do",
        ],
        # Words that mark a line as talking about the legacy API
        "context_keywords": ["converge"],
        # Credential/transaction fields that co-occur in real integrations
        "core_fields": [
            "ssl_transaction_type",
            "ssl_merchant_id",
            "ssl_user_id",
            "ssl_pin",
        ],
        "api_calls": {
            "javascript": [
                {"kind": "fetch", "regex": r"fetch\s*\(\s*[\"'`][^\"'`]*converge[^\"'`]*[\"'`]"},
                {"kind": "fetch", "regex": r"fetch\s*\(\s*[\"'`][^\"'`]*/hosted-payments[^\"'`]*[\"'`]"},
                {"kind": "fetch", "regex": r"fetch\s*\(\s*[\"'`][^\"'`]*ProcessTransaction[^\"'`]*[\"'`]"},
                {"kind": "axios", "regex": r"axios\.(get|post|put|delete)\s*\([^)]*converge[^)]*"},
                {"kind": "axios", "regex": r"axios\s*\(\s*\{[^}]*url[^}]*converge[^}]*\}"},
                {"kind": "jquery", "regex": r"\$\.(ajax|post|get)\s*\([^)]*converge[^)]*"},
                {"kind": "xhr", "regex": r"\.open\s*\(\s*[\"'](GET|POST)[\"']\s*,\s*[\"'][^\"']*converge"},
            ],
            "php": [
                {"kind": "curl", "regex": r"curl_setopt\s*\([^)]*CURLOPT_URL[^)]*converge[^)]*"},
                {"kind": "curl", "regex": r"curl_init\s*\(\s*[\"'][^\"']*converge"},
                {"kind": "guzzle", "regex": r"->(post|get|request)\s*\([^)]*converge[^)]*"},
                {"kind": "stream", "regex": r"file_get_contents\s*\([^)]*converge[^)]*"},
            ],
            "python": [
                {"kind": "requests", "regex": r"requests\.(get|post|put|delete|request)\s*\([^)]*converge[^)]*"},
                {"kind": "httpx", "regex": r"httpx\.(get|post|put|delete|request)\s*\([^)]*converge[^)]*"},
                {"kind": "urllib", "regex": r"urlopen\s*\([^)]*converge[^)]*"},
                {"kind": "session", "regex": r"session\.(get|post|put|delete)\s*\([^)]*converge[^)]*"},
            ],
            "java": [
                {"kind": "restTemplate", "regex": r"restTemplate\.(postForObject|postForEntity|getForObject|exchange)[^)]*converge[^)]*"},
                {"kind": "HttpClient", "regex": r"URI\.create\s*\(\s*\"[^\"]*converge"},
                {"kind": "HttpClient", "regex": r"new\s+Http(Post|Get)\s*\(\s*\"[^\"]*converge"},
                {"kind": "HttpURLConnection", "regex": r"new\s+URL\s*\(\s*\"[^\"]*converge"},
            ],
            "csharp": [
                {"kind": "HttpClient", "regex": r"\.(PostAsync|GetAsync|SendAsync|PutAsync|DeleteAsync)\s*\([^)]*converge[^)]*"},
                {"kind": "WebRequest", "regex": r"WebRequest\.Create\s*\([^)]*converge[^)]*"},
                {"kind": "RestSharp", "regex": r"new\s+RestClient\s*\([^)]*converge[^)]*"},
            ],
            "ruby": [
                {"kind": "net-http", "regex": r"Net::HTTP[^\n]*converge"},
                {"kind": "httparty", "regex": r"HTTParty\.(get|post)\s*\([^)]*converge[^)]*"},
                {"kind": "faraday", "regex": r"Faraday\.new\s*\([^)]*converge[^)]*"},
                {"kind": "rest-client", "regex": r"RestClient\.(get|post)\s*\([^)]*converge[^)]*"},
            ],
            "*": [
                {"kind": "curl", "regex": r"curl\s+[^\n]*converge"},
            ],
        },
    },

    # Workspace enumeration
    "scan": {
        "supported_extensions": SUPPORTED_EXTENSIONS,
        "include": [],
        "exclude": [],
        "max_file_size": DEFAULT_MAX_FILE_SIZE,
        "use_cache": True,
    },

    # Mapping dictionary
    "mapping": {
        "dictionary_path": None,  # None = bundled resources/mapping.json
        "transform_weight": DEFAULT_TRANSFORM_WEIGHT,
        "template_dir": None,  # directory of <language>.j2 snippet overrides
    },

    # Source classification
    "classifier": {
        "context_lines": DEFAULT_CONTEXT_LINES,
        "context_range": 3,
    },
}


def default_config() -> dict[str, Any]:
    """Return a private deep copy of DEFAULT_CONFIG."""
    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(user_config: dict[str, Any]) -> dict[str, Any]:
    """Merge a user config over the defaults, one level deep per section."""
    config = default_config()
    for key, value in user_config.items():
        if isinstance(value, dict) and key in config and isinstance(config[key], dict):
            config[key] = {**config[key], **value}
        else:
            config[key] = value
    return config


def load_config(config_path: Path) -> dict[str, Any]:
    """
    Load configuration from a YAML (or JSON) file, merged with defaults.

    Args:
        config_path: Path to the configuration file.

    Returns:
        Configuration dictionary with user values merged over defaults.

    Raises:
        ConfigurationError: If the file is missing, unparsable, or not a mapping.
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"Could not read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file {config_path}: {e}") from e

    if not isinstance(user_config, dict):
        raise ConfigurationError(
            f"Config file {config_path} must contain a mapping at the top level"
        )

    logger.debug("Loaded config from %s (sections: %s)", config_path, list(user_config))
    return merge_config(user_config)


def get_config_template() -> str:
    """Generate a commented YAML config template."""
    return '''# =============================================================================
# converge-migrator configuration
# =============================================================================
# Sections you leave out fall back to the built-in defaults. A section you
# include replaces the default keys it names (one level deep), so copy the
# whole list when you only want to add one pattern.
#
# Pattern entries are regular expressions unless written as {literal: "..."}.
# Use single quotes in YAML so backslashes reach the regex unchanged.
# =============================================================================

patterns:
  # Legacy endpoint families. Matched case-insensitively, line by line.
  endpoints:
    hosted_payments:
      - literal: "/hosted-payments/transaction_token"
      - literal: "hostedpayments/transactiontoken"
    checkout:
      - literal: "Checkout.js"
      - 'converge.*checkout'
    process_transaction:
      - literal: "/ProcessTransactionOnline"
      - 'ProcessTransactionOnline\\b'
      - 'processxml\\.do'
    batch_processing:
      - 'batch-processing'
      - 'batch_processing'
    device_management:
      - 'NonElavonCertifiedDevice'
      - 'terminal.*management'

  # Field-name prefix convention. Matched case-sensitively.
  ssl_fields:
    core: 'ssl_[a-zA-Z_][a-zA-Z0-9_]*'
    variations:
      - 'SSL_[A-Z_][A-Z0-9_]*'
      - '\\bssl[A-Z][a-zA-Z0-9]*'

  # Per-language call idioms. "*" applies to every language.
  # api_calls:
  #   javascript:
  #     - kind: fetch
  #       regex: 'fetch\\s*\\(\\s*["''][^"'']*converge'
  #   python:
  #     - kind: requests
  #       regex: 'requests\\.post\\s*\\([^)]*converge'

scan:
  # Extra include/exclude globs (relative to the workspace root).
  # Dependency, build and VCS directories are always skipped.
  include: []
  exclude: []
  max_file_size: 1048576
  use_cache: true

mapping:
  # Path to a mapping dictionary JSON file; omit to use the bundled one.
  # dictionary_path: ./mapping.json
  transform_weight: 20
  # template_dir: ./snippet-templates

classifier:
  context_lines: 5
'''
