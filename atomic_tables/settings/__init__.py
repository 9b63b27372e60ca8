"""Library settings."""

import os
from pathlib import Path

# Database
DB_PATH = os.getenv("ATOMIC_TABLES_DB_PATH", ":memory:")
VERSION_TABLE = "atomic_table_versions"

# Cache
CACHE_TTL = float(os.getenv("ATOMIC_TABLES_CACHE_TTL", "3600"))
CACHE_MAX_ENTRIES = int(os.getenv("ATOMIC_TABLES_CACHE_MAX_ENTRIES", "10000"))
CACHE_TABLE = "atomic_table_cache"
EPOCH_TABLE = "atomic_table_epochs"

# Logging
LOG_DIR = Path(os.getenv("ATOMIC_TABLES_LOG_DIR", "logs"))
LOG_LEVEL = os.getenv("ATOMIC_TABLES_LOG_LEVEL", "INFO")

# DDL
TEXT_COLUMN_WIDTH = 255

# Markup allowed in text columns (post-content subset)
ALLOWED_TAGS = {
    "a",
    "abbr",
    "b",
    "blockquote",
    "br",
    "cite",
    "code",
    "del",
    "em",
    "h1",
    "h2",
    "h3",
    "h4",
    "h5",
    "h6",
    "hr",
    "i",
    "img",
    "ins",
    "li",
    "ol",
    "p",
    "pre",
    "q",
    "s",
    "span",
    "strong",
    "sub",
    "sup",
    "table",
    "tbody",
    "td",
    "th",
    "thead",
    "tr",
    "u",
    "ul",
}
ALLOWED_ATTRIBUTES = {
    "a": {"href", "title", "target"},
    "abbr": {"title"},
    "img": {"src", "alt", "title", "width", "height"},
    "td": {"colspan", "rowspan"},
    "th": {"colspan", "rowspan", "scope"},
}
