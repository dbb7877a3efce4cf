"""Validated database schema identifiers.

Schema names end up inside ``SET search_path`` and ``CREATE SCHEMA``
statements, which cannot take bind parameters. Every schema name that
reaches SQL must pass through ``validate_schema_name`` first; tenant schema
names are only ever produced by ``derive_schema_name``.
"""

from __future__ import annotations

import re
import unicodedata

MAX_SCHEMA_NAME_LENGTH = 63  # PostgreSQL NAMEDATALEN - 1

SCHEMA_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]{0,62}$")

RESERVED_SCHEMA_NAMES = frozenset({"public", "shared", "information_schema"})

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class InvalidSchemaNameError(ValueError):
    """Raised when a value is not an acceptable schema identifier."""

    pass


def validate_schema_name(value: str) -> str:
    """Check a schema name against the identifier allow-list.

    Args:
        value: Candidate schema name

    Returns:
        The same value, unchanged

    Raises:
        InvalidSchemaNameError: If the value contains anything other than
            lowercase ASCII letters, digits and underscores, does not start
            with a letter, or is longer than 63 characters.
    """
    if not isinstance(value, str) or not SCHEMA_NAME_PATTERN.fullmatch(value):
        raise InvalidSchemaNameError(f"Invalid schema name: {value!r}")
    return value


def is_reserved_schema_name(value: str) -> bool:
    """Whether a schema name belongs to the platform rather than a tenant."""
    return value in RESERVED_SCHEMA_NAMES or value.startswith("pg_")


def quote_schema_name(value: str) -> str:
    """Validate a schema name and return it double-quoted for use in SQL."""
    return f'"{validate_schema_name(value)}"'


def slugify(value: str) -> str:
    """Reduce free text to lowercase ASCII words joined by underscores.

    "Acme Academy" becomes "acme_academy"; accents are folded, so
    "École Sainte-Anne" becomes "ecole_sainte_anne".
    """
    folded = (
        unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    )
    return _NON_ALNUM.sub("_", folded.lower()).strip("_")


def derive_schema_name(name: str, prefix: str = "tenant_") -> str:
    """Derive a tenant schema name deterministically from a display name.

    Args:
        name: Tenant display name
        prefix: Prefix marking the schema as a tenant schema

    Returns:
        ``prefix + slugify(name)``, truncated to 63 characters

    Raises:
        InvalidSchemaNameError: If the name has no usable characters.
    """
    slug = slugify(name)
    if not slug:
        raise InvalidSchemaNameError(f"Cannot derive a schema name from {name!r}")
    candidate = f"{prefix}{slug}"[:MAX_SCHEMA_NAME_LENGTH].rstrip("_")
    return validate_schema_name(candidate)
