"""Collision-resistant names for generated Azure resources."""

from __future__ import annotations

import re
import secrets

# Key Vault names are the tightest constraint: 3-24 chars, letter first
DEFAULT_MAX_NAME_LENGTH = 24
MIN_SUFFIX_LENGTH = 6
DEFAULT_SUFFIX_LENGTH = 8

VALID_NAME_PATTERN = r"^[A-Za-z][A-Za-z0-9-]*[A-Za-z0-9]$"


def create_random_name(
    prefix: str,
    max_length: int = DEFAULT_MAX_NAME_LENGTH,
    suffix_length: int = DEFAULT_SUFFIX_LENGTH,
) -> str:
    """Generate a unique resource name of the form ``<prefix>-<hex>``.

    The suffix comes from the secrets module, so two calls collide with
    probability 16**-suffix_length.

    Args:
        prefix: Leading part of the name (e.g. "vault1").
        max_length: Upper bound on the full name length.
        suffix_length: Number of hex characters in the random suffix.

    Returns:
        Generated name.

    Raises:
        ValueError: If the prefix is invalid or leaves no room for a suffix.
    """
    if not prefix or not re.match(VALID_NAME_PATTERN, f"{prefix}0"):
        raise ValueError(f"Invalid name prefix: {prefix!r}")
    if suffix_length < MIN_SUFFIX_LENGTH:
        raise ValueError(f"suffix_length must be at least {MIN_SUFFIX_LENGTH}")

    if len(prefix) + 1 + suffix_length > max_length:
        raise ValueError(
            f"Prefix {prefix!r} too long for max_length={max_length} "
            f"with a {suffix_length}-character suffix"
        )

    # token_hex yields two characters per byte
    suffix = secrets.token_hex((suffix_length + 1) // 2)[:suffix_length]
    return f"{prefix}-{suffix}"
