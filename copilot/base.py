"""Prefixed string identifiers for table rows and in-memory patterns."""
import secrets

ID_BYTES = 6


def generate_id(prefix: str) -> str:
    """Return "<prefix>_<12 hex chars>", e.g. "win_3f9a0c1b2d4e"."""
    return f"{prefix}_{secrets.token_hex(ID_BYTES)}"
