"""Service for minting stable flash card IDs."""

from ulid import ULID


def generate_card_id() -> str:
    """Generate a unique, sortable card ID using ULID."""
    return f"card_{ULID()}"
