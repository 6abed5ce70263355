"""
Text utilities for SKU handling.

The normalized SKU is the only key used for cache lookups and
cross-system matching.
"""

from typing import Optional


def normalize_sku(sku: Optional[str]) -> str:
    """
    Normalize a SKU for lookup/comparison.

    - "  ab-12 " → "AB-12"
    - None → ""

    Unlike customer names, accents are kept: references are matched
    verbatim by PrestaShop's reference filter.

    Args:
        sku: Raw reference from Odoo, PrestaShop or a webhook

    Returns:
        Trimmed uppercase string ("" when empty)
    """
    if not sku:
        return ""

    return str(sku).strip().upper()


def format_change(label: str, before, after) -> str:
    """Human-readable change used in the stock audit detail column."""
    return f"{label}: {before} → {after}"
