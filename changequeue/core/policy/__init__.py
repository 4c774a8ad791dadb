"""Field policy table for managed entities."""

from .table import (
    FieldPolicy,
    PolicyTable,
    PolicyTableError,
    load_policy_table,
    parse_policy_table,
)

__all__ = [
    "FieldPolicy",
    "PolicyTable",
    "PolicyTableError",
    "load_policy_table",
    "parse_policy_table",
]
