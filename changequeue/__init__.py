"""Change Queue: field-level approval workflow with SEVIS export gating."""

__version__ = "0.1.0"
