"""Policy table: the field schema of every managed entity type.

Declares, per entity type, which field paths exist, the type of value each
accepts, whether a change to it must be reported to SEVIS and which approval
level it requires. Loaded from YAML and read-only afterwards.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from changequeue.core.approval.states import ApprovalLevel, EntityType


VALUE_TYPES = ("string", "text", "integer", "number", "boolean", "date", "email", "phone", "enum")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9 ()\-.]{7,20}$")


class PolicyTableError(ValueError):
    """Raised when a policy table document is malformed."""


@dataclass(frozen=True)
class FieldPolicy:
    """Schema and approval policy of one field path."""

    entity_type: EntityType
    path: str
    label: str
    value_type: str = "string"
    is_sevis_related: bool = False
    required_approval_level: ApprovalLevel = ApprovalLevel.STANDARD
    required: bool = False
    max_length: Optional[int] = None
    choices: tuple = ()

    def check_value(self, value: Any) -> Optional[str]:
        """Return a message describing why ``value`` does not fit, or None."""
        if self.value_type in ("string", "text", "email", "phone"):
            if not isinstance(value, str):
                return f"expected a string, got {type(value).__name__}"
            if self.max_length is not None and len(value) > self.max_length:
                return f"longer than {self.max_length} characters"
            if self.value_type == "email" and not EMAIL_PATTERN.match(value):
                return "not a valid email address"
            if self.value_type == "phone" and not PHONE_PATTERN.match(value):
                return "not a valid phone number"
            return None

        if self.value_type == "integer":
            if isinstance(value, bool) or not isinstance(value, int):
                return f"expected an integer, got {type(value).__name__}"
            return None

        if self.value_type == "number":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return f"expected a number, got {type(value).__name__}"
            return None

        if self.value_type == "boolean":
            if not isinstance(value, bool):
                return f"expected a boolean, got {type(value).__name__}"
            return None

        if self.value_type == "date":
            if not isinstance(value, str):
                return f"expected an ISO date string, got {type(value).__name__}"
            try:
                date.fromisoformat(value)
            except ValueError:
                return "not an ISO date (YYYY-MM-DD)"
            return None

        if self.value_type == "enum":
            if value not in self.choices:
                return f"must be one of: {', '.join(map(str, self.choices))}"
            return None

        return f"unsupported value type {self.value_type}"


@dataclass
class PolicyTable:
    """Read-only lookup of field policies keyed by entity type and path."""

    fields: Dict[EntityType, Dict[str, FieldPolicy]] = field(default_factory=dict)

    def lookup(self, entity_type, field_path: str) -> Optional[FieldPolicy]:
        """Get the policy of a field, or None if the path is not declared."""
        return self.fields.get(EntityType(entity_type), {}).get(field_path)

    def fields_for(self, entity_type) -> List[FieldPolicy]:
        return list(self.fields.get(EntityType(entity_type), {}).values())

    def sevis_fields(self, entity_type) -> List[FieldPolicy]:
        return [f for f in self.fields_for(entity_type) if f.is_sevis_related]

    @property
    def entity_types(self) -> List[EntityType]:
        return list(self.fields)


def parse_field_policy(entity_type: EntityType, field_dict: Dict[str, Any]) -> FieldPolicy:
    """Parse one field declaration.

    Raises:
        PolicyTableError: If the declaration is incomplete or contradictory
    """
    path = field_dict.get("path")
    if not path or not isinstance(path, str):
        raise PolicyTableError(f"{entity_type.value}: field without a path")

    value_type = field_dict.get("type", "string")
    if value_type not in VALUE_TYPES:
        raise PolicyTableError(f"{entity_type.value}.{path}: unknown type {value_type!r}")

    sevis_related = bool(field_dict.get("sevis_related", False))
    try:
        level = ApprovalLevel(field_dict.get(
            "approval_level",
            ApprovalLevel.ELEVATED.value if sevis_related else ApprovalLevel.STANDARD.value,
        ))
    except ValueError as e:
        raise PolicyTableError(f"{entity_type.value}.{path}: {e}") from e

    if sevis_related and level is not ApprovalLevel.ELEVATED:
        raise PolicyTableError(
            f"{entity_type.value}.{path}: SEVIS-related fields require elevated approval"
        )

    choices = tuple(field_dict.get("choices", ()))
    if value_type == "enum" and not choices:
        raise PolicyTableError(f"{entity_type.value}.{path}: enum field without choices")

    return FieldPolicy(
        entity_type=entity_type,
        path=path,
        label=field_dict.get("label") or path,
        value_type=value_type,
        is_sevis_related=sevis_related,
        required_approval_level=level,
        required=bool(field_dict.get("required", False)),
        max_length=field_dict.get("max_length"),
        choices=choices,
    )


def parse_policy_table(table_dict: Dict[str, Any]) -> PolicyTable:
    """Parse a full policy table document.

    Args:
        table_dict: Mapping with an ``entity_types`` key

    Returns:
        PolicyTable instance
    """
    if not isinstance(table_dict, dict):
        raise PolicyTableError(
            f"Policy table root must be a mapping, got {type(table_dict).__name__}"
        )

    fields: Dict[EntityType, Dict[str, FieldPolicy]] = {}
    for type_name, type_dict in (table_dict.get("entity_types") or {}).items():
        try:
            entity_type = EntityType(type_name)
        except ValueError as e:
            raise PolicyTableError(f"Unknown entity type {type_name!r}") from e

        declared: Dict[str, FieldPolicy] = {}
        for field_dict in (type_dict or {}).get("fields", []):
            policy = parse_field_policy(entity_type, field_dict)
            if policy.path in declared:
                raise PolicyTableError(f"{type_name}.{policy.path}: declared twice")
            declared[policy.path] = policy
        fields[entity_type] = declared

    return PolicyTable(fields=fields)


def load_policy_table(path) -> PolicyTable:
    """Load and parse a policy table from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file is invalid YAML
        PolicyTableError: If the document is not a valid policy table
    """
    table_file = Path(path)
    if not table_file.exists():
        raise FileNotFoundError(f"Policy table not found: {path}")

    with table_file.open("r") as f:
        document = yaml.safe_load(f)

    return parse_policy_table(document or {})
