"""Graph schema definitions for the relationship graph.

Defines node vibes, the closed set of relationship types, and the
constraints on which vibes each relationship may connect.
"""

from dataclasses import dataclass
from enum import Enum


class NodeVibe(Enum):
    """Primary entity classification stored on every User node."""

    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


class EdgeType(Enum):
    """Valid relationship types in the graph."""

    FOLLOWS = "FOLLOWS"
    WORKS_AT = "WORKS_AT"
    WORKED_AT = "WORKED_AT"
    INVESTED_IN = "INVESTED_IN"
    AUDITS = "AUDITS"
    AFFILIATED_WITH = "AFFILIATED_WITH"
    PARTNERS_WITH = "PARTNERS_WITH"
    MEMBER_OF = "MEMBER_OF"


# Every organizational relationship (everything except FOLLOWS)
ORG_EDGE_TYPES: tuple[EdgeType, ...] = (
    EdgeType.WORKS_AT,
    EdgeType.WORKED_AT,
    EdgeType.INVESTED_IN,
    EdgeType.AUDITS,
    EdgeType.AFFILIATED_WITH,
    EdgeType.PARTNERS_WITH,
    EdgeType.MEMBER_OF,
)

# Relationships a shared investor/auditor holds toward both organizations
THIRD_PARTY_EDGE_TYPES: tuple[EdgeType, ...] = (EdgeType.INVESTED_IN, EdgeType.AUDITS)


EDGE_CONSTRAINTS: dict[EdgeType, dict] = {
    EdgeType.FOLLOWS: {"sources": None, "targets": None},
    EdgeType.WORKS_AT: {
        "sources": [NodeVibe.INDIVIDUAL],
        "targets": [NodeVibe.ORGANIZATION],
    },
    EdgeType.WORKED_AT: {
        "sources": [NodeVibe.INDIVIDUAL],
        "targets": [NodeVibe.ORGANIZATION],
    },
    EdgeType.INVESTED_IN: {"sources": None, "targets": [NodeVibe.ORGANIZATION]},
    EdgeType.AUDITS: {
        "sources": [NodeVibe.ORGANIZATION],
        "targets": [NodeVibe.ORGANIZATION],
    },
    EdgeType.AFFILIATED_WITH: {"sources": None, "targets": [NodeVibe.ORGANIZATION]},
    EdgeType.PARTNERS_WITH: {
        "sources": [NodeVibe.ORGANIZATION],
        "targets": [NodeVibe.ORGANIZATION],
    },
    EdgeType.MEMBER_OF: {"sources": None, "targets": [NodeVibe.ORGANIZATION]},
}


@dataclass
class ValidationResult:
    """Result of a validation check."""

    valid: bool
    errors: list[str]
    warnings: list[str]

    def __bool__(self) -> bool:
        return self.valid


def validate_vibe(vibe: str | None) -> bool:
    """Check if a vibe value is valid."""
    return vibe in [v.value for v in NodeVibe]


def validate_edge_type(edge_type: str) -> bool:
    """Check if an edge type is in the closed set (case sensitive)."""
    return edge_type in [t.value for t in EdgeType]


def validate_edge(
    from_vibe: str | None, to_vibe: str | None, relation: str, strict: bool = False
) -> ValidationResult:
    """Validate an edge against schema constraints.

    Args:
        from_vibe: Vibe of the source node
        to_vibe: Vibe of the target node
        relation: Relationship type
        strict: If True, constraint violations are errors. Otherwise warnings.

    Returns:
        ValidationResult with valid status and any errors/warnings
    """
    errors: list[str] = []
    warnings: list[str] = []

    # Unknown relationship types are always rejected: the set is closed.
    if not validate_edge_type(relation):
        errors.append(f"Unknown edge type: {relation}")
        return ValidationResult(valid=False, errors=errors, warnings=warnings)

    constraints = EDGE_CONSTRAINTS[EdgeType(relation)]

    for side, vibe in (("sources", from_vibe), ("targets", to_vibe)):
        allowed = constraints.get(side)
        if allowed is None:
            continue
        label = "source" if side == "sources" else "target"
        if not validate_vibe(vibe):
            warnings.append(f"Unknown {label} vibe: {vibe}")
            continue
        if NodeVibe(vibe) not in allowed:
            msg = f"Invalid {label} vibe {vibe} for edge {relation}"
            if strict:
                errors.append(msg)
            else:
                warnings.append(msg)

    return ValidationResult(valid=len(errors) == 0, errors=errors, warnings=warnings)


def normalize_screen_name(screen_name: str | None) -> str:
    """Canonical lookup form of a handle: trimmed, no leading @, lowercase."""
    if not screen_name:
        return ""
    return screen_name.strip().lstrip("@").lower()


def get_edge_types() -> list[str]:
    """Get list of all valid edge types."""
    return [t.value for t in EdgeType]


def edge_type_names(edge_types) -> list[str]:
    """Normalize EdgeType members or strings into sorted relation names."""
    names = set()
    for edge_type in edge_types:
        value = edge_type.value if isinstance(edge_type, EdgeType) else str(edge_type)
        names.add(value.upper())
    return sorted(names)
