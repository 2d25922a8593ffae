"""
Engine configuration.

A deployment configures two things:

* the **cross-sensitivity table** -- named groups of clinically related
  substances.  Two names share a cross-sensitivity when both appear in the
  same group.  Names are matched exactly, case-sensitively, so a group
  lists every spelling the deployment records (``"Penicillin"``,
  ``"Penicillin G"``, ...).
* the **interaction classes** -- which allergen classes take part in
  interaction checks.  All classes by default; a pharmacy-only deployment
  may restrict checks to ``medication``.

Configuration is loaded from YAML and validated through pydantic before the
engine ever sees it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

from allergyledger.models import AllergenClass


# ---------------------------------------------------------------------------
# Cross-sensitivity groups
# ---------------------------------------------------------------------------

class CrossSensitivityGroup(BaseModel):
    """A set of substances that share a reaction risk."""

    name: str = Field(
        ...,
        min_length=1,
        description="Label for the grouping, e.g. 'penicillins'.",
    )
    members: list[str] = Field(
        ...,
        description="Substance names, compared exactly.",
    )

    @field_validator("members")
    @classmethod
    def members_are_distinct(cls, v: list[str]) -> list[str]:
        if any(not m for m in v):
            raise ValueError("cross-sensitivity members must be non-empty strings")
        if len(set(v)) != len(v):
            raise ValueError(f"cross-sensitivity members must be distinct, got {v}")
        if len(v) < 2:
            raise ValueError(
                f"a cross-sensitivity group needs at least two members, got {len(v)}"
            )
        return v


# ---------------------------------------------------------------------------
# Engine config
# ---------------------------------------------------------------------------

class EngineConfig(BaseModel):
    """Complete configuration for one engine instance."""

    cross_sensitivity_groups: list[CrossSensitivityGroup] = Field(
        default_factory=list,
        description="Static cross-sensitivity table.",
    )
    interaction_classes: list[AllergenClass] = Field(
        default_factory=lambda: list(AllergenClass),
        description=(
            "Allergen classes whose active records are considered by "
            "interaction checks.  Must not be empty."
        ),
    )

    @field_validator("interaction_classes")
    @classmethod
    def interaction_classes_not_empty(cls, v: list[AllergenClass]) -> list[AllergenClass]:
        if not v:
            raise ValueError("interaction_classes must name at least one allergen class")
        return list(dict.fromkeys(v))

    @field_validator("cross_sensitivity_groups")
    @classmethod
    def group_names_unique(
        cls, v: list[CrossSensitivityGroup]
    ) -> list[CrossSensitivityGroup]:
        names = [g.name for g in v]
        if len(set(names)) != len(names):
            raise ValueError(f"cross-sensitivity group names must be unique, got {names}")
        return v


# ---------------------------------------------------------------------------
# Default table
# ---------------------------------------------------------------------------

_DEFAULT_GROUPS: list[dict[str, Any]] = [
    {
        "name": "penicillins",
        "members": [
            "Penicillin", "Amoxicillin", "Ampicillin", "Piperacillin",
            "Nafcillin", "Oxacillin", "Dicloxacillin",
            "Amoxicillin-Clavulanate", "Ampicillin-Sulbactam",
        ],
    },
    {
        "name": "first_generation_cephalosporins",
        "members": ["Cefazolin", "Cephalexin", "Cefadroxil"],
    },
    {
        "name": "carbapenems",
        "members": ["Meropenem", "Imipenem", "Ertapenem", "Doripenem"],
    },
    {
        "name": "sulfonamide_antibiotics",
        "members": ["Sulfamethoxazole", "Sulfamethoxazole-Trimethoprim", "Sulfadiazine"],
    },
    {
        "name": "nsaids",
        "members": ["Aspirin", "Ibuprofen", "Naproxen", "Ketorolac", "Diclofenac"],
    },
    {
        "name": "tree_nuts",
        "members": ["Almond", "Cashew", "Walnut", "Pecan", "Pistachio", "Hazelnut"],
    },
    {
        "name": "shellfish",
        "members": ["Shrimp", "Crab", "Lobster", "Crayfish"],
    },
]

DEFAULT_CONFIG = EngineConfig(
    cross_sensitivity_groups=[CrossSensitivityGroup(**g) for g in _DEFAULT_GROUPS],
)
"""Built-in configuration: every allergen class checked, common groupings.

Penicillin and Ibuprofen deliberately sit in different groups: an NSAID is
not a cross-sensitivity risk for a penicillin allergy.
"""


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

def load_config_from_yaml(path: str | Path) -> EngineConfig:
    """Load an ``EngineConfig`` from a YAML file.

    The file must contain a top-level ``engine`` mapping::

        engine:
          interaction_classes: [medication]
          cross_sensitivity_groups:
            - name: penicillins
              members: [Penicillin, Amoxicillin]

    Args:
        path: Path to the YAML file.

    Returns:
        The validated configuration.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the YAML structure is invalid.
        pydantic.ValidationError: If a value fails validation.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Engine config file not found: {path}")

    with open(path, "r") as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict) or "engine" not in raw:
        raise ValueError("YAML file must contain a top-level 'engine' mapping.")

    engine = raw["engine"]
    if engine is None:
        return EngineConfig()
    if not isinstance(engine, dict):
        raise ValueError("'engine' must be a mapping.")

    groups = engine.get("cross_sensitivity_groups", [])
    if groups is not None and not isinstance(groups, list):
        raise ValueError("'cross_sensitivity_groups' must be a list of group objects.")
    for idx, entry in enumerate(groups or []):
        if not isinstance(entry, dict):
            raise ValueError(f"Cross-sensitivity group at index {idx} must be a mapping.")

    return EngineConfig(**engine)
