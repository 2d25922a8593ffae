"""
AllergyLedger Record Engine
===========================

A record lifecycle engine for patient allergy records that are created
once, amended only through well-defined transitions, and never silently
overwritten.  Provides vocabulary validation, duplicate suppression,
append-only severity history, cross-sensitivity interaction checks, and
capability-based read access, on top of an external key-value store and
an external identity/clock provider.

DISCLAIMER: Interaction checks compare recorded allergen names against a
configured table.  They support, and do not replace, clinical review of
prescribing decisions.
"""

__version__ = "0.1.0"
