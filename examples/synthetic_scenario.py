"""
Synthetic Scenario: Allergy Record Lifecycle Walkthrough
========================================================

This script walks one synthetic patient through the full allergy record
lifecycle using entirely synthetic identities.  No real patient data is
used.

Steps demonstrated:
  1. Load engine configuration from YAML
  2. Initialise the engine with an administrator
  3. Record allergies (and watch a duplicate get rejected)
  4. Run interaction checks (direct, cross-sensitivity, none)
  5. Update severity and inspect the history trail
  6. Resolve an allergy and confirm it is terminal
  7. Grant, use, and revoke read access
  8. Verify the audit trail

Usage:
    python -m examples.synthetic_scenario
    # or: python examples/synthetic_scenario.py
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

# Ensure the project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from allergyledger.config import DEFAULT_CONFIG, load_config_from_yaml
from allergyledger.engine import AllergyRecordEngine
from allergyledger.errors import AccessDeniedError, AlreadyResolvedError, DuplicateRecordError
from allergyledger.identity import InMemoryIdentityProvider, LogicalClock


def _banner(text: str) -> None:
    print(f"\n{'=' * 60}")
    print(f"  {text}")
    print(f"{'=' * 60}\n")


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    _banner("AllergyLedger Synthetic Scenario")
    print("All identities in this demo are synthetic.\n")

    # ------------------------------------------------------------------
    # Step 1: Load configuration
    # ------------------------------------------------------------------
    _banner("Step 1: Load Engine Configuration")

    config_yaml = Path(__file__).parent / "engine_config.yaml"
    if config_yaml.exists():
        config = load_config_from_yaml(config_yaml)
        print(f"Loaded config from {config_yaml.name}")
    else:
        config = DEFAULT_CONFIG
        print("Using built-in default configuration")
    print(f"  Cross-sensitivity groups: {[g.name for g in config.cross_sensitivity_groups]}")
    print(f"  Interaction classes: {[c.value for c in config.interaction_classes]}")

    # ------------------------------------------------------------------
    # Step 2: Initialise
    # ------------------------------------------------------------------
    _banner("Step 2: Initialise Engine")

    admin, patient, doctor, pharmacist = "admin_001", "patient_A", "dr_synthetic_001", "rx_synthetic_007"
    identity = InMemoryIdentityProvider(authenticated=[admin, patient, doctor, pharmacist])
    clock = LogicalClock(start=1_700_000_000)
    engine = AllergyRecordEngine(identity, clock, config=config)
    engine.initialize(admin)
    print(f"Administrator: {engine.admin()}")

    # ------------------------------------------------------------------
    # Step 3: Record allergies
    # ------------------------------------------------------------------
    _banner("Step 3: Record Allergies")

    penicillin_id = engine.record_allergy(
        patient, doctor, "Penicillin", "medication", ["hives", "rash"], "moderate",
        onset_time=1_600_000_000, verified=True,
    )
    clock.advance(60)
    peanut_id = engine.record_allergy(
        patient, doctor, "Peanuts", "food", ["anaphylaxis"], "critical",
    )
    print(f"Recorded Penicillin allergy: id={penicillin_id}")
    print(f"Recorded Peanuts allergy: id={peanut_id}")

    try:
        engine.record_allergy(patient, doctor, "Penicillin", "medication", ["rash"], "mild")
    except DuplicateRecordError as exc:
        print(f"Duplicate rejected ({exc.code}): {exc}")

    # ------------------------------------------------------------------
    # Step 4: Interaction checks
    # ------------------------------------------------------------------
    _banner("Step 4: Interaction Checks")

    for term in ("Penicillin", "Amoxicillin", "Ibuprofen"):
        results = engine.check_interaction(patient, term)
        if results:
            for r in results:
                print(f"  {term}: {r.match_kind.value} match on '{r.allergen_name}' "
                      f"(severity {r.severity.value}, reactions {list(r.reactions)})")
        else:
            print(f"  {term}: no recorded interaction")

    # ------------------------------------------------------------------
    # Step 5: Severity history
    # ------------------------------------------------------------------
    _banner("Step 5: Severity Updates")

    clock.advance(3600)
    engine.update_severity(penicillin_id, doctor, "severe", "Angioedema on re-exposure")
    clock.advance(3600)
    engine.update_severity(penicillin_id, doctor, "critical", "Confirmed by skin test")
    for entry in engine.get_severity_history(penicillin_id, patient):
        print(f"  t={entry.updated_at}: {entry.previous_severity.value} -> "
              f"{entry.new_severity.value} by {entry.updated_by}")

    # ------------------------------------------------------------------
    # Step 6: Resolution
    # ------------------------------------------------------------------
    _banner("Step 6: Resolve Peanut Allergy")

    clock.advance(86_400)
    engine.resolve(peanut_id, doctor, clock.now(), "Oral immunotherapy completed")
    try:
        engine.update_severity(peanut_id, doctor, "mild", "late update")
    except AlreadyResolvedError as exc:
        print(f"Update after resolution rejected ({exc.code})")
    print(f"Peanuts interaction after resolution: {engine.check_interaction(patient, 'Peanuts')}")

    # ------------------------------------------------------------------
    # Step 7: Access control
    # ------------------------------------------------------------------
    _banner("Step 7: Access Grants")

    try:
        engine.get_all_records(patient, pharmacist)
    except AccessDeniedError:
        print(f"{pharmacist} denied before grant")
    engine.grant_access(patient, pharmacist)
    active = engine.get_active_records(patient, pharmacist)
    print(f"{pharmacist} sees {len(active)} active record(s) after grant")
    engine.revoke_access(patient, pharmacist)
    print(f"{pharmacist} has access after revoke: {engine.has_access(patient, pharmacist)}")

    # ------------------------------------------------------------------
    # Step 8: Audit trail
    # ------------------------------------------------------------------
    _banner("Step 8: Audit Trail")

    entries = engine.audit_log.query(subject_id=patient)
    print(json.dumps(
        [{"t": e.timestamp, "event": e.event_type.value, "actor": e.actor_id,
          "target": e.target_entity} for e in entries],
        indent=2,
    ))
    valid, broken_at = engine.audit_log.verify_chain()
    print(f"\nChain verification: valid={valid}, broken_at={broken_at}")

    _banner("Scenario Complete")


if __name__ == "__main__":
    main()
