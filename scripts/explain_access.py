#!/usr/bin/env python3
"""
Record Access Explainer

Runs the record sharing evaluator offline against a JSON scenario so admins
can see why a user does or does not get access to a record, without a
database connection.

Scenario file format:
    {
        "record": {"record_id": "...", "object_api_name": "Contact",
                   "owner_id": "...", "organization_id": "...",
                   "field_values": {...}},
        "user": {"user_id": "...", "role_id": "...",
                 "organization_id": "...", "hierarchy_level": 2},
        "sharing_model": "private",
        "sharing_rules": [...],
        "manual_shares": [...],
        "owner_hierarchy_level": 3
    }

Usage:
    python scripts/explain_access.py --builtin
    python scripts/explain_access.py --scenario path/to/scenario.json
    python scripts/explain_access.py --scenario scenario.json --require write
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

os.environ.setdefault("VALIDATE_CONFIG", "false")

from backend.schemas.sharing import (
    ManualShare,
    RecordContext,
    SharingEvaluationResult,
    SharingModel,
    SharingRule,
    UserContext,
)
from backend.services.record_sharing import (
    evaluate_record_access,
    get_access_level_description,
    get_access_source_description,
    get_sharing_model_display_name,
    satisfies_access,
)

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


BUILTIN_SCENARIOS = [
    {
        "name": "Public read-only default, no other grants",
        "record": {"record_id": "contact-1", "object_api_name": "Contact",
                   "owner_id": "doula-ana", "organization_id": "practice-1"},
        "user": {"user_id": "doula-bea", "organization_id": "practice-1"},
        "sharing_model": "read",
    },
    {
        "name": "Private default, criteria rule shares active clients with the backup-doula role",
        "record": {"record_id": "contact-2", "object_api_name": "Contact",
                   "owner_id": "doula-ana", "organization_id": "practice-1",
                   "field_values": {"status": "active"}},
        "user": {"user_id": "doula-bea", "role_id": "backup-doula", "organization_id": "practice-1"},
        "sharing_model": "private",
        "sharing_rules": [{
            "id": "rule-1", "name": "Active clients to backups", "is_active": True,
            "access_level": "read_write", "share_with_type": "role",
            "share_with_id": "backup-doula", "rule_type": "criteria",
            "criteria": {"match_type": "all",
                         "conditions": [{"field": "status", "operator": "equals", "value": "active"}]},
        }],
    },
    {
        "name": "Owner with a read-only manual share to themselves",
        "record": {"record_id": "contact-3", "object_api_name": "Contact",
                   "owner_id": "doula-ana", "organization_id": "practice-1"},
        "user": {"user_id": "doula-ana", "organization_id": "practice-1"},
        "sharing_model": "private",
        "manual_shares": [{
            "id": "share-1", "share_with_type": "user", "share_with_id": "doula-ana",
            "access_level": "read", "reason": "Audit copy",
        }],
    },
]


def evaluate_scenario(scenario: Dict[str, Any]) -> SharingEvaluationResult:
    """Build evaluator inputs from a scenario dict and evaluate."""
    return evaluate_record_access(
        record_context=RecordContext.model_validate(scenario["record"]),
        user_context=UserContext.model_validate(scenario["user"]),
        sharing_model=SharingModel(scenario.get("sharing_model", "private")),
        sharing_rules=[SharingRule.model_validate(r) for r in scenario.get("sharing_rules", [])],
        manual_shares=[ManualShare.model_validate(s) for s in scenario.get("manual_shares", [])],
        owner_hierarchy_level=scenario.get("owner_hierarchy_level"),
    )


def print_result(scenario: Dict[str, Any], result: SharingEvaluationResult, require: str):
    """Pretty print an evaluation."""
    print("\n" + "=" * 60)
    print(f"SCENARIO: {scenario.get('name', 'custom')}")
    print(f"OWD:      {get_sharing_model_display_name(SharingModel(scenario.get('sharing_model', 'private')))}")
    print("=" * 60)

    if not result.all_access_grants:
        print("\n❌ No grants apply")
    else:
        print(f"\nGrants ({len(result.all_access_grants)}):")
        for grant in result.all_access_grants:
            print(f"  - {get_access_level_description(grant.level):<12} "
                  f"{get_access_source_description(grant.source)} ({grant.source_name})")

    if result.access_level is not None:
        print(f"\nHighest:  {get_access_level_description(result.access_level)} "
              f"via {result.access_source.value}")

    allowed = satisfies_access(result.access_level, require)
    print(f"{require.upper()}:    {'✅ allowed' if allowed else '❌ denied'}\n")


def main():
    parser = argparse.ArgumentParser(description="Explain a record access decision")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--scenario", help="Path to a JSON scenario file")
    group.add_argument("--builtin", action="store_true", help="Run the built-in scenarios")
    parser.add_argument("--require", choices=["read", "write"], default="read",
                        help="Access type to check (default: read)")
    args = parser.parse_args()

    if args.builtin:
        scenarios = BUILTIN_SCENARIOS
    else:
        with open(args.scenario, encoding="utf-8") as f:
            scenarios = [json.load(f)]

    logger.info(f"Evaluating {len(scenarios)} scenario(s), require={args.require}")

    for scenario in scenarios:
        result = evaluate_scenario(scenario)
        print_result(scenario, result, args.require)


if __name__ == "__main__":
    main()
