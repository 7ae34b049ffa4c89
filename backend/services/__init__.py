"""
Service layer for the Doula CRM backend.

- record_sharing: the pure access evaluator (no I/O)
- *_service modules: Supabase data access under RLS that loads the
  evaluator's inputs and persists sharing configuration

Services act as the glue between routes (HTTP layer) and the database.
"""

from .manual_share_service import (
    create_manual_share,
    delete_manual_share,
    get_manual_shares,
    get_record_sharing_info,
    update_manual_share,
)
from .object_sharing_service import (
    get_object_sharing_settings,
    get_share_targets,
    update_object_sharing_model,
)
from .record_access_service import (
    check_record_access,
    evaluate_access_for_user,
    get_record_security_context,
)
from .record_sharing import (
    compare_access_levels,
    evaluate_condition,
    evaluate_criteria,
    evaluate_manual_share,
    evaluate_record_access,
    evaluate_sharing_rule,
    has_hierarchy_access,
    satisfies_access,
    sharing_model_to_access_level,
    sharing_rule_applies_to_user,
    validate_sharing_criteria,
)
from .sharing_context_service import get_user_hierarchy_level, get_user_sharing_context
from .sharing_rule_service import (
    create_sharing_rule,
    delete_sharing_rule,
    get_sharing_rule,
    get_sharing_rules,
    get_sharing_rules_for_user,
    toggle_sharing_rule_active,
    update_sharing_rule,
)

__all__ = [
    "evaluate_record_access",
    "compare_access_levels",
    "satisfies_access",
    "sharing_model_to_access_level",
    "evaluate_condition",
    "evaluate_criteria",
    "sharing_rule_applies_to_user",
    "evaluate_sharing_rule",
    "evaluate_manual_share",
    "has_hierarchy_access",
    "validate_sharing_criteria",
    "get_user_sharing_context",
    "get_user_hierarchy_level",
    "get_sharing_rules",
    "get_sharing_rule",
    "get_sharing_rules_for_user",
    "create_sharing_rule",
    "update_sharing_rule",
    "toggle_sharing_rule_active",
    "delete_sharing_rule",
    "get_manual_shares",
    "create_manual_share",
    "update_manual_share",
    "delete_manual_share",
    "get_record_sharing_info",
    "get_object_sharing_settings",
    "update_object_sharing_model",
    "get_share_targets",
    "evaluate_access_for_user",
    "check_record_access",
    "get_record_security_context",
]
