"""
Tests for the record sharing evaluator.

Tests cover:
- Organization isolation and owner supremacy
- Access level ordering and satisfaction
- Organization-wide default mapping
- Role hierarchy, sharing rule and manual share grants
- Aggregation (highest level wins, first source wins a tie)
- Display labels and criteria payload validation
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import product

import pytest

from backend.schemas.sharing import (
    AccessSource,
    ManualShare,
    RecordAccessLevel,
    RecordContext,
    SharingCriteria,
    SharingCriteriaCondition,
    SharingModel,
    SharingRule,
    UserContext,
)
from backend.services.record_sharing import (
    compare_access_levels,
    evaluate_manual_share,
    evaluate_record_access,
    evaluate_sharing_rule,
    get_access_level_description,
    get_access_source_description,
    get_sharing_model_description,
    get_sharing_model_display_name,
    has_hierarchy_access,
    satisfies_access,
    sharing_model_to_access_level,
    sharing_rule_applies_to_user,
    validate_sharing_criteria,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

READ = RecordAccessLevel.READ
READ_WRITE = RecordAccessLevel.READ_WRITE
FULL_ACCESS = RecordAccessLevel.FULL_ACCESS


def make_rule(**overrides) -> SharingRule:
    data = {
        "id": "rule-1",
        "name": "Active clients to backups",
        "is_active": True,
        "access_level": "read_write",
        "share_with_type": "role",
        "share_with_id": "role-backup",
        "rule_type": "criteria",
        "criteria": {
            "match_type": "all",
            "conditions": [{"field": "status", "operator": "equals", "value": "active"}],
        },
    }
    data.update(overrides)
    return SharingRule.model_validate(data)


def make_share(**overrides) -> ManualShare:
    data = {
        "id": "share-1",
        "share_with_type": "user",
        "share_with_id": "doula-bea",
        "access_level": "read",
        "expires_at": None,
        "reason": None,
    }
    data.update(overrides)
    return ManualShare.model_validate(data)


class TestCompareAccessLevels:
    """Total order: full_access > read_write > read > None."""

    ORDERED = [None, READ, READ_WRITE, FULL_ACCESS]

    def test_all_ordered_pairs(self):
        """Every pair of levels resolves to the higher one."""
        for (i, a), (j, b) in product(enumerate(self.ORDERED), repeat=2):
            assert compare_access_levels(a, b) == self.ORDERED[max(i, j)]

    def test_none_is_lowest(self):
        assert compare_access_levels(None, READ) == READ
        assert compare_access_levels(READ, None) == READ
        assert compare_access_levels(None, None) is None

    def test_equal_levels_return_first(self):
        assert compare_access_levels(READ_WRITE, READ_WRITE) is READ_WRITE


class TestSatisfiesAccess:

    @pytest.mark.parametrize("granted", [READ, READ_WRITE, FULL_ACCESS])
    def test_read_satisfied_by_any_level(self, granted):
        assert satisfies_access(granted, "read") is True

    def test_write_requires_read_write_or_full(self):
        assert satisfies_access(READ, "write") is False
        assert satisfies_access(READ_WRITE, "write") is True
        assert satisfies_access(FULL_ACCESS, "write") is True

    def test_no_access_satisfies_nothing(self):
        assert satisfies_access(None, "read") is False
        assert satisfies_access(None, "write") is False


class TestSharingModelToAccessLevel:

    def test_private_grants_nothing(self):
        assert sharing_model_to_access_level(SharingModel.PRIVATE) is None

    @pytest.mark.parametrize("model,level", [
        (SharingModel.READ, READ),
        (SharingModel.READ_WRITE, READ_WRITE),
        (SharingModel.FULL_ACCESS, FULL_ACCESS),
    ])
    def test_public_models_map_to_same_named_level(self, model, level):
        assert sharing_model_to_access_level(model) == level

    def test_accepts_raw_string_values(self):
        assert sharing_model_to_access_level("read_write") == READ_WRITE


class TestHierarchyAccess:

    def test_senior_user_has_access(self):
        assert has_hierarchy_access(1, 3) is True

    def test_same_level_has_no_access(self):
        assert has_hierarchy_access(2, 2) is False

    def test_junior_user_has_no_access(self):
        assert has_hierarchy_access(4, 2) is False

    def test_missing_levels_grant_nothing(self):
        assert has_hierarchy_access(None, 3) is False
        assert has_hierarchy_access(1, None) is False
        assert has_hierarchy_access(None, None) is False

    def test_top_level_zero_counts(self):
        assert has_hierarchy_access(0, 1) is True


class TestSharingRuleAppliesToUser:

    def test_role_rule_matches_user_role(self, user_context):
        assert sharing_rule_applies_to_user(make_rule(), user_context) is True

    def test_role_rule_other_role_does_not_match(self, user_context):
        rule = make_rule(share_with_id="role-director")
        assert sharing_rule_applies_to_user(rule, user_context) is False

    def test_user_rule_matches_user_id(self, user_context):
        rule = make_rule(share_with_type="user", share_with_id="doula-bea")
        assert sharing_rule_applies_to_user(rule, user_context) is True

    def test_user_rule_does_not_match_role_id(self, user_context):
        rule = make_rule(share_with_type="user", share_with_id="role-backup")
        assert sharing_rule_applies_to_user(rule, user_context) is False

    def test_inactive_rule_never_applies(self, user_context):
        assert sharing_rule_applies_to_user(make_rule(is_active=False), user_context) is False

    def test_public_group_never_matches(self, user_context):
        rule = make_rule(share_with_type="public_group", share_with_id="role-backup")
        assert sharing_rule_applies_to_user(rule, user_context) is False

    def test_role_rule_without_target_does_not_match_user_without_role(self):
        user = UserContext(user_id="doula-cy", role_id=None, organization_id="practice-1")
        rule = make_rule(share_with_id=None)
        assert sharing_rule_applies_to_user(rule, user) is False


class TestEvaluateSharingRule:

    def test_matching_criteria_grants_rule_level(self, record_context, user_context):
        assert evaluate_sharing_rule(make_rule(), record_context, user_context) == READ_WRITE

    def test_non_matching_criteria_grants_nothing(self, record_context, user_context):
        rule = make_rule(criteria={
            "match_type": "all",
            "conditions": [{"field": "status", "operator": "equals", "value": "closed"}],
        })
        assert evaluate_sharing_rule(rule, record_context, user_context) is None

    def test_inactive_rule_grants_nothing(self, record_context, user_context):
        assert evaluate_sharing_rule(make_rule(is_active=False), record_context, user_context) is None

    def test_criteria_skipped_without_field_values(self, user_context):
        record = RecordContext(
            record_id="contact-9",
            object_api_name="Contact",
            owner_id="doula-ana",
            organization_id="practice-1",
        )
        rule = make_rule(criteria={
            "match_type": "all",
            "conditions": [{"field": "status", "operator": "equals", "value": "closed"}],
        })
        assert evaluate_sharing_rule(rule, record, user_context) == READ_WRITE

    def test_empty_field_values_are_still_evaluated(self, user_context):
        record = RecordContext(
            record_id="contact-9",
            object_api_name="Contact",
            organization_id="practice-1",
            field_values={},
        )
        assert evaluate_sharing_rule(make_rule(), record, user_context) is None

    def test_owner_based_rule_accepted_without_owner_role_check(self, record_context, user_context):
        rule = make_rule(rule_type="owner_based", owner_role_id="role-unrelated", criteria=None)
        assert evaluate_sharing_rule(rule, record_context, user_context) == READ_WRITE

    def test_null_criteria_matches_everything(self, record_context, user_context):
        rule = make_rule(criteria=None)
        assert evaluate_sharing_rule(rule, record_context, user_context) == READ_WRITE

    def test_unknown_operator_fails_closed(self, record_context, user_context):
        rule = make_rule(criteria={
            "match_type": "all",
            "conditions": [{"field": "status", "operator": "matches_regex", "value": ".*"}],
        })
        assert evaluate_sharing_rule(rule, record_context, user_context) is None


class TestEvaluateManualShare:

    def test_share_to_user_grants_level(self, user_context):
        assert evaluate_manual_share(make_share(), user_context, now=NOW) == READ

    def test_share_to_role_grants_level(self, user_context):
        share = make_share(share_with_type="role", share_with_id="role-backup", access_level="read_write")
        assert evaluate_manual_share(share, user_context, now=NOW) == READ_WRITE

    def test_share_to_other_user_grants_nothing(self, user_context):
        share = make_share(share_with_id="doula-cy")
        assert evaluate_manual_share(share, user_context, now=NOW) is None

    def test_expired_share_grants_nothing(self, user_context):
        share = make_share(expires_at=NOW - timedelta(seconds=1))
        assert evaluate_manual_share(share, user_context, now=NOW) is None

    def test_future_expiry_grants_level(self, user_context):
        share = make_share(expires_at=NOW + timedelta(days=7))
        assert evaluate_manual_share(share, user_context, now=NOW) == READ

    def test_share_expiring_exactly_now_still_applies(self, user_context):
        share = make_share(expires_at=NOW)
        assert evaluate_manual_share(share, user_context, now=NOW) == READ

    def test_naive_expiry_is_read_as_utc(self, user_context):
        share = make_share(expires_at="2025-06-01T11:00:00")
        assert evaluate_manual_share(share, user_context, now=NOW) is None

    def test_expiry_string_with_offset(self, user_context):
        # 06:30-06:00 is 12:30 UTC, after NOW
        share = make_share(expires_at="2025-06-01T06:30:00-06:00")
        assert evaluate_manual_share(share, user_context, now=NOW) == READ

    def test_defaults_to_current_time(self, user_context):
        long_ago = datetime(2000, 1, 1, tzinfo=timezone.utc)
        assert evaluate_manual_share(make_share(expires_at=long_ago), user_context) is None


class TestEvaluateRecordAccess:
    """End-to-end evaluation."""

    def test_org_wide_read_default(self, record_context, user_context):
        """Public read-only default with no other grants."""
        result = evaluate_record_access(record_context, user_context, SharingModel.READ, [], [], None)

        assert result.has_access is True
        assert result.access_level == READ
        assert result.access_source == AccessSource.ORG_WIDE_DEFAULT
        assert len(result.all_access_grants) == 1
        assert result.all_access_grants[0].source_name == "Organization Default: read"

    def test_private_default_with_matching_role_rule(self, record_context, user_context):
        """Private default opened up by a criteria rule for the user's role."""
        result = evaluate_record_access(
            record_context, user_context, SharingModel.PRIVATE, [make_rule()], [], None
        )

        assert result.has_access is True
        assert result.access_level == READ_WRITE
        assert result.access_source == AccessSource.SHARING_RULE
        grant = result.all_access_grants[0]
        assert grant.source_id == "rule-1"
        assert grant.source_name == "Sharing Rule: Active clients to backups"

    def test_owner_grant_dominates_lower_manual_share(self, record_context):
        """An owner with a read-only share to themselves still has full access."""
        owner = UserContext(user_id="doula-ana", organization_id="practice-1")
        share = make_share(share_with_id="doula-ana", access_level="read")

        result = evaluate_record_access(
            record_context, owner, SharingModel.PRIVATE, [], [share], None, now=NOW
        )

        assert result.has_access is True
        assert result.access_level == FULL_ACCESS
        assert result.access_source == AccessSource.OWNER
        assert [g.source for g in result.all_access_grants] == [
            AccessSource.OWNER,
            AccessSource.MANUAL_SHARE,
        ]

    def test_other_organization_always_denied(self, record_context):
        """Cross-organization access is denied even for the owner with matching grants."""
        outsider = UserContext(
            user_id="doula-ana",
            role_id="role-backup",
            organization_id="practice-2",
            hierarchy_level=0,
        )
        share = make_share(share_with_id="doula-ana", access_level="full_access")

        result = evaluate_record_access(
            record_context, outsider, SharingModel.FULL_ACCESS, [make_rule()], [share], 5, now=NOW
        )

        assert result.has_access is False
        assert result.access_level is None
        assert result.access_source is None
        assert result.all_access_grants == []

    @pytest.mark.parametrize("model", list(SharingModel))
    def test_owner_always_has_full_access(self, record_context, model):
        owner = UserContext(user_id="doula-ana", organization_id="practice-1")
        result = evaluate_record_access(record_context, owner, model)

        assert result.has_access is True
        assert result.access_level == FULL_ACCESS

    def test_private_default_without_grants_denies(self, record_context, user_context):
        result = evaluate_record_access(record_context, user_context, SharingModel.PRIVATE)

        assert result.has_access is False
        assert result.access_level is None
        assert result.access_source is None
        assert result.all_access_grants == []

    def test_unowned_record_grants_no_owner_access(self, user_context):
        record = RecordContext(
            record_id="lead-1",
            object_api_name="Lead",
            owner_id=None,
            organization_id="practice-1",
        )
        result = evaluate_record_access(record, user_context, SharingModel.PRIVATE)

        assert result.has_access is False

    def test_role_hierarchy_grants_read_write(self, record_context):
        director = UserContext(
            user_id="director-1",
            role_id="role-director",
            organization_id="practice-1",
            hierarchy_level=1,
        )
        result = evaluate_record_access(
            record_context, director, SharingModel.PRIVATE, owner_hierarchy_level=3
        )

        assert result.access_level == READ_WRITE
        assert result.access_source == AccessSource.ROLE_HIERARCHY
        assert result.all_access_grants[0].source_name == "Role Hierarchy"

    def test_role_hierarchy_never_grants_full_access(self, record_context):
        director = UserContext(user_id="director-1", organization_id="practice-1", hierarchy_level=0)
        result = evaluate_record_access(
            record_context, director, SharingModel.READ, owner_hierarchy_level=10
        )

        assert result.access_level == READ_WRITE

    def test_hierarchy_without_owner_level_grants_nothing(self, record_context):
        director = UserContext(user_id="director-1", organization_id="practice-1", hierarchy_level=0)
        result = evaluate_record_access(record_context, director, SharingModel.PRIVATE)

        assert result.has_access is False

    def test_expired_share_not_in_grants(self, record_context, user_context):
        share = make_share(access_level="full_access", expires_at=NOW - timedelta(days=1))
        result = evaluate_record_access(
            record_context, user_context, SharingModel.PRIVATE, [], [share], None, now=NOW
        )

        assert result.has_access is False
        assert result.all_access_grants == []

    def test_inactive_rule_not_in_grants(self, record_context, user_context):
        result = evaluate_record_access(
            record_context, user_context, SharingModel.PRIVATE, [make_rule(is_active=False)]
        )

        assert result.has_access is False
        assert result.all_access_grants == []

    def test_public_group_rule_not_in_grants(self, record_context, user_context):
        rule = make_rule(share_with_type="public_group", share_with_id="group-all")
        result = evaluate_record_access(record_context, user_context, SharingModel.PRIVATE, [rule])

        assert result.all_access_grants == []

    def test_highest_grant_wins(self, record_context, user_context):
        rule = make_rule(access_level="read")
        share = make_share(access_level="full_access", reason="Covering birth on call")

        result = evaluate_record_access(
            record_context, user_context, SharingModel.READ, [rule], [share], None, now=NOW
        )

        assert result.access_level == FULL_ACCESS
        assert result.access_source == AccessSource.MANUAL_SHARE
        assert len(result.all_access_grants) == 3
        assert result.all_access_grants[-1].source_name == "Covering birth on call"
        assert result.all_access_grants[-1].source_id == "share-1"

    def test_tie_keeps_first_source_in_evaluation_order(self, record_context, user_context):
        """On equal levels the earlier source is reported."""
        result = evaluate_record_access(
            record_context, user_context, SharingModel.READ_WRITE, [make_rule()], [], None
        )

        assert result.access_level == READ_WRITE
        assert result.access_source == AccessSource.ORG_WIDE_DEFAULT
        assert len(result.all_access_grants) == 2

    def test_manual_share_default_source_name(self, record_context, user_context):
        result = evaluate_record_access(
            record_context, user_context, SharingModel.PRIVATE, [], [make_share()], None, now=NOW
        )

        assert result.all_access_grants[0].source_name == "Manual Share"

    def test_every_matching_rule_contributes(self, record_context, user_context):
        rules = [
            make_rule(id="rule-1", name="By role"),
            make_rule(id="rule-2", name="By user", share_with_type="user",
                      share_with_id="doula-bea", access_level="read"),
            make_rule(id="rule-3", name="Other role", share_with_id="role-director"),
        ]
        result = evaluate_record_access(record_context, user_context, SharingModel.PRIVATE, rules)

        assert [g.source_id for g in result.all_access_grants] == ["rule-1", "rule-2"]
        assert result.access_level == READ_WRITE

    def test_nan_field_value_only_drops_that_rule(self, user_context):
        """A NaN amount fails its condition; other grants still apply."""
        record = RecordContext(
            record_id="contact-7",
            object_api_name="Contact",
            owner_id="doula-ana",
            organization_id="practice-1",
            field_values={"status": "active", "amount": Decimal("NaN")},
        )
        big_balance = make_rule(id="rule-2", name="Large balances", access_level="full_access", criteria={
            "match_type": "all",
            "conditions": [{"field": "amount", "operator": "greater_than", "value": 1000}],
        })

        result = evaluate_record_access(record, user_context, SharingModel.PRIVATE, [big_balance, make_rule()])

        assert result.access_level == READ_WRITE
        assert [g.source_id for g in result.all_access_grants] == ["rule-1"]

    def test_same_inputs_same_output(self, record_context, user_context):
        args = (record_context, user_context, SharingModel.READ, [make_rule()], [make_share()], 1)
        first = evaluate_record_access(*args, now=NOW)
        second = evaluate_record_access(*args, now=NOW)

        assert first == second


class TestLabels:

    def test_access_source_descriptions(self):
        assert get_access_source_description(AccessSource.OWNER) == "You are the record owner"
        assert get_access_source_description(AccessSource.MANUAL_SHARE) == "Manually shared with you"
        for source in AccessSource:
            assert get_access_source_description(source)

    def test_access_level_descriptions(self):
        assert get_access_level_description(READ) == "Read Only"
        assert get_access_level_description(READ_WRITE) == "Read/Write"
        assert get_access_level_description(FULL_ACCESS) == "Full Access"

    def test_sharing_model_display_names(self):
        assert get_sharing_model_display_name(SharingModel.PRIVATE) == "Private"
        assert get_sharing_model_display_name("read") == "Public Read Only"
        assert get_sharing_model_display_name(SharingModel.READ_WRITE) == "Public Read/Write"
        assert get_sharing_model_display_name(SharingModel.FULL_ACCESS) == "Public Full Access"

    def test_sharing_model_descriptions(self):
        for model in SharingModel:
            assert get_sharing_model_description(model)
        assert "transfer and delete" in get_sharing_model_description(SharingModel.FULL_ACCESS)


class TestValidateSharingCriteria:

    def test_valid_criteria(self):
        result = validate_sharing_criteria({
            "match_type": "any",
            "conditions": [
                {"field": "status", "operator": "equals", "value": "active"},
                {"field": "due_date", "operator": "is_not_null"},
            ],
        })
        assert result.valid is True
        assert result.error is None

    def test_empty_conditions_are_valid(self):
        assert validate_sharing_criteria({"match_type": "all", "conditions": []}).valid is True

    @pytest.mark.parametrize("candidate", [None, "criteria", 42, ["conditions"]])
    def test_non_object_rejected(self, candidate):
        result = validate_sharing_criteria(candidate)
        assert result.valid is False
        assert result.error == "Criteria must be an object"

    def test_missing_conditions_rejected(self):
        result = validate_sharing_criteria({"match_type": "all"})
        assert result.error == "Criteria must have conditions array"

    def test_bad_match_type_rejected(self):
        result = validate_sharing_criteria({"match_type": "some", "conditions": []})
        assert result.error == 'match_type must be "all" or "any"'

    def test_non_object_condition_rejected(self):
        result = validate_sharing_criteria({"match_type": "all", "conditions": ["status"]})
        assert result.error == "Condition 0 must be an object"

    @pytest.mark.parametrize("field", [None, "", 7])
    def test_condition_without_field_rejected(self, field):
        result = validate_sharing_criteria({
            "match_type": "all",
            "conditions": [
                {"field": "status", "operator": "equals", "value": "active"},
                {"field": field, "operator": "equals", "value": "x"},
            ],
        })
        assert result.valid is False
        assert result.error == "Condition 1 must have a field"

    def test_unknown_operator_rejected(self):
        result = validate_sharing_criteria({
            "match_type": "all",
            "conditions": [{"field": "status", "operator": "like", "value": "act%"}],
        })
        assert result.error == "Condition 0 has invalid operator"


def test_condition_model_keeps_unknown_operator():
    """Stored rules with newer operators still load."""
    condition = SharingCriteriaCondition(field="status", operator="regex", value=".*")
    criteria = SharingCriteria(conditions=[condition])
    assert criteria.match_type == "all"
    assert criteria.conditions[0].operator == "regex"
