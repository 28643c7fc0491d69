"""
test_department_resolver.py — Tests for services/department_resolver.py

Covers tier priority (exact before contains), confidence ranking inside
a tier, the optional regex/fuzzy strategies, and unmapped discovery.

Called by: pytest
Depends on: tenderlink/services/department_resolver.py, conftest.py
"""

import pytest

from tenderlink.models import DepartmentMapping
from tenderlink.services.department_resolver import (
    DepartmentResolver,
    find_unmapped_entities,
    list_unmapped_entities,
    resolve_department,
    validate_order,
)


def _rule(pattern, department, match_type="exact", confidence=1.0, rule_id=1):
    return DepartmentMapping(
        id=rule_id,
        tenant_id="T1",
        source_pattern=pattern,
        canonical_department=department,
        match_type=match_type,
        confidence=confidence,
        is_approved=True,
    )


class TestResolverPriority:
    def test_exact_beats_contains(self, db_session, make_mapping):
        make_mapping("Dept of Foo", "Department of Foo", "exact", 1.0)
        make_mapping("Foo", "Foo Agency", "contains", 0.6)

        match = resolve_department(db_session, "T1", "Dept of Foo")
        assert match.department == "Department of Foo"
        assert match.confidence == 1.0
        assert match.match_type == "exact"

    def test_exact_wins_even_with_lower_confidence(self):
        resolver = DepartmentResolver(
            [_rule("Dept of Foo", "Exact", "exact", 0.5, 1), _rule("Foo", "Contains", "contains", 0.99, 2)]
        )
        assert resolver.resolve("Dept of Foo").department == "Exact"

    def test_contains_case_insensitive(self, db_session, make_mapping):
        make_mapping("foo", "Foo Agency", "contains", 0.6)
        match = resolve_department(db_session, "T1", "DEPT OF FOO - Canberra")
        assert match.department == "Foo Agency"
        assert match.match_type == "contains"

    def test_exact_is_case_sensitive(self, db_session, make_mapping):
        make_mapping("Dept of Foo", "Department of Foo", "exact")
        assert resolve_department(db_session, "T1", "dept of foo") is None

    def test_contains_highest_confidence_wins(self):
        resolver = DepartmentResolver(
            [
                _rule("Foo", "Low", "contains", 0.4, 1),
                _rule("Dept", "High", "contains", 0.9, 2),
            ]
        )
        assert resolver.resolve("Dept of Foo").department == "High"

    def test_no_match(self, db_session, make_mapping):
        make_mapping("Dept of Foo", "Department of Foo")
        assert resolve_department(db_session, "T1", "Dept of Bar") is None

    def test_empty_input(self, db_session):
        assert resolve_department(db_session, "T1", "") is None
        assert resolve_department(db_session, "T1", None) is None
        assert resolve_department(db_session, "T1", "   ") is None

    def test_rules_are_tenant_scoped(self, db_session, make_mapping):
        make_mapping("Dept of Foo", "Department of Foo", tenant_id="T2")
        assert resolve_department(db_session, "T1", "Dept of Foo") is None

    def test_new_rule_applies_retroactively(self, db_session, make_mapping):
        assert resolve_department(db_session, "T1", "Dept of Foo") is None
        make_mapping("Dept of Foo", "Department of Foo")
        assert resolve_department(db_session, "T1", "Dept of Foo").department == "Department of Foo"

    def test_regex_ignored_by_default(self):
        resolver = DepartmentResolver([_rule(r"^Dept", "Regex", "regex")])
        assert resolver.resolve("Dept of Foo") is None


class TestOptionalStrategies:
    def test_regex_after_contains(self):
        resolver = DepartmentResolver(
            [_rule(r"^dept\s+of\s+\w+$", "Regex Dept", "regex")],
            order=["exact", "contains", "regex"],
        )
        match = resolver.resolve("Dept of Foo")
        assert match.department == "Regex Dept"
        assert match.match_type == "regex"

    def test_contains_still_beats_regex(self):
        resolver = DepartmentResolver(
            [_rule(r"Foo", "Regex", "regex", 1.0, 1), _rule("Foo", "Contains", "contains", 0.1, 2)],
            order=["exact", "contains", "regex"],
        )
        assert resolver.resolve("Dept of Foo").department == "Contains"

    def test_invalid_regex_never_matches(self):
        resolver = DepartmentResolver(
            [_rule("([unclosed", "Broken", "regex")], order=["exact", "contains", "regex"]
        )
        assert resolver.resolve("([unclosed") is None

    def test_fuzzy_word_order(self):
        resolver = DepartmentResolver(
            [_rule("Department of Finance", "Finance", "fuzzy")],
            order=["exact", "contains", "fuzzy"],
        )
        match = resolver.resolve("Finance Department of")
        assert match.department == "Finance"
        assert match.match_type == "fuzzy"

    def test_fuzzy_below_threshold(self):
        resolver = DepartmentResolver(
            [_rule("Department of Finance", "Finance", "fuzzy")],
            order=["exact", "contains", "fuzzy"],
        )
        assert resolver.resolve("Bureau of Meteorology") is None


class TestValidateOrder:
    def test_default(self):
        assert validate_order(["exact", "contains"]) == ("exact", "contains")

    def test_must_lead_with_exact_contains(self):
        with pytest.raises(ValueError):
            validate_order(["contains", "exact"])

    def test_rejects_unknown(self):
        with pytest.raises(ValueError):
            validate_order(["exact", "contains", "soundex"])

    def test_rejects_duplicates(self):
        with pytest.raises(ValueError):
            validate_order(["exact", "contains", "fuzzy", "fuzzy"])


class TestUnmapped:
    def test_find_unmapped(self):
        entities = ["Dept of Foo", "Dept of Bar", "Dept of Foo", None, "Bureau of Baz", ""]
        patterns = ["Dept of Foo", "baz"]
        assert find_unmapped_entities(entities, patterns) == ["Dept of Bar"]

    def test_first_seen_order(self):
        assert find_unmapped_entities(["B", "A", "B", "C"], []) == ["B", "A", "C"]

    def test_list_unmapped_from_db(self, db_session, make_opportunity, make_mapping):
        make_opportunity("A-1", buyer_entity_raw="Dept of Foo")
        make_opportunity("A-2", buyer_entity_raw="Dept of Bar")
        make_opportunity("A-3", buyer_entity_raw="Dept of Foo - Canberra")
        make_mapping("Dept of Foo", "Department of Foo", "contains", 0.8)

        assert list_unmapped_entities(db_session, "T1") == ["Dept of Bar"]
