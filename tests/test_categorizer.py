"""Tests for bucket assignment of finished entities."""
from dead_code_analyzer.analyzer.categorizer import categorize, is_exempt
from dead_code_analyzer.analyzer.extractor import Entity, EntityCategory


def entity(name, internal=0, external=None, **flags):
    category = EntityCategory.FUNCTION if flags.pop("function", False) else EntityCategory.CLASS
    record = Entity(name, category, "/p/lib/a.dart", 1, 0, **flags)
    record.key = name
    record.internal_usage_count = internal
    record.external_usages = dict(external or {})
    return record


def keys(bucket):
    return [record.key for record in bucket]


class TestUsageBuckets:
    """unused / internal_only / external_only / mixed are mutually exclusive."""

    def test_each_entity_lands_in_one_bucket(self):
        """Usage buckets are mutually exclusive."""
        result = categorize([
            entity("Unused"),
            entity("Local", internal=2),
            entity("Imported", external={"/p/lib/b.dart": 1}),
            entity("Both", internal=1, external={"/p/lib/b.dart": 3}),
        ])

        assert keys(result.unused) == ["Unused"]
        assert keys(result.internal_only) == ["Local"]
        assert keys(result.external_only) == ["Imported"]
        assert keys(result.mixed) == ["Both"]

    def test_commented_wins_over_counts(self):
        """A commented record is always in the commented bucket."""
        result = categorize([entity("Old", internal=5, commented_out=True)])

        assert keys(result.commented) == ["Old"]
        assert result.internal_only == []

    def test_ordering_by_usage_then_key(self):
        """Buckets sort by total usages descending, then key."""
        result = categorize([
            entity("B", internal=1),
            entity("A", internal=1),
            entity("C", internal=4),
        ])

        assert keys(result.internal_only) == ["C", "A", "B"]

    def test_summary_counts(self):
        """summary() reports one count per bucket."""
        result = categorize([entity("One"), entity("Two"), entity("Three", internal=1)])
        summary = result.summary()

        assert summary["unused"] == 2
        assert summary["internal_only"] == 1
        assert set(summary) == set(result.BUCKETS)


class TestExemptions:
    """Entry points, lifecycle members and overrides are never unused."""

    def test_exempt_entities_are_not_unused(self):
        """Entry points, lifecycle members and overrides are never unused."""
        result = categorize([
            entity("callback", function=True, is_entry_point=True),
            entity("initState", function=True, is_lifecycle_member=True),
            entity("toJson", function=True, is_override=True),
        ])

        assert result.unused == []
        assert keys(result.entry_point) == ["callback"]
        assert keys(result.framework_lifecycle) == ["initState"]
        assert keys(result.override) == ["toJson"]

    def test_empty_lifecycle_tag(self):
        """Empty lifecycle bodies get their own tag."""
        result = categorize([
            entity("dispose", function=True, is_lifecycle_member=True, has_empty_body=True),
            entity("build", function=True, is_lifecycle_member=True),
        ])

        assert keys(result.empty_lifecycle) == ["dispose"]
        assert keys(result.framework_lifecycle) == ["build", "dispose"]

    def test_exempt_with_usages_keeps_usage_bucket(self):
        """Exemption tags do not remove an entity from its usage bucket."""
        result = categorize([entity("main", function=True, is_entry_point=True, internal=1)])

        assert keys(result.entry_point) == ["main"]
        assert keys(result.internal_only) == ["main"]

    def test_is_exempt(self):
        """An override alone makes an entity exempt."""
        assert is_exempt(entity("x", is_override=True))
        assert not is_exempt(entity("y"))

    def test_to_dict_uses_keys(self):
        """The serialized buckets list entity keys."""
        data = categorize([entity("Unused")]).to_dict()
        assert data["unused"] == ["Unused"]
