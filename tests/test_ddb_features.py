"""Tests for feature aggregation."""

from datetime import datetime, timezone

from ddb_foundry.importers.dndbeyond.features import aggregate_features
from ddb_foundry.importers.dndbeyond.source import parse_source_character
from ddb_foundry.models import FLAG_NAMESPACE, FeatureSource


def _features(raw):
    source, _ = parse_source_character(raw)
    return aggregate_features(source)


class TestAggregateFeatures:

    def test_sample_order_and_sources(self, ddb_sample):
        features, warnings = _features(ddb_sample)

        assert warnings == []
        assert [(f.name, f.source.value, f.source_name) for f in features] == [
            ("Favored Enemy", "class", "Ranger Level 1"),
            ("Natural Explorer", "class", "Ranger Level 1"),
            ("Extra Attack", "class", "Ranger Level 5"),
            ("Druidic", "class", "Druid Level 1"),
            ("Wild Shape", "class", "Druid Level 2"),
            ("Dread Ambusher", "subclass", "Gloom Stalker Level 3"),
            ("Darkvision", "race", "Wood Elf"),
            ("Languages", "race", "Wood Elf"),
            ("Fey Ancestry", "race", "Wood Elf"),
            ("Wanderer", "background", "Outlander"),
            ("Alert", "feat", "Feat"),
            ("Deft Explorer", "optional", "Optional Class Feature"),
        ]

    def test_min_level_from_required_level(self, ddb_sample):
        features, _ = _features(ddb_sample)
        by_name = {f.name: f for f in features}
        assert by_name["Extra Attack"].min_level == 5
        assert by_name["Dread Ambusher"].min_level == 3
        assert by_name["Darkvision"].min_level == 1
        assert by_name["Alert"].min_level == 1

    def test_missing_description_is_empty_string(self, ddb_sample):
        features, _ = _features(ddb_sample)
        by_name = {f.name: f for f in features}
        assert by_name["Natural Explorer"].description == ""
        assert by_name["Deft Explorer"].description == ""

    def test_no_duplicate_triples(self, ddb_sample):
        features, _ = _features(ddb_sample)
        keys = [f.key for f in features]
        assert len(keys) == len(set(keys))

    def test_same_name_at_two_levels_is_kept(self):
        features, _ = _features({
            "classes": [{
                "level": 11,
                "definition": {"name": "Fighter"},
                "classFeatures": [
                    {"definition": {"name": "Extra Attack", "requiredLevel": 5}},
                    {"definition": {"name": "Extra Attack", "requiredLevel": 11}},
                ],
            }]
        })
        assert [f.source_name for f in features] == ["Fighter Level 5", "Fighter Level 11"]

    def test_exact_repeat_is_collapsed(self):
        features, _ = _features({
            "feats": [
                {"definition": {"name": "Lucky"}},
                {"definition": {"name": "Lucky"}},
            ]
        })
        assert len(features) == 1

    def test_different_sources_are_not_merged(self):
        features, _ = _features({
            "classes": [{
                "level": 1,
                "definition": {"name": "Rogue"},
                "classFeatures": [{"definition": {"name": "Alert"}}],
            }],
            "feats": [{"definition": {"name": "Alert"}}],
        })
        assert [(f.name, f.source) for f in features] == [
            ("Alert", FeatureSource.CLASS),
            ("Alert", FeatureSource.FEAT),
        ]

    def test_entries_without_name_are_skipped(self):
        features, warnings = _features({
            "feats": [{"definition": {"id": 9}}, "junk", {"definition": {"name": "Tough"}}],
        })
        assert [f.name for f in features] == ["Tough"]
        assert len(warnings) == 2
        assert "id 9" in warnings[0]

    def test_unreadable_feature_beside_good_one(self):
        features, warnings = _features({
            "feats": [
                {"definition": {"id": 31, "name": "Lucky", "description": ["not", "text"]}},
                {"definition": {"id": 32, "name": "Tough", "description": "<p>More HP.</p>"}},
            ],
        })
        assert [f.name for f in features] == ["Tough"]
        assert len(warnings) == 1
        assert "Feat feature #0 (id 31)" in warnings[0]
        assert "description" in warnings[0]

    def test_background_without_feature(self):
        features, _ = _features({"background": {"definition": {"name": "Acolyte"}}})
        assert features == []

    def test_provenance_flags(self, ddb_sample):
        source, _ = parse_source_character(ddb_sample)
        stamp = datetime(2024, 5, 1, tzinfo=timezone.utc)
        features, _ = aggregate_features(source, imported_at=stamp)

        flags = features[0].flags[FLAG_NAMESPACE]
        assert flags["source_id"] == 12345678
        assert flags["ddb_id"] == 101
        assert flags["imported_at"] == stamp
        assert flags["type"] == "classFeature"
