"""Tests for ability score computation."""

import pytest

from ddb_foundry.importers.dndbeyond.abilities import ability_modifier, compute_abilities
from ddb_foundry.importers.dndbeyond.source import parse_source_character
from ddb_foundry.models import DerivedAbility


def _source(**raw):
    source, _ = parse_source_character(raw)
    return source


class TestAbilityModifier:

    @pytest.mark.parametrize("score", range(1, 31))
    def test_modifier_is_floor_of_half_difference(self, score):
        expected = (score - 10) // 2
        assert ability_modifier(score) == expected
        assert DerivedAbility(score=score).modifier == expected

    @pytest.mark.parametrize("score,expected", [(1, -5), (8, -1), (9, -1), (10, 0), (11, 0), (16, 3), (30, 10)])
    def test_known_values(self, score, expected):
        assert DerivedAbility(score=score).modifier == expected


class TestComputeAbilities:

    def test_sample_scores(self, ddb_sample):
        source, _ = parse_source_character(ddb_sample)
        abilities, warnings = compute_abilities(source)

        assert warnings == []
        assert {code: a.score for code, a in abilities.items()} == {
            "str": 12,
            "dex": 17,  # 15 + racial +2
            "con": 13,
            "int": 10,
            "wis": 16,  # 14 + bonus stat 1 + racial +1
            "cha": 8,
        }

    def test_sample_saving_throws(self, ddb_sample):
        source, _ = parse_source_character(ddb_sample)
        abilities, _ = compute_abilities(source)

        proficient = {code for code, a in abilities.items() if a.saving_throw_proficient}
        # str/dex from named subtypes, wis from "saving-throws" + entityId 5
        assert proficient == {"str", "dex", "wis"}

    def test_missing_scores_default_to_ten(self):
        abilities, warnings = compute_abilities(_source())
        assert len(abilities) == 6
        assert all(a.score == 10 for a in abilities.values())
        assert warnings == []

    def test_override_wins(self):
        source = _source(
            stats=[{"id": 1, "value": 8}],
            bonusStats=[{"id": 1, "value": 2}],
            overrideStats=[{"id": 1, "value": 19}],
            modifiers={"item": [{"type": "bonus", "subType": "strength-score", "value": 2}]},
        )
        abilities, _ = compute_abilities(source)
        assert abilities["str"].score == 19

    def test_saving_throw_requires_matching_entity_id(self):
        source = _source(
            modifiers={"class": [{"type": "proficiency", "subType": "saving-throws", "entityId": 3}]}
        )
        abilities, _ = compute_abilities(source)
        assert abilities["con"].saving_throw_proficient
        assert not abilities["str"].saving_throw_proficient

    def test_explicit_modifier_list(self):
        source = _source(
            modifiers={"race": [{"type": "bonus", "subType": "intelligence-score", "value": 2}]}
        )
        abilities, _ = compute_abilities(source, modifiers=[])
        assert abilities["int"].score == 10

    def test_out_of_range_score_is_clamped(self):
        source = _source(stats=[{"id": 6, "value": 40}])
        abilities, warnings = compute_abilities(source)
        assert abilities["cha"].score == 30
        assert len(warnings) == 1
        assert "Charisma" in warnings[0]

    def test_save_excludes_proficiency_when_not_proficient(self):
        source = _source(stats=[{"id": 1, "value": 16}])
        abilities, _ = compute_abilities(source)

        strength = abilities["str"]
        assert strength.modifier == 3
        assert not strength.saving_throw_proficient
        assert strength.save_bonus(proficiency_bonus=2) == 3

    def test_save_bonus_includes_proficiency_when_proficient(self):
        ability = DerivedAbility(score=16, saving_throw_proficient=True)
        assert ability.save_bonus(proficiency_bonus=4) == 7

    def test_recomputed_per_call(self):
        first, _ = compute_abilities(_source(stats=[{"id": 2, "value": 14}]))
        second, _ = compute_abilities(_source(stats=[{"id": 2, "value": 18}]))
        assert first["dex"].modifier == 2
        assert second["dex"].modifier == 4
