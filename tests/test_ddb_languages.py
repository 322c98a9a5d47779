"""Tests for language detection."""

import pytest

from ddb_foundry.importers.dndbeyond.languages import (
    detect_languages,
    extract_languages,
    is_language_choice,
)
from ddb_foundry.importers.dndbeyond.source import parse_source_character


def _race_with_languages(description: str) -> dict:
    return {
        "race": {
            "fullName": "Test Race",
            "racialTraits": [{"definition": {"name": "Languages", "description": description}}],
        }
    }


def _detect(raw, modifier_languages=()):
    source, _ = parse_source_character(raw)
    return detect_languages(source, modifier_languages)


class TestExtractLanguages:
    """Known racial trait texts and the languages they should yield."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("You can speak, read, and write Common and Elvish.", ["common", "elvish"]),
            ("<p>You can speak, read, and write Common and Dwarvish.</p>", ["common", "dwarvish"]),
            ("You can speak, read, and write Common and one extra language of your choice.", ["common"]),
            ("You can speak, read, and write Common, Draconic, and Infernal.", ["common", "draconic", "infernal"]),
            ("You know Deep Speech and Undercommon.", ["deep speech", "undercommon"]),
            ("You know Deep\nSpeech.", ["deep speech"]),
            ("COMMON and gnomish", ["common", "gnomish"]),
            ("Common, Common, and common again", ["common"]),
            ("A Giantslayer speaks no tongue", []),
            ("Orcish is harsh and grating.", ["orcish"]),
            ("", []),
        ],
    )
    def test_known_texts(self, text, expected):
        assert extract_languages(text) == expected

    def test_none_text(self):
        assert extract_languages(None) == []

    def test_custom_vocabulary(self):
        assert extract_languages("You speak Common and Thieves' Cant", ["Thieves' Cant"]) == [
            "thieves' cant"
        ]

    def test_pure(self):
        text = "Common and Sylvan"
        assert extract_languages(text) == extract_languages(text)


class TestIsLanguageChoice:

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Two languages of your choice", True),
            ("Any one language", True),
            ("One of your Choice", True),
            ("Elvish and Sylvan", False),
        ],
    )
    def test_markers(self, text, expected):
        assert is_language_choice(text) is expected


class TestDetectLanguages:

    def test_sample(self, ddb_sample):
        source, _ = parse_source_character(ddb_sample)
        languages, warnings = detect_languages(source, ["sylvan"])
        assert languages == ["common", "elvish", "sylvan", "druidic"]
        assert warnings == []

    def test_racial_languages_trait(self):
        languages, _ = _detect(_race_with_languages("You can speak Common and Elvish"))
        assert set(languages) == {"common", "elvish"}

    def test_background_choice_skipped(self):
        languages, _ = _detect({
            "background": {"definition": {"name": "Sage", "languagesDescription": "Two languages of your choice"}}
        })
        # Nothing concrete was found, so only the fallback remains
        assert languages == ["common"]

    def test_background_concrete_languages(self):
        languages, _ = _detect({
            "background": {"definition": {"name": "Far Traveler", "languagesDescription": "Elvish, Gnomish"}}
        })
        assert languages == ["elvish", "gnomish"]

    def test_only_traits_named_languages(self):
        raw = {
            "race": {
                "racialTraits": [
                    {"definition": {"name": "Draconic Ancestry", "description": "Draconic heritage"}},
                    {"definition": {"name": "Languages", "description": "Common"}},
                ]
            }
        }
        languages, _ = _detect(raw)
        assert languages == ["common"]

    def test_modifier_languages_dedupe_case_insensitively(self):
        languages, _ = _detect(_race_with_languages("Common and Elvish"), ["Elvish", "Sylvan"])
        assert languages == ["common", "elvish", "sylvan"]

    def test_druid_implies_druidic(self):
        languages, _ = _detect({"classes": [{"level": 2, "definition": {"name": "Druid"}}]})
        assert languages == ["druidic"]

    def test_empty_falls_back_to_common(self):
        languages, warnings = _detect({})
        assert languages == ["common"]
        assert warnings == []
