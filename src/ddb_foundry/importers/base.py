"""
Base models and exceptions for the character import system.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, ValidationError

from ..models import NormalizedActor


class ImportError(Exception):
    """Raised when a character import fails.

    Provides a user-facing message explaining what went wrong
    and, where possible, how to fix it.
    """


def describe_entry_error(error: Exception) -> str:
    """One-line reason why a single source entry could not be read."""
    if isinstance(error, ValidationError):
        first = error.errors()[0]
        field = ".".join(str(part) for part in first["loc"])
        return f"{field}: {first['msg']}" if field else first["msg"]
    return str(error)


class ImportedSection(BaseModel):
    """A section that was successfully imported."""

    name: str = Field(description="Section name")
    summary: str = Field(default="", description="Brief summary of the imported value")


class ImportWarning(BaseModel):
    """A warning generated during import."""

    section: str = Field(description="Section that triggered the warning")
    message: str = Field(description="Human-readable warning message")
    suggestion: str = Field(default="", description="Actionable suggestion to resolve the warning")


class NotImported(BaseModel):
    """A section that could not be imported."""

    section: str = Field(description="Section name that was not imported")
    reason: str = Field(description="Reason why the section was not imported")


class ImportReport(BaseModel):
    """Structured import report with status, imported sections, warnings, and suggestions."""

    status: str = Field(description='Import status: "success", "success_with_warnings", or "failed"')
    character_name: str = Field(description="Name of the imported character")
    imported_sections: list[ImportedSection] = Field(
        default_factory=list,
        description="Sections successfully imported with value summaries",
    )
    warnings: list[ImportWarning] = Field(
        default_factory=list,
        description="Non-fatal issues encountered during import",
    )
    not_imported: list[NotImported] = Field(
        default_factory=list,
        description="Sections that could not be imported with reasons",
    )
    suggestions: list[str] = Field(
        default_factory=list,
        description="Actionable advice for improving the import",
    )

    def format(self) -> str:
        """Format the report as a readable text block.

        Returns:
            Multi-line formatted string suitable for an MCP tool response.
        """
        lines: list[str] = []

        # Header
        lines.append(f"D&D Beyond Import Report - {self.character_name}")
        status_display = self.status.upper().replace("_", " ")
        lines.append(f"Status: {status_display}")
        lines.append("")

        if self.imported_sections:
            lines.append(f"Imported ({len(self.imported_sections)} sections):")
            for section in self.imported_sections:
                lines.append(f"  {section.name}: {section.summary or '-'}")
            lines.append("")

        if self.warnings:
            lines.append(f"Warnings ({len(self.warnings)}):")
            for w in self.warnings:
                line = f"  - {w.message}"
                if w.suggestion:
                    line += f" ({w.suggestion})"
                lines.append(line)
            lines.append("")

        if self.not_imported:
            lines.append(f"Not Imported ({len(self.not_imported)}):")
            for ni in self.not_imported:
                lines.append(f"  - {ni.section}: {ni.reason}")
            lines.append("")

        if self.suggestions:
            lines.append("Suggestions:")
            for s in self.suggestions:
                lines.append(f"  - {s}")
            lines.append("")

        return "\n".join(lines).rstrip()


class ImportResult(BaseModel):
    """Result of a character import operation."""

    actor: NormalizedActor = Field(description="The normalized actor")
    mapped_sections: list[str] = Field(
        default_factory=list,
        description="Sections that were successfully mapped from the source",
    )
    failed_sections: list[str] = Field(
        default_factory=list,
        description="Sections whose component failed and fell back to an empty result",
    )
    source: str = Field(default="url", description='Import source: "url" or "file"')
    source_id: int | None = Field(
        default=None,
        description="Original character ID from the source platform (e.g., DDB numeric ID)",
    )

    @property
    def warnings(self) -> list[str]:
        return self.actor.warnings

    def build_report(self) -> ImportReport:
        """Build a structured ImportReport from this ImportResult.

        Returns:
            ImportReport with status, structured sections, warnings, and suggestions.
        """
        actor = self.actor

        imported = [
            ImportedSection(name=name, summary=_summarize_section(name, actor))
            for name in self.mapped_sections
        ]
        structured_warnings = [_parse_warning(w) for w in actor.warnings]
        not_imported = [
            NotImported(section=name, reason=f"Could not map '{name}' from source data")
            for name in self.failed_sections
        ]

        if self.failed_sections and not self.mapped_sections:
            status = "failed"
        elif actor.warnings or self.failed_sections:
            status = "success_with_warnings"
        else:
            status = "success"

        return ImportReport(
            status=status,
            character_name=actor.name,
            imported_sections=imported,
            warnings=structured_warnings,
            not_imported=not_imported,
            suggestions=_generate_suggestions(actor, self.failed_sections),
        )


def _summarize_section(name: str, actor: NormalizedActor) -> str:
    """Generate a brief summary for an imported section.

    Args:
        name: The section name.
        actor: The actor with the imported data.

    Returns:
        A short human-readable summary string.
    """
    if name == "abilities":
        return ", ".join(f"{code.upper()} {ab.score}" for code, ab in actor.abilities.items())
    elif name == "classes":
        classes = " / ".join(f"{c.name} {c.level}" for c in actor.details.classes)
        return f"{classes or 'None'} (prof +{actor.attributes.prof})"
    elif name == "proficiencies":
        proficient = sum(1 for s in actor.skills.values() if s.value)
        return f"{proficient} skills, {len(actor.traits.tool_prof)} tools"
    elif name == "features":
        return f"{len(actor.features)} features"
    elif name == "languages":
        return ", ".join(actor.traits.languages)
    elif name == "equipment":
        enc = actor.attributes.encumbrance
        return f"{len(actor.items)} items, {enc.value:g}/{enc.max:g} lb"
    elif name == "spells":
        total = sum(actor.spell_slots.values())
        return f"{len(actor.spells)} spells, {total} slots"
    elif name == "details":
        return actor.details.race or "Unknown race"
    return ""


def _parse_warning(warning_text: str) -> ImportWarning:
    """Parse a raw warning string into a structured ImportWarning.

    Args:
        warning_text: The raw warning message string.

    Returns:
        ImportWarning with section, message, and optional suggestion.
    """
    section = "general"
    suggestion = ""

    lower = warning_text.lower()

    if "spell slot" in lower or "progression" in lower:
        section = "spells"
        suggestion = "Set spell slots manually on the actor"
    elif "spell" in lower:
        section = "spells"
        suggestion = "Verify spell list on D&D Beyond"
    elif "class" in lower:
        section = "classes"
        suggestion = "Verify character classes on D&D Beyond"
    elif "inventory" in lower or "item" in lower:
        section = "equipment"
        suggestion = "Re-export character or manually add missing items"
    elif "feature" in lower or "trait" in lower or "feat" in lower:
        section = "features"

    return ImportWarning(section=section, message=warning_text, suggestion=suggestion)


def _generate_suggestions(actor: NormalizedActor, failed: list[str]) -> list[str]:
    """Generate actionable suggestions based on the import results."""
    suggestions: list[str] = []

    if "abilities" in failed:
        suggestions.append("Ability scores could not be imported; all were set to 10")

    if actor.spells and not actor.spell_slots:
        suggestions.append(
            "Spells were imported but no spell slots were computed. "
            "Set spell slots manually for this caster"
        )

    if not actor.details.background:
        suggestions.append("No background detected. Set it on the actor if needed")

    return suggestions
