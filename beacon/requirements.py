"""
Requirement checks with tri-state verdicts.

A check's verdict is computed once, when the check is built, by one of three
decision rules:

- basic: condition met, or failed/warned depending on whether it is required
- version vulnerability: minimum version plus a known-bad patch range
- buggy library: absent, present but buggy, or present and sound
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Sequence, Tuple

Version = Tuple[int, ...]


class Verdict(Enum):
    """Outcome of a requirement check."""
    SUCCESS = "success"
    WARNING = "warning"
    FAILED = "failed"


class EvaluatorKind(Enum):
    """Decision rule used to compute a verdict."""
    BASIC = "basic"
    VERSION_VULNERABILITY = "version_vulnerability"
    BUGGY_LIBRARY = "buggy_library"


def evaluate_basic(condition: bool, required: bool) -> Verdict:
    if condition:
        return Verdict.SUCCESS
    if required:
        return Verdict.FAILED
    return Verdict.WARNING


def evaluate_version(installed: Version, minimum: Version, safe: Version) -> Verdict:
    """Failed below ``minimum``, Warning below ``safe``, else Success."""
    if tuple(installed) < tuple(minimum):
        return Verdict.FAILED
    if tuple(installed) < tuple(safe):
        return Verdict.WARNING
    return Verdict.SUCCESS


def evaluate_buggy_library(present: bool, buggy: bool) -> Verdict:
    if not present:
        return Verdict.FAILED
    if buggy:
        return Verdict.WARNING
    return Verdict.SUCCESS


def format_version(version: Sequence[int]) -> str:
    return ".".join(str(part) for part in version)


@dataclass(frozen=True)
class RequirementCheck:
    """Result of a single requirement check."""
    name: str
    verdict: Verdict
    required: bool = True
    required_by: str = ""
    notes: str = ""
    kind: EvaluatorKind = EvaluatorKind.BASIC

    @classmethod
    def basic(cls, name: str, condition: bool, required: bool = True,
              required_by: str = "", notes: str = "") -> "RequirementCheck":
        return cls(
            name=name,
            verdict=evaluate_basic(bool(condition), required),
            required=required,
            required_by=required_by,
            notes=notes,
        )

    @classmethod
    def version_vulnerability(cls, name: str, installed: Version, minimum: Version,
                              safe: Version, required_by: str = "",
                              vulnerability: str = "") -> "RequirementCheck":
        """
        Build a version check that also flags a known-vulnerable patch range.

        Args:
            name: Check name
            installed: Installed version tuple
            minimum: Lowest supported version
            safe: First patch release without the vulnerability
            required_by: What needs this requirement
            vulnerability: Description of the flaw in the bad range
        """
        verdict = evaluate_version(installed, minimum, safe)
        if verdict == Verdict.WARNING:
            notes = (
                f"{format_version(installed)} has a known security vulnerability"
                f"{': ' + vulnerability if vulnerability else ''}. "
                f"Upgrade to {format_version(safe)} or later."
            )
        else:
            notes = f"{format_version(minimum)} or higher is required."

        return cls(
            name=name,
            verdict=verdict,
            required=True,
            required_by=required_by,
            notes=notes,
            kind=EvaluatorKind.VERSION_VULNERABILITY,
        )

    @classmethod
    def buggy_library(cls, name: str, present: bool, buggy: bool,
                      required_by: str = "", bug: str = "",
                      recommendation: str = "") -> "RequirementCheck":
        verdict = evaluate_buggy_library(present, buggy)
        if verdict == Verdict.WARNING:
            notes = f"A buggy version is installed. {bug}".strip()
        else:
            notes = recommendation or f"{name} is recommended."

        return cls(
            name=name,
            verdict=verdict,
            required=False,
            required_by=required_by,
            notes=notes,
            kind=EvaluatorKind.BUGGY_LIBRARY,
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "verdict": self.verdict.value,
            "required": self.required,
            "required_by": self.required_by,
            "notes": self.notes,
        }

    def __str__(self) -> str:
        icon = {
            Verdict.SUCCESS: "✅",
            Verdict.WARNING: "⚠️",
            Verdict.FAILED: "❌",
        }.get(self.verdict, "?")

        return f"{icon} {self.name}: {self.notes}" if self.notes else f"{icon} {self.name}"


def summarize(checks: Iterable[RequirementCheck]) -> Verdict:
    """Overall verdict: Failed if any check failed, else Warning if any warned."""
    verdicts = {check.verdict for check in checks}
    if Verdict.FAILED in verdicts:
        return Verdict.FAILED
    if Verdict.WARNING in verdicts:
        return Verdict.WARNING
    return Verdict.SUCCESS
