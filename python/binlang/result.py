"""
Detection results and evidence aggregation.

LanguageEvidence collects hypotheses while the analyzers run. Once every
phase has finished, determine_most_likely_language() tallies the hypotheses
and freezes them into a DetectionResult.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

from .format_detect import ContainerFormat

UNKNOWN_LANGUAGE = "Unknown"


@dataclass
class LanguageEvidence:
    """Mutable collector for one file's language hypotheses.

    Candidate languages are kept in discovery order and never deduplicated:
    repeated hits for the same language are what give it weight.
    """

    languages: list[str] = field(default_factory=list)
    evidence: list[str] = field(default_factory=list)

    def add_languages(self, languages: str | Iterable[str], evidence: str) -> None:
        """Record one signal supporting one or more languages."""
        if isinstance(languages, str):
            languages = [languages]
        self.languages.extend(languages)
        self.evidence.append(evidence)

    def add_note(self, message: str) -> None:
        """Record evidence that does not name a language (e.g. parse failures)."""
        self.evidence.append(message)


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of analyzing a single binary."""

    primary_language: str
    confidence: float
    candidate_languages: tuple[str, ...]
    evidence: tuple[str, ...]
    container_format: ContainerFormat
    platform: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to plain data (for serialization)."""
        return {
            "primary_language": self.primary_language,
            "confidence": self.confidence,
            "candidate_languages": list(self.candidate_languages),
            "evidence": list(self.evidence),
            "container_format": self.container_format.value,
            "platform": self.platform,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DetectionResult":
        """Rebuild a result from to_dict() output.

        Raises:
            ValueError: If a field is missing or the format is unknown
        """
        try:
            return cls(
                primary_language=data["primary_language"],
                confidence=float(data["confidence"]),
                candidate_languages=tuple(data["candidate_languages"]),
                evidence=tuple(data["evidence"]),
                container_format=ContainerFormat(data["container_format"]),
                platform=data["platform"],
            )
        except KeyError as e:
            raise ValueError(f"Missing result field: {e}") from e

    def __str__(self) -> str:
        """Human-readable summary."""
        lines = [
            f"Language: {self.primary_language} "
            f"(confidence {self.confidence:.0%})",
            f"Format: {self.container_format.value} [{self.platform}]",
        ]
        if self.evidence:
            lines.append(f"Evidence ({len(self.evidence)}):")
            for e in self.evidence:
                lines.append(f"  - {e}")
        return "\n".join(lines)


def determine_most_likely_language(
    evidence: LanguageEvidence,
    container_format: ContainerFormat,
    platform: str,
) -> DetectionResult:
    """Pick the most frequent candidate language.

    Candidates are scanned in discovery order and only a strictly higher
    count replaces the current best, so ties go to the language that was
    discovered first.

    Args:
        evidence: Collected hypotheses
        container_format: Format reported by the sniffer
        platform: Platform description reported by the sniffer

    Returns:
        Frozen DetectionResult
    """
    languages = tuple(evidence.languages)
    if not languages:
        return DetectionResult(
            primary_language=UNKNOWN_LANGUAGE,
            confidence=0.0,
            candidate_languages=languages,
            evidence=tuple(evidence.evidence),
            container_format=container_format,
            platform=platform,
        )

    # dicts keep insertion order, which is the discovery order
    counts: dict[str, int] = {}
    for lang in languages:
        counts[lang] = counts.get(lang, 0) + 1

    best_lang = ""
    best_count = 0
    for lang, count in counts.items():
        if count > best_count:
            best_lang = lang
            best_count = count

    return DetectionResult(
        primary_language=best_lang,
        confidence=best_count / len(languages),
        candidate_languages=languages,
        evidence=tuple(evidence.evidence),
        container_format=container_format,
        platform=platform,
    )
