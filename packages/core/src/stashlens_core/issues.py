"""Static-analysis findings and the SonarQube report loader."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Iterable, Iterator

logger = logging.getLogger(__name__)


class Severity(IntEnum):
    INFO = 0
    MINOR = 1
    MAJOR = 2
    CRITICAL = 3
    BLOCKER = 4

    @classmethod
    def parse(cls, name: str) -> Severity:
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ValueError(f"Unknown severity: {name!r}. Choose one of {', '.join(s.name for s in cls)}.")


@dataclass(frozen=True)
class Finding:
    """One issue reported by the analysis engine, located by source-file line (1-based)."""

    severity: Severity
    rule: str
    message: str
    path: str
    line: int


class FindingSet:
    """Ordered, read-only collection of findings for one analysis run."""

    def __init__(self, findings: Iterable[Finding] = ()):
        self._findings: tuple[Finding, ...] = tuple(findings)

    def __iter__(self) -> Iterator[Finding]:
        return iter(self._findings)

    def __len__(self) -> int:
        return len(self._findings)

    def count(self) -> int:
        return len(self._findings)

    def by_severity(self) -> dict[Severity, int]:
        counts = {severity: 0 for severity in Severity}
        for finding in self._findings:
            counts[finding.severity] += 1
        return counts

    def paths(self) -> list[str]:
        """Distinct file paths in discovery order."""
        seen: dict[str, None] = {}
        for finding in self._findings:
            seen.setdefault(finding.path, None)
        return list(seen)


def _component_path(component: str) -> str:
    # SonarQube components are "<projectKey>:<path>"; branch keys may add more colons.
    return component.rsplit(":", 1)[-1] if ":" in component else component


def _to_finding(issue: dict) -> Finding | None:
    if issue.get("isNew") is False or issue.get("resolution"):
        return None
    line = issue.get("line")
    if not line:
        return None
    return Finding(
        severity=Severity.parse(issue.get("severity", "INFO")),
        rule=str(issue.get("rule", "")),
        message=str(issue.get("message", "")).strip(),
        path=_component_path(str(issue.get("component", ""))),
        line=int(line),
    )


def load_findings(report_path: str) -> FindingSet:
    """Read a SonarQube issues report (``{"issues": [...]}``) into a FindingSet.

    Only new, unresolved issues that carry a line number are kept — the rest
    cannot be anchored on the pull request diff.
    """
    path = Path(report_path)
    if not path.exists():
        raise FileNotFoundError(f"Analysis report not found: {report_path}")
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        issues = data.get("issues", [])
        findings = [f for f in (_to_finding(i) for i in issues) if f is not None]
    except (json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed analysis report {report_path}: {e}") from e

    logger.info("Loaded %d finding(s) from %s (%d issue(s) in report)", len(findings), report_path, len(issues))
    return FindingSet(findings)
