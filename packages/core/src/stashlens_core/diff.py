"""Pull request diff index.

Stash reports a pull request diff as files → hunks → segments, where every
segment is a run of ADDED, REMOVED or CONTEXT lines and each line carries
both its source (old file) and destination (new file) line number. Findings
are reported against the new file, so they are resolved by destination line.

Inline comments are anchored with a (line, lineType) pair. For ADDED lines the
anchor is the destination line; CONTEXT anchors use the source line, which is
what Stash expects for lines that exist on both sides of the diff.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

ADDED = "ADDED"
REMOVED = "REMOVED"
CONTEXT = "CONTEXT"


@dataclass(frozen=True)
class DiffPosition:
    line: int
    line_type: str


@dataclass
class DiffSegment:
    line_type: str
    lines: list[tuple[int, int]] = field(default_factory=list)  # (source, destination)

    def anchor_for(self, destination: int) -> DiffPosition | None:
        if self.line_type == REMOVED:
            return None
        for source, dest in self.lines:
            if dest == destination:
                line = source if self.line_type == CONTEXT else dest
                return DiffPosition(line=line, line_type=self.line_type)
        return None


class DiffIndex:
    """Read-only mapping of file path → diff segments for one pull request."""

    def __init__(self, segments_by_path: dict[str, list[DiffSegment]] | None = None):
        self._segments: dict[str, list[DiffSegment]] = {
            path: list(segments) for path, segments in (segments_by_path or {}).items()
        }

    @classmethod
    def from_stash_json(cls, payload: dict) -> DiffIndex:
        segments_by_path: dict[str, list[DiffSegment]] = {}
        for diff in payload.get("diffs") or []:
            # Deleted files have no destination; comments on them anchor to the source path.
            target = diff.get("destination") or diff.get("source") or {}
            path = target.get("toString")
            if not path:
                continue
            segments = segments_by_path.setdefault(path, [])
            for hunk in diff.get("hunks") or []:
                for segment in hunk.get("segments") or []:
                    segments.append(
                        DiffSegment(
                            line_type=segment.get("type", CONTEXT),
                            lines=[(ln.get("source", 0), ln.get("destination", 0)) for ln in segment.get("lines") or []],
                        )
                    )
        logger.debug("Indexed diff with %d file(s)", len(segments_by_path))
        return cls(segments_by_path)

    def paths(self) -> list[str]:
        return list(self._segments)

    def normalize_path(self, path: str) -> str | None:
        """Return the diff's own spelling of ``path``, or None if the file is not in the diff.

        An identical path wins. Otherwise a single diff path that matches on a
        "/" boundary suffix (either way round) is accepted, which covers
        analysis reports that use module-relative or absolute paths.
        """
        if path in self._segments:
            return path
        candidates = [p for p in self._segments if _suffix_match(p, path) or _suffix_match(path, p)]
        if len(candidates) == 1:
            return candidates[0]
        if len(candidates) > 1:
            logger.debug("Ambiguous diff path for %s: %s", path, candidates)
        return None

    def resolve(self, path: str, line: int) -> DiffPosition | None:
        """Map a source-file line of ``path`` to its diff anchor, or None if outside the diff."""
        segments = self._segments.get(path)
        if not segments:
            return None
        for segment in segments:
            position = segment.anchor_for(line)
            if position is not None:
                return position
        return None


def _suffix_match(longer: str, shorter: str) -> bool:
    return longer.endswith("/" + shorter.lstrip("/"))
