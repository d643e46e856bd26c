"""Pick the start control among vision candidates."""
from __future__ import annotations

from typing import Optional, Sequence

from schemas import Candidate


def select_candidate(
    candidates: Sequence[Candidate],
    keywords: Sequence[str],
    min_confidence: float,
) -> Optional[Candidate]:
    """Highest-confidence candidate whose label mentions a keyword.

    Labels are matched case-insensitively by substring. Candidates below
    ``min_confidence`` are ignored. Ties go to the earliest candidate.
    """
    lowered = [k.lower() for k in keywords]
    best: Optional[Candidate] = None
    for candidate in candidates:
        label = candidate.label.lower()
        if candidate.confidence < min_confidence:
            continue
        if not any(keyword in label for keyword in lowered):
            continue
        if best is None or candidate.confidence > best.confidence:
            best = candidate
    return best
