"""Run status state machine."""

from __future__ import annotations

import enum


class AnalysisStatus(str, enum.Enum):
    IDLE = "IDLE"
    UPLOADING = "UPLOADING"
    FETCHING_SATELLITE = "FETCHING_SATELLITE"
    PROCESSING_GEOPHYSICS = "PROCESSING_GEOPHYSICS"
    SCRAPING_DATA = "SCRAPING_DATA"
    ANALYZING_AI = "ANALYZING_AI"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (AnalysisStatus.COMPLETE, AnalysisStatus.ERROR)

    @property
    def is_busy(self) -> bool:
        return self not in (AnalysisStatus.IDLE, AnalysisStatus.COMPLETE, AnalysisStatus.ERROR)


# Time-driven stages entered one after another once a run has started
STAGED_SEQUENCE: tuple[AnalysisStatus, ...] = (
    AnalysisStatus.FETCHING_SATELLITE,
    AnalysisStatus.PROCESSING_GEOPHYSICS,
    AnalysisStatus.SCRAPING_DATA,
    AnalysisStatus.ANALYZING_AI,
)

_RANK = {
    AnalysisStatus.IDLE: 0,
    AnalysisStatus.UPLOADING: 1,
    AnalysisStatus.FETCHING_SATELLITE: 2,
    AnalysisStatus.PROCESSING_GEOPHYSICS: 3,
    AnalysisStatus.SCRAPING_DATA: 4,
    AnalysisStatus.ANALYZING_AI: 5,
    AnalysisStatus.COMPLETE: 6,
    AnalysisStatus.ERROR: 6,
}


def can_transition(current: AnalysisStatus, new: AnalysisStatus) -> bool:
    """Forward-only within a run; terminal states are final.

    ERROR may be entered from any non-terminal state.
    """
    if current.is_terminal:
        return False
    if new == AnalysisStatus.ERROR:
        return True
    return _RANK[new] > _RANK[current]
