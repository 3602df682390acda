"""Session phase definitions: the state machine states and transitions."""

from __future__ import annotations

from enum import Enum


class SessionPhase(str, Enum):
    """Outer phases of a workbench session. There are no terminal phases:
    a session can always be re-submitted once it is not extracting."""

    IDLE = "IDLE"
    FILES_STAGED = "FILES_STAGED"
    EXTRACTING = "EXTRACTING"
    EXTRACTED = "EXTRACTED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"


class NewsPhase(str, Enum):
    """Orthogonal news sub-state, meaningful while the session is EXTRACTED."""

    IDLE = "IDLE"
    LOADING = "LOADING"
    READY = "READY"
    FAILED = "FAILED"


# Staging changes (add/remove/clear) move between IDLE and FILES_STAGED from any
# phase except EXTRACTING; self-transitions are allowed for repeated staging.
VALID_TRANSITIONS: dict[SessionPhase, set[SessionPhase]] = {
    SessionPhase.IDLE: {SessionPhase.IDLE, SessionPhase.FILES_STAGED},
    SessionPhase.FILES_STAGED: {
        SessionPhase.IDLE,
        SessionPhase.FILES_STAGED,
        SessionPhase.EXTRACTING,
    },
    SessionPhase.EXTRACTING: {SessionPhase.EXTRACTED, SessionPhase.EXTRACTION_FAILED},
    SessionPhase.EXTRACTED: {
        SessionPhase.IDLE,
        SessionPhase.FILES_STAGED,
        SessionPhase.EXTRACTING,
    },
    SessionPhase.EXTRACTION_FAILED: {
        SessionPhase.IDLE,
        SessionPhase.FILES_STAGED,
        SessionPhase.EXTRACTING,
    },
}

VALID_NEWS_TRANSITIONS: dict[NewsPhase, set[NewsPhase]] = {
    NewsPhase.IDLE: {NewsPhase.IDLE, NewsPhase.LOADING},
    NewsPhase.LOADING: {NewsPhase.IDLE, NewsPhase.READY, NewsPhase.FAILED},
    NewsPhase.READY: {NewsPhase.IDLE},
    NewsPhase.FAILED: {NewsPhase.IDLE},
}
