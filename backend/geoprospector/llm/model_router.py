"""Task → call profile → model selection. Cheap models for side calls, frontier for reports."""

from __future__ import annotations

from geoprospector.config import Settings, settings
from geoprospector.models.llm import CallProfile

_TASK_PROFILE_MAP = {
    "quick_scan": CallProfile.FAST,
    "nearby": CallProfile.FAST,
    "report": CallProfile.DEFAULT,
    "chat": CallProfile.DEFAULT,
    "chart": CallProfile.STRUCTURED,
    "deep": CallProfile.DEEP,
}


def get_profile_for_task(task: str) -> CallProfile:
    return _TASK_PROFILE_MAP.get(task, CallProfile.DEFAULT)


def get_model_for_profile(profile: CallProfile, config: Settings | None = None) -> str:
    cfg = config or settings
    if profile == CallProfile.FAST:
        return cfg.model_fast
    elif profile == CallProfile.STRUCTURED:
        return cfg.model_structured
    elif profile == CallProfile.DEEP:
        return cfg.model_deep
    else:
        return cfg.model_default
