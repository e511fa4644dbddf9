"""Selection state as a pure reducer.

A session moves through ``IDLE -> LISTED -> FILTERED -> RENDERED``. Every
event produces a new immutable `SessionState`; configuration events
recompute the selection from scratch rather than patching it.
"""

from __future__ import annotations

from enum import StrEnum, auto
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, computed_field

from repo_context.config import (
    FileContent,
    FileRecord,
    FrameworkID,
    OutlierMethod,
    Precision,
    RenderedArtifact,
)
from repo_context.detection import detect_framework, root_entries, score_frameworks
from repo_context.logging import logger
from repo_context.output_construction import render
from repo_context.rules import DEFAULT_RULE_TABLE
from repo_context.smart_filter import apply_smart_filter
from repo_context.statistics import detect_outliers

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from repo_context.rules import RuleTable
    from repo_context.tokenizer import TokenCounter

    Reducer = Callable[[Any, Any, RuleTable], Any]


class SessionPhase(StrEnum):
    IDLE = auto()
    LISTED = auto()
    FILTERED = auto()
    RENDERED = auto()


class SessionState(BaseModel):
    """Everything needed to recompute a selection, plus the derived results."""

    model_config = ConfigDict(frozen=True)

    files: tuple[FileRecord, ...] = ()
    detected_framework: FrameworkID = FrameworkID.UNKNOWN
    manual_framework: FrameworkID | None = None
    precision: Precision = Precision.STANDARD
    stats_enabled: bool = False
    outlier_method: OutlierMethod = OutlierMethod.MEDIAN

    selection: frozenset[str] = frozenset()
    outliers: frozenset[str] = frozenset()
    artifact: RenderedArtifact | None = None
    phase: SessionPhase = SessionPhase.IDLE

    @computed_field
    @property
    def effective_framework(self) -> FrameworkID:
        return self.manual_framework or self.detected_framework

    def selected_records(self) -> list[FileRecord]:
        """Return the selected records in listing order."""
        return [rec for rec in self.files if rec.path in self.selection]


class SourceLoaded(BaseModel):
    model_config = ConfigDict(frozen=True)

    files: tuple[FileRecord, ...]


class FrameworkOverridden(BaseModel):
    """Force a framework, or go back to the detected one with None."""

    model_config = ConfigDict(frozen=True)

    framework: FrameworkID | None = None


class PrecisionChanged(BaseModel):
    model_config = ConfigDict(frozen=True)

    precision: Precision


class StatisticsToggled(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool
    method: OutlierMethod | None = None


class SelectionEdited(BaseModel):
    """Replace the selection by hand; unknown paths are dropped."""

    model_config = ConfigDict(frozen=True)

    paths: frozenset[str]


class Generated(BaseModel):
    model_config = ConfigDict(frozen=True)

    artifact: RenderedArtifact


Event = SourceLoaded | FrameworkOverridden | PrecisionChanged | StatisticsToggled | SelectionEdited | Generated

REDUCERS: dict[type, Reducer] = {}


def register_reducer(event_type: type) -> Callable[[Reducer], Reducer]:
    """Decorator to register the reducer handling one event type.

    Args:
        event_type (type): the event class the decorated function handles

    Returns:
        Callable[[Reducer], Reducer]: a decorator storing the function in `REDUCERS`
    """

    def decorator(func: Reducer) -> Reducer:
        REDUCERS[event_type] = func
        return func

    return decorator


def refilter(state: SessionState, rules: RuleTable = DEFAULT_RULE_TABLE) -> SessionState:
    """Recompute selection and outliers from the state's configuration.

    Args:
        state (SessionState): the state to recompute
        rules (RuleTable): the rule table driving the filter

    Returns:
        SessionState: the state with a fresh selection, in the FILTERED phase
            (states without files keep their phase and get an empty selection)
    """
    if not state.files:
        return state.model_copy(update={"selection": frozenset(), "outliers": frozenset()})
    selection = apply_smart_filter(state.files, state.effective_framework, state.precision, rules=rules)
    outliers: frozenset[str] = frozenset()
    if state.stats_enabled:
        outliers = detect_outliers(state.files, state.outlier_method).flagged
        selection -= outliers
    logger.info(
        "selection_recomputed",
        framework=str(state.effective_framework),
        precision=str(state.precision),
        selected=len(selection),
        outliers=len(outliers),
    )
    return state.model_copy(update={"selection": selection, "outliers": outliers, "phase": SessionPhase.FILTERED})


@register_reducer(SourceLoaded)
def _on_source_loaded(state: SessionState, event: SourceLoaded, rules: RuleTable) -> SessionState:
    entries = root_entries(event.files)
    detected = detect_framework(entries, rules)
    scores = {str(fw): score for fw, score in score_frameworks(entries, rules).items() if score}
    logger.info("framework_detected", framework=str(detected), scores=scores, files=len(event.files))
    loaded = SessionState(
        files=event.files,
        detected_framework=detected,
        stats_enabled=state.stats_enabled,
        outlier_method=state.outlier_method,
        phase=SessionPhase.LISTED,
    )
    return refilter(loaded, rules)


@register_reducer(FrameworkOverridden)
def _on_framework_overridden(state: SessionState, event: FrameworkOverridden, rules: RuleTable) -> SessionState:
    return refilter(state.model_copy(update={"manual_framework": event.framework}), rules)


@register_reducer(PrecisionChanged)
def _on_precision_changed(state: SessionState, event: PrecisionChanged, rules: RuleTable) -> SessionState:
    return refilter(state.model_copy(update={"precision": event.precision}), rules)


@register_reducer(StatisticsToggled)
def _on_statistics_toggled(state: SessionState, event: StatisticsToggled, rules: RuleTable) -> SessionState:
    update: dict[str, Any] = {"stats_enabled": event.enabled}
    if event.method is not None:
        update["outlier_method"] = event.method
    return refilter(state.model_copy(update=update), rules)


@register_reducer(SelectionEdited)
def _on_selection_edited(state: SessionState, event: SelectionEdited, _rules: RuleTable) -> SessionState:
    known = {rec.path for rec in state.files if rec.is_file}
    phase = SessionPhase.FILTERED if state.files else state.phase
    return state.model_copy(update={"selection": frozenset(event.paths & known), "phase": phase})


@register_reducer(Generated)
def _on_generated(state: SessionState, event: Generated, _rules: RuleTable) -> SessionState:
    return state.model_copy(update={"artifact": event.artifact, "phase": SessionPhase.RENDERED})


def reduce(state: SessionState, event: Event, *, rules: RuleTable = DEFAULT_RULE_TABLE) -> SessionState:
    """Apply one event to a session state.

    Args:
        state (SessionState): the current state (left untouched)
        event (Event): what happened
        rules (RuleTable): the rule table driving detection and filtering

    Raises:
        TypeError: if no reducer is registered for the event type

    Returns:
        SessionState: the new state
    """
    reducer = REDUCERS.get(type(event))
    if reducer is None:
        msg = f"Unsupported session event: {type(event).__name__}"
        raise TypeError(msg)
    return reducer(state, event, rules)


def generate(
    state: SessionState,
    contents: Iterable[FileContent],
    counter: TokenCounter | None = None,
) -> SessionState:
    """Render fetched contents of the current selection and record the artifact."""
    return reduce(state, Generated(artifact=render(contents, counter)))
