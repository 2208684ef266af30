"""
Caelex Compliance Core - Generic Workflow Engine

This module implements a deterministic, table-driven state machine. A workflow
is described as data: a set of states (name + UI metadata) and a flat list of
transitions (source, event or None, guard, target). States carry no behaviour.

The workflow engine is pure business logic with no direct HTTP or DB calls.
Guards are pure functions of a context object, so the engine can be evaluated
repeatedly and speculatively (e.g. to list available transitions).

Transition kinds:
- Auto-transitions (event is None): evaluated by evaluate_transitions() and
  chained until no guard is satisfied. Two eligible auto-transitions from the
  same state is a definition defect and raises.
- Manual transitions (event set): triggered by execute_transition().

Expected outcomes (unknown event, guard rejected) are returned as results.
Only definition defects raise WorkflowConfigurationError.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, List, Optional, Set, Tuple, TypeVar
import logging

logger = logging.getLogger(__name__)

TContext = TypeVar("TContext")

Guard = Callable[[Any], bool]

DEFAULT_MAX_AUTO_TRANSITIONS = 10


# =============================================================================
# ERRORS
# =============================================================================

class WorkflowConfigurationError(Exception):
    """The workflow definition itself is broken; no caller can recover."""


class WorkflowCycleError(WorkflowConfigurationError):
    """Auto-transitions revisited a state or exceeded the chaining bound."""


# =============================================================================
# DEFINITION TYPES
# =============================================================================

@dataclass(frozen=True)
class StateMetadata:
    """Display metadata for a state."""
    color: str = "#6B7280"
    icon: str = "Circle"
    phase: str = "unknown"
    is_terminal: bool = False


@dataclass(frozen=True)
class StateDefinition:
    id: str
    name: str
    description: str = ""
    metadata: StateMetadata = field(default_factory=StateMetadata)


@dataclass(frozen=True)
class TransitionDefinition:
    """
    One row of the transition table.

    event is None for auto-transitions; name labels them in results and logs.
    guard is None for unconditional transitions.
    """
    source: str
    target: str
    event: Optional[str] = None
    guard: Optional[Guard] = None
    name: Optional[str] = None
    description: str = ""
    guard_failure_message: str = "Transition guard rejected the transition"

    @property
    def is_auto(self) -> bool:
        return self.event is None

    @property
    def label(self) -> str:
        return self.event or self.name or f"{self.source}->{self.target}"

    def allows(self, context: Any) -> bool:
        if self.guard is None:
            return True
        return bool(self.guard(context))


@dataclass(frozen=True)
class WorkflowDefinition:
    id: str
    name: str
    version: str
    initial_state: str
    states: Tuple[StateDefinition, ...]
    transitions: Tuple[TransitionDefinition, ...]
    description: str = ""


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class TransitionResult:
    success: bool
    previous_state: str
    current_state: str
    transition_event: Optional[str]
    timestamp: datetime
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "previous_state": self.previous_state,
            "current_state": self.current_state,
            "transition_event": self.transition_event,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class AvailableTransition:
    event: str
    to: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.event, "to": self.to, "description": self.description}


@dataclass
class EvaluationResult:
    transitioned: bool
    transitions: List[TransitionResult]
    final_state: str
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transitioned": self.transitioned,
            "transitions": [t.to_dict() for t in self.transitions],
            "final_state": self.final_state,
            "errors": list(self.errors),
        }


# =============================================================================
# MAIN WORKFLOW ENGINE
# =============================================================================

class WorkflowEngine(Generic[TContext]):
    """
    Evaluates a WorkflowDefinition against a context.

    The definition is validated once at construction; a malformed definition
    raises WorkflowConfigurationError immediately.
    """

    def __init__(
        self,
        definition: WorkflowDefinition,
        max_auto_transitions: int = DEFAULT_MAX_AUTO_TRANSITIONS,
    ):
        self.definition = definition
        self.max_auto_transitions = max_auto_transitions
        self._states: Dict[str, StateDefinition] = {s.id: s for s in definition.states}
        self._by_source: Dict[str, List[TransitionDefinition]] = {}
        for transition in definition.transitions:
            self._by_source.setdefault(transition.source, []).append(transition)
        self._validate()

    def _validate(self) -> None:
        d = self.definition
        if len(self._states) != len(d.states):
            raise WorkflowConfigurationError(
                f"Workflow '{d.id}': duplicate state ids in definition"
            )
        if d.initial_state not in self._states:
            raise WorkflowConfigurationError(
                f"Workflow '{d.id}': initial state '{d.initial_state}' not found in states"
            )

        seen_events: Set[Tuple[str, str]] = set()
        for t in d.transitions:
            if t.source not in self._states:
                raise WorkflowConfigurationError(
                    f"Workflow '{d.id}': transition '{t.label}' has unknown source state '{t.source}'"
                )
            if t.target not in self._states:
                raise WorkflowConfigurationError(
                    f"Workflow '{d.id}': transition '{t.label}' from '{t.source}' "
                    f"targets unknown state '{t.target}'"
                )
            if t.event is not None:
                key = (t.source, t.event)
                if key in seen_events:
                    raise WorkflowConfigurationError(
                        f"Workflow '{d.id}': event '{t.event}' defined twice for state '{t.source}'"
                    )
                seen_events.add(key)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def get_definition(self) -> WorkflowDefinition:
        return self.definition

    def get_state(self, state: str) -> Optional[StateDefinition]:
        return self._states.get(state)

    def get_all_states(self) -> List[str]:
        return [s.id for s in self.definition.states]

    def get_terminal_states(self) -> List[str]:
        return [s for s in self.get_all_states() if self.is_terminal_state(s)]

    def is_terminal_state(self, state: str) -> bool:
        """True iff the state's definition marks it terminal."""
        state_def = self._states.get(state)
        return state_def is not None and state_def.metadata.is_terminal

    def get_next_states(self, current_state: str) -> List[str]:
        """Distinct target states reachable in one step, in table order."""
        targets: List[str] = []
        for t in self._by_source.get(current_state, []):
            if t.target not in targets:
                targets.append(t.target)
        return targets

    def _find_manual(self, current_state: str, event: str) -> Optional[TransitionDefinition]:
        for t in self._by_source.get(current_state, []):
            if t.event == event:
                return t
        return None

    # -------------------------------------------------------------------------
    # Evaluation
    # -------------------------------------------------------------------------

    def get_available_transitions(self, current_state: str, context: TContext) -> List[AvailableTransition]:
        """Manual transitions from current_state whose guard currently holds."""
        return [
            AvailableTransition(event=t.event, to=t.target, description=t.description)
            for t in self._by_source.get(current_state, [])
            if not t.is_auto and t.allows(context)
        ]

    def can_transition(self, current_state: str, event: str, context: TContext) -> bool:
        transition = self._find_manual(current_state, event)
        return transition is not None and transition.allows(context)

    def execute_transition(self, current_state: str, event: str, context: TContext) -> TransitionResult:
        """
        Attempt a manual transition.

        Returns:
            TransitionResult; success=False with an error string when the
            transition does not exist or its guard rejects the context.
        """
        timestamp = datetime.now(timezone.utc)

        if current_state not in self._states:
            return TransitionResult(
                success=False,
                previous_state=current_state,
                current_state=current_state,
                transition_event=event,
                timestamp=timestamp,
                error=f"State '{current_state}' not found in workflow",
            )

        transition = self._find_manual(current_state, event)
        if transition is None:
            return TransitionResult(
                success=False,
                previous_state=current_state,
                current_state=current_state,
                transition_event=event,
                timestamp=timestamp,
                error=f"Transition '{event}' not found in state '{current_state}'",
            )

        if not transition.allows(context):
            logger.warning(
                "Transition blocked by guard: workflow=%s, state=%s, event=%s",
                self.definition.id, current_state, event
            )
            return TransitionResult(
                success=False,
                previous_state=current_state,
                current_state=current_state,
                transition_event=event,
                timestamp=timestamp,
                error=transition.guard_failure_message,
            )

        logger.info(
            "Workflow transition: workflow=%s, %s -> %s (event=%s)",
            self.definition.id, current_state, transition.target, event
        )
        return TransitionResult(
            success=True,
            previous_state=current_state,
            current_state=transition.target,
            transition_event=event,
            timestamp=timestamp,
        )

    def _eligible_auto(self, state: str, context: TContext) -> Optional[TransitionDefinition]:
        eligible = [
            t for t in self._by_source.get(state, [])
            if t.is_auto and t.allows(context)
        ]
        if len(eligible) > 1:
            labels = ", ".join(t.label for t in eligible)
            logger.error(
                "Conflicting auto-transitions: workflow=%s, state=%s, eligible=[%s]",
                self.definition.id, state, labels
            )
            raise WorkflowConfigurationError(
                f"Workflow '{self.definition.id}': {len(eligible)} auto-transitions "
                f"eligible from '{state}' ({labels})"
            )
        return eligible[0] if eligible else None

    def evaluate_transitions(self, current_state: str, context: TContext) -> EvaluationResult:
        """
        Apply eligible auto-transitions until quiescence.

        Exactly one auto-transition fires per pass. Revisiting a state within
        one evaluation, or exceeding max_auto_transitions, raises
        WorkflowCycleError.
        """
        result = EvaluationResult(transitioned=False, transitions=[], final_state=current_state)
        if current_state not in self._states:
            return result

        state = current_state
        visited = {state}

        while True:
            transition = self._eligible_auto(state, context)
            if transition is None:
                break

            if len(result.transitions) >= self.max_auto_transitions:
                raise WorkflowCycleError(
                    f"Workflow '{self.definition.id}': maximum auto-transitions "
                    f"({self.max_auto_transitions}) reached from '{current_state}'"
                )
            if transition.target in visited:
                path = " -> ".join([t.previous_state for t in result.transitions] + [state, transition.target])
                raise WorkflowCycleError(
                    f"Workflow '{self.definition.id}': auto-transition cycle detected ({path})"
                )

            logger.info(
                "Auto transition: workflow=%s, %s -> %s (%s)",
                self.definition.id, state, transition.target, transition.label
            )
            result.transitions.append(TransitionResult(
                success=True,
                previous_state=state,
                current_state=transition.target,
                transition_event=transition.label,
                timestamp=datetime.now(timezone.utc),
            ))
            state = transition.target
            visited.add(state)

        result.transitioned = bool(result.transitions)
        result.final_state = state
        return result


def create_workflow_engine(
    definition: WorkflowDefinition,
    max_auto_transitions: int = DEFAULT_MAX_AUTO_TRANSITIONS,
) -> WorkflowEngine:
    """Factory mirroring the engine constructor."""
    return WorkflowEngine(definition, max_auto_transitions=max_auto_transitions)
