"""Transition tables for sessions and modules.

Engines consult these before writing; the guard then enforces the source status
against the database row.
"""

SESSION_TRANSITIONS: dict[str, dict[str, str]] = {
    "curriculum-generating": {
        "curriculum-generated": "in-progress",
        "session-abandoned": "abandoned",
    },
    "in-progress": {
        "all-modules-scored": "evaluating",
        "session-abandoned": "abandoned",
    },
    "evaluating": {
        "evaluation-passed": "passed",
        "evaluation-failed": "failed",
        "evaluation-exhausted": "exhausted",
        "session-abandoned": "abandoned",
    },
    # remediation leaves a failed session failed and opens a new session for the next attempt
    "failed": {
        "session-abandoned": "abandoned",
    },
    "in-remediation": {
        "remediation-modules-ready": "in-progress",
        "session-abandoned": "abandoned",
    },
    # passed, exhausted, abandoned: terminal
}

MODULE_TRANSITIONS: dict[str, dict[str, str]] = {
    "locked": {"generate-content": "content-generating"},
    "content-generating": {"content-ready": "learning"},
    "learning": {"start-scenario": "scenario-active"},
    "scenario-active": {"scenarios-complete": "quiz-active"},
    "quiz-active": {"quiz-scored": "scored"},
    # scored: terminal
}

SESSION_TERMINAL_STATES = frozenset({"passed", "exhausted", "abandoned"})
MODULE_TERMINAL_STATES = frozenset({"scored"})
SESSION_NON_TERMINAL_STATES = frozenset(SESSION_TRANSITIONS) - SESSION_TERMINAL_STATES


class StateTransitionError(ValueError):
    def __init__(self, current_state: str, event: str):
        super().__init__(f"Invalid transition: cannot apply event '{event}' in state '{current_state}'")
        self.current_state = current_state
        self.event = event


def transition_session(current: str, event: str) -> str:
    try:
        return SESSION_TRANSITIONS[current][event]
    except KeyError:
        raise StateTransitionError(current, event) from None


def transition_module(current: str, event: str) -> str:
    try:
        return MODULE_TRANSITIONS[current][event]
    except KeyError:
        raise StateTransitionError(current, event) from None


def can_transition_session(current: str, event: str) -> bool:
    return event in SESSION_TRANSITIONS.get(current, {})


def can_transition_module(current: str, event: str) -> bool:
    return event in MODULE_TRANSITIONS.get(current, {})


def is_session_terminal(status: str) -> bool:
    return status in SESSION_TERMINAL_STATES


def is_module_terminal(status: str) -> bool:
    return status in MODULE_TERMINAL_STATES
