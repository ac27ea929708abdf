"""Scoring primitives: multiple-choice matching, module/session aggregation, pass and weak-area checks."""
from typing import Iterable, Sequence

DEFAULT_PASS_THRESHOLD = 0.7
MIN_SCORE = 0.0
MAX_SCORE = 1.0

# no partial credit for multiple choice
MC_CORRECT = 1.0
MC_INCORRECT = 0.0


def score_mc_answer(selected_option: str | None, answer_key: str) -> float:
    """Return 1.0 when the selected option key equals the answer key, else 0.0."""
    return MC_CORRECT if selected_option is not None and selected_option == answer_key else MC_INCORRECT


def clamp_score(score: float) -> float:
    """Clamp to 0.0..1.0."""
    return max(MIN_SCORE, min(MAX_SCORE, score))


def mean(values: Sequence[float]) -> float | None:
    """Arithmetic mean, or None for an empty sequence."""
    if not values:
        return None
    return sum(values) / len(values)


def compute_module_score(quiz_scores: Sequence[float]) -> float | None:
    """Module score is the mean of quiz-answer scores; scenario scores are formative only."""
    return mean(quiz_scores)


def compute_aggregate_score(module_scores: Sequence[float]) -> float | None:
    """Session aggregate is the mean of module scores."""
    return mean(module_scores)


def is_passing(aggregate_score: float, pass_threshold: float = DEFAULT_PASS_THRESHOLD) -> bool:
    return aggregate_score >= pass_threshold


def identify_weak_areas(
    modules: Iterable[tuple[str, float]],
    pass_threshold: float = DEFAULT_PASS_THRESHOLD,
) -> list[str]:
    """Return titles of modules whose score is strictly below the threshold, in module order."""
    return [title for title, score in modules if score < pass_threshold]
