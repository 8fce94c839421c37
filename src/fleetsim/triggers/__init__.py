"""Trigger predicates, evaluation and default provisioning."""

from fleetsim.triggers.evaluator import EvaluationResult, Firing, TriggerEvaluator, TriggerState, trigger_state
from fleetsim.triggers.predicates import PredicateContext, evaluate_trigger
from fleetsim.triggers.templates import DEFAULT_TRIGGER_TEMPLATES, build_default_triggers

__all__ = [
    "DEFAULT_TRIGGER_TEMPLATES",
    "EvaluationResult",
    "Firing",
    "PredicateContext",
    "TriggerEvaluator",
    "TriggerState",
    "build_default_triggers",
    "evaluate_trigger",
    "trigger_state",
]
