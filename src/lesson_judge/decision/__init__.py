"""
Decision stage of lesson evaluation.

- decision_engine.py: maps a judged draft to ACCEPT, TARGETED_FIX,
  ITERATIVE_REFINEMENT, REGENERATE, or ESCALATE_TO_HUMAN
"""

__all__ = [
    "decision_engine",
]
