"""
Model-judge stages of lesson evaluation.

- rubric.py: criterion weights, weighted score, and recommendation rules
- llm_judge.py: single-model judge producing a JudgeVerdict
- voting.py: two judges plus tiebreaker with weighted aggregation
- cascade_evaluator.py: heuristics, single judge, then voting
"""

__all__ = [
    "rubric",
    "llm_judge",
    "voting",
    "cascade_evaluator",
]
