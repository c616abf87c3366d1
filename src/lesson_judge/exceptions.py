"""Exceptions raised by the model-judge stages."""


class JudgeEvaluationError(Exception):
    """The model judge could not produce a verdict."""

    def __init__(self, message: str, judge_model: str = ""):
        super().__init__(message)
        self.judge_model = judge_model


class VotingError(Exception):
    """Every judge in a vote failed."""
