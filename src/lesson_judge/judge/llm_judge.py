"""Model judge for generated lesson content.

Asks a model for per-criterion scores, itemized issues, and strengths,
then derives the overall score and recommendation locally with the rubric.
"""

import logging
import time
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from lesson_judge.config import JudgeConfig
from lesson_judge.exceptions import JudgeEvaluationError
from lesson_judge.judge.rubric import (
    CRITERIA_DESCRIPTIONS,
    CRITERIA_WEIGHTS,
    calculate_weighted_score,
    determine_recommendation,
)
from lesson_judge.models.judge import CriteriaScores, JudgeConfidence, JudgeIssue, JudgeVerdict
from lesson_judge.models.lesson import LessonContentBody, LessonSpecification
from lesson_judge.utils.llm_client import LLMClient
from lesson_judge.validators.text_metrics import render_lesson_markdown

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert instructional designer reviewing generated lessons. "
    "Score strictly against the rubric and cite concrete locations for every issue."
)


class JudgeAssessment(BaseModel):
    """Structured output requested from the judge model."""

    criteria_scores: CriteriaScores
    issues: List[JudgeIssue] = Field(default_factory=list)
    strengths: List[str] = Field(default_factory=list)
    confidence: JudgeConfidence = Field(
        ..., description="How confident you are in this assessment: low, medium, or high"
    )


class LessonJudge:
    """Scores one lesson draft with one model."""

    def __init__(
        self,
        llm_client: LLMClient,
        config: Optional[JudgeConfig] = None,
        passing_threshold: float = 0.7,
    ):
        """Initialize the judge.

        Args:
            llm_client: Configured LLM client; its model becomes the judge model
            config: Sampling settings (temperature, max_tokens)
            passing_threshold: Overall score at or above which a verdict passes
        """
        self.llm_client = llm_client
        self.config = config or JudgeConfig()
        self.passing_threshold = passing_threshold

    @property
    def model(self) -> str:
        return self.llm_client.model

    def evaluate(
        self, content: Union[LessonContentBody, str], spec: LessonSpecification
    ) -> JudgeVerdict:
        """Evaluate a lesson draft.

        Args:
            content: Structured lesson body or raw markdown
            spec: Lesson specification the draft was generated from

        Returns:
            JudgeVerdict with rubric-derived overall score and recommendation

        Raises:
            JudgeEvaluationError: If the model call fails or returns invalid output
        """
        logger.info(f"Judging lesson {spec.lesson_id} with {self.model}")
        prompt = self._build_evaluation_prompt(content, spec)
        start_time = time.perf_counter()

        try:
            assessment, usage = self.llm_client.generate_with_usage(
                prompt=prompt,
                response_model=JudgeAssessment,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
                system_prompt=SYSTEM_PROMPT,
            )
        except ValidationError as e:
            logger.error(f"Judge output validation failed for {spec.lesson_id}: {e}")
            raise JudgeEvaluationError(f"Invalid judge output: {e}", self.model) from e
        except Exception as e:
            logger.error(f"Judge evaluation failed for {spec.lesson_id}: {e}")
            raise JudgeEvaluationError(f"Judge call failed: {e}", self.model) from e

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        score = calculate_weighted_score(assessment.criteria_scores)
        recommendation = determine_recommendation(score, assessment.confidence, assessment.issues)

        verdict = JudgeVerdict(
            overall_score=score,
            passed=score >= self.passing_threshold,
            confidence=assessment.confidence,
            criteria_scores=assessment.criteria_scores,
            issues=assessment.issues,
            strengths=assessment.strengths,
            recommendation=recommendation,
            judge_model=self.model,
            temperature=self.config.temperature,
            tokens_used=usage.total_tokens,
            duration_ms=duration_ms,
        )

        logger.info(
            f"Judge verdict for {spec.lesson_id}: score={score:.3f}, "
            f"confidence={verdict.confidence.value}, recommendation={recommendation.value}, "
            f"issues={len(verdict.issues)}, tokens={verdict.tokens_used}"
        )
        return verdict

    def _build_evaluation_prompt(
        self, content: Union[LessonContentBody, str], spec: LessonSpecification
    ) -> str:
        if isinstance(content, LessonContentBody):
            text = render_lesson_markdown(content, spec.title)
        else:
            text = content

        objectives = "\n".join(
            f"- [{obj.id}] ({obj.bloom_level.value}) {obj.objective}"
            for obj in spec.learning_objectives
        ) or "- (none specified)"

        section_lines = []
        for index, section in enumerate(spec.sections, 1):
            line = f"{index}. {section.title}"
            if section.key_points_to_cover:
                line += f" | key points: {'; '.join(section.key_points_to_cover)}"
            if section.constraints.required_keywords:
                line += f" | keywords: {', '.join(section.constraints.required_keywords)}"
            section_lines.append(line)
        sections = "\n".join(section_lines) or "(no outline)"

        criteria = "\n".join(
            f"- **{criterion.value}** (weight {CRITERIA_WEIGHTS[criterion]:.0%}): "
            f"{CRITERIA_DESCRIPTIONS[criterion]}"
            for criterion in CRITERIA_WEIGHTS
        )

        return f"""Evaluate the following lesson against its specification.

**Lesson:** {spec.title} (id {spec.lesson_id}, {spec.difficulty_level})
**Audience:** {spec.metadata.target_audience}; tone: {spec.metadata.tone}

**Learning Objectives:**
{objectives}

**Section Outline:**
{sections}

**Lesson Content:**
{text}

**Rubric:**
Score each criterion from 0.0 (unusable) to 1.0 (excellent):
{criteria}

**Issues:**
For every problem give the criterion, severity (critical, major, minor), a location
such as "section 2" or "introduction", a description, the quoted text when useful,
and a concrete suggested fix. Critical means the lesson would mislead or fail a
learning objective.

**Strengths:**
List what the lesson does well.

**Confidence:**
Report low confidence when you cannot verify the subject matter.
"""
