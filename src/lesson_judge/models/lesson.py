"""Lesson specification and generated lesson content models.

A LessonSpecification is the generation contract produced upstream; a
LessonContentBody is the candidate draft the judge scores. Both are
read-only inputs to every evaluation stage.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


# ============================================================================
# Enums
# ============================================================================


class BloomLevel(str, Enum):
    """Cognitive level of a learning objective (Bloom's taxonomy)."""

    REMEMBER = "remember"
    UNDERSTAND = "understand"
    APPLY = "apply"
    ANALYZE = "analyze"
    EVALUATE = "evaluate"
    CREATE = "create"


class SectionDepth(str, Enum):
    """Depth constraint for a section outline."""

    SUMMARY = "summary"
    DETAILED_ANALYSIS = "detailed_analysis"
    COMPREHENSIVE = "comprehensive"


class ContentArchetype(str, Enum):
    """Target archetype for generated prose."""

    CODE_TUTORIAL = "code_tutorial"
    CONCEPT_EXPLAINER = "concept_explainer"
    CASE_STUDY = "case_study"
    LEGAL_WARNING = "legal_warning"


# ============================================================================
# Lesson Specification
# ============================================================================


class LearningObjective(BaseModel):
    """Single learning objective with its cognitive level."""

    id: str = Field(..., min_length=1, description="Objective identifier (e.g. LO-1)")
    objective: str = Field(..., min_length=1, description="Objective statement")
    bloom_level: BloomLevel = Field(
        default=BloomLevel.UNDERSTAND, description="Cognitive level of the objective"
    )

    model_config = {"frozen": True}


class SectionConstraints(BaseModel):
    """Constraints attached to a section outline."""

    depth: SectionDepth = Field(default=SectionDepth.DETAILED_ANALYSIS)
    required_keywords: List[str] = Field(
        default_factory=list, description="Keywords the section must mention"
    )
    prohibited_terms: List[str] = Field(
        default_factory=list, description="Terms that must not appear in the lesson"
    )

    model_config = {"frozen": True}


class SectionSpec(BaseModel):
    """Outline of one lesson section."""

    title: str = Field(..., min_length=1)
    content_archetype: ContentArchetype = Field(default=ContentArchetype.CONCEPT_EXPLAINER)
    rag_context_id: Optional[str] = Field(default=None)
    constraints: SectionConstraints = Field(default_factory=SectionConstraints)
    key_points_to_cover: List[str] = Field(default_factory=list)
    analogies_to_use: Optional[str] = Field(default=None)

    model_config = {"frozen": True}


class RubricCriterion(BaseModel):
    """Weighted criterion used to grade an exercise."""

    criteria: List[str] = Field(default_factory=list)
    weight: float = Field(..., ge=0, le=100)

    model_config = {"frozen": True}


class ExerciseSpec(BaseModel):
    """Exercise requested by the specification."""

    type: str = Field(..., min_length=1, description="Exercise type (coding, conceptual, ...)")
    difficulty: str = Field(default="medium")
    learning_objective_id: Optional[str] = Field(default=None)
    structure_template: str = Field(default="")
    rubric_criteria: List[RubricCriterion] = Field(default_factory=list)

    model_config = {"frozen": True}


class RagContext(BaseModel):
    """Retrieval metadata for grounding the lesson."""

    primary_documents: List[str] = Field(default_factory=list)
    search_queries: List[str] = Field(default_factory=list)
    expected_chunks: int = Field(default=0, ge=0)

    model_config = {"frozen": True}


class LessonMetadata(BaseModel):
    """Audience and tone metadata for a lesson."""

    target_audience: str = Field(default="practitioner")
    tone: str = Field(default="conversational-professional")
    compliance_level: str = Field(default="standard")
    content_archetype: ContentArchetype = Field(default=ContentArchetype.CONCEPT_EXPLAINER)

    model_config = {"frozen": True}


class LessonSpecification(BaseModel):
    """Generation contract for a single lesson."""

    lesson_id: str = Field(..., min_length=1, description="Lesson identifier")
    title: str = Field(..., min_length=1, description="Lesson title")
    description: str = Field(default="")
    estimated_duration_minutes: int = Field(default=15, ge=1)
    difficulty_level: str = Field(default="intermediate")
    metadata: LessonMetadata = Field(default_factory=LessonMetadata)
    learning_objectives: List[LearningObjective] = Field(default_factory=list)
    sections: List[SectionSpec] = Field(default_factory=list)
    exercises: List[ExerciseSpec] = Field(default_factory=list)
    rag_context: RagContext = Field(default_factory=RagContext)

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "lesson_id": "1.1",
                "title": "Introduction to Machine Learning",
                "learning_objectives": [
                    {
                        "id": "LO-1",
                        "objective": "Explain supervised learning concepts",
                        "bloom_level": "understand",
                    }
                ],
                "sections": [
                    {
                        "title": "Supervised Learning",
                        "constraints": {"required_keywords": ["classification"]},
                    }
                ],
            }
        },
    }

    @field_validator("learning_objectives")
    @classmethod
    def validate_unique_objective_ids(cls, v: List[LearningObjective]) -> List[LearningObjective]:
        """Ensure objective ids are unique."""
        ids = [objective.id for objective in v]
        if len(ids) != len(set(ids)):
            raise ValueError("learning objective ids must be unique")
        return v


# ============================================================================
# Lesson Content
# ============================================================================


class ContentSection(BaseModel):
    """One section of generated prose."""

    title: str = Field(default="")
    content: str = Field(default="")
    citations: List[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class ContentExample(BaseModel):
    """Worked example, optionally with code."""

    title: str = Field(default="")
    content: str = Field(default="")
    code: Optional[str] = Field(default=None)
    code_language: Optional[str] = Field(default=None)

    model_config = {"frozen": True}


class ContentExercise(BaseModel):
    """Exercise with hints, solution, and grading rubric."""

    question: str = Field(default="")
    hints: List[str] = Field(default_factory=list)
    solution: Optional[str] = Field(default=None)
    rubric: Optional[str] = Field(default=None)

    model_config = {"frozen": True}


class LessonContentBody(BaseModel):
    """Candidate lesson content produced by the generation pipeline."""

    intro: str = Field(default="")
    sections: List[ContentSection] = Field(default_factory=list)
    examples: List[ContentExample] = Field(default_factory=list)
    exercises: List[ContentExercise] = Field(default_factory=list)

    model_config = {"frozen": True}
