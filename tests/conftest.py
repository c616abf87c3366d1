"""Shared fixtures for lesson judge tests."""

from typing import List, Optional

import pytest

from lesson_judge.judge.rubric import determine_recommendation
from lesson_judge.models.judge import (
    CriteriaScores,
    IssueSeverity,
    JudgeConfidence,
    JudgeCriterion,
    JudgeIssue,
    JudgeRecommendation,
    JudgeVerdict,
)
from lesson_judge.models.lesson import (
    ContentExample,
    ContentExercise,
    ContentSection,
    LearningObjective,
    LessonContentBody,
    LessonSpecification,
    SectionConstraints,
    SectionSpec,
)

INTRO = (
    "Machine learning is the practice of building programs that improve with data instead of "
    "following rules written by hand. In this lesson we look at the two main families of "
    "methods, supervised learning and unsupervised learning, and at the difference between "
    "them. You will see how a model learns from labeled examples, how we measure whether it "
    "has learned anything useful, and why a model that looks perfect on its training data can "
    "still fail on new data. By the end you should be able to split a dataset, train a simple "
    "classification model, and read its evaluation results with a critical eye. We keep the "
    "math light and focus on the ideas that matter in daily work. Each section builds on the "
    "one before it, so read them in order."
)

SUPERVISED = (
    "In supervised learning every training example comes with labels. A label is the answer we "
    "want the model to predict, such as the price of a house or whether an email is spam. The "
    "model looks at many pairs of inputs and labels and adjusts its internal parameters until "
    "its predictions match the labels as closely as possible. When the label is a category, "
    "like spam or not spam, the task is called classification. When the label is a number, "
    "like a price or a temperature, the task is called regression. Both kinds of task share "
    "the same basic loop. We make a prediction, compare it with the true label, measure the "
    "error, and nudge the parameters to reduce that error. Repeating this loop thousands of "
    "times lets the model capture patterns that would be hard to describe by hand. The quality "
    "of the labels matters a great deal, because a model can only be as good as the examples "
    "it learns from."
)

UNSUPERVISED = (
    "Unsupervised learning works without labels. The model receives only the inputs and must "
    "find structure on its own. A common example is clustering, where the goal is to group "
    "similar customers, documents, or images together. Another example is dimensionality "
    "reduction, which compresses many features into a few that keep most of the useful "
    "variation. The key difference between supervised and unsupervised learning is the kind "
    "of feedback the model gets. With labels, the model knows exactly how wrong each "
    "prediction was. Without labels, it can only judge how well its groups or summaries fit "
    "the shape of the data. Unsupervised methods are often used early in a project to explore "
    "a new dataset, to spot outliers, or to create features that a supervised model can use "
    "later. They are also useful when labels are expensive or slow to collect."
)

EVALUATION = (
    "A model is only useful if it works on data it has never seen. To check this we split the "
    "dataset before training. The train split is used to fit the model, and the test split is "
    "kept aside until the very end. Many teams also hold out a validation split, which they "
    "use to compare settings and choose the best model without touching the test data. The "
    "most common failure at this stage is overfitting. An overfitting model memorizes the "
    "training data, including its noise, instead of learning the general pattern. You can "
    "spot it in the evaluation results when training accuracy is very high while test "
    "accuracy is much lower. The gap between the two numbers is the warning sign. Simpler "
    "models, more data, and regularization all help to close that gap. Always report the "
    "score on the test split, because it is the best estimate of how the model will behave "
    "in the real world."
)

CONCLUSION = (
    "Supervised learning uses labels to learn a mapping from inputs to answers, and it covers "
    "both classification and regression. Unsupervised learning finds structure in data that "
    "has no labels at all. Whatever method you choose, keep a clean train and test split, use "
    "a validation split for tuning, and compare training and test scores to catch overfitting "
    "early. These habits will carry over to every model you build in the lessons that follow."
)

EXAMPLE_TEXT = (
    "The short program below trains a classification model on a small dataset of flowers. It "
    "keeps a quarter of the data for testing and prints the accuracy on both splits so that "
    "you can compare them. If the training score is far above the test score, the model is "
    "probably overfitting."
)

EXAMPLE_CODE = """from sklearn.datasets import load_iris
from sklearn.model_selection import train_test_split
from sklearn.tree import DecisionTreeClassifier

X, y = load_iris(return_X_y=True)
X_train, X_test, y_train, y_test = train_test_split(X, y, test_size=0.25, random_state=0)
model = DecisionTreeClassifier().fit(X_train, y_train)
print(model.score(X_train, y_train), model.score(X_test, y_test))"""

EXERCISE_QUESTION = (
    "Train the decision tree from the example again, but limit its depth to two levels. "
    "Compare the new training and test scores with the old ones and explain, in two or three "
    "sentences, whether the change reduced overfitting."
)


@pytest.fixture
def lesson_spec() -> LessonSpecification:
    """Specification for an introductory machine learning lesson."""
    return LessonSpecification(
        lesson_id="1.1",
        title="Introduction to Machine Learning",
        description="Supervised and unsupervised learning, and how to evaluate a model",
        learning_objectives=[
            LearningObjective(
                id="LO-1",
                objective="Explain the difference between supervised and unsupervised learning",
            ),
            LearningObjective(
                id="LO-2",
                objective="Apply a train and test split to evaluate a classification model",
                bloom_level="apply",
            ),
            LearningObjective(
                id="LO-3",
                objective="Identify overfitting in model evaluation results",
                bloom_level="analyze",
            ),
        ],
        sections=[
            SectionSpec(
                title="Supervised Learning",
                constraints=SectionConstraints(
                    required_keywords=["classification", "regression", "labels"],
                    prohibited_terms=["guaranteed accuracy"],
                ),
                key_points_to_cover=["labels", "classification vs regression"],
            ),
            SectionSpec(title="Unsupervised Learning"),
            SectionSpec(
                title="Model Evaluation",
                constraints=SectionConstraints(required_keywords=["overfitting", "validation"]),
            ),
        ],
    )


@pytest.fixture
def lesson_content() -> LessonContentBody:
    """Well-formed lesson body of roughly 850 words."""
    return LessonContentBody(
        intro=INTRO,
        sections=[
            ContentSection(title="Supervised Learning", content=SUPERVISED),
            ContentSection(title="Unsupervised Learning", content=UNSUPERVISED),
            ContentSection(title="Evaluating a Model", content=EVALUATION),
            ContentSection(title="Conclusion", content=CONCLUSION),
        ],
        examples=[
            ContentExample(
                title="Train and test split in practice",
                content=EXAMPLE_TEXT,
                code=EXAMPLE_CODE,
                code_language="python",
            )
        ],
        exercises=[
            ContentExercise(
                question=EXERCISE_QUESTION,
                hints=["Pass max_depth=2 to the classifier."],
                solution="The shallower tree scores lower on training data but closer on test data.",
            )
        ],
    )


@pytest.fixture
def stub_markdown() -> str:
    """Two-sentence stub with no conclusion."""
    return (
        "# Introduction to Machine Learning\n\n"
        "## Introduction\n\n"
        "Machine learning is useful. We will cover it later.\n"
    )


@pytest.fixture
def make_issue():
    """Factory for JudgeIssue objects."""

    def _make(
        severity: IssueSeverity = IssueSeverity.MINOR,
        location: str = "section 1",
        criterion: JudgeCriterion = JudgeCriterion.CLARITY_READABILITY,
        description: str = "Sentence is hard to follow",
    ) -> JudgeIssue:
        return JudgeIssue(
            criterion=criterion,
            severity=severity,
            location=location,
            description=description,
            suggested_fix="Rewrite the sentence in plain language",
        )

    return _make


@pytest.fixture
def make_verdict():
    """Factory for JudgeVerdict objects with uniform criterion scores."""

    def _make(
        score: float = 0.85,
        confidence: JudgeConfidence = JudgeConfidence.HIGH,
        judge_model: str = "gpt-4o-mini",
        issues: Optional[List[JudgeIssue]] = None,
        strengths: Optional[List[str]] = None,
        recommendation: Optional[JudgeRecommendation] = None,
        tokens_used: int = 100,
    ) -> JudgeVerdict:
        issues = issues or []
        return JudgeVerdict(
            overall_score=score,
            passed=score >= 0.7,
            confidence=confidence,
            criteria_scores=CriteriaScores(
                learning_objective_alignment=score,
                pedagogical_structure=score,
                factual_accuracy=score,
                clarity_readability=score,
                engagement_examples=score,
                completeness=score,
            ),
            issues=issues,
            strengths=strengths or [],
            recommendation=recommendation or determine_recommendation(score, confidence, issues),
            judge_model=judge_model,
            tokens_used=tokens_used,
        )

    return _make
