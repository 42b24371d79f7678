"""
Quiz, question and attempt models.

Question correctness data is stored per type:
- option types: ``options`` JSON list of {"id", "label", "is_correct"}
- code_output: ``expected_output``

Attempt numbers are unique per (quiz, user) via ``uq_quiz_attempt_number``.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sprintwise.core.models import (
    GradedAnswer,
    Question,
    QuestionOption,
    QuestionType,
    Quiz,
    QuizAttempt,
    QuizType,
)

from .base import Base, utcnow


class QuizRow(Base):
    __tablename__ = "quizzes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    type: Mapped[str] = mapped_column(String(16))
    sprint_id: Mapped[str | None] = mapped_column(
        ForeignKey("sprints.id", ondelete="SET NULL"), index=True
    )
    title: Mapped[str] = mapped_column(Text, default="")
    passing_score: Mapped[float] = mapped_column(Float, default=80.0)
    attempts_allowed: Mapped[int] = mapped_column(Integer, default=3)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    questions: Mapped[list[QuizQuestionRow]] = relationship(
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="QuizQuestionRow.position",
        lazy="selectin",
    )

    def to_domain(self) -> Quiz:
        return Quiz(
            id=self.id,
            type=QuizType(self.type),
            questions=[question.to_domain() for question in self.questions],
            passing_score=self.passing_score,
            attempts_allowed=self.attempts_allowed,
            sprint_id=self.sprint_id,
            title=self.title,
        )

    @classmethod
    def from_domain(cls, quiz: Quiz) -> QuizRow:
        return cls(
            id=quiz.id,
            type=QuizType(quiz.type).value,
            sprint_id=quiz.sprint_id,
            title=quiz.title,
            passing_score=quiz.passing_score,
            attempts_allowed=quiz.attempts_allowed,
            questions=[
                QuizQuestionRow.from_domain(question, position)
                for position, question in enumerate(quiz.questions)
            ],
        )


class QuizQuestionRow(Base):
    __tablename__ = "quiz_questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    quiz_id: Mapped[str] = mapped_column(ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    type: Mapped[str] = mapped_column(String(32))
    prompt: Mapped[str] = mapped_column(Text, default="")
    points: Mapped[float] = mapped_column(Float, default=1.0)
    skill_ids: Mapped[list] = mapped_column(JSON, default=list)
    options: Mapped[list] = mapped_column(JSON, default=list)
    expected_output: Mapped[str | None] = mapped_column(Text)

    quiz: Mapped[QuizRow] = relationship(back_populates="questions")

    def to_domain(self) -> Question:
        try:
            question_type = QuestionType(self.type)
        except ValueError:
            # Unknown stored types grade as incorrect
            question_type = self.type  # type: ignore[assignment]
        return Question(
            id=self.id,
            type=question_type,
            points=self.points,
            skill_ids=list(self.skill_ids or []),
            options=[
                QuestionOption(
                    id=option["id"],
                    label=option.get("label", ""),
                    is_correct=bool(option.get("is_correct", False)),
                )
                for option in self.options or []
            ],
            expected_output=self.expected_output,
            prompt=self.prompt,
        )

    @classmethod
    def from_domain(cls, question: Question, position: int) -> QuizQuestionRow:
        return cls(
            id=question.id,
            position=position,
            type=getattr(question.type, "value", question.type),
            prompt=question.prompt,
            points=question.points,
            skill_ids=list(question.skill_ids),
            options=[
                {"id": option.id, "label": option.label, "is_correct": option.is_correct}
                for option in question.options
            ],
            expected_output=question.expected_output,
        )


class QuizAttemptRow(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("quiz_id", "user_id", "attempt_number", name="uq_quiz_attempt_number"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    quiz_id: Mapped[str] = mapped_column(ForeignKey("quizzes.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    attempt_number: Mapped[int] = mapped_column(Integer)
    score: Mapped[float] = mapped_column(Float)
    passed: Mapped[bool] = mapped_column(Boolean)
    skill_scores: Mapped[dict] = mapped_column(JSON, default=dict)
    elapsed_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    answers: Mapped[list] = mapped_column(JSON, default=list)
    completed_at: Mapped[datetime | None] = mapped_column()

    def to_domain(self) -> QuizAttempt:
        return QuizAttempt(
            id=self.id,
            quiz_id=self.quiz_id,
            user_id=self.user_id,
            attempt_number=self.attempt_number,
            score=self.score,
            passed=self.passed,
            skill_scores=dict(self.skill_scores or {}),
            elapsed_seconds=self.elapsed_seconds,
            graded_answers=[GradedAnswer(**answer) for answer in self.answers or []],
            completed_at=self.completed_at,
        )

    @classmethod
    def from_domain(cls, attempt: QuizAttempt) -> QuizAttemptRow:
        return cls(
            id=attempt.id,
            quiz_id=attempt.quiz_id,
            user_id=attempt.user_id,
            attempt_number=attempt.attempt_number,
            score=attempt.score,
            passed=attempt.passed,
            skill_scores=dict(attempt.skill_scores),
            elapsed_seconds=attempt.elapsed_seconds,
            answers=[
                {
                    "question_id": answer.question_id,
                    "answer": answer.answer,
                    "is_correct": answer.is_correct,
                    "points_earned": answer.points_earned,
                    "needs_manual_review": answer.needs_manual_review,
                }
                for answer in attempt.graded_answers
            ],
            completed_at=attempt.completed_at,
        )
