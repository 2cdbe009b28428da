"""
backend/orm/quiz.py
Quizzes, questions, options and scored attempts

Attempts are numbered per (user, quiz); the unique constraint on
(user_id, quiz_id, attempt_number) rejects a duplicate number produced by
two concurrent submissions.
"""
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Numeric, DateTime, JSON, ForeignKey,
    UniqueConstraint, Enum as SQLEnum
)
from enum import Enum
from backend.orm.base import BaseModel


class QuestionType(str, Enum):
    multiple_choice = "multiple_choice"
    true_false = "true_false"
    short_answer = "short_answer"


class Quiz(BaseModel):
    __tablename__ = "quizzes"

    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    time_limit_minutes = Column(Integer, default=60, nullable=False)
    passing_score = Column(Integer, default=80, nullable=False)
    max_attempts = Column(Integer, default=3, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    show_results = Column(Boolean, default=True, nullable=False)
    randomize_questions = Column(Boolean, default=False, nullable=False)
    randomize_options = Column(Boolean, default=False, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)
    questions_count = Column(Integer, default=0, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description,
            "instructions": self.instructions,
            "time_limit_minutes": self.time_limit_minutes,
            "passing_score": self.passing_score,
            "max_attempts": self.max_attempts,
            "is_active": bool(self.is_active),
            "show_results": bool(self.show_results),
            "randomize_questions": bool(self.randomize_questions),
            "randomize_options": bool(self.randomize_options),
            "order_index": self.order_index,
            "questions_count": self.questions_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }


class QuizQuestion(BaseModel):
    __tablename__ = "quiz_questions"

    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    question = Column(Text, nullable=False)
    question_type = Column(SQLEnum(QuestionType), default=QuestionType.multiple_choice, nullable=False)
    correct_answer = Column(Text, nullable=False)
    explanation = Column(Text, nullable=True)
    points = Column(Integer, default=10, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)

    def to_dict(self, include_answer: bool = True):
        data = {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "question": self.question,
            "question_type": self.question_type.value if self.question_type else None,
            "explanation": self.explanation,
            "points": self.points,
            "order_index": self.order_index
        }
        if include_answer:
            data["correct_answer"] = self.correct_answer
        return data


class QuizOption(BaseModel):
    __tablename__ = "quiz_options"

    question_id = Column(Integer, ForeignKey("quiz_questions.id", ondelete="CASCADE"), nullable=False, index=True)
    option_text = Column(Text, nullable=False)
    is_correct = Column(Boolean, default=False, nullable=False)
    order_index = Column(Integer, default=0, nullable=False)

    def to_dict(self, include_answer: bool = True):
        data = {
            "id": self.id,
            "option_text": self.option_text,
            "order_index": self.order_index
        }
        if include_answer:
            data["is_correct"] = bool(self.is_correct)
        return data


class QuizAttempt(BaseModel):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        UniqueConstraint("user_id", "quiz_id", "attempt_number", name="uq_quiz_attempt_number"),
    )

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    attempt_number = Column(Integer, nullable=False)
    score = Column(Integer, default=0, nullable=False)
    percentage = Column(Numeric(5, 2), default=0, nullable=False)
    total_questions = Column(Integer, default=0, nullable=False)
    correct_answers = Column(Integer, default=0, nullable=False)
    wrong_answers = Column(Integer, default=0, nullable=False)
    unanswered = Column(Integer, default=0, nullable=False)
    is_passed = Column(Boolean, default=False, nullable=False)
    answers = Column(JSON, nullable=True)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    time_taken_minutes = Column(Integer, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "quiz_id": self.quiz_id,
            "attempt_number": self.attempt_number,
            "score": self.score,
            "percentage": float(self.percentage or 0),
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "wrong_answers": self.wrong_answers,
            "unanswered": self.unanswered,
            "is_passed": bool(self.is_passed),
            "answers": self.answers,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "time_taken_minutes": self.time_taken_minutes
        }
