"""
backend/schemas/quiz.py
Validation rules for quiz authoring and submission
"""
from datetime import datetime
from typing import Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from backend.orm.quiz import QuestionType
from backend.security.request_validator import RuleSet


QUIZ_MESSAGES = {
    "title": "Title must be between 1 and 255 characters",
    "time_limit_minutes": "Time limit must be a positive number of minutes",
    "passing_score": "Passing score must be between 0 and 100",
    "max_attempts": "Max attempts must be at least 1",
    "order_index": "Order index must be a non-negative integer",
}


class QuizCreateRules(RuleSet):
    """Used by: POST /api/courses/{course_id}/quizzes"""
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    instructions: Optional[str] = None
    time_limit_minutes: int = Field(60, ge=1)
    passing_score: int = Field(80, ge=0, le=100)
    max_attempts: int = Field(3, ge=1)
    is_active: bool = True
    show_results: bool = True
    randomize_questions: bool = False
    randomize_options: bool = False
    order_index: int = Field(0, ge=0)

    messages = QUIZ_MESSAGES


class QuizUpdateRules(RuleSet):
    """Used by: PUT /api/courses/{course_id}/quizzes/{quiz_id}"""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    instructions: Optional[str] = None
    time_limit_minutes: Optional[int] = Field(None, ge=1)
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    max_attempts: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None
    show_results: Optional[bool] = None
    randomize_questions: Optional[bool] = None
    randomize_options: Optional[bool] = None
    order_index: Optional[int] = Field(None, ge=0)

    messages = QUIZ_MESSAGES


class OptionIn(BaseModel):
    text: str = Field(..., min_length=1)


class QuestionCreateRules(RuleSet):
    """
    Used by: POST /api/quizzes/{quiz_id}/questions

    options accepts plain strings or {"text": ...} objects.
    """
    question: str = Field(..., min_length=1)
    question_type: QuestionType = QuestionType.multiple_choice
    correct_answer: str = Field(..., min_length=1)
    explanation: Optional[str] = None
    points: int = Field(10, ge=1)
    order_index: int = Field(0, ge=0)
    options: List[Union[str, OptionIn]] = Field(default_factory=list)

    messages = {
        "question": "Question text is required",
        "question_type": "Question type must be multiple_choice, true_false or short_answer",
        "correct_answer": "Correct answer is required",
        "points": "Points must be a positive integer",
        "order_index": "Order index must be a non-negative integer",
        "options": "Options must be a list of strings or {text} objects",
    }

    @field_validator("options")
    @classmethod
    def flatten_options(cls, v: List[Union[str, OptionIn]]) -> List[str]:
        return [option.text if isinstance(option, OptionIn) else option for option in v]


class QuizSubmitRules(RuleSet):
    """
    Used by: POST /api/quizzes/{quiz_id}/submit

    Answers are compared verbatim, so whitespace is not stripped here.
    """
    model_config = ConfigDict(str_strip_whitespace=False)

    answers: Dict[str, Optional[str]] = Field(default_factory=dict)
    started_at: Optional[datetime] = None

    messages = {
        "answers": "Answers must map question IDs to answer strings",
        "started_at": "started_at must be an ISO 8601 date-time",
    }
