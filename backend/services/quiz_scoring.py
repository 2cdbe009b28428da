"""
backend/services/quiz_scoring.py
Quiz scoring and attempt recording

Scoring rules:
- a blank or whitespace-only answer counts as unanswered
- only an exact string match with the stored correct answer earns points
- percentage = earned / total * 100 (0 when the quiz carries no points)
- passed when percentage >= the quiz's passing_score
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.orm.quiz import Quiz, QuizAttempt, QuizQuestion
from backend.utils.dates import naive_utc

logger = logging.getLogger(__name__)

MAX_ATTEMPT_NUMBER_RETRIES = 3


@dataclass
class QuizScore:
    score: int
    total_points: int
    percentage: float
    total_questions: int
    correct_answers: int
    wrong_answers: int
    unanswered: int
    passed: bool


def score_answers(
    questions: Iterable[QuizQuestion],
    answers: Dict[str, Optional[str]],
    passing_score: float,
) -> QuizScore:
    """
    Score submitted answers against the quiz's questions.

    Args:
        questions: Questions of the quiz (correct_answer + points)
        answers: question id (as string) -> submitted answer
        passing_score: Minimum percentage to pass

    Returns:
        QuizScore with counts, earned points, percentage and pass flag
    """
    correct = wrong = unanswered = 0
    earned = total = 0
    count = 0

    for question in questions:
        count += 1
        total += question.points or 0
        answer = answers.get(str(question.id))

        if answer is None or answer.strip() == "":
            unanswered += 1
        elif answer == question.correct_answer:
            correct += 1
            earned += question.points or 0
        else:
            wrong += 1

    percentage = (earned / total) * 100 if total > 0 else 0.0

    return QuizScore(
        score=earned,
        total_points=total,
        percentage=percentage,
        total_questions=count,
        correct_answers=correct,
        wrong_answers=wrong,
        unanswered=unanswered,
        passed=percentage >= passing_score,
    )


async def count_attempts(db: AsyncSession, user_id: int, quiz_id: int) -> int:
    result = await db.execute(
        select(func.count(QuizAttempt.id)).where(
            QuizAttempt.user_id == user_id,
            QuizAttempt.quiz_id == quiz_id
        )
    )
    return result.scalar() or 0


async def next_attempt_number(db: AsyncSession, user_id: int, quiz_id: int) -> int:
    result = await db.execute(
        select(func.max(QuizAttempt.attempt_number)).where(
            QuizAttempt.user_id == user_id,
            QuizAttempt.quiz_id == quiz_id
        )
    )
    return (result.scalar() or 0) + 1


def minutes_since(started_at: Optional[datetime], completed_at: datetime) -> Optional[int]:
    if started_at is None:
        return None
    return max(0, round((completed_at - started_at).total_seconds() / 60))


async def record_attempt(
    db: AsyncSession,
    quiz: Quiz,
    user_id: int,
    result: QuizScore,
    answers: Dict[str, Optional[str]],
    started_at: Optional[datetime],
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> QuizAttempt:
    """
    Persist an attempt numbered max + 1 for this user and quiz.

    A concurrent submission that took the same number violates the
    (user_id, quiz_id, attempt_number) constraint; the number is then
    re-read and the insert retried.
    """
    quiz_id = quiz.id
    completed_at = datetime.utcnow()
    naive_started = naive_utc(started_at)

    for attempt in range(1, MAX_ATTEMPT_NUMBER_RETRIES + 1):
        attempt_number = await next_attempt_number(db, user_id, quiz_id)
        row = QuizAttempt(
            user_id=user_id,
            quiz_id=quiz_id,
            attempt_number=attempt_number,
            score=result.score,
            percentage=round(result.percentage, 2),
            total_questions=result.total_questions,
            correct_answers=result.correct_answers,
            wrong_answers=result.wrong_answers,
            unanswered=result.unanswered,
            is_passed=result.passed,
            answers=answers,
            started_at=naive_started,
            completed_at=completed_at,
            time_taken_minutes=minutes_since(naive_started, completed_at),
            ip_address=ip_address,
            user_agent=(user_agent or "")[:500] or None,
        )
        db.add(row)
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            logger.warning(
                f"Attempt number {attempt_number} already taken for user {user_id} "
                f"quiz {quiz_id} (try {attempt}/{MAX_ATTEMPT_NUMBER_RETRIES})"
            )
            continue
        await db.refresh(row)
        return row

    raise RuntimeError(f"Could not allocate an attempt number for user {user_id} quiz {quiz_id}")
