"""
backend/routes/quizzes.py
Course quizzes: authoring by the owning instructor, submission by members

Scoring happens server-side; students never receive correct answers from
the question listing.
"""
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.database import get_db
from backend.errors import (
    BadRequestError, ErrorCode, ForbiddenError, NotFoundError, log_and_raise_internal
)
from backend.orm.course import Course
from backend.orm.quiz import Quiz, QuizAttempt, QuizOption, QuizQuestion
from backend.schemas.quiz import (
    QuestionCreateRules, QuizCreateRules, QuizSubmitRules, QuizUpdateRules
)
from backend.security.rbac import (
    CurrentUser, get_current_user, is_course_member, require_course_member, require_instructor
)
from backend.security.request_validator import RequestValidator, ValidatedRequest
from backend.services.quiz_scoring import count_attempts, record_attempt, score_answers

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Quizzes"])


def _access_denied() -> ForbiddenError:
    return ForbiddenError("Access denied", code=ErrorCode.OWNERSHIP_VIOLATION)


async def _owned_course(db: AsyncSession, course_id: int, instructor_id: int) -> Course:
    course = await db.get(Course, course_id)
    if course is None or course.instructor_id != instructor_id:
        logger.warning(f"Instructor {instructor_id} denied quiz authoring on course {course_id}")
        raise _access_denied()
    return course


async def _owned_quiz(db: AsyncSession, quiz_id: int, instructor_id: int, course_id: Optional[int] = None) -> Quiz:
    """Quiz whose course belongs to the instructor, else 403"""
    stmt = (
        select(Quiz)
        .join(Course, Course.id == Quiz.course_id)
        .where(Quiz.id == quiz_id, Course.instructor_id == instructor_id)
    )
    if course_id is not None:
        stmt = stmt.where(Quiz.course_id == course_id)
    quiz = (await db.execute(stmt)).scalar_one_or_none()
    if quiz is None:
        logger.warning(f"Instructor {instructor_id} denied access to quiz {quiz_id}")
        raise _access_denied()
    return quiz


async def _member_quiz(db: AsyncSession, quiz_id: int, current_user: CurrentUser) -> Quiz:
    """Quiz of a course the caller belongs to; 404 when missing, 403 when not a member"""
    quiz = await db.get(Quiz, quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz", code=ErrorCode.QUIZ_NOT_FOUND)

    course = await db.get(Course, quiz.course_id)
    if course is None or not await is_course_member(db, course, current_user):
        logger.warning(f"User {current_user.id} is not a member of the course of quiz {quiz_id}")
        raise ForbiddenError(
            "Access denied. You are not a member of this course.",
            code=ErrorCode.NOT_COURSE_MEMBER
        )
    return quiz


# ================= QUIZZES =================

@router.get("/courses/{course_id}/quizzes")
async def list_quizzes(
    course: Course = Depends(require_course_member),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(Quiz)
        .where(Quiz.course_id == course.id)
        .order_by(Quiz.order_index.asc(), Quiz.id.asc())
    )
    return {"quizzes": [quiz.to_dict() for quiz in result.scalars().all()]}


@router.post("/courses/{course_id}/quizzes", status_code=status.HTTP_201_CREATED)
async def create_quiz(
    course_id: int,
    current_user: CurrentUser = Depends(require_instructor),
    form: ValidatedRequest = Depends(RequestValidator(QuizCreateRules)),
    db: AsyncSession = Depends(get_db),
):
    await _owned_course(db, course_id, current_user.id)

    quiz = Quiz(course_id=course_id, questions_count=0, **form.data.model_dump())
    db.add(quiz)
    await db.commit()

    logger.info(f"Instructor {current_user.id} created quiz {quiz.id} in course {course_id}")
    return quiz.to_dict()


@router.put("/courses/{course_id}/quizzes/{quiz_id}")
async def update_quiz(
    course_id: int,
    quiz_id: int,
    current_user: CurrentUser = Depends(require_instructor),
    form: ValidatedRequest = Depends(RequestValidator(QuizUpdateRules)),
    db: AsyncSession = Depends(get_db),
):
    quiz = await _owned_quiz(db, quiz_id, current_user.id, course_id=course_id)

    updates = form.data.provided()
    if not updates:
        raise BadRequestError("No fields to update", code=ErrorCode.NO_FIELDS)

    for field, value in updates.items():
        setattr(quiz, field, value)
    await db.commit()

    logger.info(f"Quiz {quiz_id} updated: {sorted(updates)}")
    return quiz.to_dict()


@router.delete("/courses/{course_id}/quizzes/{quiz_id}")
async def delete_quiz(
    course_id: int,
    quiz_id: int,
    current_user: CurrentUser = Depends(require_instructor),
    db: AsyncSession = Depends(get_db),
):
    """Attempts, options, questions and the quiz go in one transaction."""
    await _owned_quiz(db, quiz_id, current_user.id, course_id=course_id)

    question_ids = select(QuizQuestion.id).where(QuizQuestion.quiz_id == quiz_id)
    try:
        await db.execute(delete(QuizAttempt).where(QuizAttempt.quiz_id == quiz_id))
        await db.execute(delete(QuizOption).where(QuizOption.question_id.in_(question_ids)))
        await db.execute(delete(QuizQuestion).where(QuizQuestion.quiz_id == quiz_id))
        await db.execute(delete(Quiz).where(Quiz.id == quiz_id))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        log_and_raise_internal(e, f"delete_quiz({quiz_id})")

    logger.info(f"Instructor {current_user.id} deleted quiz {quiz_id}")
    return {"message": "Quiz deleted successfully"}


# ================= QUESTIONS =================

@router.get("/quizzes/{quiz_id}/questions")
async def list_questions(
    quiz_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    quiz = await _member_quiz(db, quiz_id, current_user)
    reveal = current_user.is_instructor

    result = await db.execute(
        select(QuizQuestion)
        .where(QuizQuestion.quiz_id == quiz.id)
        .order_by(QuizQuestion.order_index.asc(), QuizQuestion.id.asc())
    )
    questions = result.scalars().all()

    options_by_question: Dict[int, List[dict]] = {question.id: [] for question in questions}
    if questions:
        options = await db.execute(
            select(QuizOption)
            .where(QuizOption.question_id.in_(list(options_by_question)))
            .order_by(QuizOption.order_index.asc(), QuizOption.id.asc())
        )
        for option in options.scalars().all():
            options_by_question[option.question_id].append(option.to_dict(include_answer=reveal))

    payload = []
    for question in questions:
        item = question.to_dict(include_answer=reveal)
        item["options"] = options_by_question[question.id]
        payload.append(item)
    return {"questions": payload}


@router.post("/quizzes/{quiz_id}/questions", status_code=status.HTTP_201_CREATED)
async def create_question(
    quiz_id: int,
    current_user: CurrentUser = Depends(require_instructor),
    form: ValidatedRequest = Depends(RequestValidator(QuestionCreateRules)),
    db: AsyncSession = Depends(get_db),
):
    """Options equal to correct_answer are flagged is_correct."""
    quiz = await _owned_quiz(db, quiz_id, current_user.id)
    data: QuestionCreateRules = form.data

    question = QuizQuestion(
        quiz_id=quiz.id,
        question=data.question,
        question_type=data.question_type,
        correct_answer=data.correct_answer,
        explanation=data.explanation,
        points=data.points,
        order_index=data.order_index,
    )
    db.add(question)
    await db.flush()

    for index, text in enumerate(data.options):
        db.add(QuizOption(
            question_id=question.id,
            option_text=text,
            is_correct=text == data.correct_answer,
            order_index=index,
        ))
    await db.flush()

    count = await db.execute(
        select(func.count(QuizQuestion.id)).where(QuizQuestion.quiz_id == quiz.id)
    )
    quiz.questions_count = count.scalar() or 0
    await db.commit()

    logger.info(f"Question {question.id} added to quiz {quiz.id} ({len(data.options)} options)")
    return question.to_dict()


# ================= ATTEMPTS =================

@router.post("/quizzes/{quiz_id}/submit")
async def submit_quiz(
    quiz_id: int,
    request: Request,
    current_user: CurrentUser = Depends(get_current_user),
    form: ValidatedRequest = Depends(RequestValidator(QuizSubmitRules, drop_blank=False)),
    db: AsyncSession = Depends(get_db),
):
    """
    Score a submission and store it as the caller's next attempt.

    Raises:
        NotFoundError: quiz does not exist
        ForbiddenError: caller is not a member of the quiz's course
        BadRequestError: max_attempts already used
    """
    data: QuizSubmitRules = form.data
    quiz = await _member_quiz(db, quiz_id, current_user)

    used = await count_attempts(db, current_user.id, quiz.id)
    if used >= quiz.max_attempts:
        raise BadRequestError(
            f"Maximum attempts ({quiz.max_attempts}) reached for this quiz",
            code=ErrorCode.MAX_ATTEMPTS_REACHED
        )

    result = await db.execute(select(QuizQuestion).where(QuizQuestion.quiz_id == quiz.id))
    score = score_answers(result.scalars().all(), data.answers, quiz.passing_score)

    attempt = await record_attempt(
        db,
        quiz,
        current_user.id,
        score,
        data.answers,
        data.started_at,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    logger.info(
        f"User {current_user.id} submitted quiz {quiz_id} attempt {attempt.attempt_number}: "
        f"{score.score}/{score.total_points} passed={score.passed}"
    )
    return {
        "id": attempt.id,
        "quiz_id": attempt.quiz_id,
        "attempt_number": attempt.attempt_number,
        "score": score.score,
        "percentage": score.percentage,
        "total_questions": score.total_questions,
        "correct_answers": score.correct_answers,
        "wrong_answers": score.wrong_answers,
        "unanswered": score.unanswered,
        "passed": score.passed,
        "completed_at": attempt.completed_at.isoformat(),
    }


@router.get("/courses/{course_id}/quiz-attempts")
async def my_quiz_attempts(
    course_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await db.execute(
        select(QuizAttempt, Quiz.title.label("quiz_title"))
        .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
        .where(QuizAttempt.user_id == current_user.id, Quiz.course_id == course_id)
        .order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
    )
    attempts = []
    for row in result.all():
        item = row.QuizAttempt.to_dict()
        item["quiz_title"] = row.quiz_title
        attempts.append(item)
    return {"attempts": attempts}
