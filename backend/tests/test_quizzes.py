"""
backend/tests/test_quizzes.py
Quiz authoring, question visibility, scoring and attempt limits
"""
from datetime import datetime

import pytest
from sqlalchemy import func, select

from backend.errors import ErrorCode
from backend.orm.quiz import QuestionType, QuizAttempt, QuizOption, QuizQuestion
from backend.services.quiz_scoring import minutes_since, score_answers
from backend.tests.factories import auth_headers


async def create_quiz(client, instructor, course_id, **fields):
    payload = {"title": "Checkpoint", "passing_score": 50, "max_attempts": 2}
    payload.update(fields)
    response = await client.post(
        f"/api/courses/{course_id}/quizzes", json=payload, headers=auth_headers(instructor)
    )
    assert response.status_code == 201
    return response.json()


async def add_question(client, instructor, quiz_id, question, correct, options=()):
    response = await client.post(
        f"/api/quizzes/{quiz_id}/questions",
        json={"question": question, "correct_answer": correct, "options": list(options)},
        headers=auth_headers(instructor),
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def quiz(client, instructor, course):
    created = await create_quiz(client, instructor, course.id)
    first = await add_question(client, instructor, created["id"], "2 + 2?", "4", ["3", "4", "5"])
    second = await add_question(client, instructor, created["id"], "Capital of France?", "Paris", ["Paris", "Rome"])
    created["question_ids"] = [first["id"], second["id"]]
    return created


class TestScoreAnswers:

    def make_questions(self):
        return [
            QuizQuestion(id=1, correct_answer="4", points=10, question_type=QuestionType.multiple_choice),
            QuizQuestion(id=2, correct_answer="Paris", points=10, question_type=QuestionType.multiple_choice),
        ]

    def test_one_right_one_wrong_passes_at_fifty(self):
        result = score_answers(self.make_questions(), {"1": "4", "2": "Rome"}, passing_score=50)
        assert result.score == 10
        assert result.percentage == 50.0
        assert result.correct_answers == 1
        assert result.wrong_answers == 1
        assert result.passed is True

    def test_blank_answers_are_unanswered(self):
        result = score_answers(self.make_questions(), {"1": "   "}, passing_score=50)
        assert result.unanswered == 2
        assert result.score == 0
        assert result.passed is False

    def test_match_is_exact(self):
        result = score_answers(self.make_questions(), {"1": "4 ", "2": "paris"}, passing_score=0)
        assert result.wrong_answers == 2
        assert result.passed is True

    def test_quiz_without_points(self):
        result = score_answers([], {}, passing_score=80)
        assert result.percentage == 0.0
        assert result.total_questions == 0

    def test_minutes_since_without_start(self):
        assert minutes_since(None, datetime.utcnow()) is None


class TestQuizAuthoring:

    async def test_defaults_and_question_count(self, client, instructor, course, quiz):
        assert quiz["time_limit_minutes"] == 60
        assert quiz["is_active"] is True

        response = await client.get(f"/api/courses/{course.id}/quizzes", headers=auth_headers(instructor))
        assert response.json()["quizzes"][0]["questions_count"] == 2

    async def test_options_flag_the_correct_answer(self, session, quiz):
        result = await session.execute(
            select(QuizOption.option_text)
            .where(QuizOption.question_id == quiz["question_ids"][0], QuizOption.is_correct.is_(True))
        )
        assert result.scalars().all() == ["4"]

    async def test_other_instructor_is_denied(self, client, other_instructor, course, quiz):
        created = await client.post(
            f"/api/courses/{course.id}/quizzes", json={"title": "Sneaky"}, headers=auth_headers(other_instructor)
        )
        assert created.status_code == 403
        assert created.json()["message"] == "Access denied"

        question = await client.post(
            f"/api/quizzes/{quiz['id']}/questions",
            json={"question": "?", "correct_answer": "x"},
            headers=auth_headers(other_instructor),
        )
        assert question.status_code == 403

    async def test_update_and_empty_update(self, client, instructor, course, quiz):
        url = f"/api/courses/{course.id}/quizzes/{quiz['id']}"
        updated = await client.put(url, json={"max_attempts": 5}, headers=auth_headers(instructor))
        assert updated.json()["max_attempts"] == 5
        assert updated.json()["title"] == "Checkpoint"

        empty = await client.put(url, json={}, headers=auth_headers(instructor))
        assert empty.status_code == 400
        assert empty.json()["code"] == ErrorCode.NO_FIELDS

    async def test_listing_is_ordered(self, client, instructor, course, enrolled_student):
        await create_quiz(client, instructor, course.id, title="Later", order_index=2)
        await create_quiz(client, instructor, course.id, title="Sooner", order_index=1)

        response = await client.get(f"/api/courses/{course.id}/quizzes", headers=auth_headers(enrolled_student))
        assert [q["title"] for q in response.json()["quizzes"]] == ["Sooner", "Later"]

    async def test_delete_removes_everything(self, client, session, instructor, enrolled_student, course, quiz):
        await client.post(
            f"/api/quizzes/{quiz['id']}/submit", json={"answers": {}}, headers=auth_headers(enrolled_student)
        )

        response = await client.delete(
            f"/api/courses/{course.id}/quizzes/{quiz['id']}", headers=auth_headers(instructor)
        )
        assert response.status_code == 200

        for model, column in ((QuizAttempt, QuizAttempt.quiz_id), (QuizQuestion, QuizQuestion.quiz_id)):
            remaining = await session.execute(select(func.count(model.id)).where(column == quiz["id"]))
            assert remaining.scalar() == 0
        options = await session.execute(
            select(func.count(QuizOption.id)).where(QuizOption.question_id.in_(quiz["question_ids"]))
        )
        assert options.scalar() == 0


class TestQuestionVisibility:

    async def test_students_do_not_see_answers(self, client, enrolled_student, quiz):
        response = await client.get(f"/api/quizzes/{quiz['id']}/questions", headers=auth_headers(enrolled_student))
        questions = response.json()["questions"]
        assert len(questions) == 2
        assert "correct_answer" not in questions[0]
        assert all("is_correct" not in option for option in questions[0]["options"])
        assert [o["option_text"] for o in questions[0]["options"]] == ["3", "4", "5"]

    async def test_instructor_sees_answers(self, client, instructor, quiz):
        response = await client.get(f"/api/quizzes/{quiz['id']}/questions", headers=auth_headers(instructor))
        assert response.json()["questions"][0]["correct_answer"] == "4"

    async def test_unknown_quiz(self, client, student):
        response = await client.get("/api/quizzes/9999/questions", headers=auth_headers(student))
        assert response.status_code == 404
        assert response.json()["code"] == ErrorCode.QUIZ_NOT_FOUND


class TestSubmitQuiz:

    async def test_half_right_passes_at_fifty(self, client, enrolled_student, quiz):
        first, second = quiz["question_ids"]
        response = await client.post(
            f"/api/quizzes/{quiz['id']}/submit",
            json={"answers": {str(first): "4", str(second): "Rome"}},
            headers=auth_headers(enrolled_student),
        )
        assert response.status_code == 200
        result = response.json()
        assert result["attempt_number"] == 1
        assert result["score"] == 10
        assert result["percentage"] == 50.0
        assert result["correct_answers"] == 1
        assert result["wrong_answers"] == 1
        assert result["passed"] is True

    async def test_attempt_limit(self, client, enrolled_student, quiz):
        url = f"/api/quizzes/{quiz['id']}/submit"
        headers = auth_headers(enrolled_student)
        numbers = [
            (await client.post(url, json={"answers": {}}, headers=headers)).json()["attempt_number"]
            for _ in range(2)
        ]
        assert numbers == [1, 2]

        third = await client.post(url, json={"answers": {}}, headers=headers)
        assert third.status_code == 400
        assert third.json()["code"] == ErrorCode.MAX_ATTEMPTS_REACHED

    async def test_non_member_cannot_submit(self, client, other_student, quiz):
        response = await client.post(
            f"/api/quizzes/{quiz['id']}/submit", json={"answers": {}}, headers=auth_headers(other_student)
        )
        assert response.status_code == 403

    async def test_attempts_are_listed_with_quiz_title(self, client, enrolled_student, course, quiz):
        headers = auth_headers(enrolled_student)
        await client.post(f"/api/quizzes/{quiz['id']}/submit", json={"answers": {}}, headers=headers)

        response = await client.get(f"/api/courses/{course.id}/quiz-attempts", headers=headers)
        attempts = response.json()["attempts"]
        assert len(attempts) == 1
        assert attempts[0]["quiz_title"] == "Checkpoint"
        assert attempts[0]["is_passed"] is False
