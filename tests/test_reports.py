from datetime import timedelta

import pytest

from lms_progress.errors import AccessDenied, NotFound
from lms_progress.progress.quiz_engine import submit_quiz
from lms_progress.progress.reports import (
    all_quiz_attempts, course_quiz_attempts, instructor_quiz_analytics,
    instructor_student_progress, quiz_status, quiz_summary, repair_attempt_counts,
    reset_quiz_progress
)
from lms_progress.progress.store import load_student_progress

from conftest import INSTRUCTOR, NOW, STUDENT, enroll, make_course


async def seed_two_quizzes(db):
    await db.courses.insert_one(make_course(quiz_chapters=("CH_1", "CH_2")))
    await enroll(db)
    await submit_quiz(db, STUDENT, "COURSE_1", "CH_1", ["A", "B"], now=NOW)
    await submit_quiz(db, STUDENT, "COURSE_1", "CH_2", ["X", "Y"], now=NOW + timedelta(minutes=1))
    await submit_quiz(db, STUDENT, "COURSE_1", "CH_2", ["A", "Y"], now=NOW + timedelta(minutes=2))


class TestStudentViews:

    async def test_status_without_attempts(self, db, course):
        status = await quiz_status(db, STUDENT, "COURSE_1", "CH_1")
        assert status == {"completed": False, "attempts": 0, "bestScore": 0, "passed": False, "totalAttempts": 0}

    async def test_status(self, db):
        await seed_two_quizzes(db)
        status = await quiz_status(db, STUDENT, "COURSE_1", "CH_2")

        assert status["completed"] is True
        assert status["attempts"] == 2
        assert status["bestScore"] == 50
        assert status["passed"] is False

    async def test_summary(self, db):
        await seed_two_quizzes(db)
        summary = await quiz_summary(db, STUDENT)

        assert summary == {
            "totalQuizzes": 2,
            "passedQuizzes": 1,
            "failedQuizzes": 1,
            "totalAttempts": 3,
            "averageScore": 75,
            "passRate": 50,
        }

    async def test_summary_without_progress(self, db, course):
        summary = await quiz_summary(db, STUDENT)
        assert summary["totalQuizzes"] == 0
        assert summary["passRate"] == 0

    async def test_attempts_all_newest_first(self, db):
        await seed_two_quizzes(db)
        rows = await all_quiz_attempts(db, STUDENT)

        assert len(rows) == 3
        assert rows[0]["attempt"]["attemptedAt"] == NOW + timedelta(minutes=2)
        assert rows[0]["attempt"]["correctAnswers"] == 1
        assert rows[-1]["attempt"]["status"] == "passed"

    async def test_course_attempts(self, db):
        await seed_two_quizzes(db)
        records = await course_quiz_attempts(db, STUDENT, "COURSE_1")

        assert {r["chapterId"] for r in records} == {"CH_1", "CH_2"}
        assert await course_quiz_attempts(db, STUDENT, "OTHER") == []


class TestInstructor:

    async def test_analytics(self, db):
        await seed_two_quizzes(db)
        analytics = await instructor_quiz_analytics(db, INSTRUCTOR, now=NOW)

        overview = analytics["courseOverview"][0]
        assert overview["studentsEnrolled"] == 1
        assert overview["completionStats"]["quizzesPassed"] == 1
        assert overview["completionStats"]["passRate"] == 50
        assert analytics["performanceMetrics"]["totalQuizAttempts"] == 3
        assert analytics["restrictionStats"]["studentsInTimeRestriction"] == 0

    async def test_analytics_counts_cooldowns(self, db, course):
        for i in range(4):
            await submit_quiz(db, STUDENT, "COURSE_1", "CH_1", ["X"], now=NOW + timedelta(minutes=i))

        analytics = await instructor_quiz_analytics(db, INSTRUCTOR, now=NOW + timedelta(hours=1))
        assert analytics["restrictionStats"]["studentsInTimeRestriction"] == 1

    async def test_other_instructor_sees_nothing(self, db):
        await seed_two_quizzes(db)
        analytics = await instructor_quiz_analytics(db, "INS_OTHER", now=NOW)
        assert analytics["courseOverview"] == []

    async def test_student_progress(self, db):
        await seed_two_quizzes(db)
        rows = await instructor_student_progress(db, INSTRUCTOR, course_id="COURSE_1", now=NOW)

        assert len(rows) == 1
        course_row = rows[0]["courses"][0]
        assert course_row["overallProgress"] == 45
        assert {q["chapterId"] for q in course_row["quizProgress"]} == {"CH_1", "CH_2"}
        assert course_row["restrictionStatus"]["hasTimeRestriction"] is False

    async def test_student_filter(self, db):
        await seed_two_quizzes(db)
        assert await instructor_student_progress(db, INSTRUCTOR, student_id="STU_OTHER", now=NOW) == []


class TestResetProgress:

    async def test_reset_one_chapter(self, db):
        await seed_two_quizzes(db)
        removed = await reset_quiz_progress(db, INSTRUCTOR, STUDENT, "COURSE_1", "CH_2")

        assert removed == 1
        state = await load_student_progress(db, STUDENT)
        assert state.find_quiz("COURSE_1", "CH_2") is None
        assert state.find_quiz("COURSE_1", "CH_1") is not None

    async def test_reset_whole_course(self, db):
        await seed_two_quizzes(db)
        removed = await reset_quiz_progress(db, INSTRUCTOR, STUDENT, "COURSE_1")

        assert removed == 2
        assert (await load_student_progress(db, STUDENT)).quizzes_for("COURSE_1") == {}

    async def test_reset_requires_ownership(self, db):
        await seed_two_quizzes(db)
        with pytest.raises(AccessDenied):
            await reset_quiz_progress(db, "INS_OTHER", STUDENT, "COURSE_1")

    async def test_reset_unknown_student(self, db, course):
        with pytest.raises(NotFound):
            await reset_quiz_progress(db, INSTRUCTOR, "STU_NOBODY", "COURSE_1")


class TestRepairAttemptCounts:

    async def test_repairs_drifted_counts(self, db):
        await seed_two_quizzes(db)
        await db.student_progress.update_one(
            {"student_id": STUDENT},
            {"$set": {"quiz_progress.COURSE_1.CH_2.total_attempts": 7}}
        )
        before = await load_student_progress(db, STUDENT)

        assert await repair_attempt_counts(db) == 1

        after = await load_student_progress(db, STUDENT)
        assert after.find_quiz("COURSE_1", "CH_2").total_attempts == 2
        assert after.version == before.version + 1

    async def test_nothing_to_repair(self, db):
        await seed_two_quizzes(db)
        assert await repair_attempt_counts(db) == 0
