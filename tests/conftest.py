from datetime import datetime

import pytest
from mongomock_motor import AsyncMongoMockClient

from lms_progress import config

NOW = datetime(2026, 3, 2, 10, 0, 0)
STUDENT = "STU_1"
INSTRUCTOR = "INS_1"


def make_course(course_id="COURSE_1", quiz_chapters=("CH_1",), chapters=2, assignments=1, videos_per_chapter=1):
    quiz = [
        {"question": "Q1", "options": ["A", "X"], "correct_answer": "A"},
        {"question": "Q2", "options": ["B", "Y"], "correct_answer": "B"},
    ]
    return {
        "course_id": course_id,
        "title": "Python Basics",
        "instructor_id": INSTRUCTOR,
        "chapters": [
            {
                "chapter_id": f"CH_{i}",
                "title": f"Chapter {i}",
                "order": i,
                "lessons": [
                    {
                        "lesson_id": f"L_{i}_{j}",
                        "title": f"Lesson {i}.{j}",
                        "video": {"vimeo_id": f"V_{i}_{j}", "duration": 600},
                    }
                    for j in range(1, videos_per_chapter + 1)
                ],
                "quiz": quiz if f"CH_{i}" in quiz_chapters else [],
            }
            for i in range(1, chapters + 1)
        ],
        "assignment_ids": [f"ASG_{i}" for i in range(1, assignments + 1)],
    }


@pytest.fixture
def db():
    return AsyncMongoMockClient()["lms_test"]


@pytest.fixture(autouse=True)
def enforce_cooldown(monkeypatch):
    monkeypatch.setattr(config, "ENFORCE_QUIZ_COOLDOWN", True)


async def enroll(db, course_id="COURSE_1", user_id=STUDENT, **extra):
    await db.course_enrollments.insert_one({
        "enrollment_id": f"ENR_{user_id}_{course_id}",
        "course_id": course_id,
        "user_id": user_id,
        "enrolled_at": NOW,
        "progress": 0,
        "is_active": True,
        **extra,
    })


@pytest.fixture
async def course(db):
    doc = make_course()
    await db.courses.insert_one(dict(doc))
    await enroll(db)
    return doc
