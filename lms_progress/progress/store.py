"""
Per-student progress store

Writes for one student are serialized in-process by a lock keyed on the
student id, and across processes by a compare-and-swap on `version`.
The document is only written when the `async with` body finishes without
raising, so a failed operation leaves nothing behind.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from lms_progress.errors import ProgressConflict
from lms_progress.progress.models import StudentProgress

logger = logging.getLogger(__name__)

_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()


def student_lock(student_id: str) -> asyncio.Lock:
    lock = _locks.get(student_id)
    if lock is None:
        lock = asyncio.Lock()
        _locks[student_id] = lock
    return lock


async def load_student_progress(db: AsyncIOMotorDatabase, student_id: str) -> Optional[StudentProgress]:
    doc = await db.student_progress.find_one({"student_id": student_id})
    return StudentProgress(**doc) if doc else None


async def save_student_progress(db: AsyncIOMotorDatabase, state: StudentProgress):
    expected = state.version
    body = state.model_dump(exclude={"version"})

    if expected == 0:
        # Documents written outside this store carry no version yet
        result = await db.student_progress.update_one(
            {"student_id": state.student_id, "version": {"$exists": False}},
            {"$set": {**body, "version": 1}}
        )
        if result.matched_count == 0:
            try:
                await db.student_progress.insert_one({**body, "version": 1})
            except DuplicateKeyError:
                logger.warning("Concurrent creation of progress for student %s", state.student_id)
                raise ProgressConflict("Progress was updated by another request, please retry")
    else:
        result = await db.student_progress.update_one(
            {"student_id": state.student_id, "version": expected},
            {"$set": {**body, "version": expected + 1}}
        )
        if result.matched_count == 0:
            logger.warning(
                "Stale progress write for student %s at version %d", state.student_id, expected
            )
            raise ProgressConflict("Progress was updated by another request, please retry")

    state.version = expected + 1


@asynccontextmanager
async def student_progress(db: AsyncIOMotorDatabase, student_id: str) -> AsyncIterator[StudentProgress]:
    """Read-modify-write one student's progress document"""
    async with student_lock(student_id):
        state = await load_student_progress(db, student_id)
        if state is None:
            state = StudentProgress(student_id=student_id)
        yield state
        await save_student_progress(db, state)
