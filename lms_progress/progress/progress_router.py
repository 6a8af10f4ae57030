from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from lms_progress.courses.dependencies import get_db, get_current_user_id
from lms_progress.courses.models import CompleteVideoRequest, WatchTimeRequest
from lms_progress.progress.tracking import (
    mark_lesson_watched, update_watch_time, get_course_snapshot
)

router = APIRouter(tags=["Progress"])


@router.post("/complete-video")
async def complete_video(
    body: CompleteVideoRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """
    Mark a lesson video as watched.
    chapterId -> chapter completion with weighted progress
    vimeoId   -> per-video completion with video-count progress
    """
    breakdown = await mark_lesson_watched(
        db, user_id, body.course_id, chapter_id=body.chapter_id, vimeo_id=body.vimeo_id
    )
    return {
        "success": True,
        "message": "Video marked as completed",
        "data": {
            "chapterId": body.chapter_id,
            "vimeoId": body.vimeo_id,
            **breakdown.model_dump(by_alias=True),
        },
    }


@router.post("/watch-time")
async def watch_time(
    body: WatchTimeRequest,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Record playback position; 90% watched completes the chapter"""
    result = await update_watch_time(
        db, user_id, body.course_id, body.chapter_id, body.watch_time, body.total_duration
    )
    return {
        "success": True,
        "message": "Watch time updated",
        "data": result.model_dump(by_alias=True),
    }


@router.get("/course/{course_id}")
async def course_progress(
    course_id: str,
    db: AsyncIOMotorDatabase = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Current course progress plus quiz progress for the course"""
    snapshot = await get_course_snapshot(db, user_id, course_id)
    return {"success": True, "data": snapshot}
