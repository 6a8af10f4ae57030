from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from lms_progress.auth.auth_utils import verify_token
from lms_progress.errors import AccessDenied


def get_db_instance():
    """Get database from main module"""
    from lms_progress.main import db
    return db

# ==================== DEPENDENCY FUNCTIONS ====================

async def get_db() -> AsyncIOMotorDatabase:
    """Database dependency"""
    return get_db_instance()


async def get_current_user(payload: dict = Depends(verify_token)) -> dict:
    return {"user_id": payload["sub"], "role": payload.get("role", "student")}


async def get_current_user_id(user: dict = Depends(get_current_user)) -> str:
    return user["user_id"]


def require_role(*roles: str):
    """Dependency factory: reject users whose role is not in `roles`"""

    async def checker(user: dict = Depends(get_current_user)) -> str:
        if user["role"] not in roles:
            raise AccessDenied(
                f"This action requires role: {', '.join(roles)}", role=user["role"]
            )
        return user["user_id"]

    return checker


require_student = require_role("student")
require_instructor = require_role("instructor", "admin")
require_admin = require_role("admin")
