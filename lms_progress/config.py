"""
Progress System Configuration
Database, auth and progress policy settings
"""

import os

# MongoDB
MONGO_URL = os.getenv("MONGO_URL", "mongodb://localhost:27017")
MONGO_DB_NAME = os.getenv("MONGO_DB_NAME", "lms_db")

# Auth (tokens are issued by the auth service, we only verify them)
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

# Refuse quiz submissions while a cooldown is active
ENFORCE_QUIZ_COOLDOWN = os.getenv("ENFORCE_QUIZ_COOLDOWN", "1") not in ("0", "false", "False")

# Quiz policy (fixed)
QUIZ_PASS_THRESHOLD = 60
COOLDOWN_AFTER_ATTEMPTS = 4
COOLDOWN_HOURS = 24

# Watch time ratio at which a chapter video counts as watched
WATCH_COMPLETION_RATIO = 0.90

# Assignment submission statuses that count towards progress
DONE_SUBMISSION_STATUSES = ["submitted", "graded"]
