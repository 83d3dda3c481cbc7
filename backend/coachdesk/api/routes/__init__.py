from fastapi import APIRouter

from coachdesk.api.routes import (
    admin,
    analytics,
    auth,
    messages,
    profiles,
    rewards,
    students,
    tasks,
)


api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(profiles.router, prefix="/profiles", tags=["profiles"])
api_router.include_router(students.router, prefix="/students", tags=["students"])
api_router.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
api_router.include_router(analytics.router, prefix="/analytics", tags=["analytics"])
api_router.include_router(messages.router, prefix="/messages", tags=["messages"])
api_router.include_router(rewards.router, prefix="/rewards", tags=["rewards"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
