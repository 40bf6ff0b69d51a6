from fastapi import APIRouter

from vision_builder.api.routes import health, interview

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(interview.router, prefix="/interview", tags=["interview"])
