from fastapi import APIRouter

from app.api.frames.routes import router as frames_router

router = APIRouter()
router.include_router(frames_router)
