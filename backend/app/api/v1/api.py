from fastapi import APIRouter

from app.api.v1.patients import router as patients_router
from app.api.v1.timeline import router as timeline_router

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(patients_router)
api_router.include_router(timeline_router)
