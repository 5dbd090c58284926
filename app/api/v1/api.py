from fastapi import APIRouter
from app.api.v1.endpoints.hr import attendance

api_router = APIRouter()

# HR routes
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
