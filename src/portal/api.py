from fastapi import APIRouter

from portal.modules.auth import router as auth_router
from portal.modules.lifecycle import admin_router, enrollment_router
from portal.modules.lifecycle import router as student_router

api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["Authentication"])

api_router.include_router(enrollment_router, prefix="/enrollment", tags=["Enrollment"])

api_router.include_router(student_router, prefix="/students/me", tags=["Students"])

api_router.include_router(admin_router, prefix="/admin", tags=["Admin"])
