# edu_erp/api/v1/routes/__init__.py
from fastapi import APIRouter
from .timetables import router as timetables_router
from .notifications import router as notifications_router
from .audit_logs import router as audit_logs_router

# Create a main router that includes all sub-routers
router = APIRouter()

# Exam timetables
router.include_router(
    timetables_router, prefix="/timetables", tags=["Exam Timetables"]
)

# Notifications & audit trail
router.include_router(
    notifications_router, prefix="/notifications", tags=["Notifications"]
)
router.include_router(audit_logs_router, prefix="/audit-logs", tags=["Audit Logs"])
