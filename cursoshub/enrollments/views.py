import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from cursoshub.container import Container, get_container
from cursoshub.utils.security import require_admin, require_user

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/enrollments", tags=["Enrollments API"])
admin_router = APIRouter(prefix="/api/v1/admin/enrollments", tags=["Admin"])


class GrantEnrollmentRequest(BaseModel):
    user_id: str
    course_id: str


@router.get("/me")
async def my_enrollments(
    user: Dict[str, Any] = Depends(require_user),
    container: Container = Depends(get_container),
) -> Dict[str, Any]:
    service = container.enrollment_service_for(user.get("token") or "")
    course_ids = await run_in_threadpool(service.list_active_course_ids, user["id"])
    return {"course_ids": course_ids}


@admin_router.post("")
async def grant_enrollment(
    payload: GrantEnrollmentRequest,
    admin: Dict[str, Any] = Depends(require_admin),
    container: Container = Depends(get_container),
):
    """
    Inscription manuelle par un administrateur (geste commercial, correction).
    Erreurs: 400 {"error": ...} si cours déjà possédé.
    """
    enrollment = await run_in_threadpool(container.enrollments.grant, payload.user_id, payload.course_id)
    logger.info("admin.enrollments.grant admin_id=%s user_id=%s course_id=%s", admin.get("id"), payload.user_id, payload.course_id)
    return JSONResponse(enrollment.model_dump(mode="json"), status_code=201)
