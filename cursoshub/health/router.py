from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from cursoshub.utils.rate_limit import rate_limit_health_info

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
def health_root(request: Request):
    return {"ok": True, "container": getattr(request.app.state, "container", None) is not None}


@router.get("/rate-limit")
def health_rate_limit(request: Request):
    return JSONResponse(rate_limit_health_info(request))
