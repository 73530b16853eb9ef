from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from demo_app.observability.correlation import get_request_logger
from demo_app.services.workload import Outcome, Workload


router = APIRouter(tags=["demo"])


def get_workload(request: Request) -> Workload:
    return request.app.state.workload


@router.get("/")
def root(request: Request) -> JSONResponse:
    # Sync endpoint: runs in the thread pool, so the simulated sleeps block one worker only.
    outcome = get_workload(request).handle()
    if outcome is Outcome.ABNORMAL:
        get_request_logger(request).warning("responding with error", status_code=outcome.status_code)
        return JSONResponse({"status": "error"}, status_code=outcome.status_code)
    return JSONResponse({"status": "ok"}, status_code=outcome.status_code)
