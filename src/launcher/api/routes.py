"""API route handlers for the launcher progress surface."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from launcher.api.models import ErrorResponse, ProgressResponse, SuccessResponse
from launcher.services.launcher import PackageInstallerLauncher

router = APIRouter(prefix="/api/v1.0")


def _get_launcher(request: Request) -> PackageInstallerLauncher:
    return request.app.state.launcher


def _install_active(launcher: PackageInstallerLauncher) -> JSONResponse:
    status = launcher.state_machine.get_status()
    error = ErrorResponse(
        code=409,
        msg=f"INSTALL_ACTIVE: installation already in progress: {status.current_step.name}",
        step=status.current_step,
        progress=status.progress,
    )
    return JSONResponse(status_code=200, content=error.model_dump(mode="json"))


@router.get("/progress", response_model=ProgressResponse)
async def get_progress(request: Request):
    """GET /api/v1.0/progress - Query the current install state.

    Response format (error recorded):
        {
            "code": 500,
            "msg": "Install failed: CLONE_FAILED: ...",
            "data": {"current_step": 3, "progress": 0.43, "has_error": true, ...}
        }
    """
    status = _get_launcher(request).state_machine.get_status()

    if status.has_error:
        return ProgressResponse(
            code=500,
            msg=f"Install failed: {status.error_message}",
            data=status,
        )
    return ProgressResponse(code=200, msg="success", data=status)


@router.post("/install", response_model=SuccessResponse)
async def post_install(request: Request):
    """POST /api/v1.0/install - Start an installation run.

    Returns code 409 if a run is already active, and a "skipped" success
    when the framework packages are already present.
    """
    launcher = _get_launcher(request)

    if launcher.is_running:
        return _install_active(launcher)

    try:
        started = await launcher.execute_installation()
    except RuntimeError:
        # another request claimed the run while this one was being handled
        return _install_active(launcher)

    if not started:
        return SuccessResponse(msg="skipped", data={"reason": "framework already installed"})
    return SuccessResponse(data={"started": True})


@router.post("/close", response_model=SuccessResponse)
async def post_close(request: Request):
    """POST /api/v1.0/close - Abandon the active run (progress surface closed)."""
    _get_launcher(request).close()
    return SuccessResponse(msg="closed")
