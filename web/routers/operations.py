"""Operation routes - run and stop cleanup passes"""

from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from web.models.operations import RunRequestModel
from web.services import get_operation_runner

router = APIRouter()


@router.post("/run")
def run_operation(request: Optional[RunRequestModel] = None, runner=Depends(get_operation_runner)):
    """Trigger a cleanup run"""
    verbose = request.verbose if request else False

    if runner.is_running:
        success = False
        message = "Operation already in progress"
    else:
        success = runner.start_operation(verbose=verbose)
        if success:
            message = "Verbose cleanup started" if verbose else "Cleanup started"
        else:
            message = "Failed to start operation"

    return JSONResponse(
        {
            "success": success,
            "message": message,
            "status": runner.get_status_dict()
        },
        status_code=200 if success else 409
    )


@router.post("/stop")
def stop_operation(runner=Depends(get_operation_runner)):
    """Stop the current operation"""
    if runner.is_running:
        success = runner.stop_operation()
        message = "Stop requested - cleanup will stop after current step" if success else "Failed to stop operation"
    else:
        success = False
        message = "No operation is currently running"

    return JSONResponse({
        "success": success,
        "message": message,
        "status": runner.get_status_dict()
    })


@router.get("/status")
def get_status(runner=Depends(get_operation_runner)):
    """Get current operation status (JSON for polling)"""
    return runner.get_status_dict()


@router.post("/dismiss")
def dismiss_status(runner=Depends(get_operation_runner)):
    """Clear a finished run's status"""
    runner.dismiss()
    return runner.get_status_dict()
