"""Review routes - pending deletions and manual delete confirmation"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from web.dependencies import get_review_service
from web.models.review import DeleteItemsRequestModel, PendingDeletionsResponseModel

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/PendingDeletions")
def get_pending_deletions(service=Depends(get_review_service)):
    """Items staged in every manual library's 'To Delete' collection"""
    try:
        response = PendingDeletionsResponseModel(libraries=service.get_pending_deletions())
        return JSONResponse(response.model_dump(mode="json", by_alias=True))
    except Exception:
        logger.exception("Error getting pending deletions")
        return JSONResponse(
            {"error": "An error occurred while retrieving pending deletions"},
            status_code=500
        )


@router.post("/Delete")
def delete_items(request: DeleteItemsRequestModel, service=Depends(get_review_service)):
    """Delete the items a reviewer confirmed"""
    if not request.item_ids:
        return JSONResponse({"error": "No item IDs specified"}, status_code=400)

    if not service.is_configured:
        return JSONResponse({"error": "LibraryCleaner is not configured"}, status_code=503)

    try:
        result = service.delete_items(request.item_ids)
        return JSONResponse(result.model_dump(mode="json", by_alias=True))
    except Exception:
        logger.exception("Error deleting items")
        return JSONResponse(
            {"error": "An error occurred while deleting items"},
            status_code=500
        )
