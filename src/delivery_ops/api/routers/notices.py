"""Recent user-facing notices."""

from fastapi import APIRouter, Depends

from ...realtime.notices import NoticeBoard
from ...shared.dependencies import get_notice_board
from ..models import NoticeListResponse

router = APIRouter()


@router.get("/notices", response_model=NoticeListResponse, summary="Live notices")
async def list_notices(notices: NoticeBoard = Depends(get_notice_board)):
    return NoticeListResponse(notices=notices.current())
