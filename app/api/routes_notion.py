from fastapi import APIRouter, HTTPException

from app.core.errors import AccessDenied, InvalidUrl
from app.core.logger import get_logger
from app.schemas.messages import CheckAccessRequest, CheckAccessResponse
from app.services.notion_client import get_notion_client

router = APIRouter()
log = get_logger(__name__)


@router.post("/check-access", response_model=CheckAccessResponse)
async def check_access(body: CheckAccessRequest):
    """Check that the integration can read the block a Notion URL points at.

    The page itself is checked when the URL carries no block anchor.
    """
    notion = get_notion_client()
    try:
        target = await notion.check_access(body.notion_url)
    except InvalidUrl as e:
        raise HTTPException(status_code=400, detail=str(e))
    except AccessDenied as e:
        log.info("Access check refused for %s", body.notion_url)
        raise HTTPException(status_code=403, detail=str(e))
    return CheckAccessResponse(block_id=target.block_id, page_id=target.page_id)
