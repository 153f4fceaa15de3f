"""
Router pour l'envoi de messages aux élèves.
"""

from fastapi import APIRouter, Depends

from schoolportal.routers.deps import get_portal, require_admin
from schoolportal.schemas.message import MessageCreate
from schoolportal.schemas.report import PublicationReport
from schoolportal.services.portal_service import PortalService

router = APIRouter(prefix="/api/v1/messages", tags=["Messages"])


@router.post("", response_model=PublicationReport, status_code=201, summary="Envoyer un message")
async def send_message(
    data: MessageCreate,
    _admin: str = Depends(require_admin),
    portal: PortalService = Depends(get_portal),
):
    return await portal.send_message(data)
