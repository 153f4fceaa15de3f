"""
Router pour la publication des devoirs.
"""

from fastapi import APIRouter, Depends

from schoolportal.routers.deps import get_portal, require_admin
from schoolportal.schemas.assignment import AssignmentCreate
from schoolportal.schemas.report import PublicationReport
from schoolportal.services.portal_service import PortalService

router = APIRouter(prefix="/api/v1/assignments", tags=["Devoirs"])


@router.post("", response_model=PublicationReport, status_code=201, summary="Publier un devoir")
async def publish_assignment(
    data: AssignmentCreate,
    _admin: str = Depends(require_admin),
    portal: PortalService = Depends(get_portal),
):
    """Ajoute le devoir aux élèves ciblés (tous les élèves du registre si `reg_nos` est absent)."""
    return await portal.publish_assignment(data)
