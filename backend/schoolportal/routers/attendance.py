"""
Router pour l'enregistrement des présences.
"""

from fastapi import APIRouter, Depends

from schoolportal.routers.deps import get_portal, require_admin
from schoolportal.schemas.attendance import AttendanceRequest
from schoolportal.schemas.report import BatchReport
from schoolportal.services.portal_service import PortalService

router = APIRouter(prefix="/api/v1/attendance", tags=["Présences"])


@router.post("", response_model=BatchReport, summary="Enregistrer les présences")
async def save_attendance(
    data: AttendanceRequest,
    session_id: str = Depends(require_admin),
    portal: PortalService = Depends(get_portal),
):
    """
    Ajoute un cours suivi à chaque élève présent.

    Comportement :
    - Sans `reg_nos`, les cases cochées de la session admin sont utilisées
      (et vidées si tout a réussi)
    - Écritures indépendantes et parallèles : un échec partiel est possible
    - Le rapport liste les élèves mis à jour et ceux en échec
    """
    if data.reg_nos is None:
        return await portal.save_attendance_selection(session_id)
    return await portal.save_attendance(data.reg_nos)
