"""
Router pour les élèves.
Registre (GET /api/v1/students), blocage, suppression,
rendu d'un devoir par l'élève (POST .../submission).
"""

from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from schoolportal.routers.deps import current_session, get_portal, raise_for_failure, require_admin
from schoolportal.schemas.assignment import SubmissionReceipt
from schoolportal.schemas.student import Student
from schoolportal.services.portal_service import Failure, PortalService

router = APIRouter(prefix="/api/v1/students", tags=["Élèves"])


@router.get("", response_model=List[Student], summary="Lister tous les élèves")
def list_students(
    _admin: str = Depends(require_admin),
    portal: PortalService = Depends(get_portal),
):
    """Retourne le dernier registre publié, trié par numéro d'inscription."""
    return list(portal.roster)


@router.get("/{reg_no}", response_model=Student, summary="Détail d'un élève")
def get_student(
    reg_no: str,
    _admin: str = Depends(require_admin),
    portal: PortalService = Depends(get_portal),
):
    student = portal.find_student(reg_no)
    if student is None:
        raise HTTPException(status_code=404, detail="Élève introuvable.")
    return student


@router.post("/{reg_no}/block", status_code=204, summary="Bloquer / débloquer un élève")
async def toggle_block(
    reg_no: str,
    _admin: str = Depends(require_admin),
    portal: PortalService = Depends(get_portal),
):
    """
    Inverse le blocage du compte. Un élève bloqué ne peut plus se connecter.
    Le registre reflète le changement au snapshot suivant.
    """
    raise_for_failure(await portal.toggle_block(reg_no))


@router.delete("/{reg_no}", status_code=204, summary="Supprimer un élève")
async def delete_student(
    reg_no: str,
    _admin: str = Depends(require_admin),
    portal: PortalService = Depends(get_portal),
):
    """
    Supprime définitivement un élève. Les sessions qui l'affichent sont
    réconciliées au snapshot suivant (fenêtres fermées, élève déconnecté).
    """
    raise_for_failure(await portal.delete_student(reg_no))


@router.post(
    "/{reg_no}/assignments/{assignment_id}/submission",
    response_model=SubmissionReceipt,
    status_code=201,
    summary="Rendre un devoir",
)
async def submit_assignment(
    reg_no: str,
    assignment_id: str,
    file: UploadFile = File(...),
    session_id: str = Depends(current_session),
    portal: PortalService = Depends(get_portal),
):
    """Envoie le fichier de rendu. Réservé à l'élève connecté, propriétaire du devoir."""
    content = await file.read()
    result = await portal.submit_assignment(
        session_id,
        reg_no,
        assignment_id,
        file.filename or "",
        content,
        file.content_type or "application/octet-stream",
    )
    if isinstance(result, Failure):
        raise_for_failure(result)
    return result
