"""
Router des sessions de vue : connexion élève / admin, déconnexion et sélections
(fenêtre de détails, devoir ouvert, confirmation de suppression, cases de présence).
"""

from fastapi import APIRouter, Depends, HTTPException

from schoolportal.routers.deps import get_portal, raise_for_failure
from schoolportal.schemas.session import (
    AdminLogin,
    AssignmentSelect,
    AttendanceSelect,
    SelectionState,
    SessionCreated,
    StudentLogin,
    StudentSelect,
)
from schoolportal.services.portal_service import PortalService

router = APIRouter(prefix="/api/v1/sessions", tags=["Sessions"])


def _get_state(portal: PortalService, session_id: str) -> SelectionState:
    try:
        return portal.get_view(session_id)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("", response_model=SessionCreated, status_code=201, summary="Ouvrir une session")
def open_session(portal: PortalService = Depends(get_portal)):
    """Crée une session de vue anonyme (page d'accueil)."""
    session_id = portal.open_view()
    return SessionCreated(session_id=session_id, state=portal.get_view(session_id))


@router.get("/{session_id}", response_model=SelectionState, summary="État d'une session")
def get_session(session_id: str, portal: PortalService = Depends(get_portal)):
    """
    Retourne l'utilisateur connecté et les sélections, à jour du dernier registre.
    Un élève supprimé entre-temps est déconnecté (page STUDENT_LOGIN).
    """
    return _get_state(portal, session_id)


@router.delete("/{session_id}", status_code=204, summary="Fermer une session")
def close_session(session_id: str, portal: PortalService = Depends(get_portal)):
    _get_state(portal, session_id)
    portal.close_view(session_id)


@router.post("/{session_id}/student-login", response_model=SelectionState, summary="Connexion / inscription élève")
async def student_login(session_id: str, data: StudentLogin, portal: PortalService = Depends(get_portal)):
    """
    Connecte l'élève par nom + numéro d'inscription.
    Un numéro inconnu crée le compte (0/10 cours suivis, non bloqué).
    """
    _get_state(portal, session_id)
    raise_for_failure(await portal.student_login(session_id, data.name, data.reg_no))
    return portal.get_view(session_id)


@router.post("/{session_id}/admin-login", response_model=SelectionState, summary="Connexion administrateur")
def admin_login(session_id: str, data: AdminLogin, portal: PortalService = Depends(get_portal)):
    _get_state(portal, session_id)
    raise_for_failure(portal.admin_login(session_id, data.username, data.password))
    return portal.get_view(session_id)


@router.post("/{session_id}/logout", response_model=SelectionState, summary="Déconnexion")
def logout(session_id: str, portal: PortalService = Depends(get_portal)):
    _get_state(portal, session_id)
    return portal.logout(session_id)


# --- Sélections ---

@router.put("/{session_id}/selected-student", response_model=SelectionState, summary="Détails d'un élève")
def select_student(session_id: str, data: StudentSelect, portal: PortalService = Depends(get_portal)):
    """Ouvre la fenêtre de détails d'un élève (admin). reg_no=null la ferme."""
    _get_state(portal, session_id)
    raise_for_failure(portal.select_student(session_id, data.reg_no))
    return portal.get_view(session_id)


@router.put("/{session_id}/open-assignment", response_model=SelectionState, summary="Ouvrir un devoir")
def open_assignment(session_id: str, data: AssignmentSelect, portal: PortalService = Depends(get_portal)):
    """Ouvre un devoir d'un élève (admin, ou l'élève lui-même). assignment_id=null le ferme."""
    _get_state(portal, session_id)
    raise_for_failure(portal.open_assignment(session_id, data.reg_no, data.assignment_id))
    return portal.get_view(session_id)


@router.put("/{session_id}/pending-delete", response_model=SelectionState, summary="Demander une suppression")
def request_delete(session_id: str, data: StudentSelect, portal: PortalService = Depends(get_portal)):
    """Place un élève en attente de confirmation de suppression. reg_no=null annule."""
    _get_state(portal, session_id)
    raise_for_failure(portal.request_delete(session_id, data.reg_no))
    return portal.get_view(session_id)


@router.post("/{session_id}/pending-delete/confirm", response_model=SelectionState, summary="Confirmer la suppression")
async def confirm_delete(session_id: str, portal: PortalService = Depends(get_portal)):
    _get_state(portal, session_id)
    raise_for_failure(await portal.confirm_delete(session_id))
    return portal.get_view(session_id)


@router.put("/{session_id}/attendance-selection", response_model=SelectionState, summary="Cocher les présents")
def set_attendance_selection(session_id: str, data: AttendanceSelect, portal: PortalService = Depends(get_portal)):
    _get_state(portal, session_id)
    raise_for_failure(portal.set_attendance_selection(session_id, data.reg_nos))
    return portal.get_view(session_id)
