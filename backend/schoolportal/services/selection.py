"""
Réconciliation des sélections d'une session de vue avec le dernier registre publié.

Règles, pour chaque sélection qui référence un numéro d'inscription :
- l'élève a disparu du registre → la sélection est effacée (suppression
  concurrente par l'admin : fenêtre fermée, session élève déconnectée,
  confirmation de suppression annulée)
- l'élève existe mais diffère (égalité structurelle complète) → la sélection
  est remplacée par l'enregistrement frais
- un devoir ouvert qui n'existe plus chez son élève → seule cette sélection
  est effacée
"""

import logging
from typing import Dict, Optional

from schoolportal.schemas.session import (
    PAGE_STUDENT_LOGIN,
    AssignmentSelection,
    SelectionState,
    StudentUser,
)
from schoolportal.schemas.student import Student

logger = logging.getLogger(__name__)


def _refresh_student(held: Optional[Student], by_reg_no: Dict[str, Student]) -> Optional[Student]:
    if held is None:
        return None
    return by_reg_no.get(held.reg_no)


def _refresh_assignment(
    held: Optional[AssignmentSelection], by_reg_no: Dict[str, Student]
) -> Optional[AssignmentSelection]:
    if held is None:
        return None
    owner = by_reg_no.get(held.reg_no)
    if owner is None:
        return None
    assignment = owner.find_assignment(held.assignment.id)
    if assignment is None:
        return None
    if assignment == held.assignment:
        return held
    return AssignmentSelection(reg_no=held.reg_no, assignment=assignment)


def reconcile_selection(state: SelectionState, roster) -> SelectionState:
    """
    Retourne l'état réconcilié avec `roster`.
    Retourne `state` lui-même si aucune sélection n'a changé.
    """
    by_reg_no = {student.reg_no: student for student in roster}
    updates = {}

    if isinstance(state.user, StudentUser):
        fresh = by_reg_no.get(state.user.student.reg_no)
        if fresh is None:
            logger.warning("Élève %s supprimé du registre : session fermée.", state.user.student.reg_no)
            updates["user"] = None
            updates["page"] = PAGE_STUDENT_LOGIN
        elif fresh != state.user.student:
            updates["user"] = StudentUser(student=fresh)

    selected = _refresh_student(state.selected_student, by_reg_no)
    if selected != state.selected_student:
        updates["selected_student"] = selected

    pending_delete = _refresh_student(state.pending_delete, by_reg_no)
    if pending_delete != state.pending_delete:
        updates["pending_delete"] = pending_delete

    open_assignment = _refresh_assignment(state.open_assignment, by_reg_no)
    if open_assignment is not state.open_assignment:
        updates["open_assignment"] = open_assignment

    attendance_selection = [reg_no for reg_no in state.attendance_selection if reg_no in by_reg_no]
    if attendance_selection != state.attendance_selection:
        updates["attendance_selection"] = attendance_selection

    if not updates:
        return state
    return state.model_copy(update=updates)
