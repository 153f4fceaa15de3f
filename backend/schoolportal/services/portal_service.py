"""
Service de coordination du portail.

Seul propriétaire de l'état de l'application :
- le registre des élèves (via RosterSynchronizer, seul à l'écrire)
- les sessions de vue (utilisateur connecté + sélections), réconciliées
  après chaque publication du registre

Les intentions (connexion, blocage, présences, devoirs, messages, rendus)
passent par la collection distante ; le registre local n'est jamais modifié
directement. Une écriture réussie n'implique pas que le registre la reflète
déjà : le snapshot correspondant arrive ensuite (synchronizer.wait_for).

Les échecs sont retournés (Failure, rapports de lot), jamais propagés :
aucune écriture partielle n'est appliquée localement.
"""

import asyncio
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Union

from schoolportal.schemas.assignment import AssignmentCreate, SubmissionReceipt
from schoolportal.schemas.message import MessageCreate
from schoolportal.schemas.report import BatchReport, PublicationReport
from schoolportal.schemas.session import (
    PAGE_ADMIN_DASHBOARD,
    PAGE_HOME,
    PAGE_STUDENT_DASHBOARD,
    AdminUser,
    AssignmentSelection,
    SelectionState,
    StudentUser,
)
from schoolportal.schemas.student import STATUS_PENDING, STATUS_SUBMITTED, Assignment, Student, StudentMessage
from schoolportal.services.document_store import DocumentNotFound, DocumentStore, StoreError
from schoolportal.services.identifiers import ASSIGNMENT_PREFIX, MESSAGE_PREFIX, generate_id
from schoolportal.services.metrics import pending_assignment_count
from schoolportal.services.normalizer import new_student_document, normalize_student
from schoolportal.services.object_store import LocalObjectStore, ObjectStoreError, build_submission_path
from schoolportal.services.roster import RosterSynchronizer
from schoolportal.services.selection import reconcile_selection

logger = logging.getLogger(__name__)

# Catégories d'échec (converties en codes HTTP par les routers)
VALIDATION = "validation"
AUTHENTICATION = "authentication"
AUTHORIZATION = "authorization"
NOT_FOUND = "not_found"
REMOTE = "remote"

MSG_FILL_BOTH_FIELDS = "Veuillez remplir les deux champs."
MSG_ACCOUNT_BLOCKED = "Votre compte est bloqué. Veuillez contacter l'administration."
MSG_NAME_MISMATCH = "Numéro d'inscription trouvé, mais le nom ne correspond pas."
MSG_INVALID_CREDENTIALS = "Identifiants invalides."
MSG_RETRY = "La communication avec le serveur a échoué. Veuillez réessayer."
MSG_ADMIN_ONLY = "Action réservée à l'administration."
MSG_NOT_OWNER = "Vous ne pouvez rendre que vos propres devoirs."
MSG_STUDENT_NOT_FOUND = "Élève introuvable."
MSG_ASSIGNMENT_NOT_FOUND = "Devoir introuvable."
MSG_NO_TARGET = "Aucun élève sélectionné."
MSG_NO_PENDING_DELETE = "Aucune suppression en attente de confirmation."
MSG_EMPTY_FILE = "Veuillez sélectionner un fichier."


@dataclass(frozen=True)
class Failure:
    """Échec d'une opération, retourné à l'appelant immédiat."""
    kind: str
    message: str


class PortalService:

    def __init__(
        self,
        store: DocumentStore,
        objects: LocalObjectStore,
        admin_username: str,
        admin_password: str,
        max_upload_bytes: int = 10 * 1024 * 1024,
        roster_wait_seconds: float = 5.0,
    ):
        self._store = store
        self._objects = objects
        self._admin_username = admin_username
        self._admin_password = admin_password
        self._max_upload_bytes = max_upload_bytes
        self._roster_wait_seconds = roster_wait_seconds
        self._views: Dict[str, SelectionState] = {}

        self.synchronizer = RosterSynchronizer(store)
        self.synchronizer.add_listener(self._reconcile_views)

    async def start(self) -> None:
        await self.synchronizer.start()

    async def close(self) -> None:
        await self.synchronizer.close()
        await self._store.close()

    async def refresh_roster(self) -> None:
        """Force une rediffusion de la collection (écritures faites hors de ce processus)."""
        await self._store.refresh()

    # --- Registre (lecture seule) ---

    @property
    def roster(self):
        return self.synchronizer.roster

    def find_student(self, reg_no: str) -> Optional[Student]:
        return next((s for s in self.roster if s.reg_no == reg_no), None)

    async def _wait_in_roster(self, reg_no: str) -> bool:
        """Attend qu'un registre publié contienne l'élève. False après le délai."""
        try:
            await self.synchronizer.wait_for(
                lambda roster: any(s.reg_no == reg_no for s in roster),
                timeout=self._roster_wait_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("Élève %s absent du registre après %.1fs", reg_no, self._roster_wait_seconds)
            return False
        return True

    # --- Sessions de vue ---

    def open_view(self) -> str:
        view_id = str(uuid.uuid4())
        self._views[view_id] = SelectionState()
        return view_id

    def get_view(self, view_id: str) -> SelectionState:
        """Lève ValueError si la session n'existe pas."""
        try:
            return self._views[view_id]
        except KeyError:
            raise ValueError("Session introuvable.") from None

    def close_view(self, view_id: str) -> None:
        self.get_view(view_id)
        del self._views[view_id]

    def _update_view(self, view_id: str, **updates) -> SelectionState:
        state = self.get_view(view_id).model_copy(update=updates)
        self._views[view_id] = state
        return state

    def _reconcile_views(self, roster) -> None:
        for view_id, state in list(self._views.items()):
            self._views[view_id] = reconcile_selection(state, roster)

    def require_admin(self, view_id: str) -> Optional[Failure]:
        if not self.get_view(view_id).is_admin:
            return Failure(AUTHORIZATION, MSG_ADMIN_ONLY)
        return None

    # --- Authentification ---

    async def student_login(self, view_id: str, name: str, reg_no: str) -> Optional[Failure]:
        """
        Connexion élève par nom + numéro d'inscription (sans mot de passe).
        Un numéro inconnu inscrit un nouvel élève.
        Le nom est comparé sans tenir compte de la casse.
        """
        self.get_view(view_id)
        name = (name or "").strip()
        reg_no = (reg_no or "").strip()
        if not name or not reg_no:
            return Failure(VALIDATION, MSG_FILL_BOTH_FIELDS)

        try:
            raw = await self._store.get(reg_no)
            if raw is None:
                document = new_student_document(name, reg_no)
                await self._store.set(reg_no, document)
                student = normalize_student(document, reg_no)
                logger.info("Nouvel élève inscrit : %s", reg_no)
            else:
                student = normalize_student(raw, reg_no)
        except StoreError as exc:
            logger.error("Connexion de l'élève %s impossible : %s", reg_no, exc)
            return Failure(REMOTE, MSG_RETRY)

        if student.is_blocked:
            return Failure(AUTHORIZATION, MSG_ACCOUNT_BLOCKED)
        if student.name.lower() != name.lower():
            return Failure(AUTHORIZATION, MSG_NAME_MISMATCH)

        # Un snapshot lu avant l'inscription ne doit pas fermer la session juste ouverte
        if not await self._wait_in_roster(reg_no):
            return Failure(REMOTE, MSG_RETRY)

        self._update_view(
            view_id,
            user=StudentUser(student=self.find_student(reg_no) or student),
            page=PAGE_STUDENT_DASHBOARD,
        )
        return None

    def admin_login(self, view_id: str, username: str, password: str) -> Optional[Failure]:
        self.get_view(view_id)
        valid = (
            secrets.compare_digest(username.encode(), self._admin_username.encode())
            and secrets.compare_digest(password.encode(), self._admin_password.encode())
        )
        if not valid:
            logger.warning("Échec de connexion administrateur (utilisateur '%s')", username)
            return Failure(AUTHENTICATION, MSG_INVALID_CREDENTIALS)

        self._update_view(view_id, user=AdminUser(), page=PAGE_ADMIN_DASHBOARD)
        return None

    def logout(self, view_id: str) -> SelectionState:
        self.get_view(view_id)
        state = SelectionState(page=PAGE_HOME)
        self._views[view_id] = state
        return state

    # --- Sélections ---

    def select_student(self, view_id: str, reg_no: Optional[str]) -> Optional[Failure]:
        """Ouvre (ou ferme avec reg_no=None) la fenêtre de détails d'un élève."""
        failure = self.require_admin(view_id)
        if failure:
            return failure
        if reg_no is None:
            self._update_view(view_id, selected_student=None)
            return None
        student = self.find_student(reg_no)
        if student is None:
            return Failure(NOT_FOUND, MSG_STUDENT_NOT_FOUND)
        self._update_view(view_id, selected_student=student)
        return None

    def open_assignment(self, view_id: str, reg_no: str, assignment_id: Optional[str]) -> Optional[Failure]:
        """Ouvre un devoir : l'admin pour tout élève, un élève pour ses propres devoirs."""
        state = self.get_view(view_id)
        if not state.is_admin and state.student_reg_no != reg_no:
            return Failure(AUTHORIZATION, MSG_ADMIN_ONLY)
        if assignment_id is None:
            self._update_view(view_id, open_assignment=None)
            return None

        student = self.find_student(reg_no)
        if student is None:
            return Failure(NOT_FOUND, MSG_STUDENT_NOT_FOUND)
        assignment = student.find_assignment(assignment_id)
        if assignment is None:
            return Failure(NOT_FOUND, MSG_ASSIGNMENT_NOT_FOUND)
        self._update_view(view_id, open_assignment=AssignmentSelection(reg_no=reg_no, assignment=assignment))
        return None

    def request_delete(self, view_id: str, reg_no: Optional[str]) -> Optional[Failure]:
        """Demande (ou annule avec reg_no=None) la confirmation de suppression d'un élève."""
        failure = self.require_admin(view_id)
        if failure:
            return failure
        if reg_no is None:
            self._update_view(view_id, pending_delete=None)
            return None
        student = self.find_student(reg_no)
        if student is None:
            return Failure(NOT_FOUND, MSG_STUDENT_NOT_FOUND)
        self._update_view(view_id, pending_delete=student)
        return None

    def set_attendance_selection(self, view_id: str, reg_nos: List[str]) -> Optional[Failure]:
        failure = self.require_admin(view_id)
        if failure:
            return failure
        unknown = [reg_no for reg_no in reg_nos if self.find_student(reg_no) is None]
        if unknown:
            return Failure(NOT_FOUND, f"{MSG_STUDENT_NOT_FOUND} ({', '.join(unknown)})")
        self._update_view(view_id, attendance_selection=list(reg_nos))
        return None

    # --- Gestion des comptes ---

    async def toggle_block(self, reg_no: str) -> Optional[Failure]:
        try:
            raw = await self._store.get(reg_no)
            if raw is None:
                return Failure(NOT_FOUND, MSG_STUDENT_NOT_FOUND)
            blocked = not normalize_student(raw, reg_no).is_blocked
            await self._store.update(reg_no, {"isBlocked": blocked})
        except DocumentNotFound:
            return Failure(NOT_FOUND, MSG_STUDENT_NOT_FOUND)
        except StoreError as exc:
            logger.error("Blocage de l'élève %s impossible : %s", reg_no, exc)
            return Failure(REMOTE, MSG_RETRY)

        logger.info("Élève %s %s", reg_no, "bloqué" if blocked else "débloqué")
        return None

    async def delete_student(self, reg_no: str) -> Optional[Failure]:
        try:
            if await self._store.get(reg_no) is None:
                return Failure(NOT_FOUND, MSG_STUDENT_NOT_FOUND)
            await self._store.delete(reg_no)
        except StoreError as exc:
            logger.error("Suppression de l'élève %s impossible : %s", reg_no, exc)
            return Failure(REMOTE, MSG_RETRY)

        logger.info("Élève %s supprimé", reg_no)
        return None

    async def confirm_delete(self, view_id: str) -> Optional[Failure]:
        """Supprime l'élève en attente de confirmation dans cette session."""
        failure = self.require_admin(view_id)
        if failure:
            return failure
        pending = self.get_view(view_id).pending_delete
        if pending is None:
            return Failure(VALIDATION, MSG_NO_PENDING_DELETE)

        failure = await self.delete_student(pending.reg_no)
        if failure is None:
            self._update_view(view_id, pending_delete=None)
        return failure

    # --- Présences ---

    async def save_attendance(self, reg_nos: List[str]) -> BatchReport:
        """
        Marque les élèves présents (+1 cours suivi, borné au nombre de cours).
        Les écritures sont lancées en parallèle, sans atomicité sur le lot.
        """
        if not reg_nos:
            return BatchReport(succeeded=[], failed=[], total_requested=0, error=MSG_NO_TARGET)

        results = await asyncio.gather(
            *(self._mark_present(reg_no) for reg_no in reg_nos), return_exceptions=True
        )
        report = BatchReport(**_batch_report(reg_nos, results, "présence"))
        logger.info(
            "Présences : %d demandées, %d enregistrées, %d échecs",
            report.total_requested, len(report.succeeded), len(report.failed),
        )
        return report

    async def save_attendance_selection(self, view_id: str) -> BatchReport:
        """Enregistre les cases cochées de la session ; elles sont vidées si tout a réussi."""
        report = await self.save_attendance(self.get_view(view_id).attendance_selection)
        if report.succeeded and not report.failed:
            self._update_view(view_id, attendance_selection=[])
        return report

    async def _mark_present(self, reg_no: str) -> None:
        raw = await self._store.get(reg_no)
        if raw is None:
            raise DocumentNotFound(f"Document '{reg_no}' introuvable.")
        student = normalize_student(raw, reg_no)
        await self._store.update(reg_no, {
            "attendedClasses": min(student.attended_classes + 1, student.total_classes),
            "totalClasses": student.total_classes,
        })

    # --- Devoirs et messages ---

    def _targets(self, reg_nos: Optional[List[str]]) -> List[str]:
        if reg_nos is None:
            return [student.reg_no for student in self.roster]
        return list(reg_nos)

    async def publish_assignment(self, data: AssignmentCreate) -> PublicationReport:
        """Ajoute le devoir (même identifiant) à chaque élève ciblé."""
        targets = self._targets(data.reg_nos)
        if not targets:
            return PublicationReport(succeeded=[], failed=[], total_requested=0, error=MSG_NO_TARGET)

        assignment = Assignment(
            id=generate_id(ASSIGNMENT_PREFIX),
            title=data.title,
            description=data.description,
            due_date=data.due_date,
            status=STATUS_PENDING,
            resource_link=data.resource_link,
        )
        results = await asyncio.gather(
            *(self._append_assignment(reg_no, assignment) for reg_no in targets), return_exceptions=True
        )
        report = _batch_report(targets, results, "devoir")
        logger.info("Devoir %s publié pour %d/%d élèves", assignment.id, len(report["succeeded"]), len(targets))
        return PublicationReport(record_id=assignment.id, **report)

    async def _append_assignment(self, reg_no: str, assignment: Assignment) -> None:
        raw = await self._store.get(reg_no)
        if raw is None:
            raise DocumentNotFound(f"Document '{reg_no}' introuvable.")
        student = normalize_student(raw, reg_no)
        assignments = [*student.assignments, assignment]
        await self._store.update(reg_no, {
            "assignments": [a.to_document() for a in assignments],
            "pendingAssignments": pending_assignment_count(assignments, student.pending_assignments),
        })

    async def send_message(self, data: MessageCreate) -> PublicationReport:
        targets = self._targets(data.reg_nos)
        if not targets:
            return PublicationReport(succeeded=[], failed=[], total_requested=0, error=MSG_NO_TARGET)

        message = StudentMessage(
            id=generate_id(MESSAGE_PREFIX),
            title=data.title,
            body=data.body,
            created_at=datetime.now(timezone.utc),
        )
        results = await asyncio.gather(
            *(self._append_message(reg_no, message) for reg_no in targets), return_exceptions=True
        )
        report = _batch_report(targets, results, "message")
        logger.info("Message %s envoyé à %d/%d élèves", message.id, len(report["succeeded"]), len(targets))
        return PublicationReport(record_id=message.id, **report)

    async def _append_message(self, reg_no: str, message: StudentMessage) -> None:
        raw = await self._store.get(reg_no)
        if raw is None:
            raise DocumentNotFound(f"Document '{reg_no}' introuvable.")
        student = normalize_student(raw, reg_no)
        messages = [*student.messages, message]
        await self._store.update(reg_no, {"messages": [m.to_document() for m in messages]})

    # --- Rendus ---

    async def submit_assignment(
        self,
        view_id: str,
        reg_no: str,
        assignment_id: str,
        filename: str,
        content: bytes,
        content_type: str = "application/octet-stream",
    ) -> Union[SubmissionReceipt, Failure]:
        """
        Rendu d'un devoir par l'élève connecté, propriétaire du devoir.
        Le fichier est stocké, puis le devoir passe à « submitted » avec
        l'URL, le nom du fichier et la date de rendu.
        """
        if self.get_view(view_id).student_reg_no != reg_no:
            return Failure(AUTHORIZATION, MSG_NOT_OWNER)
        if not content:
            return Failure(VALIDATION, MSG_EMPTY_FILE)
        if len(content) > self._max_upload_bytes:
            return Failure(
                VALIDATION,
                f"Fichier trop volumineux. Taille maximale : {self._max_upload_bytes // (1024 * 1024)} Mo.",
            )

        submission_name = filename or "fichier"
        try:
            raw = await self._store.get(reg_no)
            if raw is None:
                return Failure(NOT_FOUND, MSG_STUDENT_NOT_FOUND)
            student = normalize_student(raw, reg_no)
            if student.is_blocked:
                return Failure(AUTHORIZATION, MSG_ACCOUNT_BLOCKED)
            assignment = student.find_assignment(assignment_id)
            if assignment is None:
                return Failure(NOT_FOUND, MSG_ASSIGNMENT_NOT_FOUND)

            submitted_at = datetime.now(timezone.utc)
            path = build_submission_path(
                reg_no, assignment_id, submission_name, int(submitted_at.timestamp() * 1000)
            )
            url = await self._objects.upload(path, content, content_type)

            submitted = assignment.model_copy(update={
                "status": STATUS_SUBMITTED,
                "submission_url": url,
                "submission_name": submission_name,
                "submitted_at": submitted_at,
            })
            assignments = [submitted if a.id == assignment_id else a for a in student.assignments]
            await self._store.update(reg_no, {
                "assignments": [a.to_document() for a in assignments],
                "pendingAssignments": pending_assignment_count(assignments, 0),
            })
        except DocumentNotFound:
            return Failure(NOT_FOUND, MSG_STUDENT_NOT_FOUND)
        except (StoreError, ObjectStoreError) as exc:
            logger.error("Rendu du devoir %s par %s impossible : %s", assignment_id, reg_no, exc)
            return Failure(REMOTE, MSG_RETRY)

        logger.info("Devoir %s rendu par %s (%s)", assignment_id, reg_no, submission_name)
        return SubmissionReceipt(
            reg_no=reg_no,
            assignment_id=assignment_id,
            submission_url=url,
            submission_name=submission_name,
            submitted_at=submitted_at,
        )


def _batch_report(reg_nos: List[str], results: list, label: str) -> dict:
    """
    Répartit les résultats d'un asyncio.gather(return_exceptions=True) en succès / échecs.
    Seules les erreurs de la collection sont des échecs ; toute autre exception est relancée.
    """
    succeeded: List[str] = []
    failed: List[str] = []
    for reg_no, result in zip(reg_nos, results):
        if isinstance(result, StoreError):
            logger.error("Écriture (%s) pour l'élève %s impossible : %s", label, reg_no, result)
            failed.append(reg_no)
        elif isinstance(result, BaseException):
            raise result
        else:
            succeeded.append(reg_no)

    error = None
    if failed:
        error = (
            f"L'enregistrement ({label}) a échoué pour {len(failed)} élève(s) : "
            f"{', '.join(failed)}. Veuillez réessayer."
        )
    return {"succeeded": succeeded, "failed": failed, "total_requested": len(reg_nos), "error": error}
