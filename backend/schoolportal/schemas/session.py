"""
Schémas Pydantic des sessions de vue : utilisateur connecté et sélections en cours.
"""

from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schoolportal.schemas.student import Assignment, Student, clean_reg_nos

PAGE_HOME = "HOME"
PAGE_STUDENT_LOGIN = "STUDENT_LOGIN"
PAGE_STUDENT_DASHBOARD = "STUDENT_DASHBOARD"
PAGE_ADMIN_LOGIN = "ADMIN_LOGIN"
PAGE_ADMIN_DASHBOARD = "ADMIN_DASHBOARD"


class AdminUser(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["admin"] = "admin"


class StudentUser(BaseModel):
    """Élève connecté : l'enregistrement complet, étiqueté role=student."""
    model_config = ConfigDict(frozen=True)

    role: Literal["student"] = "student"
    student: Student


SessionUser = Annotated[Union[AdminUser, StudentUser], Field(discriminator="role")]


class AssignmentSelection(BaseModel):
    """Un devoir précis d'un élève précis (fenêtre de détail / de rendu ouverte)."""
    model_config = ConfigDict(frozen=True)

    reg_no: str
    assignment: Assignment


class SelectionState(BaseModel):
    """
    État d'une session de vue. Les sélections référencent des élèves du registre
    et sont tenues à jour par la réconciliation (services/selection.py).
    """
    model_config = ConfigDict(frozen=True)

    page: str = PAGE_HOME
    user: Optional[SessionUser] = None
    selected_student: Optional[Student] = None      # Fenêtre « détails » de l'admin
    open_assignment: Optional[AssignmentSelection] = None
    pending_delete: Optional[Student] = None        # Confirmation de suppression en attente
    attendance_selection: List[str] = Field(default_factory=list)  # Cases cochées « présent »

    @property
    def is_admin(self) -> bool:
        return isinstance(self.user, AdminUser)

    @property
    def student_reg_no(self) -> Optional[str]:
        return self.user.student.reg_no if isinstance(self.user, StudentUser) else None


class SessionCreated(BaseModel):
    session_id: str
    state: SelectionState


# --- Corps de requête ---

class StudentLogin(BaseModel):
    """Connexion / inscription élève : nom complet + numéro d'inscription."""
    name: str = ""
    reg_no: str = ""


class AdminLogin(BaseModel):
    username: str
    password: str


class StudentSelect(BaseModel):
    """reg_no=None ferme la sélection."""
    reg_no: Optional[str] = None


class AssignmentSelect(BaseModel):
    """assignment_id=None ferme la fenêtre du devoir."""
    reg_no: str
    assignment_id: Optional[str] = None


class AttendanceSelect(BaseModel):
    reg_nos: List[str]

    @field_validator("reg_nos")
    @classmethod
    def strip_reg_nos(cls, v: List[str]) -> List[str]:
        return clean_reg_nos(v)
