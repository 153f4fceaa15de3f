"""
Schémas Pydantic des enregistrements canoniques : élève, devoir, message.

Les attributs Python sont en snake_case ; les alias camelCase correspondent
aux clés des documents stockés (regNo, attendedClasses, dueDate, ...).
Les instances sont immuables : le registre est remplacé, jamais modifié.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from schoolportal.services.metrics import attendance_percentage

STATUS_PENDING = "pending"
STATUS_SUBMITTED = "submitted"
SENDER_ADMIN = "admin"

DEFAULT_TOTAL_CLASSES = 10


class CanonicalRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_document(self) -> dict:
        """Sérialise l'enregistrement au format du document stocké (clés camelCase, dates ISO-8601)."""
        return self.model_dump(mode="json", by_alias=True)


class Assignment(CanonicalRecord):
    """Devoir publié par l'administration, avec l'éventuel rendu de l'élève."""
    id: str
    title: str
    description: str
    due_date: datetime
    status: Literal["pending", "submitted"] = STATUS_PENDING
    resource_link: Optional[str] = None
    submission_url: Optional[str] = None   # Renseigné en même temps que submission_name
    submission_name: Optional[str] = None
    submitted_at: Optional[datetime] = None


class StudentMessage(CanonicalRecord):
    """Message envoyé par l'administration (sens unique admin → élève)."""
    id: str
    title: str
    body: str
    created_at: datetime
    sender: Literal["admin"] = SENDER_ADMIN


class Student(CanonicalRecord):
    name: str
    reg_no: str
    attended_classes: int = Field(0, ge=0)
    total_classes: int = Field(DEFAULT_TOTAL_CLASSES, gt=0)
    pending_assignments: int = Field(0, ge=0)
    is_blocked: bool = False
    assignments: List[Assignment] = Field(default_factory=list)
    messages: List[StudentMessage] = Field(default_factory=list)

    @computed_field(alias="attendancePercentage")
    @property
    def attendance_percentage(self) -> int:
        return attendance_percentage(self)

    def find_assignment(self, assignment_id: str) -> Optional[Assignment]:
        return next((a for a in self.assignments if a.id == assignment_id), None)


def clean_reg_nos(reg_nos: Optional[List[str]]) -> Optional[List[str]]:
    """Retire les espaces et les doublons d'une liste de numéros d'inscription (ordre conservé)."""
    if reg_nos is None:
        return None
    cleaned: List[str] = []
    for reg_no in reg_nos:
        reg_no = reg_no.strip()
        if reg_no and reg_no not in cleaned:
            cleaned.append(reg_no)
    return cleaned
