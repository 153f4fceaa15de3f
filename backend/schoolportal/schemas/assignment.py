"""
Schémas Pydantic pour la publication et le rendu des devoirs.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, field_validator

from schoolportal.schemas.report import MAX_BATCH_SIZE
from schoolportal.schemas.student import clean_reg_nos


class AssignmentCreate(BaseModel):
    """Corps de requête pour publier un devoir (tous les élèves si reg_nos est absent)."""
    title: str
    description: str
    due_date: datetime
    resource_link: Optional[str] = None
    reg_nos: Optional[List[str]] = None

    @field_validator("title", "description")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip()

    @field_validator("due_date")
    @classmethod
    def aware_due_date(cls, v: datetime) -> datetime:
        # Une date sans fuseau est interprétée en UTC
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)

    @field_validator("resource_link")
    @classmethod
    def blank_link_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("reg_nos")
    @classmethod
    def valid_targets(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is not None and len(v) > MAX_BATCH_SIZE:
            raise ValueError(f"Trop d'élèves ciblés : maximum {MAX_BATCH_SIZE}.")
        return clean_reg_nos(v)


class SubmissionReceipt(BaseModel):
    """Réponse après le rendu d'un devoir."""
    reg_no: str
    assignment_id: str
    submission_url: str
    submission_name: str
    submitted_at: datetime
