"""
Schémas Pydantic pour l'envoi de messages aux élèves.
"""

from typing import List, Optional

from pydantic import BaseModel, field_validator

from schoolportal.schemas.report import MAX_BATCH_SIZE
from schoolportal.schemas.student import clean_reg_nos


class MessageCreate(BaseModel):
    """Message de l'administration (tous les élèves si reg_nos est absent)."""
    title: str
    body: str
    reg_nos: Optional[List[str]] = None

    @field_validator("title", "body")
    @classmethod
    def not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Le champ ne peut pas être vide.")
        return v.strip()

    @field_validator("reg_nos")
    @classmethod
    def valid_targets(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is not None and len(v) > MAX_BATCH_SIZE:
            raise ValueError(f"Trop d'élèves ciblés : maximum {MAX_BATCH_SIZE}.")
        return clean_reg_nos(v)
