"""
Schémas Pydantic pour l'enregistrement des présences.
Endpoint : POST /api/v1/attendance
"""

from typing import List, Optional

from pydantic import BaseModel, field_validator

from schoolportal.schemas.report import MAX_BATCH_SIZE
from schoolportal.schemas.student import clean_reg_nos


class AttendanceRequest(BaseModel):
    """
    Élèves présents au cours. Sans liste, les cases cochées de la session
    de l'admin sont utilisées.
    """
    reg_nos: Optional[List[str]] = None

    @field_validator("reg_nos")
    @classmethod
    def batch_not_too_large(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        if v is not None and len(v) > MAX_BATCH_SIZE:
            raise ValueError(f"Lot trop grand : maximum {MAX_BATCH_SIZE} élèves par requête.")
        return clean_reg_nos(v)
