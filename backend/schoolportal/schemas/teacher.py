"""
Schéma Pydantic de l'annuaire des enseignants affiché sur le tableau de bord élève.
"""

from pydantic import BaseModel


class TeacherResponse(BaseModel):
    id: int
    name: str
    subject: str
