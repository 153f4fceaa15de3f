"""
Router de l'annuaire des enseignants (liste fixe, affichée sur le tableau de bord élève).
"""

from typing import List

from fastapi import APIRouter

from schoolportal.schemas.teacher import TeacherResponse

router = APIRouter(prefix="/api/v1/teachers", tags=["Enseignants"])

TEACHERS = [
    TeacherResponse(id=1, name="Dr. Evelyn Reed", subject="Physique quantique"),
    TeacherResponse(id=2, name="M. Samuel Drake", subject="Histoire ancienne"),
    TeacherResponse(id=3, name="Mme Clara Oswald", subject="Informatique"),
    TeacherResponse(id=4, name="Prof. Alistair Finch", subject="Littérature"),
]


@router.get("", response_model=List[TeacherResponse], summary="Lister les enseignants")
def list_teachers():
    return TEACHERS
