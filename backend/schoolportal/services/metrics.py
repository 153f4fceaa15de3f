"""
Indicateurs dérivés des enregistrements canoniques.

Les compteurs bruts (attended_classes, total_classes, statut des devoirs)
restent la seule source de vérité : ces fonctions sont appelées partout où
un indicateur est affiché.
"""

import math
from typing import Iterable


def round_half_up(value: float) -> int:
    """Arrondi au plus proche, les demis vers le haut (2.5 → 3), contrairement à round()."""
    return math.floor(value + 0.5)


def attendance_percentage(student) -> int:
    """Pourcentage de présence arrondi, 0 si aucun cours n'est prévu."""
    if student.total_classes == 0:
        return 0
    return round_half_up(student.attended_classes / student.total_classes * 100)


def pending_assignment_count(assignments: Iterable, fallback: int) -> int:
    """
    Nombre de devoirs non rendus.

    Sans aucun devoir, retourne le compteur historique `fallback` tel quel :
    dès qu'un devoir existe, le décompte réel fait autorité.
    """
    assignments = list(assignments)
    if not assignments:
        return fallback
    return sum(1 for a in assignments if a.status != "submitted")
