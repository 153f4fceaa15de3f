"""
Normalisation des documents bruts de la collection en enregistrements canoniques.

Les documents stockés ne sont jamais vérifiés à l'écriture : champs absents,
mauvais types, anciens formats (pourcentage `attendance` au lieu de
`attendedClasses`). Chaque champ est converti un par un avec une valeur par
défaut documentée. Ces fonctions sont totales : elles ne lèvent jamais
d'exception, une donnée invalide est remplacée par sa valeur par défaut.
"""

import math
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Optional

from schoolportal.schemas.student import (
    DEFAULT_TOTAL_CLASSES,
    SENDER_ADMIN,
    STATUS_PENDING,
    STATUS_SUBMITTED,
    Assignment,
    Student,
    StudentMessage,
)
from schoolportal.services.identifiers import ASSIGNMENT_PREFIX, MESSAGE_PREFIX, generate_id
from schoolportal.services.metrics import pending_assignment_count, round_half_up

DEFAULT_ASSIGNMENT_TITLE = "Devoir sans titre"
DEFAULT_ASSIGNMENT_DESCRIPTION = "Aucune description fournie."
DEFAULT_MESSAGE_TITLE = "Message de l'administration"
DEFAULT_MESSAGE_BODY = "(message vide)"


# --- Conversions élémentaires ---

def _as_mapping(raw: Any) -> Mapping:
    return raw if isinstance(raw, Mapping) else {}


def _as_number(value: Any) -> Optional[float]:
    """Nombre fini, ou None. Les booléens ne sont pas des nombres ici."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        # Un entier JSON arbitrairement grand ne tient pas dans un float
        if not math.isfinite(value):
            return None
    except (OverflowError, ValueError):
        return None
    return value


def _as_int(value: Any) -> Optional[int]:
    number = _as_number(value)
    return None if number is None else round_half_up(number)


def _as_text(value: Any) -> Optional[str]:
    """Chaîne non vide (après strip), ou None."""
    if isinstance(value, str) and value.strip():
        return value
    return None


def _as_optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else []


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Convertit une date ISO-8601 (ou un datetime) en datetime avec fuseau.
    Une date sans fuseau est considérée en UTC. Retourne None si invalide.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _now() -> datetime:
    return datetime.now(timezone.utc)


# --- Enregistrements ---

def normalize_assignment(raw: Any) -> Assignment:
    data = _as_mapping(raw)

    assignment_id = _as_text(data.get("id"))
    status = STATUS_SUBMITTED if data.get("status") == STATUS_SUBMITTED else STATUS_PENDING

    return Assignment(
        id=assignment_id.strip() if assignment_id else generate_id(ASSIGNMENT_PREFIX),
        title=_as_text(data.get("title")) or DEFAULT_ASSIGNMENT_TITLE,
        description=_as_text(data.get("description")) or DEFAULT_ASSIGNMENT_DESCRIPTION,
        due_date=parse_timestamp(data.get("dueDate")) or _now(),
        status=status,
        resource_link=_as_optional_str(data.get("resourceLink")),
        submission_url=_as_optional_str(data.get("submissionUrl")),
        submission_name=_as_optional_str(data.get("submissionName")),
        submitted_at=parse_timestamp(data.get("submittedAt")),
    )


def normalize_message(raw: Any) -> StudentMessage:
    data = _as_mapping(raw)

    message_id = _as_text(data.get("id"))

    return StudentMessage(
        id=message_id.strip() if message_id else generate_id(MESSAGE_PREFIX),
        title=_as_text(data.get("title")) or DEFAULT_MESSAGE_TITLE,
        body=_as_text(data.get("body")) or DEFAULT_MESSAGE_BODY,
        created_at=parse_timestamp(data.get("createdAt")) or _now(),
        sender=SENDER_ADMIN,
    )


def normalize_student(raw: Any, fallback_reg_no: str) -> Student:
    """
    Produit un élève canonique à partir d'un document brut.

    Présences, par ordre de priorité :
    1. `attendedClasses` numérique
    2. ancien pourcentage `attendance` → round(p / 100 * totalClasses)
    3. 0
    Le résultat est toujours borné à [0, totalClasses].
    """
    data = _as_mapping(raw)

    total_classes = _as_int(data.get("totalClasses"))
    if total_classes is None or total_classes <= 0:
        total_classes = DEFAULT_TOTAL_CLASSES

    attended_classes = _as_int(data.get("attendedClasses"))
    if attended_classes is None:
        legacy_percentage = _as_number(data.get("attendance"))
        if legacy_percentage is not None:
            derived = legacy_percentage / 100 * total_classes
            if math.isfinite(derived):
                attended_classes = round_half_up(derived)
            else:
                attended_classes = total_classes if derived > 0 else 0
        else:
            attended_classes = 0
    attended_classes = min(max(attended_classes, 0), total_classes)

    reg_no = _as_text(data.get("regNo"))
    name = data.get("name")

    assignments = [normalize_assignment(item) for item in _as_list(data.get("assignments"))]
    messages = [normalize_message(item) for item in _as_list(data.get("messages"))]

    legacy_pending = _as_int(data.get("pendingAssignments"))
    pending = pending_assignment_count(assignments, max(legacy_pending or 0, 0))

    return Student(
        name=name if isinstance(name, str) else "",
        reg_no=reg_no.strip() if reg_no else fallback_reg_no.strip(),
        attended_classes=attended_classes,
        total_classes=total_classes,
        pending_assignments=pending,
        is_blocked=data.get("isBlocked") is True,
        assignments=assignments,
        messages=messages,
    )


def new_student_document(name: str, reg_no: str) -> dict:
    """Document initial d'un élève qui s'inscrit pour la première fois."""
    return {
        "name": name,
        "regNo": reg_no,
        "attendedClasses": 0,
        "totalClasses": DEFAULT_TOTAL_CLASSES,
        "pendingAssignments": 0,
        "isBlocked": False,
        "assignments": [],
        "messages": [],
    }
