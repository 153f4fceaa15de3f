"""
Tests unitaires pour la normalisation des documents bruts.
Couverture : valeurs par défaut, ancien format `attendance`, bornes des présences,
devoirs et messages malformés, dates invalides.
"""

from datetime import datetime, timezone

import pytest

from schoolportal.schemas.student import DEFAULT_TOTAL_CLASSES
from schoolportal.services.normalizer import (
    DEFAULT_ASSIGNMENT_DESCRIPTION,
    DEFAULT_ASSIGNMENT_TITLE,
    DEFAULT_MESSAGE_BODY,
    DEFAULT_MESSAGE_TITLE,
    new_student_document,
    normalize_assignment,
    normalize_message,
    normalize_student,
    parse_timestamp,
)


# ============================================================
# Élève : valeurs par défaut
# ============================================================

def test_document_vide_valeurs_par_defaut():
    """Document vide → élève complet avec les valeurs par défaut."""
    student = normalize_student({}, "CS001")

    assert student.name == ""
    assert student.reg_no == "CS001"
    assert student.attended_classes == 0
    assert student.total_classes == DEFAULT_TOTAL_CLASSES
    assert student.pending_assignments == 0
    assert student.is_blocked is False
    assert student.assignments == []
    assert student.messages == []


@pytest.mark.parametrize("raw", [None, 42, "texte", ["liste"]])
def test_document_qui_n_est_pas_un_dictionnaire(raw):
    """Entrée qui n'est pas un mapping → traitée comme un document vide, sans exception."""
    student = normalize_student(raw, "CS001")
    assert student.reg_no == "CS001"
    assert student.total_classes == DEFAULT_TOTAL_CLASSES


def test_reg_no_du_document_prioritaire_et_nettoye():
    student = normalize_student({"regNo": "  CS002  ", "name": "Asha"}, "cle")
    assert student.reg_no == "CS002"
    assert student.name == "Asha"


def test_reg_no_vide_remplace_par_la_cle():
    assert normalize_student({"regNo": "   "}, "CS003").reg_no == "CS003"


def test_nom_de_mauvais_type():
    assert normalize_student({"name": 123}, "CS001").name == ""


@pytest.mark.parametrize("value", ["true", 1, "yes", None])
def test_blocage_uniquement_sur_booleen_vrai(value):
    assert normalize_student({"isBlocked": value}, "CS001").is_blocked is False


def test_blocage_booleen_vrai():
    assert normalize_student({"isBlocked": True}, "CS001").is_blocked is True


# ============================================================
# Élève : nombre de cours et présences
# ============================================================

@pytest.mark.parametrize("total", [0, -5, None, "12", True, float("nan")])
def test_total_invalide_remplace_par_la_constante(total):
    assert normalize_student({"totalClasses": total}, "CS001").total_classes == DEFAULT_TOTAL_CLASSES


def test_total_valide_conserve():
    assert normalize_student({"totalClasses": 24}, "CS001").total_classes == 24


def test_presences_champ_explicite():
    student = normalize_student({"attendedClasses": 7, "totalClasses": 12}, "CS001")
    assert student.attended_classes == 7


def test_presences_champ_explicite_prioritaire_sur_ancien_pourcentage():
    student = normalize_student({"attendedClasses": 2, "attendance": 90}, "CS001")
    assert student.attended_classes == 2


@pytest.mark.parametrize(
    "percentage,total,expected",
    [
        (80, 10, 8),
        (75, 10, 8),     # 7.5 arrondi vers le haut
        (25, 10, 3),     # 2.5 arrondi vers le haut
        (33, 3, 1),
        (100, 20, 20),
        (0, 10, 0),
    ],
)
def test_presences_depuis_ancien_pourcentage(percentage, total, expected):
    """Ancien format : attended = round(p / 100 * total)."""
    student = normalize_student({"attendance": percentage, "totalClasses": total}, "CS001")
    assert student.attended_classes == expected


@pytest.mark.parametrize(
    "raw,expected",
    [
        ({"attendedClasses": 15, "totalClasses": 10}, 10),
        ({"attendedClasses": -3}, 0),
        ({"attendance": 250, "totalClasses": 10}, 10),
        ({"attendance": -40, "totalClasses": 10}, 0),
    ],
)
def test_presences_bornees(raw, expected):
    student = normalize_student(raw, "CS001")
    assert student.attended_classes == expected
    assert 0 <= student.attended_classes <= student.total_classes


def test_presences_de_mauvais_type():
    assert normalize_student({"attendedClasses": "5"}, "CS001").attended_classes == 0


# ============================================================
# Élève : devoirs en attente
# ============================================================

def test_compteur_historique_utilise_sans_devoirs():
    assert normalize_student({"pendingAssignments": 4}, "CS001").pending_assignments == 4


def test_compteur_historique_negatif_ramene_a_zero():
    assert normalize_student({"pendingAssignments": -2}, "CS001").pending_assignments == 0


def test_compteur_recalcule_avec_devoirs():
    """Dès qu'un devoir existe, le décompte réel remplace le compteur stocké."""
    raw = {
        "pendingAssignments": 9,
        "assignments": [
            {"id": "a1", "status": "pending"},
            {"id": "a2", "status": "submitted"},
            {"id": "a3"},
        ],
    }
    assert normalize_student(raw, "CS001").pending_assignments == 2


def test_listes_de_mauvais_type_ignorees():
    student = normalize_student({"assignments": {"id": "a1"}, "messages": "bonjour"}, "CS001")
    assert student.assignments == []
    assert student.messages == []


def test_elements_non_dictionnaires_normalises():
    student = normalize_student({"assignments": [None], "messages": [3]}, "CS001")
    assert student.assignments[0].title == DEFAULT_ASSIGNMENT_TITLE
    assert student.messages[0].title == DEFAULT_MESSAGE_TITLE


def test_ordre_des_devoirs_conserve():
    raw = {"assignments": [{"id": "b"}, {"id": "a"}, {"id": "c"}]}
    assert [a.id for a in normalize_student(raw, "CS001").assignments] == ["b", "a", "c"]


# ============================================================
# Devoirs
# ============================================================

def test_devoir_complet():
    assignment = normalize_assignment({
        "id": "asg-1",
        "title": "TP réseaux",
        "description": "Configurer un routeur",
        "dueDate": "2026-11-02T08:00:00Z",
        "status": "submitted",
        "resourceLink": "https://example.org/tp.pdf",
        "submissionUrl": "/files/submissions/CS001/asg-1/1_tp.pdf",
        "submissionName": "tp.pdf",
        "submittedAt": "2026-11-01T20:15:00+00:00",
    })

    assert assignment.id == "asg-1"
    assert assignment.title == "TP réseaux"
    assert assignment.due_date == datetime(2026, 11, 2, 8, 0, tzinfo=timezone.utc)
    assert assignment.status == "submitted"
    assert assignment.resource_link == "https://example.org/tp.pdf"
    assert assignment.submission_name == "tp.pdf"
    assert assignment.submitted_at == datetime(2026, 11, 1, 20, 15, tzinfo=timezone.utc)


def test_devoir_sans_id_genere_deux_ids_distincts():
    first = normalize_assignment({"id": "  "})
    second = normalize_assignment({"id": "  "})
    assert first.id
    assert second.id
    assert first.id != second.id


@pytest.mark.parametrize("status", ["Submitted", "done", None, 1])
def test_statut_submitted_uniquement_sur_egalite_exacte(status):
    assert normalize_assignment({"status": status}).status == "pending"


def test_devoir_textes_par_defaut():
    assignment = normalize_assignment({"title": "", "description": None})
    assert assignment.title == DEFAULT_ASSIGNMENT_TITLE
    assert assignment.description == DEFAULT_ASSIGNMENT_DESCRIPTION


def test_devoir_date_invalide_remplacee_par_maintenant():
    before = datetime.now(timezone.utc)
    assignment = normalize_assignment({"dueDate": "pas une date"})
    assert assignment.due_date >= before


def test_devoir_champs_optionnels_non_textuels():
    assignment = normalize_assignment({"resourceLink": 12, "submissionUrl": ["x"], "submittedAt": "hier"})
    assert assignment.resource_link is None
    assert assignment.submission_url is None
    assert assignment.submitted_at is None


def test_devoir_incoherent_tolere():
    """Statut submitted sans URL de rendu : conservé tel quel."""
    assignment = normalize_assignment({"id": "a1", "status": "submitted"})
    assert assignment.status == "submitted"
    assert assignment.submission_url is None


# ============================================================
# Messages
# ============================================================

def test_message_par_defaut():
    message = normalize_message({"sender": "student"})
    assert message.id
    assert message.title == DEFAULT_MESSAGE_TITLE
    assert message.body == DEFAULT_MESSAGE_BODY
    assert message.sender == "admin"
    assert message.created_at.tzinfo is not None


def test_message_complet():
    message = normalize_message({
        "id": "msg-1",
        "title": "Réunion",
        "body": "Réunion des délégués vendredi.",
        "createdAt": "2026-10-01T09:30:00",
    })
    assert message.id == "msg-1"
    assert message.body == "Réunion des délégués vendredi."
    assert message.created_at == datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc)


# ============================================================
# Dates et document initial
# ============================================================

def test_parse_timestamp_datetime_sans_fuseau():
    parsed = parse_timestamp(datetime(2026, 1, 1, 12, 0))
    assert parsed.tzinfo == timezone.utc


@pytest.mark.parametrize("value", ["", "   ", None, 1700000000, "2026-13-45"])
def test_parse_timestamp_invalide(value):
    assert parse_timestamp(value) is None


def test_nouveau_document_normalise_sans_perte():
    student = normalize_student(new_student_document("Asha", "CS001"), "CS001")
    assert student.name == "Asha"
    assert student.attended_classes == 0
    assert student.total_classes == 10
    assert student.is_blocked is False


# ============================================================
# Valeurs numériques extrêmes
# ============================================================

@pytest.mark.parametrize(
    "raw,expected_total,expected_attended",
    [
        ({"totalClasses": 10**400}, 10, 0),
        ({"attendedClasses": 10**400, "totalClasses": 12}, 12, 0),
        ({"attendance": -(10**400)}, 10, 0),
        ({"pendingAssignments": 10**400}, 10, 0),
    ],
)
def test_entier_trop_grand_pour_un_float(raw, expected_total, expected_attended):
    """Entier JSON hors de la plage des floats → valeur par défaut, sans exception."""
    student = normalize_student(raw, "CS001")
    assert student.total_classes == expected_total
    assert student.attended_classes == expected_attended
    assert student.pending_assignments == 0


@pytest.mark.parametrize(
    "percentage,expected",
    [
        (1e308, "total"),
        (-1e308, 0),
    ],
)
def test_ancien_pourcentage_produit_infini(percentage, expected):
    """p / 100 * total dépasse la plage des floats → borné à [0, total]."""
    student = normalize_student({"totalClasses": 1e308, "attendance": percentage}, "CS001")
    expected_attended = student.total_classes if expected == "total" else expected
    assert student.attended_classes == expected_attended
    assert 0 <= student.attended_classes <= student.total_classes
    assert 0 <= student.attendance_percentage <= 100
