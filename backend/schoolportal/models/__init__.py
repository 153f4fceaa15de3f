# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant l'appel à init_db().

from schoolportal.models.student_document import StudentDocument  # noqa: F401
