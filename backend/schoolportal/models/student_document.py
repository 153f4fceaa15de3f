"""
Modèle SQLAlchemy pour la collection des élèves.

Chaque ligne est un document brut (JSON) indexé par le numéro d'inscription.
Le contenu n'est pas vérifié à l'écriture : il est normalisé à la lecture
(voir services/normalizer.py).
"""

from sqlalchemy import JSON, Column, DateTime, String, func

from schoolportal.database import Base


class StudentDocument(Base):
    __tablename__ = "student_documents"

    reg_no = Column(String(100), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
