"""
Configuration de la connexion à la base de documents.
PostgreSQL en production, SQLite accepté pour le développement et les tests.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

from schoolportal.config import settings

# SQLite refuse par défaut les connexions partagées entre threads (asyncio.to_thread)
_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(settings.DATABASE_URL, connect_args=_connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db() -> None:
    """Crée les tables manquantes (aucune migration : une seule collection)."""
    import schoolportal.models  # noqa: F401  (enregistre les modèles dans Base.metadata)

    Base.metadata.create_all(bind=engine)
