"""
Configuration partagée pour tous les tests.

La base et le dossier de fichiers pointent vers un répertoire temporaire
(SQLite) avant tout import de schoolportal. Les tests d'API remplacent la
dépendance get_portal par un mock ; les tests de service utilisent une base
SQLite propre à chaque test.
"""

import os
import tempfile

_TEST_DIR = tempfile.mkdtemp(prefix="schoolportal-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'portal.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_DIR, "uploads")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import schoolportal.models  # noqa: E402,F401
from schoolportal.database import Base  # noqa: E402
from schoolportal.main import app  # noqa: E402
from schoolportal.routers.deps import get_portal  # noqa: E402
from schoolportal.schemas.session import SelectionState  # noqa: E402
from schoolportal.services.document_store import DocumentStore  # noqa: E402
from schoolportal.services.object_store import LocalObjectStore  # noqa: E402
from schoolportal.services.portal_service import PortalService  # noqa: E402


@pytest.fixture
def mock_portal():
    """Service du portail mocké : admin autorisé, session vide par défaut."""
    portal = MagicMock(spec=PortalService)
    portal.roster = ()
    portal.get_view.return_value = SelectionState()
    portal.require_admin.return_value = None
    return portal


@pytest.fixture
def client(mock_portal):
    """Client HTTP de test avec le service du portail mocké."""
    app.dependency_overrides[get_portal] = lambda: mock_portal
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def session_factory(tmp_path):
    """Base SQLite vierge, propre au test."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'store.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def make_portal(session_factory, tmp_path):
    """Fabrique de PortalService sur la base SQLite du test (à démarrer dans la boucle du test)."""
    def _make(**kwargs) -> PortalService:
        return PortalService(
            store=DocumentStore(session_factory),
            objects=LocalObjectStore(str(tmp_path / "uploads"), "/files"),
            admin_username="admin",
            admin_password="admin",
            **kwargs,
        )
    return _make
