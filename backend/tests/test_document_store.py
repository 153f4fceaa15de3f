"""
Tests d'intégration pour la collection des documents élèves (SQLite temporaire).
"""

import asyncio
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from schoolportal.services.document_store import (
    DocumentNotFound,
    DocumentStore,
    Snapshot,
    SnapshotFailure,
    StoreError,
)


def broken_session_factory():
    """Fabrique de sessions dont chaque requête échoue (base injoignable)."""
    session = MagicMock()
    error = OperationalError("SELECT", {}, Exception("connexion refusée"))
    session.execute.side_effect = error
    session.get.side_effect = error
    return MagicMock(return_value=session)


# ============================================================
# Lecture / écriture
# ============================================================

def test_set_puis_get(session_factory):
    async def scenario():
        store = DocumentStore(session_factory)
        await store.set("CS001", {"name": "Asha", "regNo": "CS001"})
        return await store.get("CS001")

    assert asyncio.run(scenario()) == {"name": "Asha", "regNo": "CS001"}


def test_get_document_absent(session_factory):
    assert asyncio.run(DocumentStore(session_factory).get("CS404")) is None


def test_set_remplace_le_document(session_factory):
    async def scenario():
        store = DocumentStore(session_factory)
        await store.set("CS001", {"name": "Asha", "attendedClasses": 3})
        await store.set("CS001", {"name": "Asha B."})
        return await store.get("CS001")

    assert asyncio.run(scenario()) == {"name": "Asha B."}


def test_update_fusionne_les_champs(session_factory):
    async def scenario():
        store = DocumentStore(session_factory)
        await store.set("CS001", {"name": "Asha", "isBlocked": False})
        await store.update("CS001", {"isBlocked": True, "attendedClasses": 1})
        return await store.get("CS001")

    assert asyncio.run(scenario()) == {"name": "Asha", "isBlocked": True, "attendedClasses": 1}


def test_update_document_absent(session_factory):
    async def scenario():
        store = DocumentStore(session_factory)
        with pytest.raises(DocumentNotFound):
            await store.update("CS404", {"isBlocked": True})

    asyncio.run(scenario())


def test_delete(session_factory):
    async def scenario():
        store = DocumentStore(session_factory)
        await store.set("CS001", {"name": "Asha"})
        await store.delete("CS001")
        await store.delete("CS001")  # Sans erreur
        return await store.get("CS001")

    assert asyncio.run(scenario()) is None


# ============================================================
# Abonnement
# ============================================================

def test_abonnement_snapshot_initial_puis_apres_ecriture(session_factory):
    async def scenario():
        store = DocumentStore(session_factory)
        subscription = await store.subscribe()
        events = subscription.__aiter__()

        initial = await asyncio.wait_for(events.__anext__(), 2)
        await store.set("CS001", {"name": "Asha"})
        first_write = await asyncio.wait_for(events.__anext__(), 2)
        await store.set("CS002", {"name": "Bilal"})
        second_write = await asyncio.wait_for(events.__anext__(), 2)
        await store.close()
        return initial, first_write, second_write

    initial, first_write, second_write = asyncio.run(scenario())
    assert initial == Snapshot(documents=())
    assert dict(first_write.documents) == {"CS001": {"name": "Asha"}}
    assert dict(second_write.documents) == {"CS001": {"name": "Asha"}, "CS002": {"name": "Bilal"}}


def test_fermeture_termine_l_iteration(session_factory):
    async def scenario():
        store = DocumentStore(session_factory)
        subscription = await store.subscribe()
        await store.close()
        return [event async for event in subscription]

    events = asyncio.run(scenario())
    assert len(events) == 1
    assert events[0] == Snapshot(documents=())


# ============================================================
# Base indisponible
# ============================================================

def test_erreur_sqlalchemy_convertie_en_store_error():
    async def scenario():
        store = DocumentStore(broken_session_factory())
        with pytest.raises(StoreError):
            await store.get("CS001")

    asyncio.run(scenario())


def test_erreur_de_lecture_diffusee_en_snapshot_failure():
    async def scenario():
        store = DocumentStore(broken_session_factory())
        subscription = await store.subscribe()
        event = await asyncio.wait_for(subscription.__anext__(), 2)
        await store.close()
        return event

    event = asyncio.run(scenario())
    assert isinstance(event, SnapshotFailure)
    assert isinstance(event.error, StoreError)
