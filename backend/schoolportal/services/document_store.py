"""
Collection distante des documents élèves, indexée par numéro d'inscription.

Opérations : abonnement en direct, lecture ponctuelle, création/remplacement,
mise à jour partielle, suppression.

Les accès SQLAlchemy (synchrones) tournent dans un thread via asyncio.to_thread :
l'appelant est suspendu sans bloquer la boucle d'événements.

Abonnement : chaque écriture déclenche une rediffusion de la collection
complète (Snapshot) vers tous les abonnés, dans une tâche séparée. L'écriture
n'attend pas cette rediffusion. Les rediffusions sont sérialisées par un
verrou : un abonné reçoit les snapshots dans l'ordre des lectures.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from schoolportal.models.student_document import StudentDocument

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Échec d'accès à la collection distante (réseau, base indisponible...)."""


class DocumentNotFound(StoreError):
    """Mise à jour d'un document inexistant."""


@dataclass(frozen=True)
class Snapshot:
    """Contenu complet de la collection : tuple de (clé, document brut)."""
    documents: tuple


@dataclass(frozen=True)
class SnapshotFailure:
    """L'abonnement n'a pas pu lire la collection."""
    error: Exception


SnapshotEvent = Union[Snapshot, SnapshotFailure]

_CLOSED = object()


class Subscription:
    """
    Flux ordonné d'événements de snapshot, consommé par `async for`.
    `close()` termine l'itération après les événements déjà en file.
    """

    def __init__(self, on_close: Optional[Callable[["Subscription"], None]] = None):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_close = on_close
        self.closed = False

    def push(self, event: SnapshotEvent) -> None:
        if not self.closed:
            self._queue.put_nowait(event)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._queue.put_nowait(_CLOSED)
        if self._on_close is not None:
            self._on_close(self)

    def __aiter__(self):
        return self

    async def __anext__(self) -> SnapshotEvent:
        event = await self._queue.get()
        if event is _CLOSED:
            raise StopAsyncIteration
        return event


class DocumentStore:

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory
        self._subscriptions: set = set()
        self._broadcast_lock = asyncio.Lock()
        self._pending_broadcasts: set = set()

    # --- Abonnement ---

    async def subscribe(self) -> Subscription:
        """Ouvre un abonnement ; le premier snapshot est livré immédiatement."""
        subscription = Subscription(on_close=self._subscriptions.discard)
        self._subscriptions.add(subscription)
        await self._broadcast([subscription])
        return subscription

    async def refresh(self) -> None:
        """Rediffuse le contenu actuel à tous les abonnés."""
        await self._broadcast(list(self._subscriptions))

    async def close(self) -> None:
        """Attend les rediffusions en cours puis ferme les abonnements."""
        if self._pending_broadcasts:
            await asyncio.gather(*self._pending_broadcasts)
        for subscription in list(self._subscriptions):
            subscription.close()

    async def _broadcast(self, subscriptions: list) -> None:
        async with self._broadcast_lock:
            try:
                event = Snapshot(documents=await asyncio.to_thread(self._read_all))
            except SQLAlchemyError as exc:
                logger.error("Lecture de la collection impossible : %s", exc)
                event = SnapshotFailure(error=StoreError(str(exc)))
            for subscription in subscriptions:
                subscription.push(event)

    def _schedule_broadcast(self) -> None:
        task = asyncio.create_task(self.refresh())
        self._pending_broadcasts.add(task)
        task.add_done_callback(self._pending_broadcasts.discard)

    # --- Lecture / écriture ---

    async def get(self, key: str) -> Optional[dict]:
        """Lecture ponctuelle d'un document, None s'il n'existe pas."""
        return await self._run(self._get, key)

    async def set(self, key: str, data: dict) -> None:
        """Crée ou remplace entièrement le document."""
        await self._run(self._set, key, data)
        self._schedule_broadcast()

    async def update(self, key: str, fields: dict) -> None:
        """Fusionne `fields` dans le document existant. Lève DocumentNotFound s'il n'existe pas."""
        await self._run(self._update, key, fields)
        self._schedule_broadcast()

    async def delete(self, key: str) -> None:
        """Supprime le document (sans erreur s'il n'existe pas)."""
        await self._run(self._delete, key)
        self._schedule_broadcast()

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    # --- Accès SQLAlchemy (exécutés dans un thread) ---

    def _read_all(self) -> tuple:
        db = self._session_factory()
        try:
            rows = db.execute(select(StudentDocument)).scalars().all()
            return tuple((row.reg_no, dict(row.data or {})) for row in rows)
        finally:
            db.close()

    def _get(self, key: str) -> Optional[dict]:
        db = self._session_factory()
        try:
            document = db.get(StudentDocument, key)
            return dict(document.data or {}) if document else None
        finally:
            db.close()

    def _set(self, key: str, data: dict) -> None:
        db = self._session_factory()
        try:
            document = db.get(StudentDocument, key)
            if document is None:
                db.add(StudentDocument(reg_no=key, data=dict(data)))
            else:
                document.data = dict(data)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def _update(self, key: str, fields: dict) -> None:
        db = self._session_factory()
        try:
            document = db.get(StudentDocument, key)
            if document is None:
                raise DocumentNotFound(f"Document '{key}' introuvable.")
            # Nouvel objet dict : SQLAlchemy ne suit pas les mutations internes d'une colonne JSON
            document.data = {**(document.data or {}), **fields}
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()

    def _delete(self, key: str) -> None:
        db = self._session_factory()
        try:
            document = db.get(StudentDocument, key)
            if document is not None:
                db.delete(document)
                db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()
