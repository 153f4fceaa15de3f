"""
Synchronisation du registre des élèves avec la collection distante.

Cycle de vie : UNINITIALIZED → SUBSCRIBED → TERMINATED.

À chaque snapshot reçu :
1. chaque document est normalisé (services/normalizer.py)
2. les élèves sont triés par numéro d'inscription (ordre sensible à la casse)
3. le nouveau registre (tuple immuable) remplace l'ancien en une seule affectation
4. les écouteurs (réconciliation des sélections) sont appelés
5. les tâches en attente d'un état du registre sont réveillées

En cas d'erreur d'abonnement, le dernier registre publié est conservé.
"""

import asyncio
import logging
from typing import Callable, Iterable, List, Optional, Tuple

from schoolportal.schemas.student import Student
from schoolportal.services.document_store import Snapshot, SnapshotFailure, Subscription
from schoolportal.services.normalizer import normalize_student

logger = logging.getLogger(__name__)

UNINITIALIZED = "UNINITIALIZED"
SUBSCRIBED = "SUBSCRIBED"
TERMINATED = "TERMINATED"

Roster = Tuple[Student, ...]
RosterListener = Callable[[Roster], None]


def build_roster(documents: Iterable) -> Roster:
    """Normalise les documents (clé, brut) et les trie par numéro d'inscription."""
    students = [normalize_student(raw, key) for key, raw in documents]
    return tuple(sorted(students, key=lambda s: s.reg_no))


class RosterSynchronizer:

    def __init__(self, store):
        self._store = store
        self._state = UNINITIALIZED
        self._roster: Roster = ()
        self._version = 0
        self._listeners: List[RosterListener] = []
        self._subscription: Optional[Subscription] = None
        self._task: Optional[asyncio.Task] = None
        self._published = asyncio.Condition()

    @property
    def state(self) -> str:
        return self._state

    @property
    def roster(self) -> Roster:
        """Dernier registre publié (jamais partiel)."""
        return self._roster

    @property
    def version(self) -> int:
        """Nombre de registres publiés depuis le démarrage."""
        return self._version

    def add_listener(self, listener: RosterListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> None:
        if self._state != UNINITIALIZED:
            raise RuntimeError(f"Synchronisation déjà démarrée (état {self._state}).")
        self._subscription = await self._store.subscribe()
        self._state = SUBSCRIBED
        self._task = asyncio.create_task(self._consume(self._subscription))
        logger.info("Abonnement à la collection des élèves ouvert.")

    async def close(self) -> None:
        """Se désabonne ; aucune publication n'a lieu après cet appel."""
        if self._state == TERMINATED:
            return
        self._state = TERMINATED
        if self._subscription is not None:
            self._subscription.close()
        if self._task is not None:
            await self._task
        logger.info("Abonnement à la collection des élèves fermé.")

    async def wait_for(self, predicate: Callable[[Roster], bool], timeout: float = 5.0) -> Roster:
        """
        Attend qu'un registre publié satisfasse `predicate` (vérifié immédiatement,
        puis après chaque publication). Lève asyncio.TimeoutError après `timeout` secondes.
        """
        async with self._published:
            await asyncio.wait_for(
                self._published.wait_for(lambda: predicate(self._roster)),
                timeout,
            )
            return self._roster

    async def _consume(self, subscription: Subscription) -> None:
        async for event in subscription:
            if isinstance(event, SnapshotFailure):
                logger.error(
                    "Erreur d'abonnement, registre précédent conservé (%d élèves) : %s",
                    len(self._roster), event.error,
                )
                continue
            if isinstance(event, Snapshot):
                try:
                    await self._publish(event)
                except Exception as exc:
                    logger.error(
                        "Snapshot ignoré, registre précédent conservé (%d élèves) : %s",
                        len(self._roster), exc, exc_info=True,
                    )

    async def _publish(self, snapshot: Snapshot) -> None:
        if self._state != SUBSCRIBED:
            return

        roster = build_roster(snapshot.documents)
        self._roster = roster
        self._version += 1
        logger.info("Registre v%d publié : %d élèves", self._version, len(roster))

        for listener in self._listeners:
            try:
                listener(roster)
            except Exception as exc:
                logger.error("Écouteur du registre en échec : %s", exc, exc_info=True)

        async with self._published:
            self._published.notify_all()
