"""
Planificateur APScheduler pour la rediffusion périodique de la collection des élèves.

Les écritures faites par ce processus déclenchent déjà un snapshot ; ce job
rattrape celles faites ailleurs (autre instance de l'API, scripts d'admin).
"""

import asyncio
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from schoolportal.config import settings

logger = logging.getLogger(__name__)

# Recréé à chaque démarrage : un AsyncIOScheduler reste lié à la boucle qui l'a démarré
scheduler: Optional[AsyncIOScheduler] = None


async def _refresh_roster_scheduled(portal) -> None:
    """Tâche planifiée : rediffuse la collection à l'abonnement du registre."""
    try:
        await portal.refresh_roster()
    except Exception as exc:
        logger.error("Erreur lors de la rediffusion périodique du registre : %s", exc)


def start_scheduler(portal) -> None:
    """Démarre le planificateur (appelé au démarrage de l'API, dans la boucle asyncio)."""
    global scheduler
    scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
    scheduler.add_job(
        _refresh_roster_scheduled,
        trigger="interval",
        seconds=settings.ROSTER_REFRESH_SECONDS,
        args=[portal],
        id="roster_refresh",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler démarré : rediffusion du registre toutes les %d secondes.",
        settings.ROSTER_REFRESH_SECONDS,
    )


def stop_scheduler() -> None:
    """Arrête le planificateur proprement (appelé à l'arrêt de l'API)."""
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler arrêté.")
