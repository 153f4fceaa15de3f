"""
Génération des identifiants de devoirs et de messages.
"""

import logging
import random
import string
import time
import uuid

logger = logging.getLogger(__name__)

ASSIGNMENT_PREFIX = "asg"
MESSAGE_PREFIX = "msg"

_BASE36 = string.digits + string.ascii_lowercase


def generate_id(prefix: str) -> str:
    """
    Retourne un UUID4 (source aléatoire du système).

    Si la source aléatoire est indisponible, construit un identifiant de repli
    `{prefix}-{timestamp_ms}-{suffixe base 36}`. Ne lève jamais d'exception.
    """
    try:
        return str(uuid.uuid4())
    except Exception as exc:
        logger.warning("Source aléatoire indisponible (%s), identifiant de repli utilisé", exc)
        suffix = "".join(random.choice(_BASE36) for _ in range(6))
        return f"{prefix}-{int(time.time() * 1000)}-{suffix}"
