"""
Stockage des fichiers rendus par les élèves.

Les fichiers sont écrits sous UPLOAD_DIR et servis en statique par l'API
(montage /files dans main.py). L'URL retournée après l'envoi est la
référence de téléchargement enregistrée dans le devoir.
"""

import asyncio
import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class ObjectStoreError(Exception):
    """Échec d'écriture d'un fichier dans le stockage."""


def sanitize_filename(filename: str) -> str:
    """
    Remplace tout caractère hors [A-Za-z0-9._-] par '_' (jamais vide).
    Un segment fait uniquement de points ('.', '..') devient '_'.
    """
    cleaned = _UNSAFE_CHARS.sub("_", Path(filename or "").name)
    if not cleaned:
        return "fichier"
    if not cleaned.strip("."):
        return "_"
    return cleaned


def build_submission_path(reg_no: str, assignment_id: str, filename: str, timestamp_ms: int) -> str:
    """Chemin du rendu : submissions/{reg_no}/{assignment_id}/{timestamp}_{nom}."""
    return "/".join([
        "submissions",
        sanitize_filename(reg_no),
        sanitize_filename(assignment_id),
        f"{timestamp_ms}_{sanitize_filename(filename)}",
    ])


class LocalObjectStore:

    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    async def upload(self, path: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        """Écrit le fichier et retourne son URL de téléchargement."""
        try:
            await asyncio.to_thread(self._write, path, content)
        except OSError as exc:
            raise ObjectStoreError(f"Écriture de '{path}' impossible : {exc}") from exc

        logger.info("Fichier stocké : %s (%d octets, %s)", path, len(content), content_type)
        return f"{self.base_url}/{path}"

    def _write(self, path: str, content: bytes) -> None:
        target = self.root / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)
