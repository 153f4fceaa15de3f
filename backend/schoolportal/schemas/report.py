"""
Schémas Pydantic des rapports d'opérations groupées (présences, publications).

Les écritures d'un lot sont indépendantes : un échec partiel laisse certains
élèves mis à jour et d'autres non. Le rapport liste les deux.
"""

from typing import List, Optional

from pydantic import BaseModel

MAX_BATCH_SIZE = 500


class BatchReport(BaseModel):
    succeeded: List[str]          # reg_no mis à jour
    failed: List[str]             # reg_no dont l'écriture a échoué
    total_requested: int
    error: Optional[str] = None   # Message global si au moins un échec


class PublicationReport(BatchReport):
    """Rapport de publication d'un devoir ou d'un message (même id chez tous les élèves)."""
    record_id: Optional[str] = None
