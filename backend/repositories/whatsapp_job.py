# backend/repositories/whatsapp_job.py
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func

from models.whatsapp_job import JobStatus, WhatsAppJob
from repositories.base import BaseRepository


class WhatsAppJobRepository(BaseRepository[WhatsAppJob]):
    model = WhatsAppJob
    label = "WhatsApp job"

    def pending(self, ids: Optional[Sequence[int]] = None, limit: int = 100) -> List[WhatsAppJob]:
        q = self.query().filter(WhatsAppJob.status == JobStatus.PENDING.value)
        if ids:
            q = q.filter(WhatsAppJob.id.in_(list(ids)))
        return q.order_by(WhatsAppJob.id).limit(limit).all()

    def failed(self, limit: int = 50) -> List[WhatsAppJob]:
        return (
            self.query()
            .filter(WhatsAppJob.status == JobStatus.FAILED.value)
            .order_by(WhatsAppJob.id.desc())
            .limit(limit)
            .all()
        )

    def stats(self) -> Dict[str, int]:
        rows = self.db.query(WhatsAppJob.status, func.count(WhatsAppJob.id)).group_by(WhatsAppJob.status).all()
        counts = {status.value: 0 for status in JobStatus}
        counts.update({status: total for status, total in rows})
        return counts
