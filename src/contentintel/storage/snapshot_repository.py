"""Best-effort persistence of editor snapshots."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..domain.models import Document, DocumentNode, ProductCandidate, node_from_dict, node_to_dict
from ..models.database import SnapshotRecord
from ..observability.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EditorSnapshot:
    page_id: int
    nodes: Document
    products: dict[str, ProductCandidate]
    saved_at: datetime


class SnapshotRepository:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    async def save(self, page_id: int, nodes: Sequence[DocumentNode], products: Mapping[str, ProductCandidate]) -> bool:
        """Upsert the snapshot. Failures are logged and reported as False, never raised."""
        nodes_json = json.dumps([node_to_dict(n) for n in nodes])
        products_json = json.dumps({pid: p.to_dict() for pid, p in products.items()})
        try:
            async with self._session_factory() as session:
                record = await session.get(SnapshotRecord, page_id)
                if record is None:
                    record = SnapshotRecord(page_id=page_id)
                    session.add(record)
                record.nodes_json = nodes_json
                record.products_json = products_json
                record.saved_at = datetime.utcnow()
                await session.commit()
        except SQLAlchemyError as e:
            logger.warning("snapshot_save_failed", page_id=page_id, error=str(e))
            return False
        logger.debug("snapshot_saved", page_id=page_id, nodes=len(nodes), products=len(products))
        return True

    async def load(self, page_id: int) -> Optional[EditorSnapshot]:
        async with self._session_factory() as session:
            result = await session.execute(select(SnapshotRecord).where(SnapshotRecord.page_id == page_id))
            record = result.scalar_one_or_none()
        if record is None:
            return None
        try:
            nodes = tuple(node_from_dict(d) for d in json.loads(record.nodes_json or "[]"))
            products = {
                pid: ProductCandidate.from_dict(d) for pid, d in json.loads(record.products_json or "{}").items()
            }
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("snapshot_corrupt", page_id=page_id, error=str(e))
            return None
        return EditorSnapshot(page_id=page_id, nodes=nodes, products=products, saved_at=record.saved_at)
