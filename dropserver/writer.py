# dropserver/writer.py
import asyncio
import logging
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError

from dropserver.errors import PersistenceFailure
from dropserver.models import DropEvent
from dropserver.schemas import AcceptedDrop

logger = logging.getLogger(__name__)


class BatchWriter:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def write(self, items: Sequence[AcceptedDrop]) -> int:
        """
        Insert every item with one statement inside one transaction.
        Either all rows commit or the whole batch is reported as failed.
        """
        if not items:
            return 0

        created_at = datetime.now(timezone.utc)
        rows = [dict(item.model_dump(), created_at=created_at) for item in items]

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    await session.execute(insert(DropEvent), rows)
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.error("DB insert error (%d rows): %s", len(rows), e)
            raise PersistenceFailure() from e

        return len(rows)
