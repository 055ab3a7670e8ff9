from __future__ import annotations

import logging
from dataclasses import dataclass

from memelytics.domain.entities.meme import MemeEntity
from memelytics.infrastructure.database.repositories.meme_repository import COUNTERS, MemeRepository

logger = logging.getLogger(__name__)


@dataclass
class RecordMemeEventUseCase:
    memes: MemeRepository

    def execute(self, meme_id: str, action: str) -> MemeEntity:
        if action not in COUNTERS:
            raise ValueError(f"Invalid action: {action}")
        updated = self.memes.increment(meme_id, action)
        if updated is None:
            raise LookupError("Meme not found")
        logger.debug("Recorded %s for meme %s", action, meme_id)
        return updated
