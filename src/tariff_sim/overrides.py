"""Per-session simulator rate overrides. Never touches the rate table."""

from __future__ import annotations

import logging
import uuid

from .definitions import TariffDefinition
from .errors import NotFoundError
from .session_store import OVERRIDES_ATTR, SessionStore

logger = logging.getLogger(__name__)


class SessionOverrideStore:
    def __init__(self, store: SessionStore) -> None:
        self.store = store

    def _load(self, session_id: str) -> list[TariffDefinition]:
        raw = self.store.read(session_id, OVERRIDES_ATTR) or []
        return [TariffDefinition.from_dict(item) for item in raw]

    def _persist(self, session_id: str, items: list[TariffDefinition]) -> None:
        self.store.write(session_id, OVERRIDES_ATTR, [d.as_dict() for d in items])

    def save(self, session_id: str, dto: TariffDefinition) -> TariffDefinition:
        """Upsert *dto* by id (a blank id gets a fresh UUID) and return it."""
        if not dto.id or not dto.id.strip():
            dto = dto.with_id(str(uuid.uuid4()))

        items = self._load(session_id)
        for i, existing in enumerate(items):
            if existing.id == dto.id:
                items[i] = dto
                break
        else:
            items.append(dto)

        self._persist(session_id, items)
        logger.debug("Session %s: saved simulator override %s", session_id, dto.id)
        return dto

    def list(self, session_id: str) -> list[TariffDefinition]:
        return self._load(session_id)

    def get(self, session_id: str, definition_id: str) -> TariffDefinition | None:
        return next((d for d in self._load(session_id) if d.id == definition_id), None)

    def update(self, session_id: str, definition_id: str, dto: TariffDefinition) -> TariffDefinition:
        items = self._load(session_id)
        for i, existing in enumerate(items):
            if existing.id == definition_id:
                updated = dto.with_id(definition_id)
                items[i] = updated
                self._persist(session_id, items)
                return updated
        raise NotFoundError(f"Tariff definition not found in session: {definition_id}")

    def delete(self, session_id: str, definition_id: str) -> None:
        items = self._load(session_id)
        remaining = [d for d in items if d.id != definition_id]
        if len(remaining) == len(items):
            raise NotFoundError(f"Tariff definition not found in session: {definition_id}")
        self._persist(session_id, remaining)

    def clear(self, session_id: str) -> None:
        self.store.drop(session_id, OVERRIDES_ATTR)
