"""
Script service: per-user scripts and their saved versions.

Writes are last-write-wins upserts keyed by script id; there is no merge and
no version conflict detection. All reads and deletes are scoped to the
authenticated owner. Deleting a script also removes its versions, best effort.
"""
import logging
import time as time_mod
import uuid
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from errors import AppError, Conflict, InvalidInput, NotFound, StorageFault
from models import Script
from schemas import ScriptPayload

logger = logging.getLogger(__name__)


def now_millis() -> int:
    return int(time_mod.time() * 1000)


def display_date(now: datetime | None = None) -> str:
    """Local time in the editor's list format, e.g. 10/19/2026, 3:04:05 PM."""
    now = now or datetime.now()
    return f"{now.month}/{now.day}/{now.year}, {now.strftime('%I:%M:%S %p').lstrip('0')}"


def _validation_message(err: ValidationError) -> str:
    first = err.errors()[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg')}" if loc else str(first.get("msg"))


class ScriptService:
    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user_id: int) -> list[Script]:
        """All scripts and versions of the user, newest first."""
        return (
            self.db.query(Script)
            .filter(Script.user_id == user_id)
            .order_by(Script.time.desc(), Script.id.desc())
            .all()
        )

    def get_for_user(self, user_id: int, script_id: str) -> Script | None:
        return (
            self.db.query(Script)
            .filter(Script.id == script_id, Script.user_id == user_id)
            .first()
        )

    def upsert(
        self,
        user_id: int,
        payload: ScriptPayload | dict[str, Any],
        *,
        index: int | None = None,
        batch_time: int | None = None,
    ) -> Script:
        """
        Insert or replace the script with payload.id, owned by user_id.

        Without an id one is synthesized: "<millis>-<index>" inside a batch,
        "<millis>-<random hex>" for a single save, so ids stay distinct even
        within the same millisecond. A row with the same id owned by another
        user is never replaced.
        """
        if not isinstance(payload, ScriptPayload):
            try:
                payload = ScriptPayload.model_validate(payload)
            except ValidationError as e:
                raise InvalidInput(_validation_message(e))

        now = now_millis()
        if payload.id:
            script_id = payload.id
        elif index is not None:
            script_id = f"{batch_time or now}-{index}"
        else:
            script_id = f"{now}-{uuid.uuid4().hex[:8]}"

        script = self._apply(user_id, script_id, payload, self.db.get(Script, script_id), now)
        try:
            self.db.commit()
        except IntegrityError:
            # another writer inserted the same id after our lookup; replace it once
            self.db.rollback()
            existing = self.db.get(Script, script_id)
            if existing is None:
                logger.exception("Failed to save script %s", script_id)
                raise StorageFault("Failed to save script")
            script = self._apply(user_id, script_id, payload, existing, now)
            self._commit_or_fault(script_id)
        except Exception as e:
            # includes driver errors outside SQLAlchemyError, e.g. OverflowError
            self.db.rollback()
            logger.exception("Failed to save script %s: %s", script_id, e)
            raise StorageFault("Failed to save script")
        self.db.refresh(script)
        return script

    def _apply(
        self, user_id: int, script_id: str, payload: ScriptPayload, existing: Script | None, now: int
    ) -> Script:
        """Copy payload onto the row (new if existing is None); owner check first."""
        if existing is not None and existing.user_id != user_id:
            raise Conflict(f"Script id {script_id} is already in use")
        script = existing or Script(id=script_id)
        script.user_id = user_id
        script.name = payload.name
        script.content = payload.content
        script.date = payload.date or display_date()
        script.time = payload.time if payload.time is not None else now
        script.is_version = bool(payload.is_version)
        script.parent_id = payload.parent_id or None
        script.version_id = payload.version_id or None
        if existing is None:
            self.db.add(script)
        return script

    def _commit_or_fault(self, script_id: str) -> None:
        try:
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception("Failed to save script %s: %s", script_id, e)
            raise StorageFault("Failed to save script")

    def delete_for_user(self, user_id: int, script_id: str) -> dict:
        """Delete an owned script, then (best effort) every version whose parent it was."""
        try:
            deleted = (
                self.db.query(Script)
                .filter(Script.id == script_id, Script.user_id == user_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to delete script %s: %s", script_id, e)
            raise StorageFault("Failed to delete script")
        if deleted == 0:
            raise NotFound("Script not found")

        self._delete_versions(script_id)
        return {"deleted": True}

    def _delete_versions(self, parent_id: str) -> None:
        """Cascade to versions. Failures are logged and never reach the caller."""
        try:
            removed = (
                self.db.query(Script)
                .filter(Script.parent_id == parent_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
            if removed:
                logger.debug("Deleted %d versions of script %s", removed, parent_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning("Failed to delete versions of script %s: %s", parent_id, e)

    def bulk_sync(self, user_id: int, scripts: list[Any]) -> dict:
        """
        Upsert every element independently. One bad element does not stop the
        rest; the result is returned only after every element was attempted.
        """
        batch_time = now_millis()
        errors: list[dict] = []
        synced = 0
        for index, item in enumerate(scripts):
            item_id = item.get("id") if isinstance(item, dict) else None
            try:
                if not isinstance(item, dict):
                    raise InvalidInput("Script must be an object")
                script = self.upsert(user_id, item, index=index, batch_time=batch_time)
            except AppError as e:
                errors.append({"scriptId": item_id or f"{batch_time}-{index}", "error": e.msg})
                continue
            synced += 1
            logger.debug("Synced script %s", script.id)
        return {"syncedCount": synced, "errors": errors}
