"""
Scripts router: list, save, delete and bulk-sync the caller's scripts.

Every endpoint requires a bearer token; the owner is always the token's
user, never a value from the request body.
"""
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from auth import get_current_identity
from database import get_db
from schemas import ScriptPayload
from security import SessionIdentity
from services.script_service import ScriptService

router = APIRouter(prefix="/api/scripts")


class SyncBody(BaseModel):
    """Items are validated one by one so a bad item cannot fail the batch."""
    scripts: list[Any]


@router.get("")
def list_scripts(
    identity: SessionIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """All of the caller's scripts and versions, newest first."""
    return [s.to_dict() for s in ScriptService(db).list_for_user(identity.user_id)]


@router.post("")
def save_script(
    body: ScriptPayload,
    identity: SessionIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    return ScriptService(db).upsert(identity.user_id, body).to_dict()


@router.delete("/{script_id}")
def delete_script(
    script_id: str,
    identity: SessionIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Delete one script and its versions; 404 if the caller has no such script."""
    return ScriptService(db).delete_for_user(identity.user_id, script_id)


@router.post("/sync")
def sync_scripts(
    body: SyncBody,
    identity: SessionIdentity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """
    Upload the full local script set. Responds once every item was attempted,
    with the count saved and per-item errors if any.
    """
    result = ScriptService(db).bulk_sync(identity.user_id, body.scripts)
    response = {"success": True, "syncedCount": result["syncedCount"]}
    if result["errors"]:
        response["errors"] = result["errors"]
    return response
