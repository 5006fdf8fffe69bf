"""Routes to read and replace the cached business snapshots."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.infrastructure.database import get_db
from app.infrastructure.repositories import SNAPSHOT_NAMES, SnapshotRepository
from app.interfaces.api.schemas import SnapshotRead, SnapshotReplace, SnapshotReplaceResponse

router = APIRouter(prefix="/snapshots", tags=["snapshots"])


def _ensure_snapshot_name(name: str) -> str:
    if name not in SNAPSHOT_NAMES:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown snapshot '{name}'",
        )
    return name


@router.get("/{name}", response_model=SnapshotRead)
def get_snapshot(name: str, db: Session = Depends(get_db)) -> SnapshotRead:
    records = SnapshotRepository(db).list(_ensure_snapshot_name(name))
    return SnapshotRead(name=name, records=records)


@router.put("/{name}", response_model=SnapshotReplaceResponse)
def replace_snapshot(
    name: str,
    payload: SnapshotReplace,
    db: Session = Depends(get_db),
) -> SnapshotReplaceResponse:
    """Replace the records of a snapshot used by the scheduled checks."""

    version = SnapshotRepository(db).replace(_ensure_snapshot_name(name), payload.records)
    return SnapshotReplaceResponse(name=name, count=len(payload.records), version=version)
