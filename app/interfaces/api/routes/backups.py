"""Routes to export and restore backups of the key-value store."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.application.use_cases.backups import export_backup, restore_backup
from app.application.use_cases.notifications import RULE_OVERRIDES_KEY, NotificationRuntime
from app.domain.exceptions import BackupIntegrityError
from app.infrastructure.database import get_db
from app.interfaces.api.dependencies import get_notification_runtime
from app.interfaces.api.schemas import (
    BackupDocumentSchema,
    BackupExportRequest,
    BackupRestoreRequest,
    BackupRestoreResponse,
)

router = APIRouter(prefix="/backups", tags=["backups"])


@router.post("/export", response_model=BackupDocumentSchema)
def export_backup_document(
    payload: BackupExportRequest | None = None,
    db: Session = Depends(get_db),
) -> BackupDocumentSchema:
    request = payload or BackupExportRequest()
    document = export_backup(
        db, request.keys, metadata=request.metadata, password=request.password
    )
    return BackupDocumentSchema.model_validate(document)


@router.post("/restore", response_model=BackupRestoreResponse)
def restore_backup_document(
    payload: BackupRestoreRequest,
    db: Session = Depends(get_db),
    runtime: NotificationRuntime = Depends(get_notification_runtime),
) -> BackupRestoreResponse:
    """Verify a backup document and write its entries back."""

    try:
        restored = restore_backup(
            db,
            payload.document.to_entity(),
            overwrite=payload.overwrite,
            password=payload.password,
        )
    except BackupIntegrityError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if RULE_OVERRIDES_KEY in restored:
        runtime.catalog.load_overrides(reset=True)
    runtime.runner.wake()
    return BackupRestoreResponse(restored_keys=restored)
