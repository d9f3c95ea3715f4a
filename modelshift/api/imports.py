"""Import endpoint — upload a CSV/Excel file and load it into a model."""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from sqlalchemy.orm import Session

from modelshift.api.deps import get_db, get_target_model
from modelshift.core.config import settings
from modelshift.core.errors import (
    LoadError,
    MappingDefinitionError,
    MissingMandatoryError,
    UnsupportedFileType,
)
from modelshift.core.load_session import LoadSession
from modelshift.core.models import ImportResponse
from modelshift.core.row_sources import CSV_EXTENSIONS, EXCEL_EXTENSIONS

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/imports", response_model=ImportResponse)
async def create_import(
    file: UploadFile = File(...),
    dry_run: bool = Form(False),
    model: type = Depends(get_target_model),
    db: Session = Depends(get_db),
):
    """Upload a file and load its rows into the target model.

    - **file**: .csv or .xlsx file, first row is the header row
    - **model**: dotted path of an allowed target model class
    - **dry_run**: process everything, then roll back
    """
    suffix = Path(file.filename or "").suffix.lower()
    if suffix not in CSV_EXTENSIONS | EXCEL_EXTENSIONS:
        raise HTTPException(status_code=400, detail="Only .csv and .xlsx files are supported")

    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    file_path = upload_dir / Path(file.filename).name
    file_path.write_bytes(await file.read())

    session = LoadSession(model, db)
    try:
        if settings.loader_config:
            session.configure_from(settings.loader_config)
        report = session.perform_load(file_path, dummy=dry_run)
    except (MappingDefinitionError, MissingMandatoryError, UnsupportedFileType) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LoadError as e:
        logger.error(f"Import aborted: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Import aborted: {e}")
    except (FileNotFoundError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid loader config: {e}")

    message = "Import completed successfully" if report.status == "completed" else "Import completed"
    if report.errors:
        message += f" with {len(report.errors)} errors"
    if dry_run:
        message += " (dry run, nothing saved)"

    return ImportResponse(**report.to_dict(), message=message)
