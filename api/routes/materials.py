"""API routes for the materials report viewer.

- Template generation (from a tree dump, a materials document or an upload)
- Workbook preview reports and import back into a materials document
- Saved report retrieval
- Desktop helpers: open a workbook at a row, native file/folder dialogs

Domain errors (IntegrityViolation, MalformedInput, IOFailure, ...) propagate
to the handlers registered in main.py.
"""
from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, File, HTTPException, UploadFile
from fastapi.responses import FileResponse

from models.schemas import (
    GenerateTemplateRequest,
    ImportRequest,
    OpenRequest,
    TemplateFromDbRequest,
)
from services import desktop
from services.config import get_settings
from services.materials import (
    generate_report,
    generate_template,
    generate_template_from_xml,
    import_xlsx,
    read_row_sets,
    report_xlsx,
)
from services.report_store import latest_report_file, load_report, save_report

logger = logging.getLogger(__name__)

router = APIRouter(tags=["materials"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# =============================================================================
# HELPERS
# =============================================================================

def _require(**fields: object) -> None:
    missing = [name for name, value in fields.items() if value in (None, "")]
    if missing:
        raise HTTPException(400, f"{', '.join(missing)} required")


def _require_file(path: str, label: str) -> Path:
    file_path = Path(path)
    if not file_path.is_file():
        raise HTTPException(404, f"{label} not found: {path}")
    return file_path


async def _save_upload(file: UploadFile, suffix: str) -> Path:
    """Store an upload under the upload dir with a unique name."""
    upload_dir = get_settings().upload_dir
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / f"{uuid.uuid4().hex[:8]}_{Path(file.filename or 'upload').stem}{suffix}"
    path.write_bytes(await file.read())
    return path


def _cleanup(paths: List[Path]) -> None:
    for path in paths:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"[UPLOAD] Could not remove temp file {path}: {e}")


# =============================================================================
# REPORTS
# =============================================================================

@router.get("/report")
async def get_report(file: Optional[str] = None):
    """Return the given saved report, or the newest one."""
    if file:
        report_path = _require_file(file, "Report")
    else:
        report_path = latest_report_file()
        if report_path is None:
            raise HTTPException(404, "No report found")
    return load_report(report_path)


@router.post("/api/upload-xlsx-preview")
async def upload_xlsx_preview(file: UploadFile = File(...)):
    """Report on an uploaded workbook without importing it."""
    if not file.filename or not file.filename.lower().endswith(".xlsx"):
        raise HTTPException(400, "Only .xlsx files are supported")

    xlsx_path = await _save_upload(file, ".xlsx")
    try:
        report = report_xlsx(xlsx_path)
    finally:
        _cleanup([xlsx_path])
    return {"ok": True, "report": report.to_json_dict()}


# =============================================================================
# TEMPLATES
# =============================================================================

@router.post("/generate-template")
async def post_generate_template(request: GenerateTemplateRequest):
    """Tree dump (JSON) -> template workbook."""
    _require(jsonPath=request.json_path, xlsxPath=request.xlsx_path)
    _require_file(request.json_path, "JSON file")
    generate_template(request.json_path, request.xlsx_path)
    return {"ok": True, "xlsxPath": request.xlsx_path}


@router.post("/api/generate-template-from-db")
async def post_generate_template_from_db(request: TemplateFromDbRequest):
    """Materials document -> template workbook."""
    _require(dbPath=request.db_path, xlsxPath=request.xlsx_path)
    _require_file(request.db_path, "Materials document")
    generate_template_from_xml(request.db_path, request.xlsx_path)
    return {"ok": True, "xlsxPath": request.xlsx_path}


@router.post("/api/generate-template-upload")
async def post_generate_template_upload(background_tasks: BackgroundTasks, dbfile: UploadFile = File(...)):
    """Uploaded materials document -> template workbook download."""
    db_path = await _save_upload(dbfile, ".db")
    xlsx_path = db_path.with_name(db_path.stem + "_template.xlsx")
    try:
        generate_template_from_xml(db_path, xlsx_path)
    except Exception:
        _cleanup([db_path, xlsx_path])
        raise

    background_tasks.add_task(_cleanup, [db_path, xlsx_path])
    download_name = f"{Path(dbfile.filename or 'materials').stem}_template.xlsx"
    return FileResponse(xlsx_path, media_type=XLSX_MEDIA_TYPE, filename=download_name)


# =============================================================================
# IMPORT
# =============================================================================

@router.post("/import")
async def post_import(request: ImportRequest):
    """Edited workbook -> materials document, saving the integrity report alongside."""
    _require(xlsxPath=request.xlsx_path, outDbPath=request.out_db_path)
    _require_file(request.xlsx_path, "Excel file")
    if request.original_db_path:
        _require_file(request.original_db_path, "Original document")

    report = generate_report(read_row_sets(request.xlsx_path))
    report_path = save_report(report, folder=request.report_folder)

    result = import_xlsx(
        request.xlsx_path,
        request.out_db_path,
        original_path=request.original_db_path,
        force=request.force,
    )
    return {
        "ok": True,
        "outDbPath": str(result.out_path),
        "backupPath": str(result.backup_path) if result.backup_path else None,
        "reportPath": str(report_path),
        "report": report.to_json_dict(),
    }


# =============================================================================
# DESKTOP
# =============================================================================

@router.post("/open")
def post_open(request: OpenRequest):
    """Open the workbook in the spreadsheet app at the given sheet and row."""
    _require(filePath=request.file_path, sheetName=request.sheet_name, row=request.row)
    _require_file(request.file_path, "Excel file")
    desktop.open_in_spreadsheet(request.file_path, request.sheet_name, request.row)
    return {"ok": True}


@router.get("/dialog/open-file")
def dialog_open_file(ext: Optional[str] = None):
    return {"path": desktop.pick_file(ext)}


@router.get("/dialog/open-folder")
def dialog_open_folder():
    return {"path": desktop.pick_folder()}
