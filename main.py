from __future__ import annotations

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might need env vars
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from api.routes.materials import router as materials_router
from services.config import get_settings
from services.errors import DesktopActionError, IntegrityViolation, IOFailure, MalformedInput
from services.logging_config import setup_logging


settings = get_settings()
setup_logging(settings.log_level, settings.log_json)

app = FastAPI(title="Materials Report Server")

# Local desktop tool: the viewer may be opened from file:// or another port
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# ERROR MAPPING
# =============================================================================

@app.exception_handler(IntegrityViolation)
async def integrity_violation_handler(request: Request, exc: IntegrityViolation):
    return JSONResponse(status_code=409, content=exc.to_dict())


@app.exception_handler(MalformedInput)
async def malformed_input_handler(request: Request, exc: MalformedInput):
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(IOFailure)
async def io_failure_handler(request: Request, exc: IOFailure):
    return JSONResponse(status_code=500, content={"error": str(exc), "path": exc.path})


@app.exception_handler(FileNotFoundError)
async def file_not_found_handler(request: Request, exc: FileNotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(DesktopActionError)
async def desktop_action_handler(request: Request, exc: DesktopActionError):
    return JSONResponse(status_code=500, content={"error": str(exc), "stderr": exc.stderr})


app.include_router(materials_router)

if settings.ui_dir.is_dir():
    app.mount("/ui", StaticFiles(directory=settings.ui_dir, html=True), name="ui")


@app.get("/")
async def root():
    return {"status": "ok", "ui": settings.ui_dir.is_dir()}
