"""FastAPI application exposing the tag & equipment extractor."""

from __future__ import annotations

import tempfile
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, List

from fastapi import Depends, FastAPI, File, HTTPException, UploadFile
from fastapi.responses import JSONResponse

from config import Settings, load_settings
from src.tag_extractor.events import RunState
from src.tag_extractor.orchestrator import BatchCoordinator
from src.tag_extractor.rules import ExtractionConfig, load_extraction_config

CoordinatorFactory = Callable[[], BatchCoordinator]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = load_settings()
    settings.ensure_directories()
    return settings


@lru_cache(maxsize=1)
def get_extraction_config() -> ExtractionConfig:
    settings = get_settings()
    return load_extraction_config(settings.rules_path).with_overrides(
        process_only_scanned_pages=settings.process_only_scanned_pages,
        min_ocr_confidence=settings.min_ocr_confidence,
    )


def get_coordinator_factory() -> CoordinatorFactory:
    """Coordinators are single-use, so each request builds a fresh one."""
    settings = get_settings()
    extraction_config = get_extraction_config()
    return lambda: BatchCoordinator(settings, extraction_config=extraction_config)


app = FastAPI(title="Tag & Equipment Extractor", version="0.1.0")


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "ocr_backend": settings.ocr_backend,
        "ocr_policy": settings.ocr_policy,
        "output_dir": str(settings.output_dir),
    }


@app.post("/extract")
async def extract_documents(
    files: List[UploadFile] = File(...),
    coordinator_factory: CoordinatorFactory = Depends(get_coordinator_factory),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    uploads: List[tuple[str, bytes]] = []
    for upload in files:
        filename = Path(upload.filename or "").name
        if not filename.lower().endswith(".pdf"):
            raise HTTPException(status_code=400, detail=f"Only PDF uploads are supported: '{filename}'.")
        data = await upload.read()
        if not data:
            raise HTTPException(status_code=400, detail=f"Uploaded file is empty: '{filename}'.")
        uploads.append((filename, data))

    settings.upload_dir.mkdir(parents=True, exist_ok=True)
    with tempfile.TemporaryDirectory(dir=settings.upload_dir) as workspace:
        paths: List[Path] = []
        for position, (filename, data) in enumerate(uploads, start=1):
            folder = Path(workspace) / f"{position:03d}"
            folder.mkdir()
            path = folder / filename
            path.write_bytes(data)
            paths.append(path)

        completion = await coordinator_factory().start(paths, settings.output_dir)

    if completion.state is RunState.FAILED:
        raise HTTPException(status_code=500, detail=completion.message)

    items = [
        {
            "source_file": Path(result.source_file).name,
            "page": result.page_number,
            "type": item.type,
            "value": item.value,
            "confidence": item.confidence,
        }
        for result in completion.results
        for item in result.items
    ]
    payload = {
        "state": completion.state.value,
        "message": completion.message,
        "output_path": str(completion.output_path) if completion.output_path else None,
        "total_pages": len(completion.results),
        "total_tags": sum(len(result.tags) for result in completion.results),
        "total_equipment": sum(len(result.equipment) for result in completion.results),
        "items": items,
        "logs": [
            {
                "file": entry.file_name,
                "page": entry.page_number,
                "status": entry.status,
                "message": entry.message,
            }
            for entry in completion.logs
        ],
    }
    return JSONResponse(content=payload)
