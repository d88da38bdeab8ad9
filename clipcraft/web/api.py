from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from clipcraft.download_queue import COMPLETE
from clipcraft.errors import (
    ClipCraftError,
    NotFoundError,
    OutputMissingError,
    ValidationError,
)
from clipcraft.utils.logging import get_logger
from clipcraft.web.state import Services, get_services

router = APIRouter(prefix="/api")
logger = get_logger("api")


def _http_error(exc: ClipCraftError) -> HTTPException:
    """Map the error taxonomy onto status codes; the body keeps the error kind."""
    if isinstance(exc, ValidationError):
        status = 400
    elif isinstance(exc, OutputMissingError):
        status = 500
    elif isinstance(exc, NotFoundError):
        status = 404
    else:
        status = 500
    if status == 500:
        logger.warning("%s: %s", exc.kind, exc.message)
    return HTTPException(status_code=status, detail=exc.to_dict())


class EnqueueRequest(BaseModel):
    url: Optional[Any] = None
    title: Optional[str] = None


class DownloadRequest(BaseModel):
    url: Optional[Any] = None


class TimeRangeRequest(BaseModel):
    # loose types: the range is validated by the services so bad input reads as a 400
    startTime: Optional[Any] = None
    endTime: Optional[Any] = None


# download queue

@router.post("/queue")
def enqueue_download(req: EnqueueRequest, services: Services = Depends(get_services)):
    try:
        job, position = services.queue.enqueue(req.url, req.title)
    except ClipCraftError as exc:
        raise _http_error(exc)
    return {"success": True, "id": job.id, "queuePosition": position}


@router.get("/queue")
def queue_status(services: Services = Depends(get_services)):
    return services.queue.snapshot()


@router.get("/queue/{job_id}")
def get_job(job_id: str, services: Services = Depends(get_services)):
    job = services.queue.get(job_id)
    if job is None:
        raise _http_error(NotFoundError("Download not found"))
    return job.to_dict()


@router.delete("/queue/{job_id}")
def cancel_download(job_id: str, services: Services = Depends(get_services)):
    if not services.queue.cancel(job_id):
        raise _http_error(NotFoundError("Download not found"))
    return {"success": True}


@router.post("/download")
def download_now(req: DownloadRequest, services: Services = Depends(get_services)):
    """Blocking download of one URL; goes through the queue so only one download runs at a time."""
    try:
        job, _ = services.queue.enqueue(req.url, "Video")
    except ClipCraftError as exc:
        raise _http_error(exc)
    services.queue.wait(job)
    if job.status != COMPLETE or not job.result_filename:
        raise HTTPException(
            status_code=500,
            detail={"error": job.last_error or f"Download {job.status}", "kind": "process", "id": job.id},
        )
    try:
        stored = services.library.stat(job.result_filename)
    except NotFoundError:
        raise _http_error(OutputMissingError("Downloaded file not found"))
    return {
        "success": True,
        "filename": stored.filename,
        "url": services.library.file_url(stored.filename),
        "sizeBytes": stored.size_bytes,
    }


# clips and transcription

@router.post("/clip")
def create_clip(req: TimeRangeRequest, services: Services = Depends(get_services)):
    try:
        clip = services.clipper.extract(req.startTime, req.endTime)
    except ClipCraftError as exc:
        raise _http_error(exc)
    return {
        "success": True,
        "filename": clip.filename,
        "url": services.library.file_url(clip.filename),
        "sizeBytes": clip.size_bytes,
    }


@router.post("/transcribe")
def transcribe(req: TimeRangeRequest, services: Services = Depends(get_services)):
    try:
        transcript = services.transcriber.transcribe(req.startTime, req.endTime)
    except ClipCraftError as exc:
        raise _http_error(exc)
    payload = transcript.to_dict()
    payload["success"] = True
    return payload


# storage

@router.get("/files")
def list_files(services: Services = Depends(get_services)):
    library = services.library
    try:
        files = library.list_files()
    except ClipCraftError as exc:
        raise _http_error(exc)
    return {"files": [f.to_dict(library.file_url(f.filename)) for f in files]}


@router.delete("/files/{filename}")
def delete_file(filename: str, services: Services = Depends(get_services)):
    try:
        services.library.delete(filename)
    except ClipCraftError as exc:
        raise _http_error(exc)
    return {"success": True}


@router.get("/status")
def status(services: Services = Depends(get_services)):
    snapshot = services.queue.snapshot()
    return {
        "status": "running",
        "activeJob": snapshot["activeJob"],
        "queueLength": len(services.queue),
        "isDraining": snapshot["isDraining"],
        "transcription": services.transcriber.enabled,
    }
