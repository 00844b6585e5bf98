from __future__ import annotations

from typing import List

from fastapi import APIRouter, BackgroundTasks, File, HTTPException, Request, UploadFile
from fastapi.responses import Response

from photostamp.models import PhotoTask
from photostamp.services.stamp_pipeline import run_batch
from photostamp.services.state_machine import ProcessingStatus


router = APIRouter(prefix="/pipeline", tags=["upload"])


async def _read_files(files: List[UploadFile]):
	out = []
	for f in files:
		data = await f.read()
		out.append((f.filename or "image.jpg", data))
	return out


def _add_or_404(store, batch_id: str, files):
	result = store.add_files(batch_id, files)
	# cleared or expired while the upload was being read
	if result is None:
		raise HTTPException(status_code=404, detail="batch not found")
	return result


def _schedule(request: Request, background_tasks: BackgroundTasks, tasks: List[PhotoTask]) -> None:
	if tasks:
		state = request.app.state
		background_tasks.add_task(run_batch, state.pipeline, tasks, state.settings.max_workers)


def _accepted(batch_id: str, added: List[PhotoTask], skipped: List[str]):
	return {
		"batch_id": batch_id,
		"status": "queued",
		"tasks": [{"task_id": t.task_id, "filename": t.filename} for t in added],
		"skipped": skipped,
		"status_endpoint": f"/pipeline/status/{batch_id}",
		"result_endpoint": f"/pipeline/result/{batch_id}/{{task_id}}",
	}


@router.post("/upload", summary="Upload photos and start stamping them in the background")
async def upload(
	request: Request,
	background_tasks: BackgroundTasks,
	files: List[UploadFile] = File(...),
):
	store = request.app.state.store
	batch_id = store.create_batch()
	added, skipped = _add_or_404(store, batch_id, await _read_files(files))
	_schedule(request, background_tasks, added)
	return _accepted(batch_id, added, skipped)


@router.post("/{batch_id}/photos", summary="Add more photos to an existing batch")
async def add_photos(
	batch_id: str,
	request: Request,
	background_tasks: BackgroundTasks,
	files: List[UploadFile] = File(...),
):
	store = request.app.state.store
	if not store.has_batch(batch_id):
		raise HTTPException(status_code=404, detail="batch not found")
	added, skipped = _add_or_404(store, batch_id, await _read_files(files))
	_schedule(request, background_tasks, added)
	return _accepted(batch_id, added, skipped)


@router.get("/status/{batch_id}", summary="Get per-photo status for a batch")
def status(batch_id: str, request: Request):
	data = request.app.state.store.read_status(batch_id)
	if data is None:
		raise HTTPException(status_code=404, detail="batch not found")
	return data


@router.get("/result/{batch_id}/{task_id}", summary="Download a stamped photo")
def result(batch_id: str, task_id: str, request: Request):
	task = request.app.state.store.get_task(batch_id, task_id)
	if task is None:
		raise HTTPException(status_code=404, detail="photo not found")
	if task.status is not ProcessingStatus.READY or task.result_image is None:
		raise HTTPException(status_code=409, detail={"status": task.status.value, "error": task.error_message})
	return Response(
		content=task.result_image.data,
		media_type=task.result_image.content_type,
		headers={"Content-Disposition": f'attachment; filename="{task.suggested_filename}"'},
	)


@router.delete("/{batch_id}", summary="Clear all photos of a batch")
def clear(batch_id: str, request: Request):
	if not request.app.state.store.clear(batch_id):
		raise HTTPException(status_code=404, detail="batch not found")
	return {"batch_id": batch_id, "status": "cleared"}
