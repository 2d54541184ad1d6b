"""
API routes (JSON status endpoints).

Handles:
- /health - Health check endpoint
- /api/jobs - Print queue listing
- /api/jobs/<id> - Current state of one print job
- /api/jobs/<id>/cancel - Cancel a job that is still queued
- /api/trays - Tray contents with fill status
- /api/trays/sync - Force a tray synchronization

Responses use {"success": bool, "data" | "error": ...}.
"""

from flask import Blueprint, current_app, request

from core.exceptions import PersistenceError
from models.print_job import JobStatus
from logging_config import get_logger


# Module logger
logger = get_logger(__name__)

api_bp = Blueprint("api", __name__)


def _ok(data, status_code: int = 200):
    return {"success": True, "data": data}, status_code


def _error(message: str, status_code: int):
    return {"success": False, "error": message}, status_code


@api_bp.route("/health", methods=["GET"])
def health():
    """Health check endpoint with service status."""
    health_status = {
        "status": "ok",
        "environment": current_app.config.get("ENVIRONMENT", "unknown"),
        "checks": {}
    }

    # Check database
    database = current_app.config.get("DATABASE")
    if database and database.is_open:
        health_status["checks"]["database"] = "open"
    else:
        health_status["checks"]["database"] = "closed"
        health_status["status"] = "degraded"

    # Check device transport
    transport = current_app.config.get("DEVICE_TRANSPORT")
    if transport and transport.is_open:
        health_status["checks"]["device_transport"] = "open"
    else:
        health_status["checks"]["device_transport"] = "closed"
        health_status["status"] = "degraded"

    # Loops are only expected to run when the app started them
    expect_workers = current_app.config.get("START_WORKERS", False)

    poller = current_app.config.get("JOB_POLLER")
    if poller and poller.is_running:
        health_status["checks"]["job_poller"] = "running"
    else:
        health_status["checks"]["job_poller"] = "not_running"
        if expect_workers:
            health_status["status"] = "degraded"

    tray_sync = current_app.config.get("TRAY_SYNC_SERVICE")
    if tray_sync and tray_sync.is_running:
        last = tray_sync.last_result
        health_status["checks"]["tray_sync"] = "error" if last and last.error else "running"
    else:
        health_status["checks"]["tray_sync"] = "not_running"
        if expect_workers:
            health_status["status"] = "degraded"

    status_code = 200 if health_status["status"] == "ok" else 503
    return health_status, status_code


@api_bp.route("/api/jobs", methods=["GET"])
def list_jobs():
    """
    Print queue listing.

    Query parameters:
        status: Only jobs in this status, oldest first (default: all, newest first)
        limit: Maximum number of jobs (1-200, default 50)
    """
    status = None
    status_arg = request.args.get("status")
    if status_arg:
        try:
            status = JobStatus(status_arg.lower())
        except ValueError:
            return _error(f"Unknown job status '{status_arg}'", 400)
    limit = min(max(request.args.get("limit", 50, type=int), 1), 200)

    job_store = current_app.config["JOB_STORE"]
    try:
        jobs = job_store.list_jobs(status=status, limit=limit)
    except PersistenceError as e:
        logger.error(f"Job listing failed: {e}")
        return _error(e.message, 500)

    return _ok({"jobs": [job.to_dict() for job in jobs], "count": len(jobs)})


@api_bp.route("/api/jobs/<int:job_id>", methods=["GET"])
def get_job(job_id: int):
    """Return the stored state of one job."""
    job_store = current_app.config["JOB_STORE"]
    try:
        job = job_store.get(job_id)
    except PersistenceError as e:
        logger.error(f"Job lookup failed: {e}")
        return _error(e.message, 500)

    if job is None:
        return _error(f"Job {job_id} not found", 404)
    return _ok(job.to_dict())


@api_bp.route("/api/jobs/<int:job_id>/cancel", methods=["PUT"])
def cancel_job(job_id: int):
    """
    Cancel a queued job.

    Jobs that are already printing or finished cannot be cancelled (409).
    """
    job_store = current_app.config["JOB_STORE"]
    try:
        job = job_store.get(job_id)
        if job is None:
            return _error(f"Job {job_id} not found", 404)

        if job.status is JobStatus.CANCELLED:
            return _ok(job.to_dict())

        if not job_store.request_cancel(job_id):
            current = job_store.get(job_id)
            status = current.status.value if current else job.status.value
            return _error(f"Job {job_id} is {status} and can no longer be cancelled", 409)

        job = job_store.get(job_id)
    except PersistenceError as e:
        logger.error(f"Cancelling job {job_id} failed: {e}")
        return _error(e.message, 500)

    logger.info(f"Job {job_id} cancelled")
    return _ok(job.to_dict())


@api_bp.route("/api/trays", methods=["GET"])
def list_trays():
    """Tray contents, including fill percentage and status."""
    tray_store = current_app.config["TRAY_STORE"]
    try:
        trays = tray_store.list_trays()
    except PersistenceError as e:
        logger.error(f"Tray listing failed: {e}")
        return _error(e.message, 500)

    data = {"trays": [tray.to_dict() for tray in trays]}
    tray_sync = current_app.config.get("TRAY_SYNC_SERVICE")
    if tray_sync and tray_sync.last_result:
        data["last_sync"] = tray_sync.last_result.to_dict()
    return _ok(data)


@api_bp.route("/api/trays/sync", methods=["POST"])
def sync_trays():
    """Run a tray synchronization now and return its result."""
    tray_sync = current_app.config.get("TRAY_SYNC_SERVICE")
    if not tray_sync:
        return _error("Tray sync service unavailable", 503)

    result = tray_sync.force_sync()
    if result.error:
        return {"success": False, "error": result.error, "data": result.to_dict()}, 502
    return _ok(result.to_dict())
