# main.py
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from .errors import AuthRejected
from .logs import flush_logs, setup_logging, tail_log
from .models import TaskRequest, utc_timestamp
from .pipeline import PipelineController
from .settings import Settings, get_settings

logger = logging.getLogger("pages_deployer.api")


def verify_secret(settings: Settings, secret_from_request: str):
    if not settings.STUDENT_SECRET or secret_from_request != settings.STUDENT_SECRET:
        raise AuthRejected("Unauthorized: Secret mismatch")


def create_app(settings: Optional[Settings] = None, controller: Optional[PipelineController] = None) -> FastAPI:
    settings = settings or get_settings()
    controller = controller or PipelineController.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings)

        async def keep_alive():
            while True:
                logger.info("[running....] server running")
                flush_logs()
                await asyncio.sleep(settings.KEEP_ALIVE_INTERVAL_SECONDS)

        heartbeat = asyncio.create_task(keep_alive())
        try:
            yield
        finally:
            heartbeat.cancel()
            logger.info("[SHUTDOWN] Stopping background tasks...")
            await controller.shutdown()
            flush_logs()

    app = FastAPI(title="Pages Deployer", description="LLM-driven single-page app generation and GitHub Pages deployment", lifespan=lifespan)
    app.state.settings = settings
    app.state.controller = controller
    app.state.last_received_task = None

    @app.exception_handler(AuthRejected)
    async def auth_rejected_handler(request: Request, exc: AuthRejected):
        return JSONResponse(status_code=401, content={"error": str(exc)})

    @app.post("/task", status_code=200)
    @app.post("/api/generate", status_code=200)
    async def receive_task(task_data: TaskRequest, request: Request):
        try:
            verify_secret(settings, task_data.secret)
        except AuthRejected:
            logger.warning(f"Unauthorized attempt for task {task_data.task} from {request.client.host if request.client else 'unknown'}")
            raise

        app.state.last_received_task = {
            "task": task_data.task,
            "email": task_data.email,
            "round": task_data.round,
            "brief": (task_data.brief[:250] + "...") if len(task_data.brief) > 250 else task_data.brief,
            "time": utc_timestamp(),
        }
        controller.dispatch(task_data)
        logger.info(f"Received task {task_data.task} (round {task_data.round}). Background processing started.")
        flush_logs()
        return {"status": "accepted", "message": f"Task {task_data.task} received and processing started."}

    @app.get("/")
    async def root():
        return {"message": "Pages Deployer running. POST /task to submit."}

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": utc_timestamp()}

    @app.get("/status")
    async def get_status():
        if app.state.last_received_task is None:
            return {"message": "Awaiting first task submission to /task"}
        return {"last_received_task": app.state.last_received_task, **controller.status()}

    @app.get("/logs")
    async def get_logs(lines: int = Query(200, ge=1, le=5000)):
        path = settings.LOG_FILE_PATH
        if not os.path.exists(path):
            return PlainTextResponse("Log file not found.", status_code=404)
        try:
            return PlainTextResponse(tail_log(path, lines))
        except OSError as e:
            logger.exception(f"Error reading log file: {e}")
            return PlainTextResponse(f"Error reading log file: {e}", status_code=500)

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host=app.state.settings.HOST, port=app.state.settings.PORT, log_level="info")
