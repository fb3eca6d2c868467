"""
Local evaluator stand-in that records completion reports.

Run it next to the deployer and submit tasks with
``evaluation_url = http://localhost:8001/evaluation-callback``:

    python -m pages_deployer.callback_sink

Set ``SINK_FAIL_FIRST=N`` to answer the first N callbacks with HTTP 503, which
exercises the reporter's backoff end to end.
"""

import logging
import os
from typing import Dict, List

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .models import ReportPayload, utc_timestamp

logger = logging.getLogger("pages_deployer.callback_sink")


def create_sink_app(fail_first: int = 0) -> FastAPI:
    app = FastAPI(title="Evaluation Callback Sink")
    callbacks_received: List[Dict] = []
    state = {"remaining_failures": fail_first}

    @app.post("/evaluation-callback")
    async def evaluation_callback(payload: ReportPayload, request: Request):
        if state["remaining_failures"] > 0:
            state["remaining_failures"] -= 1
            logger.info(f"[SINK] Rejecting callback for {payload.task} ({state['remaining_failures']} failures left)")
            return JSONResponse(status_code=503, content={"status": "unavailable"})

        callback_data = {
            "timestamp": utc_timestamp(),
            "body": payload.model_dump(),
            "client_ip": request.client.host if request.client else "unknown",
        }
        callbacks_received.append(callback_data)
        logger.info(f"[SINK] Callback received: task={payload.task} round={payload.round} pages={payload.pages_url}")
        return {"status": "success", "timestamp": callback_data["timestamp"]}

    @app.get("/callbacks")
    async def get_callbacks():
        return {"total_callbacks": len(callbacks_received), "callbacks": callbacks_received}

    @app.get("/callbacks/latest")
    async def get_latest_callback():
        if not callbacks_received:
            return JSONResponse(status_code=404, content={"message": "No callbacks received yet"})
        return callbacks_received[-1]

    @app.delete("/callbacks")
    async def clear_callbacks():
        count = len(callbacks_received)
        callbacks_received.clear()
        return {"message": f"Cleared {count} callbacks"}

    @app.get("/health")
    async def health():
        return {"status": "ok", "timestamp": utc_timestamp(), "callbacks_received": len(callbacks_received)}

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    uvicorn.run(create_sink_app(int(os.environ.get("SINK_FAIL_FIRST", "0"))), host="0.0.0.0", port=8001, log_level="info")
