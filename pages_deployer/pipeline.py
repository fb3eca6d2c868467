# pipeline.py
import asyncio
import logging
import weakref
from collections import deque
from typing import Deque, List, Optional, Set

import httpx

from .attachments import load_attachments
from .errors import PipelineError, ReportDeliveryFailed, UnknownRound
from .generator import Generator
from .github_api import GitHubClient
from .logs import flush_logs
from .models import PipelineRun, PipelineState, PublishResult, ReportPayload, TaskRequest
from .publisher import Publisher, slugify
from .reporter import MAX_ATTEMPTS, Reporter
from .settings import Settings
from .vcs import GitVersionControl

logger = logging.getLogger("pages_deployer.pipeline")

RECENT_RUNS = 50


class PipelineController:
    """Runs one task request from generation through publishing to the callback report.

    Pipelines are detached from the HTTP request: ``dispatch`` returns at once
    and every failure is logged and recorded on the run, never raised.
    """

    def __init__(self, settings: Settings, generator: Generator, publisher: Publisher, reporter: Reporter, sleep=asyncio.sleep, attachment_transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self.generator = generator
        self.publisher = publisher
        self.reporter = reporter
        self.sleep = sleep
        self.attachment_transport = attachment_transport
        self.runs: Deque[PipelineRun] = deque(maxlen=RECENT_RUNS)
        self.tasks: Set[asyncio.Task] = set()
        self.semaphore = asyncio.Semaphore(settings.MAX_CONCURRENT_TASKS)
        self._slug_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineController":
        generator = Generator(settings)
        publisher = Publisher(settings, GitHubClient(settings), GitVersionControl(), generator)
        reporter = Reporter(timeout=settings.REPORT_TIMEOUT_SECONDS)
        return cls(settings, generator, publisher, reporter)

    def _slug_lock(self, slug: str) -> asyncio.Lock:
        lock = self._slug_locks.get(slug)
        if lock is None:
            lock = asyncio.Lock()
            self._slug_locks[slug] = lock
        return lock

    def dispatch(self, request: TaskRequest) -> asyncio.Task:
        run = PipelineRun(task=request.task, round=request.round, nonce=request.nonce)
        self.runs.append(run)
        bg_task = asyncio.create_task(self.run(request, run), name=f"pipeline:{request.task}:{request.round}")
        self.tasks.add(bg_task)
        bg_task.add_done_callback(self._task_done)
        return bg_task

    def _task_done(self, task: asyncio.Task):
        self.tasks.discard(task)
        if task.cancelled():
            logger.warning(f"[BACKGROUND TASK] {task.get_name()} was cancelled.")
        elif task.exception() is not None:
            logger.error(f"[BACKGROUND TASK] {task.get_name()} finished with exception", exc_info=task.exception())
        else:
            logger.info(f"[BACKGROUND TASK] {task.get_name()} finished ({task.result().state.value}).")
        flush_logs()

    async def run(self, request: TaskRequest, run: Optional[PipelineRun] = None) -> PipelineRun:
        run = run or PipelineRun(task=request.task, round=request.round, nonce=request.nonce)
        logger.info(f"[PROCESS START] Task: {request.task} Round: {request.round}")
        try:
            result = await self._publish(request)
            run.result = result
            run.state = PipelineState.SETTLING
            logger.info(f"[PIPELINE] Waiting {self.settings.SETTLE_DELAY_SECONDS}s for GitHub Pages to deploy...")
            await self.sleep(self.settings.SETTLE_DELAY_SECONDS)

            payload = ReportPayload.build(request, result)
            logger.info(f"[PIPELINE] Final payload: {payload.model_dump()}")
            if not await self.reporter.report(request.evaluation_url, payload):
                raise ReportDeliveryFailed(request.evaluation_url, MAX_ATTEMPTS)
            run.finish(PipelineState.REPORTED)
        except asyncio.CancelledError:
            run.finish(PipelineState.FAILED, "cancelled")
            raise
        except PipelineError as exc:
            logger.error(f"[CRITICAL FAILURE] Task {request.task} round {request.round} failed: {exc}")
            run.finish(PipelineState.FAILED, str(exc))
        except Exception as exc:
            logger.exception(f"[CRITICAL FAILURE] Task {request.task} round {request.round} failed: {exc}")
            run.finish(PipelineState.FAILED, repr(exc))
        finally:
            logger.info(f"[PROCESS END] Task: {request.task} Round: {request.round} State: {run.state.value}")
            flush_logs()
        return run

    async def _publish(self, request: TaskRequest) -> PublishResult:
        if request.round not in (1, 2):
            raise UnknownRound(request.round)
        # one pipeline per slug touches the repository at a time
        async with self.semaphore, self._slug_lock(slugify(request.task)):
            attachments = await load_attachments(request.attachments, self.attachment_transport)
            if request.round == 1:
                logger.info("[WORKFLOW] Round 1: full generation")
                artifact = await self.generator.render(request.brief, request.checks, attachments)
                return await self.publisher.create_project(request, artifact, attachments)
            logger.info("[WORKFLOW] Round 2: revising existing app")
            return await self.publisher.update_project(request, attachments)

    def running(self) -> int:
        return sum(1 for t in self.tasks if not t.done())

    def status(self) -> dict:
        recent: List[dict] = [r.model_dump(mode="json") for r in self.runs]
        return {"running_background_tasks": self.running(), "recent_runs": recent}

    async def shutdown(self):
        pending = [t for t in self.tasks if not t.done()]
        if not pending:
            return
        logger.info(f"[SHUTDOWN] Cancelling {len(pending)} background tasks...")
        for t in pending:
            t.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
