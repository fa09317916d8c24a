import asyncio
import inspect
import json
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import aiohttp
from loguru import logger
from veo_studio_client.errors import (
    GenerationFailed,
    StatusCheckFailed,
    SubmissionFailed,
    Timeout,
)
from veo_studio_client.models import (
    PollOutcome,
    PollState,
    VideoJob,
    VideoJobConfig,
    VideoJobStatus,
    VideoOptions,
)

ProgressCallback = Callable[[PollOutcome], Any]

RUNNING_FLAG = 0
SUCCEEDED_FLAG = 1
FAILED_FLAGS = (2, 3)


class VideoJobClient:
    """Submits Veo generation jobs and polls them to a terminal state"""

    def __init__(
        self,
        config: VideoJobConfig,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=config.request_timeout)
        self._sleep = sleep
        self._clock = clock
        self.logger = logger

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_key}"}

    async def submit(
        self, prompt: str, options: Optional[VideoOptions] = None
    ) -> VideoJob:
        """Creates a generation task and returns its job handle"""
        options = options or VideoOptions()
        url = f"{self.base_url}/api/v1/veo/generate"

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(
                    url, json=options.to_payload(prompt), headers=self.headers
                ) as response:
                    data = await self._read_json(response)
                    task_id = self._extract(data, "taskId") if response.ok else None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Video submission to {url} failed: {e!r}")
            raise SubmissionFailed(f"Video generation failed: {e!r}") from e

        if not task_id:
            message = data.get("msg") if isinstance(data, dict) else None
            self.logger.error(
                f"Video submission rejected (HTTP {response.status}): {message}"
            )
            raise SubmissionFailed(
                f"Video generation failed: {message or 'Unknown error'}"
            )

        self.logger.info(f"Created video task {task_id}")
        return VideoJob(task_id=str(task_id), submitted_at=self._clock())

    async def get_status(
        self, task_id: str, session: Optional[aiohttp.ClientSession] = None
    ) -> Dict[str, Any]:
        """Fetches the raw status record of a task"""
        if session is None:
            async with aiohttp.ClientSession(timeout=self.timeout) as own_session:
                return await self._get_status_once(own_session, task_id)
        return await self._get_status_once(session, task_id)

    async def _get_status_once(
        self, session: aiohttp.ClientSession, task_id: str
    ) -> Dict[str, Any]:
        url = f"{self.base_url}/api/v1/veo/record-info"
        try:
            async with session.get(
                url, params={"taskId": task_id}, headers=self.headers
            ) as response:
                data = await self._read_json(response)
                status = self._extract(data, None) if response.ok else None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f"Status check for task {task_id} failed: {e!r}")
            raise StatusCheckFailed(f"Status check failed: {e!r}", task_id) from e

        if not isinstance(status, dict):
            message = data.get("msg") if isinstance(data, dict) else None
            self.logger.error(
                f"Status check for task {task_id} rejected (HTTP {response.status}): {message}"
            )
            raise StatusCheckFailed(
                f"Status check failed: {message or 'Unknown error'}", task_id
            )
        return status

    async def wait_for_completion(
        self,
        job: Union[VideoJob, str],
        max_wait: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[str]:
        """Poll the status endpoint until the job succeeds, fails or runs out of time"""
        if isinstance(job, str):
            job = VideoJob(task_id=job, submitted_at=self._clock())
        if job.is_terminal:
            raise ValueError(f"Job {job.task_id} already finished as {job.status.value}")

        max_wait = self.config.max_wait if max_wait is None else max_wait
        job.status = VideoJobStatus.running

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            while self._clock() - job.submitted_at < max_wait:
                raw = await self._get_status_once(session, job.task_id)
                outcome = self._to_outcome(job, raw)
                await self._notify(on_progress, outcome)

                if outcome.state == PollState.succeeded:
                    job.status = VideoJobStatus.succeeded
                    job.result_urls = outcome.result_urls
                    self.logger.info(
                        f"Task {job.task_id} succeeded with {len(job.result_urls)} video(s)"
                    )
                    return job.result_urls

                if outcome.state == PollState.failed:
                    job.status = VideoJobStatus.failed
                    job.failure_reason = outcome.reason
                    self.logger.error(f"Task {job.task_id} failed: {outcome.reason}")
                    raise GenerationFailed(
                        f"Video generation failed: {outcome.reason}",
                        job.task_id,
                        success_flag=outcome.success_flag,
                    )

                self.logger.debug(
                    f"Task {job.task_id} still running, waiting {self.config.poll_interval:.0f}s"
                )
                await self._sleep(self.config.poll_interval)

        job.status = VideoJobStatus.timed_out
        job.failure_reason = f"no result within {max_wait:.0f} seconds"
        self.logger.error(f"Task {job.task_id} timed out after {max_wait:.0f}s")
        raise Timeout(
            "Task timeout - video generation took too long", job.task_id
        )

    async def generate(
        self,
        prompt: str,
        options: Optional[VideoOptions] = None,
        max_wait: Optional[float] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[str]:
        job = await self.submit(prompt, options)
        return await self.wait_for_completion(job, max_wait, on_progress)

    def _to_outcome(self, job: VideoJob, raw: Dict[str, Any]) -> PollOutcome:
        flag = raw.get("successFlag")
        elapsed = self._clock() - job.submitted_at
        outcome = PollOutcome(
            task_id=job.task_id,
            state=PollState.still_running,
            success_flag=flag if isinstance(flag, int) else None,
            raw_response=raw,
            elapsed_time=elapsed,
        )

        if flag == SUCCEEDED_FLAG:
            outcome.state = PollState.succeeded
            outcome.result_urls = self._parse_result_urls(job.task_id, raw.get("resultUrls"))
        elif flag in FAILED_FLAGS:
            outcome.state = PollState.failed
            outcome.reason = raw.get("errorMessage") or f"provider reported successFlag {flag}"
        elif flag != RUNNING_FLAG:
            self.logger.warning(f"Task {job.task_id} returned unknown successFlag {flag!r}")
        return outcome

    def _parse_result_urls(self, task_id: str, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, list):
            urls = value
        else:
            try:
                urls = json.loads(value)
            except (TypeError, ValueError) as e:
                raise StatusCheckFailed(
                    f"Status check failed: unreadable resultUrls {value!r}", task_id
                ) from e
        if not isinstance(urls, list) or not all(isinstance(u, str) for u in urls):
            raise StatusCheckFailed(
                f"Status check failed: unreadable resultUrls {value!r}", task_id
            )
        return urls

    async def _notify(
        self, on_progress: Optional[ProgressCallback], outcome: PollOutcome
    ) -> None:
        if on_progress is None:
            return
        result = on_progress(outcome)
        if inspect.isawaitable(result):
            await result

    @staticmethod
    async def _read_json(response: aiohttp.ClientResponse) -> Any:
        try:
            return await response.json(content_type=None)
        except ValueError:
            return None

    @staticmethod
    def _extract(data: Any, key: Optional[str]) -> Any:
        """Returns data["data"] (or one key of it) for a code 200 envelope"""
        if not isinstance(data, dict) or data.get("code") != 200:
            return None
        payload = data.get("data")
        if key is None:
            return payload
        return payload.get(key) if isinstance(payload, dict) else None
