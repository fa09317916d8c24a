import json
from collections import defaultdict, deque
from typing import Any, Deque, Dict, List, Optional, Tuple

from aiohttp import web
from loguru import logger

Reply = Tuple[int, Any]


class ProviderServer:
    """Local stand-in for the Gemini, DeepSeek and kie.ai Veo endpoints.

    Replies are scripted per endpoint; when a script runs out the server
    answers successfully.
    """

    def __init__(self):
        self.app = web.Application()
        self.app.router.add_post("/v1beta/models/{action}", self.handle_gemini)
        self.app.router.add_post("/v1/chat/completions", self.handle_deepseek)
        self.app.router.add_post("/api/v1/veo/generate", self.handle_submit)
        self.app.router.add_get("/api/v1/veo/record-info", self.handle_status)
        self.logger = logger
        self.runner: Optional[web.AppRunner] = None

        self.gemini_replies: Dict[str, Deque[Reply]] = defaultdict(deque)
        self.deepseek_replies: Deque[Reply] = deque()
        self.submit_reply: Optional[Reply] = None
        self.status_flags: Deque[int] = deque([1])
        self.status_http_error: Optional[int] = None
        self.result_urls: List[str] = ["https://example.com/video.mp4"]
        self.error_message: Optional[str] = None

        self.calls: List[Tuple[str, str]] = []
        self.requests: List[Dict[str, Any]] = []

    def script_gemini(self, key: str, *statuses: int, body: Any = None):
        for status in statuses:
            self.gemini_replies[key].append((status, body))

    def script_deepseek(self, *statuses: int, body: Any = None):
        for status in statuses:
            self.deepseek_replies.append((status, body))

    def calls_to(self, endpoint: str) -> List[str]:
        return [detail for name, detail in self.calls if name == endpoint]

    async def handle_gemini(self, request):
        key = request.query.get("key", "")
        payload = await request.json()
        self.calls.append(("gemini", key))
        self.requests.append(payload)

        status, body = self._next_reply(self.gemini_replies[key])
        if status != 200:
            self.logger.info(f"Gemini answering {status}")
            return web.json_response(
                body or {"error": {"code": status, "message": f"gemini error {status}"}},
                status=status,
            )
        if body is None:
            body = {"candidates": [{"content": {"parts": [{"text": f" gemini:{key} \n"}]}}]}
        return web.json_response(body)

    async def handle_deepseek(self, request):
        payload = await request.json()
        self.calls.append(("deepseek", request.headers.get("Authorization", "")))
        self.requests.append(payload)

        status, body = self._next_reply(self.deepseek_replies)
        if status != 200:
            self.logger.info(f"DeepSeek answering {status}")
            return web.json_response(body or {"error": "unavailable"}, status=status)
        if body is None:
            body = {"choices": [{"message": {"role": "assistant", "content": " deepseek \n"}}]}
        return web.json_response(body)

    async def handle_submit(self, request):
        payload = await request.json()
        self.calls.append(("submit", request.headers.get("Authorization", "")))
        self.requests.append(payload)

        if self.submit_reply is not None:
            status, body = self.submit_reply
            return web.json_response(body, status=status)
        return web.json_response({"code": 200, "msg": "success", "data": {"taskId": "task-1"}})

    async def handle_status(self, request):
        task_id = request.query.get("taskId", "")
        self.calls.append(("status", task_id))

        if self.status_http_error is not None:
            return web.json_response(
                {"code": self.status_http_error, "msg": "record not found"},
                status=self.status_http_error,
            )

        flag = self.status_flags.popleft() if len(self.status_flags) > 1 else self.status_flags[0]
        data: Dict[str, Any] = {"taskId": task_id, "successFlag": flag}
        if flag == 1:
            data["resultUrls"] = json.dumps(self.result_urls)
        elif flag in (2, 3) and self.error_message:
            data["errorMessage"] = self.error_message

        self.logger.info(f"Task {task_id} reporting successFlag {flag}")
        return web.json_response({"code": 200, "msg": "success", "data": data})

    @staticmethod
    def _next_reply(replies: Deque[Reply]) -> Reply:
        return replies.popleft() if replies else (200, None)

    async def start(self, port: int = 8080):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "localhost", port)
        await site.start()
        self.logger.info(f"Server started on port {port}")
        return site

    async def stop(self):
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
