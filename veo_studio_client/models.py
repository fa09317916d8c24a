from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    system = "system"
    user = "user"


class ChatMessage(BaseModel):
    role: Role
    content: str


class GenerationTuning(BaseModel):
    temperature: float
    top_k: int
    top_p: float
    max_output_tokens: int


class GenerationRequest(BaseModel):
    messages: List[ChatMessage]
    tuning: GenerationTuning

    @property
    def system_prompt(self) -> str:
        return "\n".join(m.content for m in self.messages if m.role == Role.system)

    @property
    def user_prompt(self) -> str:
        return "\n".join(m.content for m in self.messages if m.role == Role.user)


class RetryPolicy(BaseModel):
    attempts_per_credential: int = 2
    overload_backoff: float = 2.0  # seconds, multiplied by the attempt number


TRANSLATION_TUNING = GenerationTuning(
    temperature=0.3, top_k=20, top_p=0.8, max_output_tokens=512
)
AUTHORING_TUNING = GenerationTuning(
    temperature=0.7, top_k=40, top_p=0.95, max_output_tokens=1024
)

TRANSLATION_RETRY = RetryPolicy(attempts_per_credential=2)
AUTHORING_RETRY = RetryPolicy(attempts_per_credential=1)


class PromptFields(BaseModel):
    location: str
    character1: str
    dialogue1: str
    prompt_type: str
    character2: Optional[str] = None
    dialogue2: Optional[str] = None


class VideoJobStatus(str, Enum):
    created = "created"
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    timed_out = "timed_out"


class VideoJob(BaseModel):
    task_id: str
    status: VideoJobStatus = VideoJobStatus.created
    result_urls: List[str] = Field(default_factory=list)
    submitted_at: float
    failure_reason: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (
            VideoJobStatus.succeeded,
            VideoJobStatus.failed,
            VideoJobStatus.timed_out,
        )


class PollState(str, Enum):
    still_running = "still_running"
    succeeded = "succeeded"
    failed = "failed"


class PollOutcome(BaseModel):
    task_id: str
    state: PollState
    success_flag: Optional[int] = None
    result_urls: List[str] = Field(default_factory=list)
    reason: Optional[str] = None
    raw_response: Dict[str, Any]
    elapsed_time: float


class VideoOptions(BaseModel):
    model: str = "veo3"
    aspect_ratio: str = "16:9"
    extra: Dict[str, Any] = Field(default_factory=dict)

    def to_payload(self, prompt: str) -> Dict[str, Any]:
        payload = {"prompt": prompt, "model": self.model, "aspectRatio": self.aspect_ratio}
        payload.update(self.extra)
        return payload


class TextGenerationConfig(BaseModel):
    gemini_api_keys: List[str]
    gemini_base_url: str = "https://generativelanguage.googleapis.com"
    gemini_model: str = "gemini-1.5-flash-latest"
    deepseek_api_key: Optional[str] = None
    deepseek_base_url: str = "https://api.deepseek.com"
    deepseek_model: str = "deepseek-chat"
    request_timeout: float = 60.0


class VideoJobConfig(BaseModel):
    api_key: str
    base_url: str = "https://api.kie.ai"
    poll_interval: float = 10.0
    max_wait: float = 600.0  # 10 minutes
    request_timeout: float = 60.0
