from typing import Optional


class VeoStudioError(Exception):
    """Base class for every error raised by this package"""


class ConfigurationError(VeoStudioError):
    pass


class ProviderError(VeoStudioError):
    """A single remote attempt failed"""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class QuotaExceeded(ProviderError):
    pass


class TransientOverload(ProviderError):
    pass


class MalformedResponse(ProviderError):
    pass


class AllProvidersExhausted(VeoStudioError):
    """Every credential and the secondary provider failed"""


class ServiceUnavailable(AllProvidersExhausted):
    pass


class VideoJobError(VeoStudioError):
    def __init__(self, message: str, task_id: Optional[str] = None):
        super().__init__(message)
        self.task_id = task_id


class SubmissionFailed(VideoJobError):
    pass


class GenerationFailed(VideoJobError):
    def __init__(
        self, message: str, task_id: Optional[str] = None, success_flag: int = 2
    ):
        super().__init__(message, task_id)
        self.success_flag = success_flag


class Timeout(VideoJobError, TimeoutError):
    pass


class StatusCheckFailed(VideoJobError):
    pass
