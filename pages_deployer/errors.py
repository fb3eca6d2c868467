# errors.py


class PipelineError(Exception):
    """Base class for failures raised while handling a task request."""


class AuthRejected(PipelineError):
    """The shared secret in the request did not match."""


class GenerationFailed(PipelineError):
    """The LLM endpoint could not produce an artifact."""


class ProjectNotFound(PipelineError):
    def __init__(self, slug: str):
        super().__init__(f"Repository '{slug}' not found")
        self.slug = slug


class PublishFailed(PipelineError):
    """Clone, commit or push of the working copy failed."""


class UnknownRound(PipelineError):
    def __init__(self, round_index):
        super().__init__(f"Unknown round: {round_index}")
        self.round = round_index


class ReportDeliveryFailed(PipelineError):
    def __init__(self, url: str, attempts: int):
        super().__init__(f"Could not deliver report to {url} after {attempts} attempts")
        self.url = url
        self.attempts = attempts
