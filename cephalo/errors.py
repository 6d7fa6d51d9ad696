from typing import List, Optional


class AnalysisError(Exception):
    """Base class for everything the analysis core raises."""


class DimensionProbeFailure(AnalysisError):
    pass


class IncompleteLandmarks(AnalysisError):
    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing landmarks in response: {', '.join(self.missing)}")


class ModelInvocationFailure(AnalysisError):
    """Transport, auth, quota or shape failure talking to a model backend."""


class ModelResponseError(ModelInvocationFailure):
    """The backend answered but the text holds no parseable JSON object."""

    def __init__(self, message: str, raw_content: str = ""):
        super().__init__(message)
        self.raw_content = raw_content


class BackendNotConfigured(AnalysisError):
    pass


class AllModelsExhausted(AnalysisError):
    def __init__(self, last_error: Optional[BaseException] = None, attempts=None):
        self.last_error = last_error
        self.attempts = list(attempts or [])
        message = str(last_error) if last_error is not None else "All models failed"
        super().__init__(message)


class AnalysisCancelled(AnalysisError):
    """The request went away; remaining models were not tried."""


class NoImageProvided(AnalysisError):
    pass
