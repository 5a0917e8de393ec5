"""
Report pipeline errors.

FetchFailed aborts a whole load. MalformedRecord never leaves the normalizer,
it is counted there. An empty dataset is not an error at all.
"""
from typing import Optional


class PipelineError(Exception):
    """Base class for failures while loading reports."""


class FetchFailed(PipelineError):
    def __init__(self, message: str, offset: Optional[int] = None):
        super().__init__(message)
        self.offset = offset


class FetchCancelled(PipelineError):
    """The owning map session was torn down while a fetch was running."""


class MalformedRecord(PipelineError):
    def __init__(self, index: int, reason: str):
        super().__init__(f"Record {index}: {reason}")
        self.index = index
        self.reason = reason
