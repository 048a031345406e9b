from __future__ import annotations


class AutoApplyError(Exception):
    """Base class for errors surfaced to the control surface."""


class PreconditionError(AutoApplyError):
    def __init__(self, missing_fields: list[str]):
        self.missing_fields = list(missing_fields)
        super().__init__(f"Profile incomplete. Missing: {', '.join(self.missing_fields)}")


class ScanError(AutoApplyError):
    pass


class SubmissionError(AutoApplyError):
    pass


class EngineFatalError(AutoApplyError):
    pass
