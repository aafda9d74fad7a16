"""
Error taxonomy for collective runs.

- InvalidParameter: coordinator-side input failed validation
- GroupMismatch: the communication substrate reported a failed collective
- ProtocolMismatch: members disagree on a collective's payload
- ConsistencyViolation: an aggregate did not match its expected value
"""


class CollectiveError(Exception):
    """Base class for every error raised by collective_average."""


class InvalidParameter(CollectiveError):
    pass


class GroupMismatch(CollectiveError):
    pass


class ProtocolMismatch(CollectiveError):
    pass


class ConsistencyViolation(CollectiveError):
    def __init__(self, failed_checks):
        self.failed_checks = list(failed_checks)
        super().__init__("consistency checks failed: " + ", ".join(self.failed_checks))
