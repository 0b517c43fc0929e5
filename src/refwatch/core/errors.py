"""Exception hierarchy for the refwatch engine.

Everything except DeliveryError is fatal: it propagates to the process
boundary and stops the remaining ref updates of the batch.
"""

from __future__ import annotations


class RefwatchError(Exception):
    """Base class for refwatch errors."""


class InvalidCommitIdError(RefwatchError):
    """A commit identifier is not 40 lowercase hex characters."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid commit id: {value!r}")
        self.value = value


class InvalidRefError(RefwatchError):
    """A ref name is outside the branch and tag namespaces."""

    def __init__(self, ref_name: str) -> None:
        super().__init__(f"Unsupported ref namespace: {ref_name!r}")
        self.ref_name = ref_name


class MalformedUpdateError(RefwatchError):
    """An update line could not be split into old, new and ref."""


class StoreError(RefwatchError):
    """The dedup store could not be opened, locked, read or written."""


class BackendError(RefwatchError):
    """A git command failed."""

    def __init__(self, command: str, exit_code: int, stderr: str) -> None:
        super().__init__(f"Git command '{command}' failed with exit code {exit_code}: {stderr}")
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr


class ConfigError(RefwatchError):
    """The configuration file is missing or invalid."""


class DeliveryError(RefwatchError):
    """A channel failed to deliver one notice. Not fatal."""


class MalformedObjectError(RefwatchError):
    """Git returned object or listing output that does not parse."""
