# src/tapharness/exceptions.py

"""
Exception hierarchy for tapharness.

Protocol violations inside a test program's output never raise; they are
recorded on the TestSet. Exceptions are reserved for configuration problems
and for setup failures that make the whole run impossible.
"""


class HarnessError(Exception):
    """Base class for all tapharness errors."""

    pass


class ConfigurationError(HarnessError):
    """Raised when the configuration file or values are invalid."""

    pass


class TestListError(HarnessError):
    """Raised when a list of tests cannot be read."""

    __test__ = False

    def __init__(self, message: str, list_path: str | None = None, details: Exception | None = None):
        self.list_path = list_path
        self.details = details
        full_message = message
        if list_path:
            full_message += f" (List: '{list_path}')"
        super().__init__(full_message)
        if details:
            self.add_note(f"Original error: {type(details).__name__}: {details}")


class ProcessSetupError(HarnessError):
    """
    Fatal failure while creating, starting, or reaping a test process.

    Raised for conditions the suite cannot recover from: no pipe, no fork,
    or a child that cannot be waited for.
    """

    def __init__(
        self,
        message: str,
        test_path: str | None = None,
        details: Exception | None = None,
    ):
        self.test_path = test_path
        self.details = details
        self.strerror = details.strerror if isinstance(details, OSError) else None
        super().__init__(message)
        if details:
            self.add_note(f"Original error: {type(details).__name__}: {details}")

    def diagnostic(self) -> str:
        """The one-line message printed before the harness exits."""
        message = str(self)
        if self.strerror:
            message += f": {self.strerror}"
        return message


# 🔼⚙️
