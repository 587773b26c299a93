"""
Error handling policies for treestatelib.

Event listeners and renderer callbacks are user code running in the middle
of a tree mutation. These policies decide what happens when such a callback
raises: stop the mutation, or record the error and carry on.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List


logger = logging.getLogger(__name__)


class ErrorPolicy(ABC):
    """
    Base class for error handling policies.

    Subclasses implement different strategies for handling errors raised
    by listeners and renderer methods.
    """

    @abstractmethod
    def handle(self, error: Exception, source: str, target: Any = None) -> Any:
        """
        Handle an error raised by a callback.

        Args:
            error: The exception that was raised
            source: What failed (an event name, or a renderer method name)
            target: The listener or renderer involved

        Returns:
            None so the caller continues, or re-raises to abort.
        """
        pass


class FailFastPolicy(ErrorPolicy):
    """
    Policy that immediately re-raises any error.

    Useful in tests and when a failing listener indicates a real bug.
    """

    def handle(self, error: Exception, source: str, target: Any = None) -> Any:
        """Re-raise the error immediately."""
        raise error


def _error_record(error: Exception, source: str, target: Any) -> Dict[str, Any]:
    return {
        'source': source,
        'target': target,
        'error': error,
        'error_type': type(error).__name__,
        'error_message': str(error),
    }


class ContinueOnErrorsPolicy(ErrorPolicy):
    """
    Policy that logs errors and continues.

    Errors are collected for later inspection. This is the default for
    both listeners and renderers, so one misbehaving subscriber can't
    leave the tree half-updated.
    """

    def __init__(self, verbose: bool = True):
        """
        Initialize the policy.

        Args:
            verbose: If True, log a warning when errors occur
        """
        self.errors: List[Dict[str, Any]] = []
        self.verbose = verbose

    def handle(self, error: Exception, source: str, target: Any = None) -> Any:
        self.errors.append(_error_record(error, source, target))

        if self.verbose:
            logger.warning("Error in %s (%r): %s", source, target, error, exc_info=error)

        return None

    def get_statistics(self) -> dict:
        """
        Get statistics about errors encountered.

        Returns:
            Dictionary with error counts and details
        """
        by_source: Dict[str, int] = {}
        for record in self.errors:
            by_source[record['source']] = by_source.get(record['source'], 0) + 1

        return {
            'total_errors': len(self.errors),
            'by_source': by_source,
            'errors': self.errors  # Full error details
        }


class CollectErrorsPolicy(ErrorPolicy):
    """
    Policy that collects all errors without logging.

    Similar to ContinueOnErrorsPolicy but silent. Useful for collecting
    errors and presenting them at the end of a batch.
    """

    def __init__(self):
        self.errors: List[Dict[str, Any]] = []

    def handle(self, error: Exception, source: str, target: Any = None) -> Any:
        """Silently collect the error."""
        self.errors.append(_error_record(error, source, target))
        return None


class ThresholdPolicy(ErrorPolicy):
    """
    Policy that tolerates errors up to a threshold, then fails fast.

    Useful when an occasional failure is expected but repeated failures
    point at a systemic problem.
    """

    def __init__(self, max_errors: int = 10, verbose: bool = True):
        """
        Initialize threshold policy.

        Args:
            max_errors: Maximum errors to tolerate before failing
            verbose: If True, log warnings for errors
        """
        self.max_errors = max_errors
        self.error_count = 0
        self.verbose = verbose
        self.errors: List[Exception] = []

    def handle(self, error: Exception, source: str, target: Any = None) -> Any:
        """Handle error if under threshold, otherwise raise."""
        self.error_count += 1
        self.errors.append(error)

        if self.error_count > self.max_errors:
            raise RuntimeError(f"Error threshold exceeded ({self.max_errors} errors)") from error

        if self.verbose:
            logger.warning("[%d/%d] Error in %s: %s",
                           self.error_count, self.max_errors, source, error)

        return None
