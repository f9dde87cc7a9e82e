"""
Reporter Capability

Reporters own all human-facing formatting of a run result; the engine
never formats output itself.
"""

from abc import ABC, abstractmethod
from typing import Sequence

from ..runner.models import RunResult


class Reporter(ABC):
    """Consumes finished RunResults."""

    @abstractmethod
    def report(self, result: RunResult) -> None:
        """Write the result to the reporter's destination."""
        pass

    def report_all(self, results: Sequence[RunResult]) -> None:
        """Report several runs of the same batch (``--repeat``)."""
        for result in results:
            self.report(result)
