"""Base class for usage classifiers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..models import Bucket, FileVisit, UsageEvent

if TYPE_CHECKING:
    from ..aggregator import CallRecordAggregator


class Classifier(ABC):
    """Decides whether a usage event belongs to this classifier's bucket.

    ``accepts`` must not mutate anything; the pipeline records accepted events.
    ``after_file`` runs once per walked file and may record into the aggregator.
    """

    name: str = ""
    bucket: Bucket = Bucket.API

    @abstractmethod
    def accepts(self, event: UsageEvent) -> bool:
        """Return True to claim the event and stop the pipeline."""

    def after_file(self, visit: FileVisit, aggregator: CallRecordAggregator) -> None:
        return None
