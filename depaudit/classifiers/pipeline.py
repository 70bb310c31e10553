"""Ordered first-match-wins dispatch of usage events."""

from __future__ import annotations

import traceback
from typing import List, Optional, Sequence

from ..aggregator import CallRecordAggregator, deep_link
from ..logging import get_logger
from ..models import Bucket, DiagnosisInfo, FileVisit, UsageEvent
from .base import Classifier

logger = get_logger("classifiers")


class ClassifierPipeline:
    """Offers each event to the classifiers in order until one accepts it."""

    def __init__(self, classifiers: Sequence[Classifier]) -> None:
        self.classifiers: List[Classifier] = list(classifiers)

    def __len__(self) -> int:
        return len(self.classifiers)

    def dispatch(self, event: UsageEvent, aggregator: CallRecordAggregator) -> Optional[Bucket]:
        for classifier in self.classifiers:
            try:
                accepted = classifier.accepts(event)
            except Exception as exc:
                logger.warning(
                    "Classifier %s failed on %s in %s: %s",
                    classifier.name or type(classifier).__name__,
                    event.api_name,
                    event.file,
                    exc,
                )
                aggregator.diagnose(
                    DiagnosisInfo(
                        project_name=event.project,
                        file=event.file,
                        line=event.line,
                        dep_name=event.module,
                        api_name=event.api_name,
                        http_repo=deep_link(event.repo_hint, event.file, event.line),
                        stack="".join(traceback.format_exception(exc)),
                    )
                )
                continue
            if accepted:
                aggregator.record(classifier.bucket, event)
                return classifier.bucket
        return None

    def finish_file(self, visit: FileVisit, aggregator: CallRecordAggregator) -> None:
        """Run every classifier's per-file hook, in pipeline order."""
        for classifier in self.classifiers:
            try:
                classifier.after_file(visit, aggregator)
            except Exception as exc:
                logger.warning(
                    "Classifier %s hook failed for %s: %s",
                    classifier.name or type(classifier).__name__,
                    visit.file,
                    exc,
                )
                aggregator.diagnose(
                    DiagnosisInfo(
                        project_name=visit.project,
                        file=visit.file,
                        http_repo=deep_link(visit.repo_hint, visit.file),
                        stack="".join(traceback.format_exception(exc)),
                    )
                )


__all__ = ["ClassifierPipeline"]
