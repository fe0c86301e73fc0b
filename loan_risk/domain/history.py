"""Append-only store of scoring-run snapshots"""

from datetime import datetime
from typing import List, Tuple

from loan_risk.domain.models import RiskAssessment, ScoringBatch


class AssessmentHistory:
    """
    In-memory history of scoring runs.

    Every run is kept as its own timestamped snapshot; recording a new run
    never replaces an earlier assessment of the same loan, so score trends
    come from real history.
    """

    def __init__(self):
        self._batches: List[ScoringBatch] = []

    def record(self, batch: ScoringBatch) -> None:
        """Append a scoring run; its timestamp must be timezone-aware"""
        if batch.assessed_at.tzinfo is None:
            raise ValueError(f"Run {batch.run_id} has a naive assessed_at; runs are ordered in UTC")
        if self._batches and batch.assessed_at < self._batches[-1].assessed_at:
            raise ValueError(
                f"Run {batch.run_id} at {batch.assessed_at.isoformat()} is older than the latest recorded run"
            )
        self._batches.append(batch)

    def __len__(self) -> int:
        return len(self._batches)

    def runs(self) -> List[ScoringBatch]:
        return list(self._batches)

    def for_loan(self, loan_id: str, limit: int = 10) -> List[RiskAssessment]:
        """Assessments of a loan, newest first"""
        assessments = []
        for batch in reversed(self._batches):
            assessment = batch.by_loan().get(loan_id)
            if assessment is not None:
                assessments.append(assessment)
                if len(assessments) >= limit:
                    break
        return assessments

    def latest(self, loan_id: str) -> RiskAssessment | None:
        assessments = self.for_loan(loan_id, limit=1)
        return assessments[0] if assessments else None

    def score_series(self, loan_id: str) -> List[Tuple[datetime, float]]:
        """(assessed_at, risk_score) for a loan, oldest first"""
        return [(a.assessed_at, a.risk_score) for a in reversed(self.for_loan(loan_id, limit=len(self._batches)))]

    def portfolio_score_series(self) -> List[Tuple[datetime, float]]:
        """Mean risk score of each recorded run, oldest first"""
        series = []
        for batch in self._batches:
            if batch.assessments:
                mean = sum(a.risk_score for a in batch.assessments) / len(batch.assessments)
                series.append((batch.assessed_at, round(mean, 1)))
        return series
