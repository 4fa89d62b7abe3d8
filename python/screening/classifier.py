"""
Match Classifier

Turns a composite score plus corroborating field signals into a status
tier. The tier is advisory: it sets review priority and never blocks.
"""

from typing import Iterable, Optional

from config_manager import MatchingConfig
from screening.models import FieldScores, MatchStatus


class MatchClassifier:
    """Maps scores to clear / potential_match / confirmed_match"""

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()

    def is_corroborated(self, field_scores: FieldScores) -> bool:
        """Exact identifier, or exact DOB together with an exact country"""
        if field_scores.identifier == 1.0:
            return True
        return field_scores.dob == 1.0 and field_scores.country == 1.0

    def classify(self, composite_score: float, field_scores: FieldScores,
                 threshold: float) -> MatchStatus:
        """Status for one candidate

        Args:
            composite_score: Weighted composite in [0, 1]
            field_scores: Per-field scores behind the composite
            threshold: Caller's (already validated) match threshold

        Returns:
            CLEAR below the threshold; CONFIRMED_MATCH at or above the
            confirm cutoff, or when a name at or above the threshold is
            corroborated; POTENTIAL_MATCH otherwise
        """
        if composite_score < threshold:
            return MatchStatus.CLEAR
        if composite_score >= self.config.confirm_threshold:
            return MatchStatus.CONFIRMED_MATCH
        if field_scores.name >= threshold and self.is_corroborated(field_scores):
            return MatchStatus.CONFIRMED_MATCH
        return MatchStatus.POTENTIAL_MATCH


def overall_status(statuses: Iterable[MatchStatus]) -> MatchStatus:
    """Most severe status wins; CLEAR only when nothing reached the threshold"""
    return max(statuses, key=lambda s: s.severity, default=MatchStatus.CLEAR)
