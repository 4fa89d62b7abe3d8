"""
Similarity Scorer

Per-field similarity between a query identity and one watchlist entry,
combined into a weighted composite in [0, 1].

Name similarity is a blend of rapidfuzz token_set_ratio (robust to extra
or missing tokens such as middle initials) and token_sort_ratio (Indel
character similarity on sorted tokens, which penalizes those differences
a little). Both are computed on the canonical core text of each name, so
word order, case, diacritics, honorifics and legal suffixes do not count
against a match.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from rapidfuzz import fuzz, process

from config_manager import MatchingConfig
from screening.index import IndexedEntry, IndexedName, QueryProfile
from screening.models import FieldScores, SubjectType
from screening.normalizer import PartialDate
from screening.options import ScreeningOptions

logger = logging.getLogger(__name__)

# long and short spellings of the same legal form
_SUFFIX_EQUIVALENTS = {
    'LIMITED': 'LTD',
    'INCORPORATED': 'INC',
    'CORPORATION': 'CORP',
}


@dataclass(frozen=True)
class ScoreBreakdown:
    """Field scores, composite and the explanation of which names matched"""
    field_scores: FieldScores
    composite: float
    matched_name: str
    matched_field: str
    flags: Tuple[str, ...] = ()


def _suffix_mismatch(query: IndexedName, candidate: IndexedName) -> bool:
    """Both names carry a legal form and they share none"""
    left, right = query.normalized.suffixes, candidate.normalized.suffixes
    if not left or not right:
        return False
    return frozenset(_SUFFIX_EQUIVALENTS.get(s, s) for s in left).isdisjoint(
        _SUFFIX_EQUIVALENTS.get(s, s) for s in right
    )


class SimilarityScorer:
    """Stateless scorer; one instance is shared by all workers of a batch"""

    def __init__(self, config: Optional[MatchingConfig] = None):
        self.config = config or MatchingConfig()

    def name_similarity(self, query: IndexedName, candidate: IndexedName) -> float:
        """Blended token-set / token-sort similarity of two normalized names (0-1)"""
        a, b = query.normalized.text, candidate.normalized.text
        if not a or not b:
            return 0.0
        if a == b:
            score = 1.0
        else:
            set_weight = self.config.name_token_set_weight
            score = (
                set_weight * fuzz.token_set_ratio(a, b)
                + (1.0 - set_weight) * fuzz.token_sort_ratio(a, b)
            ) / 100.0

        if _suffix_mismatch(query, candidate):
            score *= self.config.suffix_mismatch_factor
        return score

    def _best_name(self, query: QueryProfile, candidate: IndexedEntry,
                   include_aliases: bool) -> Tuple[float, IndexedName, IndexedName]:
        query_names = query.names if include_aliases else query.names[:1]
        candidate_names = candidate.names if include_aliases else candidate.names[:1]

        best = (-1.0, query_names[0], candidate_names[0])
        for query_name in query_names:
            for candidate_name in candidate_names:
                score = self.name_similarity(query_name, candidate_name)
                # strict comparison keeps the earliest (primary) pair on ties
                if score > best[0]:
                    best = (score, query_name, candidate_name)
        return best

    def dob_similarity(self, query: PartialDate, candidate: PartialDate) -> float:
        """1.0 exact, day/month credit for a different year, partial credit for coarse dates"""
        if query.is_full and candidate.is_full:
            if query == candidate:
                return 1.0
            if (query.month, query.day) == (candidate.month, candidate.day):
                return self.config.dob_day_month_credit
            return 0.0

        for left, right in zip(query, candidate):
            if left is not None and right is not None and left != right:
                return 0.0
        return self.config.dob_partial_precision_credit

    def composite(self, scores: FieldScores) -> float:
        """Weighted combination of field scores, clamped to [0, 1]

        DOB and country that were not compared count as neutral evidence;
        an uncompared identifier is left out and the weights renormalized.
        An exact identifier match lifts the result to identifier_match_floor.
        """
        weights = self.config.weights
        neutral = self.config.neutral_field_score
        parts = [
            (weights['name'], scores.name),
            (weights['dob'], neutral if scores.dob is None else scores.dob),
            (weights['country'], neutral if scores.country is None else scores.country),
        ]
        if scores.identifier is not None:
            parts.append((weights['identifier'], scores.identifier))

        total_weight = sum(weight for weight, _ in parts)
        value = sum(weight * score for weight, score in parts) / total_weight if total_weight else 0.0
        if scores.identifier == 1.0:
            value = max(value, self.config.identifier_match_floor)
        return min(1.0, max(0.0, value))

    def score(self, query: QueryProfile, candidate: IndexedEntry,
              options: ScreeningOptions) -> ScoreBreakdown:
        """Score one candidate entry against one query"""
        flags = []
        if not query.names or not candidate.names:
            return ScoreBreakdown(FieldScores(name=0.0), 0.0, "", "primary_name")

        name_score, query_name, candidate_name = self._best_name(
            query, candidate, options.include_aliases
        )
        if candidate_name.is_alias:
            matched_field = "alias"
            flags.append('ALIAS_MATCH')
        elif query_name.is_alias:
            matched_field = "record_alias"
            flags.append('RECORD_ALIAS_MATCH')
        else:
            matched_field = "primary_name"
        if _suffix_mismatch(query_name, candidate_name):
            flags.append('LEGAL_SUFFIX_MISMATCH')

        dob_score = None
        if options.check_dob and query.dob and candidate.dob:
            dob_score = self.dob_similarity(query.dob, candidate.dob)
            if dob_score == 1.0:
                flags.append('DOB_EXACT_MATCH')
            elif dob_score > 0:
                flags.append('DOB_PARTIAL_MATCH')
            else:
                flags.append('DOB_MISMATCH')

        country_score = None
        if options.check_country and query.country and candidate.countries:
            country_score = 1.0 if query.country in candidate.countries else 0.0
            flags.append('COUNTRY_MATCH' if country_score else 'COUNTRY_MISMATCH')

        identifier_score = None
        if query.identifier and candidate.identifiers:
            identifier_score = 1.0 if query.identifier in candidate.identifiers else 0.0
            flags.append('IDENTIFIER_MATCH' if identifier_score else 'NO_IDENTIFIER_MATCH')

        if candidate.entry.subject_type is SubjectType.COMPANY:
            flags.append('ENTITY_MATCH')

        field_scores = FieldScores(
            name=name_score,
            dob=dob_score,
            country=country_score,
            identifier=identifier_score,
        )
        return ScoreBreakdown(
            field_scores=field_scores,
            composite=self.composite(field_scores),
            matched_name=candidate_name.raw,
            matched_field=matched_field,
            flags=tuple(flags),
        )


class NamePrefilter:
    """Drops candidates whose composite cannot reach the threshold

    Every name pair of one (record, list) block is scored in two
    process.cdist calls, which run in rapidfuzz's C++ core without the GIL,
    so the batch worker threads scale across cores. Only the survivors go
    through SimilarityScorer.score, which builds the field scores and flags.

    The bound takes the best DOB and country score the query allows and
    ignores the legal-suffix penalty, so it never drops a candidate the
    full scorer would keep.
    """

    # float slack so rounding never drops a candidate sitting on the bound
    _EPSILON = 1e-9

    def __init__(self, config: Optional[MatchingConfig] = None, workers: int = 1):
        self.config = config or MatchingConfig()
        self.workers = workers

    def min_name_score(self, threshold: float, dob: float = 1.0, country: float = 1.0) -> float:
        """Lowest name score whose composite can still reach threshold without an identifier match

        dob and country are the best scores those fields can reach for the query.
        """
        weights = self.config.weights
        total = weights['name'] + weights['dob'] + weights['country']
        return (threshold * total - weights['dob'] * dob - weights['country'] * country) / weights['name']

    def name_matrix(self, query_texts: Sequence[str], candidate_texts: Sequence[str],
                    floor: float = 0.0) -> np.ndarray:
        """Blended name similarity (0-1) of every query text against every candidate text

        Pairs that provably blend below floor may come back as a lower value.
        """
        set_weight = self.config.name_token_set_weight
        target = max(0.0, floor - self._EPSILON) * 100.0
        # a pair under either cutoff cannot blend up to target, even with 100 on the other half
        set_cutoff = max(0.0, (target - (1.0 - set_weight) * 100.0) / set_weight) if set_weight > 0 else 0.0
        sort_cutoff = max(0.0, (target - set_weight * 100.0) / (1.0 - set_weight)) if set_weight < 1 else 0.0

        token_set = process.cdist(query_texts, candidate_texts, scorer=fuzz.token_set_ratio,
                                  score_cutoff=set_cutoff, dtype=np.float64, workers=self.workers)
        token_sort = process.cdist(query_texts, candidate_texts, scorer=fuzz.token_sort_ratio,
                                   score_cutoff=sort_cutoff, dtype=np.float64, workers=self.workers)
        return (set_weight * token_set + (1.0 - set_weight) * token_sort) / 100.0

    def filter(self, query: QueryProfile, candidates: Sequence[IndexedEntry],
               options: ScreeningOptions) -> List[IndexedEntry]:
        """Candidates that may classify above clear, in their original order

        An exact identifier match always survives, since it floors the composite.
        """
        # uncompared DOB and country score neutral; compared ones can reach 1.0
        neutral = self.config.neutral_field_score
        floor = self.min_name_score(
            options.threshold,
            dob=1.0 if options.check_dob and query.dob else neutral,
            country=1.0 if options.check_country and query.country else neutral,
        )
        if floor <= 0.0:
            return list(candidates)
        if not query.names:
            return []

        query_names = query.names if options.include_aliases else query.names[:1]
        query_texts = [name.normalized.text for name in query_names]
        scorable: List[IndexedEntry] = []
        starts: List[int] = []
        candidate_texts: List[str] = []
        survivors: List[IndexedEntry] = []
        for candidate in candidates:
            if not candidate.texts:
                continue
            scorable.append(candidate)
            starts.append(len(candidate_texts))
            if options.include_aliases:
                candidate_texts.extend(candidate.texts)
            else:
                candidate_texts.append(candidate.texts[0])
        if not scorable:
            return survivors

        best_per_text = self.name_matrix(query_texts, candidate_texts, floor).max(axis=0)
        best_per_candidate = np.maximum.reduceat(best_per_text, starts)
        for candidate, best in zip(scorable, best_per_candidate):
            if best >= floor - self._EPSILON or (query.identifier and query.identifier in candidate.identifiers):
                survivors.append(candidate)
        return survivors
