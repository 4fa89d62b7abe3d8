"""
Watchlist Screening Package

This package provides:
- Name normalization (diacritics, punctuation, legal suffixes, honorifics)
- Immutable, Soundex-blocked watchlist snapshots and an atomic snapshot store
- Multi-field similarity scoring and match classification
- Data source registry with an explicit demo-data stand-in
- List file loaders (OFAC / UN XML, JSON) and CSV record intake
- Prometheus screening metrics
"""

from screening.classifier import MatchClassifier, overall_status
from screening.errors import InputValidationError, NoDataSourcesError
from screening.index import (
    IndexedEntry,
    IndexView,
    QueryProfile,
    WatchlistIndex,
    WatchlistStore,
)
from screening.models import (
    BatchScreeningResult,
    BatchSummary,
    Capabilities,
    DataSourceStatus,
    FieldScores,
    ListMetadata,
    ListType,
    MatchCandidate,
    MatchStatus,
    ScreeningRecord,
    ScreeningResult,
    SubjectType,
    WatchlistEntry,
)
from screening.normalizer import NormalizedName, normalize
from screening.options import ScreeningOptions, validate_threshold
from screening.registry import DataSourceRegistry, ListDefinition
from screening.scorer import ScoreBreakdown, SimilarityScorer

__all__ = [
    # Models
    'BatchScreeningResult',
    'BatchSummary',
    'Capabilities',
    'DataSourceStatus',
    'FieldScores',
    'ListMetadata',
    'ListType',
    'MatchCandidate',
    'MatchStatus',
    'ScreeningRecord',
    'ScreeningResult',
    'SubjectType',
    'WatchlistEntry',
    # Errors
    'InputValidationError',
    'NoDataSourcesError',
    # Options
    'ScreeningOptions',
    'validate_threshold',
    # Normalizer
    'NormalizedName',
    'normalize',
    # Index
    'IndexedEntry',
    'IndexView',
    'QueryProfile',
    'WatchlistIndex',
    'WatchlistStore',
    # Scoring
    'ScoreBreakdown',
    'SimilarityScorer',
    'MatchClassifier',
    'overall_status',
    # Registry
    'DataSourceRegistry',
    'ListDefinition',
]
