"""
Unit tests for the Watchlist Screening System
Tests configuration, normalization, scoring, classification and record validation
"""

import pytest
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from config_manager import ConfigManager, ConfigurationError, MatchingConfig
from screener import validate_record
from screening.classifier import MatchClassifier, overall_status
from screening.errors import InputValidationError
from screening.index import IndexedEntry, QueryProfile
from screening.models import (
    FieldScores,
    MatchStatus,
    ScreeningRecord,
    SubjectType,
    WatchlistEntry,
)
from screening.normalizer import (
    PartialDate,
    blocking_key,
    normalize,
    normalize_country,
    normalize_identifier,
    parse_partial_date,
    soundex,
)
from screening.options import ScreeningOptions, validate_threshold
from screening.scorer import NamePrefilter, SimilarityScorer
from xml_utils import sanitize_for_logging


@pytest.fixture
def config(tmp_path):
    """Defaults only; never picks up a config.yaml from the working directory"""
    ConfigManager.reset_instance()
    return ConfigManager(config_path=str(tmp_path / "missing.yaml"))


def make_query(name, **kwargs):
    record = ScreeningRecord(id=kwargs.pop('id', 'r1'), name=name, **kwargs)
    return QueryProfile.build(record)


def make_entry(name, ordinal=0, **kwargs):
    entry = WatchlistEntry(entry_id=kwargs.pop('entry_id', f'E{ordinal}'),
                           list_code=kwargs.pop('list_code', 'ofac'),
                           primary_name=name, **kwargs)
    return IndexedEntry.build(ordinal, entry)


class TestConfigManager:
    """Tests for configuration management"""

    def test_default_config_values(self, config):
        assert config.matching.default_threshold == 0.7
        assert config.matching.confirm_threshold == 0.95
        assert config.batch.max_batch_size == 1000
        assert abs(sum(config.matching.weights.values()) - 1.0) < 0.01

    def test_config_loads_from_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
matching:
  default_threshold: 0.8
  dob_day_month_credit: 0.4
  weights:
    name: 0.70
    dob: 0.10
    country: 0.10
    identifier: 0.10
batch:
  max_batch_size: 250
  default_lists: [OFAC, un]
data:
  list_files:
    eu: eu.json
""")
        config = ConfigManager(config_path=str(config_file))

        assert config.matching.default_threshold == 0.8
        assert config.matching.dob_day_month_credit == 0.4
        assert config.matching.weights['name'] == 0.70
        assert config.batch.max_batch_size == 250
        assert config.batch.default_lists == ['ofac', 'un']
        assert config.data.list_files['eu'] == 'eu.json'
        # unspecified files keep their defaults
        assert config.data.list_files['ofac'] == 'sdn_enhanced.xml'

    def test_invalid_weights_validation(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
matching:
  weights:
    name: 0.90
    dob: 0.30
    country: 0.10
    identifier: 0.10
""")
        with pytest.raises(ConfigurationError, match="sum to 1.0"):
            ConfigManager(config_path=str(config_file))

    def test_missing_weight_rejected(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("""
matching:
  weights:
    name: 0.90
    dob: 0.10
""")
        with pytest.raises(ConfigurationError, match="Missing matching weights"):
            ConfigManager(config_path=str(config_file))

    def test_threshold_out_of_range_rejected(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("matching:\n  confirm_threshold: 1.5\n")
        with pytest.raises(ConfigurationError, match="confirm_threshold"):
            ConfigManager(config_path=str(config_file))

    def test_invalid_thresholds_order(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("matching:\n  default_threshold: 0.9\n  confirm_threshold: 0.8\n")
        with pytest.raises(ConfigurationError, match="must not exceed"):
            ConfigManager(config_path=str(config_file))

    def test_batch_size_must_be_positive(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("batch:\n  max_batch_size: 0\n")
        with pytest.raises(ConfigurationError, match="max_batch_size"):
            ConfigManager(config_path=str(config_file))

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("matching: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ConfigManager(config_path=str(config_file))

    def test_config_to_dict(self, config):
        data = config.to_dict()
        assert data['matching']['default_threshold'] == 0.7
        assert data['batch']['max_batch_size'] == 1000


# ============================================
# NORMALIZATION
# ============================================

class TestNameNormalization:
    """Tests for name canonicalization"""

    def test_normalize_basic(self):
        assert normalize("john  smith").text == "JOHN SMITH"

    def test_normalize_diacritics(self):
        assert normalize("José García").text == "JOSE GARCIA"
        assert normalize("Müller").text == "MULLER"

    def test_normalize_punctuation(self):
        assert normalize("O'Brien-Smith").text == "OBRIEN SMITH"
        assert normalize("John A. Smith").text == "JOHN A SMITH"

    def test_honorifics_stripped_for_individuals(self):
        assert normalize("Mr. John Smith Jr.").text == "JOHN SMITH"
        assert normalize("Dr John Smith").text == "JOHN SMITH"

    def test_honorific_only_name_kept(self):
        assert normalize("Sir").text == "SIR"

    def test_legal_suffix_isolated(self):
        name = normalize("Acme Holdings Ltd.", SubjectType.COMPANY)
        assert name.tokens == ("ACME", "HOLDINGS")
        assert name.suffixes == ("LTD",)
        assert str(name) == "ACME HOLDINGS LTD"

    def test_dotted_suffix(self):
        name = normalize("Banco Nacional S.A.", "company")
        assert name.text == "BANCO NACIONAL"
        assert name.suffixes == ("SA",)

    def test_suffix_only_name_kept(self):
        assert normalize("LLC", "company").text == "LLC"

    def test_normalize_empty_input(self):
        assert not normalize("")
        assert not normalize(None)
        assert not normalize("... --- ...")

    @pytest.mark.parametrize("raw,subject_type", [
        ("Mr. José  García-López Jr.", "individual"),
        ("Acme Holdings Ltd.", "company"),
        ("李明华", "individual"),
        ("Ⅻ ª ﬁ", "individual"),
        ("Mohammed bin Salman Al-Saud", "individual"),
    ])
    def test_normalize_idempotent(self, raw, subject_type):
        once = normalize(raw, subject_type)
        assert normalize(str(once), subject_type) == once

    def test_normalize_is_deterministic(self):
        assert normalize("Viktor Demidov") == normalize("Viktor Demidov")


class TestFieldNormalization:
    """Tests for identifiers, countries and dates"""

    def test_normalize_identifier(self):
        assert normalize_identifier("PA-8-1234") == "PA81234"
        assert normalize_identifier("ab 12.34/5") == "AB12345"
        assert normalize_identifier(None) == ""

    def test_normalize_country_names(self):
        assert normalize_country("United Kingdom") == "GB"
        assert normalize_country("gb") == "GB"
        assert normalize_country("Russian Federation") == "RU"

    def test_normalize_country_unknown(self):
        assert normalize_country("  atlantis ") == "ATLANTIS"
        assert normalize_country("") == ""

    def test_parse_partial_date(self):
        assert parse_partial_date("1975") == PartialDate(1975)
        assert parse_partial_date("1975-03") == PartialDate(1975, 3)
        assert parse_partial_date("1975-03-01") == PartialDate(1975, 3, 1)

    def test_parse_list_formats(self):
        assert parse_partial_date("14 Jul 1961") == PartialDate(1961, 7, 14)

    def test_parse_invalid_dates(self):
        assert parse_partial_date("1975-02-30") is None
        assert parse_partial_date("not-a-date") is None
        assert parse_partial_date("") is None


class TestBlockingKeys:
    """Tests for Soundex blocking"""

    @pytest.mark.parametrize("token,code", [
        ("ROBERT", "R163"),
        ("RUPERT", "R163"),
        ("ASHCRAFT", "A261"),
        ("TYMCZAK", "T522"),
        ("PFISTER", "P236"),
        ("LEE", "L000"),
    ])
    def test_soundex(self, token, code):
        assert soundex(token) == code

    def test_spelling_variants_share_a_key(self):
        assert blocking_key("MOHAMMED") == blocking_key("MUHAMMAD")
        assert blocking_key("SMITH") == blocking_key("SMYTH")

    def test_non_latin_key(self):
        assert soundex("李明华") == ""
        assert blocking_key("李明华") == "~李明华"
        assert blocking_key("12345") == "~123"


# ============================================
# OPTIONS
# ============================================

class TestThresholdValidation:
    """Tests for threshold clamping"""

    def test_clamped_range(self):
        assert validate_threshold(-5) == 0.0
        assert validate_threshold(5) == 1.0
        assert validate_threshold(None) == 0.7

    def test_invalid_values_use_default(self):
        assert validate_threshold("abc") == 0.7
        assert validate_threshold(float('nan')) == 0.7
        assert validate_threshold(True) == 0.7

    def test_numeric_strings_accepted(self):
        assert validate_threshold("0.85") == 0.85

    def test_custom_default(self):
        assert validate_threshold(None, default=0.8) == 0.8


class TestScreeningOptions:
    """Tests for option normalization"""

    def test_defaults(self):
        options = ScreeningOptions.from_request(None)
        assert options.threshold == 0.7
        assert options.lists == ('ofac', 'eu', 'uk', 'un')
        assert options.include_aliases is True
        assert options.allow_demo_data is False
        assert options.deadline_seconds is None

    def test_camel_case_keys(self):
        options = ScreeningOptions.from_request({
            'threshold': 2,
            'lists': 'OFAC, un,ofac',
            'includeAliases': False,
            'allowDemoData': 'true',
            'deadlineSeconds': 1.5,
        })
        assert options.threshold == 1.0
        assert options.lists == ('ofac', 'un')
        assert options.include_aliases is False
        assert options.allow_demo_data is True
        assert options.deadline_seconds == 1.5

    def test_non_positive_deadline_ignored(self):
        assert ScreeningOptions.from_request({'deadline_seconds': 0}).deadline_seconds is None
        assert ScreeningOptions.from_request({'deadline_seconds': -1}, default_deadline=3).deadline_seconds == 3

    def test_options_are_frozen(self):
        options = ScreeningOptions()
        with pytest.raises(AttributeError):
            options.threshold = 0.1


# ============================================
# SCORING
# ============================================

class TestSimilarityScorer:
    """Tests for per-field and composite scores"""

    def test_exact_name(self):
        scorer = SimilarityScorer()
        query = make_query("John Smith")
        entry = make_entry("SMITH, John")
        breakdown = scorer.score(query, entry, ScreeningOptions())
        assert breakdown.field_scores.name == pytest.approx(1.0)
        assert breakdown.matched_field == "primary_name"

    def test_reference_case_composite(self):
        scorer = SimilarityScorer()
        query = make_query("John A. Smith", dob="1975-03-01", country="GB")
        entry = make_entry("John Smith", dob="1975-03-01", countries=("GB",))
        breakdown = scorer.score(query, entry, ScreeningOptions())

        assert breakdown.field_scores.dob == 1.0
        assert breakdown.field_scores.country == 1.0
        assert breakdown.field_scores.identifier is None
        assert breakdown.composite > 0.95
        assert 'DOB_EXACT_MATCH' in breakdown.flags
        assert 'COUNTRY_MATCH' in breakdown.flags

    def test_neutral_uncompared_fields(self):
        scorer = SimilarityScorer()
        # identifier left out, dob and country neutral: (0.65 + 0.075 + 0.05) / 0.9
        assert scorer.composite(FieldScores(name=1.0)) == pytest.approx(0.775 / 0.9)

    def test_identifier_floor(self):
        scorer = SimilarityScorer()
        assert scorer.composite(FieldScores(name=0.5, identifier=1.0)) == pytest.approx(0.9)

    def test_identifier_floor_through_score(self):
        scorer = SimilarityScorer()
        query = make_query("Jon Smyth", id_number="X-123")
        entry = make_entry("John Smith", identifiers=frozenset({"X123"}))
        breakdown = scorer.score(query, entry, ScreeningOptions())
        assert breakdown.field_scores.identifier == 1.0
        assert breakdown.composite == pytest.approx(0.9)
        assert 'IDENTIFIER_MATCH' in breakdown.flags

    def test_composite_clamped(self):
        scorer = SimilarityScorer()
        value = scorer.composite(FieldScores(name=1.0, dob=1.0, country=1.0, identifier=1.0))
        assert value == pytest.approx(1.0)
        assert 0.0 <= scorer.composite(FieldScores(name=0.0, dob=0.0, country=0.0, identifier=0.0)) <= 1.0

    def test_dob_day_month_credit_uses_config(self):
        scorer = SimilarityScorer(MatchingConfig(dob_day_month_credit=0.3))
        score = scorer.dob_similarity(PartialDate(1980, 3, 1), PartialDate(1975, 3, 1))
        assert score == 0.3

    def test_dob_day_month_credit_default(self):
        scorer = SimilarityScorer()
        score = scorer.dob_similarity(PartialDate(1980, 3, 1), PartialDate(1975, 3, 1))
        assert score == MatchingConfig().dob_day_month_credit

    def test_dob_partial_precision(self):
        scorer = SimilarityScorer()
        assert scorer.dob_similarity(PartialDate(1975), PartialDate(1975, 3, 1)) == 0.8
        assert scorer.dob_similarity(PartialDate(1976), PartialDate(1975, 3, 1)) == 0.0
        assert scorer.dob_similarity(PartialDate(1975, 4), PartialDate(1975, 3, 1)) == 0.0

    def test_dob_mismatch(self):
        scorer = SimilarityScorer()
        assert scorer.dob_similarity(PartialDate(1975, 3, 1), PartialDate(1975, 4, 2)) == 0.0

    def test_check_dob_disabled(self):
        scorer = SimilarityScorer()
        query = make_query("John Smith", dob="1975-03-01")
        entry = make_entry("John Smith", dob="1980-06-06")
        breakdown = scorer.score(query, entry, ScreeningOptions(check_dob=False))
        assert breakdown.field_scores.dob is None

    def test_legal_suffix_mismatch(self):
        scorer = SimilarityScorer()
        query = make_query("Acme Trading Ltd", type=SubjectType.COMPANY)
        entry = make_entry("Acme Trading GmbH", subject_type=SubjectType.COMPANY)
        breakdown = scorer.score(query, entry, ScreeningOptions())
        assert breakdown.field_scores.name == pytest.approx(0.95)
        assert 'LEGAL_SUFFIX_MISMATCH' in breakdown.flags
        assert 'ENTITY_MATCH' in breakdown.flags

    def test_equivalent_legal_suffixes(self):
        scorer = SimilarityScorer()
        query = make_query("Acme Trading Limited", type=SubjectType.COMPANY)
        entry = make_entry("Acme Trading Ltd", subject_type=SubjectType.COMPANY)
        assert scorer.score(query, entry, ScreeningOptions()).field_scores.name == 1.0

    def test_alias_match_identified(self):
        scorer = SimilarityScorer()
        query = make_query("Victor Demidov")
        entry = make_entry("Viktor Petrovich Demidov", aliases=("Victor Demidov",))
        breakdown = scorer.score(query, entry, ScreeningOptions())
        assert breakdown.field_scores.name == 1.0
        assert breakdown.matched_field == "alias"
        assert breakdown.matched_name == "Victor Demidov"
        assert 'ALIAS_MATCH' in breakdown.flags

    def test_aliases_excluded(self):
        scorer = SimilarityScorer()
        query = make_query("Victor Demidov")
        entry = make_entry("Viktor Petrovich Demidov", aliases=("Victor Demidov",))
        breakdown = scorer.score(query, entry, ScreeningOptions(include_aliases=False))
        assert breakdown.field_scores.name < 1.0
        assert breakdown.matched_field == "primary_name"

    def test_record_alias_match(self):
        scorer = SimilarityScorer()
        query = make_query("Jane Roe", aliases=("Viktor Demidov",))
        entry = make_entry("Viktor Demidov")
        breakdown = scorer.score(query, entry, ScreeningOptions())
        assert breakdown.matched_field == "record_alias"
        assert 'RECORD_ALIAS_MATCH' in breakdown.flags

    def test_word_order_ignored(self):
        scorer = SimilarityScorer()
        query = make_query("Smith John")
        entry = make_entry("John Smith")
        assert scorer.score(query, entry, ScreeningOptions()).field_scores.name == pytest.approx(1.0)


class TestNamePrefilter:
    """Tests for the bulk name bound applied before full scoring"""

    def candidates(self):
        return [
            make_entry("John Smith", 0),
            make_entry("Olga Ivanova Petrenko", 1),
            make_entry("Jon Smyth", 2),
            make_entry("Viktor Petrovich Demidov", 3, aliases=("Ivan Grozny",)),
        ]

    def test_min_name_score_default_threshold(self):
        prefilter = NamePrefilter()
        assert prefilter.min_name_score(0.7) == pytest.approx((0.7 * 0.9 - 0.25) / 0.65)

    def test_keeps_close_names_drops_distant(self):
        kept = NamePrefilter().filter(make_query("John Smith"), self.candidates(), ScreeningOptions())
        ids = [c.entry.entry_id for c in kept]
        assert ids == ['E0', 'E2']

    def test_dropped_candidates_never_reach_threshold(self):
        scorer = SimilarityScorer()
        options = ScreeningOptions(threshold=0.6)
        query = make_query("John Smith", dob="1975-03-01", country="GB")
        entries = [make_entry(name, i, dob="1975-03-01", countries=("GB",))
                   for i, name in enumerate(["John Smith", "Joan Smithers", "Jonas Schmidt",
                                             "Smith Holdings", "Olga Petrenko", "J Smith"])]

        kept = NamePrefilter().filter(query, entries, options)
        for entry in entries:
            if entry not in kept:
                assert scorer.score(query, entry, options).composite < options.threshold

    def test_identifier_match_survives(self):
        query = make_query("Aleksandr Volkov", id_number="P-4471023")
        entry = make_entry("Viktor Petrovich Demidov", identifiers=frozenset({'P-4471023'}))
        kept = NamePrefilter().filter(query, [entry], ScreeningOptions())
        assert kept == [entry]

    def test_alias_only_match_follows_include_aliases(self):
        query = make_query("Ivan Grozny")
        with_aliases = NamePrefilter().filter(query, self.candidates(), ScreeningOptions())
        without = NamePrefilter().filter(query, self.candidates(), ScreeningOptions(include_aliases=False))
        assert [c.entry.entry_id for c in with_aliases] == ['E3']
        assert without == []

    def test_zero_threshold_keeps_everything(self):
        candidates = self.candidates()
        kept = NamePrefilter().filter(make_query("John Smith"), candidates, ScreeningOptions(threshold=0.0))
        assert kept == candidates

    def test_matrix_matches_pairwise_scorer(self):
        scorer = SimilarityScorer()
        query = make_query("John A Smith")
        entry = make_entry("Smith, Jon")
        matrix = NamePrefilter().name_matrix([query.names[0].normalized.text], list(entry.texts))
        assert matrix[0][0] == pytest.approx(scorer.name_similarity(query.names[0], entry.names[0]))


class TestMatchClassifier:
    """Tests for status tiers"""

    def test_below_threshold_is_clear(self):
        classifier = MatchClassifier()
        assert classifier.classify(0.5, FieldScores(name=0.5), 0.7) is MatchStatus.CLEAR

    def test_confirm_cutoff(self):
        classifier = MatchClassifier()
        assert classifier.classify(0.96, FieldScores(name=1.0), 0.7) is MatchStatus.CONFIRMED_MATCH

    def test_corroborated_by_dob_and_country(self):
        classifier = MatchClassifier()
        scores = FieldScores(name=0.8, dob=1.0, country=1.0)
        assert classifier.classify(0.85, scores, 0.7) is MatchStatus.CONFIRMED_MATCH

    def test_corroborated_by_identifier(self):
        classifier = MatchClassifier()
        scores = FieldScores(name=0.75, identifier=1.0)
        assert classifier.classify(0.9, scores, 0.7) is MatchStatus.CONFIRMED_MATCH

    def test_uncorroborated_is_potential(self):
        classifier = MatchClassifier()
        scores = FieldScores(name=0.8, dob=1.0, country=0.0)
        assert classifier.classify(0.85, scores, 0.7) is MatchStatus.POTENTIAL_MATCH

    def test_weak_name_not_confirmed_by_corroboration(self):
        classifier = MatchClassifier()
        scores = FieldScores(name=0.6, identifier=1.0)
        assert classifier.classify(0.9, scores, 0.7) is MatchStatus.POTENTIAL_MATCH

    def test_overall_status(self):
        assert overall_status([]) is MatchStatus.CLEAR
        assert overall_status([MatchStatus.POTENTIAL_MATCH, MatchStatus.CONFIRMED_MATCH]) \
            is MatchStatus.CONFIRMED_MATCH
        assert overall_status([MatchStatus.CLEAR, MatchStatus.POTENTIAL_MATCH]) \
            is MatchStatus.POTENTIAL_MATCH


# ============================================
# RECORD VALIDATION
# ============================================

class TestRecordValidation:
    """Tests for per-record input validation"""

    def _record(self, **kwargs):
        kwargs.setdefault('id', 'r1')
        kwargs.setdefault('name', 'John Smith')
        return ScreeningRecord(**kwargs)

    def test_valid_record(self, config):
        validate_record(self._record(dob="1985", country="US", id_number="A123"), 0, config)

    def test_name_too_short(self, config):
        with pytest.raises(InputValidationError) as exc_info:
            validate_record(self._record(name=" A "), 3, config)
        assert exc_info.value.code == "NAME_TOO_SHORT"
        assert exc_info.value.record_index == 3
        assert "Record 3" in str(exc_info.value)

    def test_name_too_long(self, config):
        with pytest.raises(InputValidationError) as exc_info:
            validate_record(self._record(name="A" * 201), 0, config)
        assert exc_info.value.code == "NAME_TOO_LONG"

    def test_injection_attempt(self, config):
        with pytest.raises(InputValidationError) as exc_info:
            validate_record(self._record(name="<script>alert(1)</script>"), 0, config)
        assert exc_info.value.code == "BLOCKED_CHARACTERS"

    def test_blocked_characters_in_alias(self, config):
        with pytest.raises(InputValidationError) as exc_info:
            validate_record(self._record(aliases=("Robert; DROP TABLE",)), 0, config)
        assert exc_info.value.code == "BLOCKED_CHARACTERS"
        assert exc_info.value.field == "aliases"

    def test_control_character(self, config):
        with pytest.raises(InputValidationError) as exc_info:
            validate_record(self._record(name="John\u200bSmith"), 0, config)
        assert exc_info.value.code == "CONTROL_CHARACTER"

    def test_punctuation_only_name(self, config):
        with pytest.raises(InputValidationError) as exc_info:
            validate_record(self._record(name="-- .."), 0, config)
        assert exc_info.value.code == "NAME_TOO_SHORT"

    def test_invalid_dob(self, config):
        with pytest.raises(InputValidationError) as exc_info:
            validate_record(self._record(dob="01/15/1980"), 0, config)
        assert exc_info.value.code == "INVALID_DOB_FORMAT"
        assert exc_info.value.field == "dob"

    def test_impossible_dob(self, config):
        with pytest.raises(InputValidationError) as exc_info:
            validate_record(self._record(dob="1980-02-30"), 0, config)
        assert exc_info.value.code == "INVALID_DOB_FORMAT"

    def test_identifier_too_long(self, config):
        with pytest.raises(InputValidationError) as exc_info:
            validate_record(self._record(id_number="9" * 51), 0, config)
        assert exc_info.value.code == "IDENTIFIER_TOO_LONG"

    def test_unicode_names_accepted(self, config):
        for name in ("李明华", "محمد علي", "Владимир Путин", "Zoë Ñúñez"):
            validate_record(self._record(name=name), 0, config)

    def test_unicode_names_disallowed(self, config):
        config.input_validation.allow_unicode_names = False
        with pytest.raises(InputValidationError) as exc_info:
            validate_record(self._record(name="李明华"), 0, config)
        assert exc_info.value.code == "INVALID_FORMAT"
        # Latin-1 letters stay allowed
        validate_record(self._record(name="Zoë Ñúñez"), 0, config)


class TestLogSanitization:
    """Tests for log sanitization"""

    def test_sanitize_for_logging(self):
        assert sanitize_for_logging("John\nFAKE ENTRY\r\n") == "John FAKE ENTRY"

    def test_sanitize_for_logging_truncates(self):
        assert len(sanitize_for_logging("x" * 1000)) == 500

    def test_sanitize_for_logging_empty(self):
        assert sanitize_for_logging(None) == ""
        assert sanitize_for_logging("") == ""
