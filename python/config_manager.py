"""
Configuration Management Module
Loads and validates watchlist screening configuration from config.yaml
"""

import yaml
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Any, Optional, List

logger = logging.getLogger(__name__)


@dataclass
class MatchingConfig:
    """Similarity scoring and classification parameters (all scores are 0-1)"""
    weights: Dict[str, float] = field(default_factory=lambda: {
        'name': 0.65,
        'dob': 0.15,
        'country': 0.10,
        'identifier': 0.10
    })
    name_token_set_weight: float = 0.6
    default_threshold: float = 0.7
    confirm_threshold: float = 0.95
    dob_day_month_credit: float = 0.5
    dob_partial_precision_credit: float = 0.8
    neutral_field_score: float = 0.5
    identifier_match_floor: float = 0.90
    suffix_mismatch_factor: float = 0.95
    min_block_token_length: int = 2


@dataclass
class BatchConfig:
    """Batch orchestration limits"""
    max_batch_size: int = 1000
    max_workers: int = 8
    deadline_seconds: Optional[float] = None
    default_lists: List[str] = field(default_factory=lambda: ['ofac', 'eu', 'uk', 'un'])


@dataclass
class DataConfig:
    """Watchlist file locations, keyed by list code"""
    data_directory: str = "watchlist_data"
    list_files: Dict[str, str] = field(default_factory=lambda: {
        'ofac': 'sdn_enhanced.xml',
        'un': 'un_consolidated.xml',
        'eu': 'eu_consolidated.json',
        'uk': 'uk_hmt.json',
        'pep': 'pep.json'
    })


@dataclass
class InputValidationConfig:
    """Input validation configuration for user-provided records"""
    name_min_length: int = 2
    name_max_length: int = 200
    identifier_max_length: int = 50
    allow_unicode_names: bool = True
    blocked_characters: str = "<>{}[]|\\;`$"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    file: str = "logs/screening.log"
    console: bool = True
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    security_log_dir: str = "logs"
    security_log_to_file: bool = True


@dataclass
class AlgorithmConfig:
    """Algorithm version information"""
    version: str = "1.0.0"
    name: str = "Blocked Multi-Field Watchlist Matcher"
    last_updated: str = "2026-10-01"


class ConfigurationError(Exception):
    """Raised when configuration is invalid"""
    pass


class ConfigManager:
    """Manages system configuration"""

    _instance: Optional['ConfigManager'] = None

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager

        Args:
            config_path: Path to config.yaml file
        """
        self.config_path = Path(config_path) if config_path else self._find_config()
        self._raw_config: Dict[str, Any] = {}
        self.matching: MatchingConfig = MatchingConfig()
        self.batch: BatchConfig = BatchConfig()
        self.data: DataConfig = DataConfig()
        self.input_validation: InputValidationConfig = InputValidationConfig()
        self.logging: LoggingConfig = LoggingConfig()
        self.algorithm: AlgorithmConfig = AlgorithmConfig()

        if self.config_path and self.config_path.exists():
            self.load()
        else:
            logger.warning("Config file not found at %s, using defaults", self.config_path)

    def _find_config(self) -> Path:
        """Find config.yaml in common locations"""
        search_paths = [
            Path(__file__).parent / "config.yaml",
            Path.cwd() / "config.yaml",
            Path.cwd() / "python" / "config.yaml",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return search_paths[0]

    def load(self) -> None:
        """Load configuration from YAML file"""
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._raw_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except FileNotFoundError:
            raise ConfigurationError(f"Config file not found: {self.config_path}")

        self._parse_matching()
        self._parse_batch()
        self._parse_data()
        self._parse_input_validation()
        self._parse_logging()
        self._parse_algorithm()
        self._validate()

    def _parse_matching(self) -> None:
        """Parse matching configuration"""
        cfg = self._raw_config.get('matching', {})
        defaults = MatchingConfig()
        self.matching = MatchingConfig(
            weights=cfg.get('weights', defaults.weights),
            name_token_set_weight=cfg.get('name_token_set_weight', defaults.name_token_set_weight),
            default_threshold=cfg.get('default_threshold', defaults.default_threshold),
            confirm_threshold=cfg.get('confirm_threshold', defaults.confirm_threshold),
            dob_day_month_credit=cfg.get('dob_day_month_credit', defaults.dob_day_month_credit),
            dob_partial_precision_credit=cfg.get(
                'dob_partial_precision_credit', defaults.dob_partial_precision_credit
            ),
            neutral_field_score=cfg.get('neutral_field_score', defaults.neutral_field_score),
            identifier_match_floor=cfg.get('identifier_match_floor', defaults.identifier_match_floor),
            suffix_mismatch_factor=cfg.get('suffix_mismatch_factor', defaults.suffix_mismatch_factor),
            min_block_token_length=cfg.get('min_block_token_length', defaults.min_block_token_length)
        )

    def _parse_batch(self) -> None:
        """Parse batch configuration"""
        cfg = self._raw_config.get('batch', {})
        defaults = BatchConfig()
        self.batch = BatchConfig(
            max_batch_size=cfg.get('max_batch_size', defaults.max_batch_size),
            max_workers=cfg.get('max_workers', defaults.max_workers),
            deadline_seconds=cfg.get('deadline_seconds', defaults.deadline_seconds) or None,
            default_lists=[str(c).lower() for c in cfg.get('default_lists', defaults.default_lists)]
        )

    def _parse_data(self) -> None:
        """Parse data configuration"""
        cfg = self._raw_config.get('data', {})
        defaults = DataConfig()
        list_files = dict(defaults.list_files)
        list_files.update({str(k).lower(): v for k, v in (cfg.get('list_files') or {}).items()})
        self.data = DataConfig(
            data_directory=cfg.get('data_directory', defaults.data_directory),
            list_files=list_files
        )

    def _parse_input_validation(self) -> None:
        """Parse input validation configuration"""
        cfg = self._raw_config.get('input_validation', {})
        self.input_validation = InputValidationConfig(
            name_min_length=cfg.get('name_min_length', 2),
            name_max_length=cfg.get('name_max_length', 200),
            identifier_max_length=cfg.get('identifier_max_length', 50),
            allow_unicode_names=cfg.get('allow_unicode_names', True),
            blocked_characters=cfg.get('blocked_characters', "<>{}[]|\\;`$")
        )

    def _parse_logging(self) -> None:
        """Parse logging configuration"""
        cfg = self._raw_config.get('logging', {})
        self.logging = LoggingConfig(
            level=cfg.get('level', 'INFO'),
            file=cfg.get('file', 'logs/screening.log'),
            console=cfg.get('console', True),
            format=cfg.get('format', self.logging.format),
            security_log_dir=cfg.get('security_log_dir', 'logs'),
            security_log_to_file=cfg.get('security_log_to_file', True)
        )

    def _parse_algorithm(self) -> None:
        """Parse algorithm configuration"""
        cfg = self._raw_config.get('algorithm', {})
        defaults = AlgorithmConfig()
        self.algorithm = AlgorithmConfig(
            version=cfg.get('version', defaults.version),
            name=cfg.get('name', defaults.name),
            last_updated=cfg.get('last_updated', defaults.last_updated)
        )

    @classmethod
    def get_instance(cls, config_path: Optional[str] = None) -> 'ConfigManager':
        """Get singleton instance of ConfigManager"""
        if cls._instance is None:
            cls._instance = ConfigManager(config_path)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Reset singleton instance (useful for testing)"""
        cls._instance = None

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary"""
        return {
            'matching': {
                'weights': self.matching.weights,
                'default_threshold': self.matching.default_threshold,
                'confirm_threshold': self.matching.confirm_threshold,
                'dob_day_month_credit': self.matching.dob_day_month_credit,
                'identifier_match_floor': self.matching.identifier_match_floor
            },
            'batch': {
                'max_batch_size': self.batch.max_batch_size,
                'max_workers': self.batch.max_workers,
                'deadline_seconds': self.batch.deadline_seconds,
                'default_lists': self.batch.default_lists
            },
            'data': {
                'data_directory': self.data.data_directory,
                'list_files': self.data.list_files
            },
            'algorithm': {
                'version': self.algorithm.version,
                'name': self.algorithm.name,
                'last_updated': self.algorithm.last_updated
            }
        }

    def _validate(self) -> None:
        """Validate configuration values

        Raises:
            ConfigurationError: If weights or thresholds are inconsistent
        """
        m = self.matching
        required = {'name', 'dob', 'country', 'identifier'}
        missing = required - set(m.weights)
        if missing:
            raise ConfigurationError(f"Missing matching weights: {sorted(missing)}")

        total = sum(float(v) for v in m.weights.values())
        if abs(total - 1.0) > 0.01:
            raise ConfigurationError(f"Matching weights must sum to 1.0 (got {total:.2f})")

        for name in ('name_token_set_weight', 'default_threshold', 'confirm_threshold',
                     'dob_day_month_credit', 'dob_partial_precision_credit',
                     'neutral_field_score', 'identifier_match_floor', 'suffix_mismatch_factor'):
            value = getattr(m, name)
            if not 0.0 <= float(value) <= 1.0:
                raise ConfigurationError(f"matching.{name} must be within [0, 1] (got {value})")

        if m.default_threshold > m.confirm_threshold:
            raise ConfigurationError(
                "matching.default_threshold must not exceed matching.confirm_threshold"
            )

        iv = self.input_validation
        if iv.name_min_length < 1:
            raise ConfigurationError(
                f"input_validation.name_min_length must be at least 1 (got {iv.name_min_length})"
            )
        if iv.name_max_length < iv.name_min_length:
            raise ConfigurationError(
                "input_validation.name_max_length must not be less than name_min_length"
            )
        if iv.name_max_length > 1000:
            raise ConfigurationError(
                f"input_validation.name_max_length must not exceed 1000 (got {iv.name_max_length})"
            )

        if self.batch.max_batch_size < 1:
            raise ConfigurationError("batch.max_batch_size must be at least 1")
        if self.batch.max_workers < 1:
            raise ConfigurationError("batch.max_workers must be at least 1")
        if self.batch.deadline_seconds is not None and self.batch.deadline_seconds < 0:
            raise ConfigurationError("batch.deadline_seconds must not be negative")


def get_config(config_path: Optional[str] = None) -> ConfigManager:
    """Convenience function to get configuration instance"""
    return ConfigManager.get_instance(config_path)
