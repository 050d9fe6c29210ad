"""Loading and validation of the tool configuration (config.yaml).

The file keeps the key names used by the testing team's spreadsheets:

    Company: [SAC1, MAC1, EGC1]
    UnderDelivery: {TotalHappy: 4, TotalNoPrepayment: 2, TotalDiffPrepayment: 2}
    OverDelivery:  {TotalHappy: 4, TotalNoPrepayment: 2, TotalDiffPrepayment: 2}
    TotalOneToOne: 8
    TotalOneToMany: 8
    MaxNumberOneToMany: 4

Optional sections: Seed, TestIdPrefix, Paths, Api and CompanyProfiles.
API credentials can be supplied through the PREPAYMENT_API_URL,
PREPAYMENT_API_USER and PREPAYMENT_API_PASSWORD environment variables, which
take precedence over the file.
"""
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from .errors import ConfigError
from .models import Case, Delivery, Scenario

logger = logging.getLogger("PrepaymentToolLogger")

DEFAULT_CONFIG_FILE = "config.yaml"
DEFAULT_TEST_ID_PREFIX = "TEST1ROUND_"

# Maps the YAML type keys to the prepayment part of a Case label
CASE_KEYS = {
    "TotalHappy": "Happy",
    "TotalNoPrepayment": "NoPrepayment",
    "TotalDiffPrepayment": "DiffPrepayment",
}

DEFAULT_PATHS = {
    "LocalSource": "local.json",
    "UsdSource": "USD.json",
    "ProcessingReport": "processing-results.csv",
    "TraceLog": "processing-log.txt",
    "Templates": "Sample",
    "OutputDir": "output",
    "UpdatedReport": "processing-results-updated.csv",
    "RemappedReport": "transformed-prepayment-scenarios.csv",
}


@dataclass
class ApiSettings:
    url: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = 30.0
    delay_seconds: float = 1.0
    order_id_field: str = "SalesOrder"


@dataclass
class ToolConfig:
    """Validated configuration of one tool run."""

    companies: List[str]
    case_quotas: Dict[Case, int]
    scenario_quotas: Dict[Scenario, int]
    max_one_to_many: int
    seed: Optional[int] = None
    test_id_prefix: str = DEFAULT_TEST_ID_PREFIX
    paths: Dict[str, Path] = field(default_factory=dict)
    api: ApiSettings = field(default_factory=ApiSettings)
    company_profiles: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def path(self, key: str) -> Path:
        return self.paths[key]

    def to_dict(self) -> dict:
        """Returns the configuration in its YAML shape, for logging."""
        data = {"Company": list(self.companies)}
        for direction in Delivery:
            data[direction.value] = {
                yaml_key: self.case_quotas[Case(f"{direction.value}-{case_type}")]
                for yaml_key, case_type in CASE_KEYS.items()
            }
        data["TotalOneToOne"] = self.scenario_quotas[Scenario.ONE_TO_ONE]
        data["TotalOneToMany"] = self.scenario_quotas[Scenario.ONE_TO_MANY]
        data["MaxNumberOneToMany"] = self.max_one_to_many
        if self.seed is not None:
            data["Seed"] = self.seed
        return data


def _require_int(raw: dict, key: str, context: str = "") -> int:
    value = raw.get(key)
    label = f"{context}.{key}" if context else key
    if value is None:
        raise ConfigError(f"Missing required config key '{label}'")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"Config key '{label}' must be an integer, got {value!r}")
    if value < 0:
        raise ConfigError(f"Config key '{label}' must not be negative, got {value}")
    return value


def _parse_case_quotas(raw: dict) -> Dict[Case, int]:
    quotas = {}
    for direction in Delivery:
        section = raw.get(direction.value)
        if not isinstance(section, dict):
            raise ConfigError(f"Missing or invalid config section '{direction.value}'")
        for yaml_key, case_type in CASE_KEYS.items():
            quotas[Case(f"{direction.value}-{case_type}")] = _require_int(
                section, yaml_key, direction.value
            )
    return quotas


def _parse_companies(raw: dict) -> List[str]:
    companies = raw.get("Company")
    if isinstance(companies, str):
        companies = [companies]
    if not isinstance(companies, list) or not companies:
        raise ConfigError("Config key 'Company' must be a non-empty list of company codes")
    return [str(c).strip() for c in companies]


def _parse_paths(raw: dict, base_dir: Path) -> Dict[str, Path]:
    overrides = raw.get("Paths") or {}
    if not isinstance(overrides, dict):
        raise ConfigError("Config section 'Paths' must be a mapping")

    unknown = set(overrides) - set(DEFAULT_PATHS)
    if unknown:
        logger.warning(f"Ignoring unknown Paths keys: {sorted(unknown)}")

    paths = {}
    for key, default in DEFAULT_PATHS.items():
        path = Path(overrides.get(key, default))
        paths[key] = path if path.is_absolute() else base_dir / path
    return paths


def _parse_api(raw: dict) -> ApiSettings:
    section = raw.get("Api") or {}
    if not isinstance(section, dict):
        raise ConfigError("Config section 'Api' must be a mapping")

    try:
        settings = ApiSettings(
            url=section.get("Url"),
            username=section.get("Username"),
            password=section.get("Password"),
            timeout=float(section.get("Timeout", 30.0)),
            delay_seconds=float(section.get("DelaySeconds", 1.0)),
            order_id_field=section.get("OrderIdField", "SalesOrder"),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid Api settings: {e}") from e

    if settings.delay_seconds < 0:
        raise ConfigError("Api.DelaySeconds must not be negative")

    settings.url = os.getenv("PREPAYMENT_API_URL") or settings.url
    settings.username = os.getenv("PREPAYMENT_API_USER") or settings.username
    settings.password = os.getenv("PREPAYMENT_API_PASSWORD") or settings.password
    return settings


def parse_config(raw: dict, base_dir: Path = Path(".")) -> ToolConfig:
    """Validates a raw configuration mapping and builds a ToolConfig.

    Raises:
        ConfigError: If a required key is missing or has an invalid value.
    """
    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping")

    max_one_to_many = _require_int(raw, "MaxNumberOneToMany")
    if max_one_to_many < 2:
        raise ConfigError(f"MaxNumberOneToMany must be at least 2, got {max_one_to_many}")

    seed = raw.get("Seed")
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
        raise ConfigError(f"Config key 'Seed' must be an integer, got {seed!r}")

    profiles = raw.get("CompanyProfiles") or {}
    if not isinstance(profiles, dict):
        raise ConfigError("Config section 'CompanyProfiles' must be a mapping")

    return ToolConfig(
        companies=_parse_companies(raw),
        case_quotas=_parse_case_quotas(raw),
        scenario_quotas={
            Scenario.ONE_TO_ONE: _require_int(raw, "TotalOneToOne"),
            Scenario.ONE_TO_MANY: _require_int(raw, "TotalOneToMany"),
        },
        max_one_to_many=max_one_to_many,
        seed=seed,
        test_id_prefix=str(raw.get("TestIdPrefix", DEFAULT_TEST_ID_PREFIX)),
        paths=_parse_paths(raw, base_dir),
        api=_parse_api(raw),
        company_profiles={str(k): dict(v or {}) for k, v in profiles.items()},
    )


def load_config(config_path=DEFAULT_CONFIG_FILE) -> ToolConfig:
    """Loads config.yaml and validates it.

    Relative paths in the Paths section resolve against the directory that
    holds the configuration file.

    Raises:
        ConfigError: If the file is missing, is not valid YAML or fails validation.
    """
    config_path = Path(config_path)
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file '{config_path}' not found") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in configuration file '{config_path}': {e}") from e

    config = parse_config(raw, base_dir=config_path.resolve().parent)
    logger.info(f"Loaded configuration from {config_path}")
    return config
