"""
batchsplice config package public API.

Purpose
- Export runtime config loading/validation entrypoints and the YAML job
  configuration loader.

Functional requirements
- Support loading from ``splice.toml`` + ``SPLICE_`` env overrides.
- Fail fast with clear structured validation/load errors.
"""

from batchsplice.config.jobs import (
    JobConfig,
    JobConfigAgent,
    JobConfigError,
    load_job_config,
    parse_job_config,
)
from batchsplice.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    normalize_paths,
)
from batchsplice.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    SpliceConfig,
    assert_valid_config,
    default_config,
    merge_config,
    redact_config,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "JobConfig",
    "JobConfigAgent",
    "JobConfigError",
    "PATH_FIELDS",
    "SpliceConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "load_job_config",
    "merge_config",
    "normalize_paths",
    "parse_job_config",
    "redact_config",
    "validate_config",
]
