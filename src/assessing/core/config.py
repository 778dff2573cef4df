"""Application configuration loaded from environment and config files."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseSettings):
    """Database connection configuration.

    When ``url`` is unset the in-memory stores are used.
    """

    model_config = {"env_prefix": "ASSESSING_DB_"}

    url: str | None = None
    echo: bool = False
    pool_size: int = 5


class RecalculationConfig(BaseSettings):
    """Batch recalculation tuning."""

    model_config = {"env_prefix": "ASSESSING_RECALC_"}

    batch_size: int = 500
    zone_batch_size: int = 50
    error_detail_limit: int = 10
    job_timeout_seconds: float | None = None
    job_max_age_seconds: int = 3600
    validation_sample_size: int = 100
    validation_tolerance: float = 1.0


class BillingConfig(BaseSettings):
    """Billing period configuration.

    ``current_year`` pins the tax year used for lock decisions; when unset
    the calendar year is used.
    """

    model_config = {"env_prefix": "ASSESSING_BILLING_"}

    current_year: int | None = None
    redirect_url_template: str = "/assessing/{year}"


class CalculationDefaultsConfig(BaseSettings):
    """Location of the YAML calculation defaults.

    Unset means the ``config/calculation_defaults.yml`` shipped with the repo.
    """

    model_config = {"env_prefix": "ASSESSING_CALC_"}

    defaults_path: str | None = None


class AuditConfig(BaseSettings):
    """Audit logging configuration."""

    model_config = {"env_prefix": "ASSESSING_AUDIT_"}

    log_dir: str = "data/audit"
    hash_algorithm: str = "sha256"


class Settings(BaseSettings):
    """Root application settings."""

    model_config = {"env_prefix": "ASSESSING_"}

    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    recalc: RecalculationConfig = Field(default_factory=RecalculationConfig)
    billing: BillingConfig = Field(default_factory=BillingConfig)
    calculation: CalculationDefaultsConfig = Field(default_factory=CalculationDefaultsConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
