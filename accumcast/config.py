"""
accumcast.config
================

Default settings for fitting and combining distributions.

Every component takes explicit keyword parameters; the values here are only
the defaults those parameters fall back to. Settings are read from
``ACCUMCAST_*`` environment variables, so a deployment can override them
without code changes.

Examples
--------
>>> from accumcast.config import ForecastSettings
>>> s = ForecastSettings.from_env({"ACCUMCAST_PRIOR_FAMILY": "lognormal"})
>>> s.prior_family
'lognormal'
>>> s.credible_level
0.9
"""

from __future__ import annotations
from typing import Any, Mapping, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "ACCUMCAST_"

PRIOR_FAMILIES = ("gamma", "lognormal", "normal", "kde")
LIKELIHOOD_FAMILIES = ("beta", "kde")


class ForecastSettings(BaseSettings):
    """
    Numerical defaults for the empirical-Bayes forecast.

    Invalid values raise ``pydantic.ValidationError``, a `ValueError`.
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    prior_family: str = "gamma"
    likelihood_family: str = "beta"
    grid_size: int = Field(default=2001, ge=3)
    credible_level: float = Field(default=0.9, gt=0.0, lt=1.0)
    confidence: float = Field(default=0.8, gt=0.5, lt=1.0)
    tail_mass: float = Field(default=1e-4, gt=0.0, lt=0.5)
    fraction_eps: float = Field(default=1e-6, gt=0.0, lt=0.5)
    min_history: int = Field(default=3, ge=2)
    max_grid_factor: float = Field(default=50.0, gt=1.0)

    @field_validator("prior_family")
    @classmethod
    def validate_prior_family(cls, v: str) -> str:
        if v not in PRIOR_FAMILIES:
            raise ValueError(f"prior_family must be one of {PRIOR_FAMILIES}, got {v!r}")
        return v

    @field_validator("likelihood_family")
    @classmethod
    def validate_likelihood_family(cls, v: str) -> str:
        if v not in LIKELIHOOD_FAMILIES:
            raise ValueError(
                f"likelihood_family must be one of {LIKELIHOOD_FAMILIES}, got {v!r}"
            )
        return v

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None
    ) -> "ForecastSettings":
        """
        Build settings from ``ACCUMCAST_<FIELD>`` variables.

        With ``environ`` given, its values take precedence over the process
        environment.
        """
        if environ is None:
            return cls()
        overrides = {
            key[len(ENV_PREFIX):].lower(): value
            for key, value in environ.items()
            if key.upper().startswith(ENV_PREFIX)
            and key[len(ENV_PREFIX):].lower() in cls.model_fields
        }
        return cls(**overrides)

    def with_overrides(self, **kwargs: Any) -> "ForecastSettings":
        """Return a validated copy with the given non-None fields replaced."""
        updates = {k: v for k, v in kwargs.items() if v is not None}
        return type(self)(**{**self.model_dump(), **updates})


DEFAULT_SETTINGS = ForecastSettings()
