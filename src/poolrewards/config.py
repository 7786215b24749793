"""
poolrewards/config.py

Configuration constants and data classes for poolrewards.

Settings can be supplied programmatically or via environment variables:
    POOLREWARDS_ENFORCE_OPERATOR_AUTH   "1"/"0", "true"/"false"
    POOLREWARDS_OPERATOR_SHARE_PPM      integer 0..1000000
    POOLREWARDS_ALPHA                   Cobb-Douglas alpha as "num/den"
    POOLREWARDS_METRICS_ENABLED         "1"/"0", "true"/"false"
"""

from dataclasses import dataclass, asdict
from typing import Dict, Any, Mapping, Optional, Tuple
import os
import logging

logger = logging.getLogger("poolrewards.config")


# Signed 256-bit envelope used by the fixed-point library
INT256_MIN = -(1 << 255)
INT256_MAX = (1 << 255) - 1

# Fixed-point scale: one unit = 2**127
FIXED_POINT_BITS = 127

# Parts-per-million denominator for operator shares
PPM_DENOMINATOR = 1_000_000

# Defaults
DEFAULT_OPERATOR_SHARE_PPM = 0
DEFAULT_ALPHA_NUMERATOR = 1
DEFAULT_ALPHA_DENOMINATOR = 3

# Environment variable names
ENV_ENFORCE_OPERATOR_AUTH = "POOLREWARDS_ENFORCE_OPERATOR_AUTH"
ENV_OPERATOR_SHARE_PPM = "POOLREWARDS_OPERATOR_SHARE_PPM"
ENV_ALPHA = "POOLREWARDS_ALPHA"
ENV_METRICS_ENABLED = "POOLREWARDS_METRICS_ENABLED"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_bool(name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {name}: {value!r}")


def parse_alpha(value: str) -> Tuple[int, int]:
    """
    Parse a Cobb-Douglas alpha written as "num/den".

    Raises:
        ValueError: if the string is malformed or the fraction is outside [0, 1]
    """
    try:
        num_str, den_str = value.split("/")
        numerator, denominator = int(num_str), int(den_str)
    except ValueError:
        raise ValueError(f"Invalid alpha {value!r}, expected 'num/den'")
    validate_alpha(numerator, denominator)
    return numerator, denominator


def validate_alpha(numerator: int, denominator: int) -> None:
    """Raise ValueError unless 0 <= numerator <= denominator and denominator > 0."""
    if denominator <= 0:
        raise ValueError(f"Alpha denominator must be positive, got {denominator}")
    if numerator < 0 or numerator > denominator:
        raise ValueError(f"Alpha must be within [0, 1], got {numerator}/{denominator}")


@dataclass
class LedgerConfig:
    """Runtime settings for a RewardLedger and its collaborators."""
    enforce_operator_auth: bool = True
    operator_share_ppm: int = DEFAULT_OPERATOR_SHARE_PPM
    alpha_numerator: int = DEFAULT_ALPHA_NUMERATOR
    alpha_denominator: int = DEFAULT_ALPHA_DENOMINATOR
    metrics_enabled: bool = True

    def __post_init__(self):
        if self.operator_share_ppm < 0 or self.operator_share_ppm > PPM_DENOMINATOR:
            raise ValueError(
                f"operator_share_ppm must be 0-{PPM_DENOMINATOR}, got {self.operator_share_ppm}"
            )
        validate_alpha(self.alpha_numerator, self.alpha_denominator)

    @property
    def alpha(self) -> Tuple[int, int]:
        return self.alpha_numerator, self.alpha_denominator

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "LedgerConfig":
        """
        Build a config from environment variables, falling back to defaults.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Raises:
            ValueError: on any malformed value
        """
        env = os.environ if environ is None else environ
        kwargs: Dict[str, Any] = {}

        if ENV_ENFORCE_OPERATOR_AUTH in env:
            kwargs["enforce_operator_auth"] = _parse_bool(
                ENV_ENFORCE_OPERATOR_AUTH, env[ENV_ENFORCE_OPERATOR_AUTH]
            )
        if ENV_OPERATOR_SHARE_PPM in env:
            try:
                kwargs["operator_share_ppm"] = int(env[ENV_OPERATOR_SHARE_PPM])
            except ValueError:
                raise ValueError(
                    f"Invalid integer for {ENV_OPERATOR_SHARE_PPM}: {env[ENV_OPERATOR_SHARE_PPM]!r}"
                )
        if ENV_ALPHA in env:
            kwargs["alpha_numerator"], kwargs["alpha_denominator"] = parse_alpha(env[ENV_ALPHA])
        if ENV_METRICS_ENABLED in env:
            kwargs["metrics_enabled"] = _parse_bool(ENV_METRICS_ENABLED, env[ENV_METRICS_ENABLED])

        config = cls(**kwargs)
        logger.debug(f"Loaded ledger config from environment: {config.to_dict()}")
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary."""
        return asdict(self)
