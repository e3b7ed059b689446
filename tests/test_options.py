"""
Unit tests for option merging and validation.
"""

import pytest

from ratelimiter.options import (
    CheckOptions,
    EffectiveOptions,
    LimiterDefaults,
    defaults_from_settings,
    resolve_options,
)
from shared.config import RateLimiterSettings
from shared.errors import ConfigurationError


class TestResolveOptions:
    """Test cases for resolve_options."""

    def test_uses_defaults_when_no_options(self):
        defaults = LimiterDefaults(rate=10, burst=3)
        assert resolve_options(defaults) == EffectiveOptions(rate=10.0, burst=3, op_count=1)

    def test_call_options_override_field_by_field(self):
        defaults = LimiterDefaults(rate=10, burst=3)
        effective = resolve_options(defaults, CheckOptions(burst=7))
        assert effective == EffectiveOptions(rate=10.0, burst=7, op_count=1)

        effective = resolve_options(defaults, CheckOptions(rate=0.5, op_count=2))
        assert effective == EffectiveOptions(rate=0.5, burst=3, op_count=2)

    def test_call_options_alone_are_enough(self):
        effective = resolve_options(LimiterDefaults(), CheckOptions(rate=1, burst=2))
        assert effective == EffectiveOptions(rate=1.0, burst=2, op_count=1)

    @pytest.mark.parametrize("defaults,options,field", [
        (LimiterDefaults(), None, "rate"),
        (LimiterDefaults(burst=3), None, "rate"),
        (LimiterDefaults(rate=10), None, "burst"),
        (LimiterDefaults(), CheckOptions(rate=10), "burst"),
    ])
    def test_missing_rate_or_burst(self, defaults, options, field):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_options(defaults, options)
        assert exc_info.value.code == "CONFIGURATION_ERROR"
        assert exc_info.value.details["field"] == field

    @pytest.mark.parametrize("options,field", [
        (CheckOptions(rate=0), "rate"),
        (CheckOptions(rate=-1), "rate"),
        (CheckOptions(rate=float("inf")), "rate"),
        (CheckOptions(rate=True), "rate"),
        (CheckOptions(burst=0), "burst"),
        (CheckOptions(burst=-3), "burst"),
        (CheckOptions(burst=2.5), "burst"),
        (CheckOptions(op_count=0), "op_count"),
        (CheckOptions(op_count=1.5), "op_count"),
    ])
    def test_invalid_values(self, options, field):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_options(LimiterDefaults(rate=10, burst=3), options)
        assert exc_info.value.details["field"] == field

    def test_defaults_from_settings(self):
        settings = RateLimiterSettings(default_rate=2.5, default_burst=9, prefix="api")
        assert defaults_from_settings(settings) == LimiterDefaults(rate=2.5, burst=9, prefix="api")

    def test_default_prefix(self):
        assert LimiterDefaults().prefix == "rzrate"
