"""Tests for configuration dataclasses."""

import os

import pytest

from hornshark.config import DensityConfig, HMMConfig


class TestDensityConfig:
    def test_explicit_workers(self):
        assert DensityConfig(n_workers=3).effective_n_workers == 3

    def test_default_uses_all_cores(self):
        assert DensityConfig().effective_n_workers == (os.cpu_count() or 1)

    def test_frozen(self):
        config = DensityConfig()
        with pytest.raises(AttributeError):
            config.n_workers = 2


class TestHMMConfig:
    def test_defaults(self):
        config = HMMConfig()
        assert config.stationary is False
        assert isinstance(config.density, DensityConfig)
