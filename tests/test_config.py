"""Tests for reading numeric settings from the environment."""

import logging

import pytest

import config


class TestEnvNumber:

    def test_unset_uses_default(self, monkeypatch):
        monkeypatch.delenv("KENSAKU_TEST_NUMBER", raising=False)
        assert config._env_number("KENSAKU_TEST_NUMBER", 60.0) == 60.0

    def test_valid_value_is_cast(self, monkeypatch):
        monkeypatch.setenv("KENSAKU_TEST_NUMBER", " 7 ")
        assert config._env_number("KENSAKU_TEST_NUMBER", 5, int) == 7
        assert config._env_number("KENSAKU_TEST_NUMBER", 60.0) == 7.0

    @pytest.mark.parametrize("raw", ["abc", "1.5x", "nan", "inf", "-inf", "0", "-3"])
    def test_unusable_value_falls_back_with_warning(self, monkeypatch, caplog, raw):
        monkeypatch.setenv("KENSAKU_TEST_NUMBER", raw)
        with caplog.at_level(logging.WARNING, logger=config.logger.name):
            assert config._env_number("KENSAKU_TEST_NUMBER", 60.0) == 60.0
        assert "KENSAKU_TEST_NUMBER" in caplog.text

    def test_float_text_for_int_setting_falls_back(self, monkeypatch, caplog):
        monkeypatch.setenv("KENSAKU_TEST_NUMBER", "2.5")
        with caplog.at_level(logging.WARNING, logger=config.logger.name):
            assert config._env_number("KENSAKU_TEST_NUMBER", 5, int) == 5
        assert "not a number" in caplog.text
