"""Unit tests for ConfigResolver."""

from __future__ import annotations

import os

import pytest

from dirarchiver.core.config import ConfigResolver, parse_exclusions
from dirarchiver.core.errors import ConfigError
from dirarchiver.types import ReadErrorPolicy, StrategyName


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in list(os.environ):
        if key.startswith("DIRARCHIVER_"):
            monkeypatch.delenv(key)


@pytest.fixture
def resolver_factory(tmp_path):
    """Resolver isolated from the real user/system config files."""

    def _make(cli_args=None, user_yaml: str | None = None, system_yaml: str | None = None):
        user = tmp_path / "user.yaml"
        system = tmp_path / "system.yaml"
        if user_yaml is not None:
            user.write_text(user_yaml)
        if system_yaml is not None:
            system.write_text(system_yaml)
        return ConfigResolver(cli_args=cli_args, user_config_path=user, system_config_path=system)

    return _make


class TestPriority:
    def test_defaults(self, resolver_factory):
        settings = resolver_factory().resolve_settings()

        assert settings.root == "."
        assert settings.exclude == ()
        assert settings.strategy is StrategyName.STREAM
        assert settings.extension == "zip"
        assert settings.compression_level == 6
        assert settings.chunk_size == 64 * 1024
        assert settings.channel_capacity == 1024
        assert settings.max_readers == 16
        assert settings.on_read_error is ReadErrorPolicy.ABORT
        assert settings.continue_on_error is False
        assert settings.working_dir is None
        assert settings.home_dir is None

    def test_each_level_overrides_the_next(self, resolver_factory, monkeypatch):
        system = "archive:\n  strategy: bulk\n"
        user = "archive:\n  strategy: fanin\n"

        r = resolver_factory(system_yaml=system)
        assert r.resolve("archive.strategy") == ("bulk", "system_config")

        r = resolver_factory(user_yaml=user, system_yaml=system)
        assert r.resolve("archive.strategy") == ("fanin", "user_config")

        monkeypatch.setenv("DIRARCHIVER_ARCHIVE_STRATEGY", "zipper")
        r = resolver_factory(user_yaml=user, system_yaml=system)
        assert r.resolve("archive.strategy") == ("zipper", "env")

        r = resolver_factory({"archive": {"strategy": "bulk"}}, user_yaml=user)
        assert r.resolve("archive.strategy") == ("bulk", "cli")

    def test_default_source(self, resolver_factory):
        assert resolver_factory().resolve("archive.channel_capacity") == (1024, "default")

    def test_unknown_key(self, resolver_factory):
        with pytest.raises(ConfigError, match="not found"):
            resolver_factory().resolve("archive.nope")
        assert resolver_factory().resolve_optional("archive.nope", 7) == 7


class TestSettings:
    def test_env_values_are_coerced(self, resolver_factory, monkeypatch):
        monkeypatch.setenv("DIRARCHIVER_ARCHIVE_MAX_READERS", "8")
        monkeypatch.setenv("DIRARCHIVER_ARCHIVE_CONTINUE_ON_ERROR", "yes")
        monkeypatch.setenv("DIRARCHIVER_ARCHIVE_ON_READ_ERROR", "SKIP")
        monkeypatch.setenv("DIRARCHIVER_EXCLUDE", "a, ./b,,~/c")

        settings = resolver_factory().resolve_settings()

        assert settings.max_readers == 8
        assert settings.continue_on_error is True
        assert settings.on_read_error is ReadErrorPolicy.SKIP
        assert settings.exclude == ("a", "./b", "~/c")

    def test_yaml_values(self, resolver_factory):
        user = (
            "root: /data\n"
            "exclude: [/data/tmp, /data/cache]\n"
            "archive:\n"
            "  strategy: async\n"
            "  extension: .zip\n"
            "  compression_level: 9\n"
            "paths:\n"
            "  home_dir: /home/me\n"
        )
        settings = resolver_factory(user_yaml=user).resolve_settings()

        assert settings.root == "/data"
        assert settings.exclude == ("/data/tmp", "/data/cache")
        assert settings.strategy is StrategyName.FANIN
        assert settings.extension == "zip"
        assert settings.compression_level == 9
        assert settings.home_dir == "/home/me"

    @pytest.mark.parametrize(
        "archive",
        [
            {"compression_level": 10},
            {"compression_level": -1},
            {"max_readers": 0},
            {"channel_capacity": "many"},
            {"chunk_size": True},
            {"strategy": "tarball"},
            {"on_read_error": "ignore"},
            {"continue_on_error": "maybe"},
            {"extension": "."},
        ],
    )
    def test_invalid_values(self, resolver_factory, archive):
        with pytest.raises(ConfigError):
            resolver_factory({"archive": archive}).resolve_settings()

    def test_empty_root_is_rejected(self, resolver_factory):
        with pytest.raises(ConfigError):
            resolver_factory({"root": "  "}).resolve_settings()

    def test_broken_yaml(self, resolver_factory):
        r = resolver_factory(user_yaml="archive: [unclosed\n")
        with pytest.raises(ConfigError, match="Failed to load config"):
            r.resolve_settings()

    def test_non_mapping_yaml_is_ignored(self, resolver_factory):
        settings = resolver_factory(user_yaml="- just\n- a list\n").resolve_settings()
        assert settings.strategy is StrategyName.STREAM


class TestLoggingPolicy:
    def test_default(self, resolver_factory):
        policy = resolver_factory().resolve_logging_policy()
        assert policy.level_name == "normal"
        assert policy.color is True

    def test_cli_level_is_normalized(self, resolver_factory):
        r = resolver_factory({"logging": {"level": " VERBOSE "}})
        assert r.resolve_logging_level() == "verbose"
        assert r.resolve_logging_policy().sources["level_name"].source == "cli"

    def test_verbosity_alias(self, tmp_path):
        user = tmp_path / "user.yaml"
        user.write_text("verbosity: debug\n")
        r = ConfigResolver(
            user_config_path=user,
            system_config_path=tmp_path / "none.yaml",
            defaults={},
        )
        assert r.resolve_logging_level() == "debug"

    def test_invalid_level(self, resolver_factory):
        with pytest.raises(ConfigError, match="Allowed values"):
            resolver_factory({"logging": {"level": "loud"}}).resolve_logging_level()

    def test_color_from_env(self, resolver_factory, monkeypatch):
        monkeypatch.setenv("DIRARCHIVER_LOGGING_COLOR", "off")
        assert resolver_factory().resolve_logging_policy().color is False


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, []),
        ("", []),
        ("a,b", ["a", "b"]),
        (" a , , b ,", ["a", "b"]),
        (["x", "y,z", " "], ["x", "y", "z"]),
    ],
)
def test_parse_exclusions(value, expected):
    assert parse_exclusions(value) == expected


def test_parse_exclusions_rejects_mapping():
    with pytest.raises(ConfigError):
        parse_exclusions({"a": 1})
