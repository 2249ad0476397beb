"""Tests for settings loading."""

import pytest
import yaml

from gcc_stage_installer.config import ConfigurationError, Settings, load_settings


def test_defaults():
    settings = Settings()

    assert settings.layout.install_root == "/opt"
    assert settings.layout.ld_conf_dir == "/etc/ld.so.conf.d"
    assert settings.layout.profile_dir == "/etc/profile.d"
    assert settings.layout.bin_dirs == ["/usr/bin", "/usr/local/bin"]
    assert settings.commands.escalation == "sudo"
    assert settings.commands.ldconfig == ["ldconfig"]
    assert settings.get_log_file_path() is None


def test_load_without_file():
    assert load_settings().layout.name_prefix == "gcc"


def test_load_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump({
        "layout": {"install_root": "/toolchains", "bin_dirs": ["/usr/local/bin"]},
        "commands": {"escalation": "doas"},
        "logging": {"level": "INFO", "file_path": str(tmp_path / "install.log")},
    }))

    settings = load_settings(str(config_file))

    assert settings.layout.install_root == "/toolchains"
    assert settings.layout.bin_dirs == ["/usr/local/bin"]
    assert settings.layout.ld_conf_dir == "/etc/ld.so.conf.d"
    assert settings.commands.escalation == "doas"
    assert settings.get_log_file_path() == tmp_path / "install.log"


def test_environment_overrides_file(tmp_path, monkeypatch):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("layout:\n  install_root: /toolchains\n")
    monkeypatch.setenv("GCC_STAGE_LAYOUT_INSTALL_ROOT", "/from-env")

    assert load_settings(str(config_file)).layout.install_root == "/from-env"


def test_empty_file(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("")

    assert load_settings(str(config_file)).layout.install_root == "/opt"


@pytest.mark.parametrize(
    "content, message",
    [
        ("layout: [unclosed\n", "Invalid configuration file"),
        ("- just\n- a list\n", "must contain a mapping"),
        ("servers: {}\n", "Unknown configuration sections"),
        ("layout:\n  bogus_key: 1\n", "Configuration validation failed"),
        ("commands:\n  version_timeout: soon\n", "Configuration validation failed"),
        ("layout:\n  bin_dirs: []\n", "Configuration validation failed"),
    ],
)
def test_invalid_files(tmp_path, content, message):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(content)

    with pytest.raises(ConfigurationError, match=message):
        load_settings(str(config_file))


def test_unreadable_file(tmp_path):
    with pytest.raises(ConfigurationError, match="Cannot read configuration file"):
        load_settings(str(tmp_path / "missing.yaml"))


def test_error_str_names_file_and_problems():
    error = ConfigurationError("Broken", "x.yaml", ["layout.bin_dirs: bad", "logging.level: bad"])

    assert str(error) == "Broken (x.yaml): layout.bin_dirs: bad; logging.level: bad"
    assert str(ConfigurationError("Broken")) == "Broken"
