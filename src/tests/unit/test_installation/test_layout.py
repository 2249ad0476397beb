"""Tests for naming conventions and registration content."""

from pathlib import Path

import pytest

from gcc_stage_installer.config.settings import LayoutConfig
from gcc_stage_installer.installation.layout import (
    SystemLayout,
    references_prefix,
    render_ld_conf,
    render_profile,
)


class TestSystemLayout:
    @pytest.fixture
    def layout(self):
        return SystemLayout(LayoutConfig())

    def test_default_paths(self, layout):
        assert layout.default_prefix("14.1.0") == Path("/opt/gcc-14.1.0")
        assert layout.ld_conf_path("14.1.0") == Path("/etc/ld.so.conf.d/gcc-14.1.0.conf")
        assert layout.profile_path("14.1.0") == Path("/etc/profile.d/gcc-14.1.0.sh")
        assert layout.bin_dirs == [Path("/usr/bin"), Path("/usr/local/bin")]

    @pytest.mark.parametrize(
        "prefix, version",
        [
            ("/opt/gcc-14.1.0", "14.1.0"),
            ("/opt/gcc-local", "local"),
            ("/opt/gcc-", None),
            ("/opt/clang-18", None),
            ("/usr", None),
        ],
    )
    def test_version_from_prefix(self, layout, prefix, version):
        assert layout.version_from_prefix(Path(prefix)) == version

    @pytest.mark.parametrize(
        "name, version",
        [
            ("gcc-14.1.0.conf", "14.1.0"),
            ("gcc-.conf", None),
            ("libc.conf", None),
        ],
    )
    def test_version_from_ld_conf(self, layout, name, version):
        assert layout.version_from_ld_conf(Path("/etc/ld.so.conf.d") / name) == version

    def test_ld_conf_candidates_sorted(self, system_root, settings):
        layout = SystemLayout(settings.layout)
        for name in ("gcc-9.conf", "gcc-14.1.0.conf", "libc.conf"):
            (system_root["ld_conf_dir"] / name).write_text("")
        (system_root["ld_conf_dir"] / "gcc-dir.conf").mkdir()

        names = [p.name for p in layout.ld_conf_candidates()]

        assert names == ["gcc-14.1.0.conf", "gcc-9.conf"]

    def test_ld_conf_candidates_missing_dir(self, tmp_path):
        layout = SystemLayout(LayoutConfig(ld_conf_dir=str(tmp_path / "absent")))

        assert layout.ld_conf_candidates() == []

    def test_custom_name_prefix(self):
        layout = SystemLayout(LayoutConfig(name_prefix="xgcc", install_root="/toolchains"))

        assert layout.default_prefix("13") == Path("/toolchains/xgcc-13")
        assert layout.version_from_prefix(Path("/toolchains/xgcc-13")) == "13"
        assert layout.version_from_prefix(Path("/opt/gcc-13")) is None


def test_render_ld_conf():
    assert render_ld_conf(Path("/opt/gcc-14.1.0")) == "/opt/gcc-14.1.0/lib\n/opt/gcc-14.1.0/lib64\n"


def test_render_profile():
    lines = render_profile(Path("/opt/gcc-14.1.0")).splitlines()

    assert lines == [
        "# GCC installed to /opt/gcc-14.1.0",
        'export PATH="/opt/gcc-14.1.0/bin:$PATH"',
        'export LD_LIBRARY_PATH="/opt/gcc-14.1.0/lib:/opt/gcc-14.1.0/lib64:$LD_LIBRARY_PATH"',
        'export MANPATH="/opt/gcc-14.1.0/share/man:$MANPATH"',
    ]


@pytest.mark.parametrize(
    "text, prefix, expected",
    [
        ("/opt/gcc-14.1.0/lib\n", "/opt/gcc-14.1.0", True),
        ("/opt/gcc-14.1.0\n", "/opt/gcc-14.1.0", True),
        ('export PATH="/opt/gcc-14.1.0/bin:$PATH"', "/opt/gcc-14.1.0", True),
        ("/opt/gcc-14.1.0/lib\n", "/opt/gcc-14", False),
        ("/opt/gcc-14.1.0/lib\n", "/opt/gcc-14.1.0/", True),
        ("/srv/gcc-14.1.0/lib\n", "/opt/gcc-14.1.0", False),
        ("/opt/gcc-14.1.0/lib\n", "/", False),
    ],
)
def test_references_prefix(text, prefix, expected):
    assert references_prefix(text, Path(prefix)) is expected
