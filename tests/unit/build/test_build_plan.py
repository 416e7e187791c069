"""
Unit tests for LibraryBuildPlan.

Tests the per-library, per-platform command sequences including:
- Known executables and non-empty plans on every platform
- OpenSSL target selection on macOS
- Cross-compile flags
- Windows-specific zlib and tor handling
- Clean plans
"""

import pytest
from pathlib import Path

from torstatic.build.build_plan import (
    KNOWN_EXECUTABLES,
    BuildPlanError,
    LibraryBuildPlan,
)
from torstatic.config import LIBRARY_NAMES, BuildConfig, PlatformDescriptor, UnsupportedPlatformError


ROOT = Path("/work/tor-static")

PLATFORMS = [
    PlatformDescriptor("linux", "x86_64"),
    PlatformDescriptor("linux", "arm64", "aarch64-linux-gnu"),
    PlatformDescriptor("windows", "x86_64"),
    PlatformDescriptor("darwin", "x86_64"),
    PlatformDescriptor("darwin", "arm64"),
    PlatformDescriptor("darwin", "x86_64", "arm64-apple-darwin"),
]


def make_plan(os_name="linux", arch="x86_64", host=None, **kwargs):
    config = BuildConfig(
        root_dir=ROOT,
        platform=PlatformDescriptor(os_name, arch, host),
        jobs=kwargs.pop("jobs", 8),
        **kwargs,
    )
    return LibraryBuildPlan(config, environ={"PATH": "/usr/bin:/bin"})


def argv(step):
    return [step.command, *step.args]


@pytest.fixture(autouse=True)
def fixed_root(monkeypatch):
    """Keep the root path stable regardless of symlinks on the test host."""
    monkeypatch.setattr(BuildConfig, "shell_root", property(
        lambda self: "/C/work/tor-static" if self.platform.is_windows else ROOT.as_posix()
    ))


class TestPlanCoverage:
    """Properties that hold for every library on every platform."""

    @pytest.mark.parametrize("platform", PLATFORMS, ids=str)
    @pytest.mark.parametrize("library", LIBRARY_NAMES)
    def test_non_empty_with_known_executables(self, platform, library):
        plan = LibraryBuildPlan(BuildConfig(root_dir=ROOT, platform=platform, jobs=2), environ={})

        steps = plan.steps(library)

        assert steps
        for step in steps:
            assert step.command in KNOWN_EXECUTABLES
            assert step.cwd == ROOT / library

    @pytest.mark.parametrize("platform", PLATFORMS, ids=str)
    @pytest.mark.parametrize("library", LIBRARY_NAMES)
    def test_installs_into_dist(self, platform, library):
        """Test every plan targets the library-local dist directory."""
        plan = LibraryBuildPlan(BuildConfig(root_dir=ROOT, platform=platform, jobs=2), environ={})
        prefix = f"{plan.config.shell_root}/{library}/dist"

        steps = plan.steps(library)

        flat = [arg for step in steps for arg in step.args] + [v for s in steps for v in s.env.values()]
        assert any(prefix in value for value in flat)

    def test_unknown_library(self):
        with pytest.raises(BuildPlanError, match="unrecognized library: openssl"):
            make_plan().steps("openssl")

    def test_unsupported_os(self):
        with pytest.raises(UnsupportedPlatformError):
            make_plan(os_name="haiku").steps("zlib")


class TestOpenSSLPlan:
    """Test the TLS library plan."""

    def test_linux(self):
        steps = make_plan().steps("_openssl")

        assert [argv(s) for s in steps] == [
            ["sh", "./config", "--prefix=/work/tor-static/_openssl/dist",
             "--openssldir=/work/tor-static/_openssl/dist", "no-shared", "no-dso", "no-zlib"],
            ["make", "depend"],
            ["make", "-j8"],
            ["make", "install_sw"],
        ]

    def test_windows(self):
        configure = make_plan("windows").steps("_openssl")[0]

        assert argv(configure)[:2] == ["perl", "./Configure"]
        assert "--prefix=/C/work/tor-static/_openssl/dist" in configure.args
        assert configure.args[-1] == "mingw64"

    @pytest.mark.parametrize("arch,target", [
        ("x86_64", "darwin64-x86_64-cc"),
        ("arm64", "darwin64-arm64-cc"),
    ])
    def test_darwin_detected_arch(self, arch, target):
        configure = make_plan("darwin", arch).steps("_openssl")[0]

        assert argv(configure)[:2] == ["perl", "./Configure"]
        assert configure.args[-1] == target

    @pytest.mark.parametrize("host,target", [
        ("arm64-apple-darwin", "darwin64-arm64-cc"),
        ("x86_64-apple-darwin", "darwin64-x86_64-cc"),
    ])
    def test_darwin_host_overrides_arch(self, host, target):
        configure = make_plan("darwin", "x86_64", host).steps("_openssl")[0]

        assert configure.args[-1] == target
        assert not any(arg.startswith("--host") for arg in configure.args)

    def test_darwin_unknown_arch(self):
        """Test an unknown macOS architecture is an explicit error."""
        with pytest.raises(UnsupportedPlatformError, match="unsupported architecture"):
            make_plan("darwin", "ppc64").steps("_openssl")

    def test_darwin_unknown_host(self):
        with pytest.raises(UnsupportedPlatformError, match="unsupported architecture"):
            make_plan("darwin", "arm64", "powerpc-apple-darwin").steps("_openssl")


class TestLibeventPlan:
    """Test the event library plan."""

    def test_linux(self):
        steps = make_plan().steps("libevent")

        assert argv(steps[0]) == ["sh", "-l", "./autogen.sh"]
        assert argv(steps[1]) == [
            "sh", "./configure", "--prefix=/work/tor-static/libevent/dist",
            "--disable-shared", "--enable-static", "--with-pic",
            "--disable-samples", "--disable-libevent-regress",
            "CPPFLAGS=-I../_openssl/dist/include", "LDFLAGS=-L../_openssl/dist/lib",
        ]
        assert [argv(s) for s in steps[2:]] == [["make", "-j8"], ["make", "install"]]

    def test_cross_host(self):
        configure = make_plan(host="aarch64-linux-gnu").steps("libevent")[1]

        assert configure.args[-1] == "--host=aarch64-linux-gnu"


class TestZlibPlan:
    """Test the compression library plan."""

    def test_linux(self):
        steps = make_plan().steps("zlib")

        assert [argv(s) for s in steps] == [
            ["sh", "./configure", "--prefix=/work/tor-static/zlib/dist", "--static"],
            ["make", "-j8"],
            ["make", "install"],
        ]
        assert all(not s.env for s in steps)

    def test_windows_bypasses_configure(self):
        """Test Windows uses the win32 makefile with path overlays."""
        steps = make_plan("windows").steps("zlib")

        assert [argv(s) for s in steps] == [
            ["make", "-fwin32/Makefile.gcc"],
            ["make", "install", "-fwin32/Makefile.gcc"],
        ]
        assert steps[0].env == {
            "PREFIX": "/C/work/tor-static/zlib/dist",
            "BINARY_PATH": "/C/work/tor-static/zlib/dist/bin",
            "INCLUDE_PATH": "/C/work/tor-static/zlib/dist/include",
            "LIBRARY_PATH": "/C/work/tor-static/zlib/dist/lib",
        }

    def test_no_host_flag(self):
        configure = make_plan(host="aarch64-linux-gnu").steps("zlib")[0]

        assert not any(arg.startswith("--host") for arg in configure.args)


class TestXzPlan:
    """Test the LZMA library plan."""

    def test_linux(self):
        steps = make_plan().steps("xz")

        assert argv(steps[0]) == ["sh", "-l", "./autogen.sh", "--no-po4a"]
        for flag in ("--disable-shared", "--enable-static", "--disable-doc", "--disable-scripts",
                     "--disable-xz", "--disable-xzdec", "--disable-lzmadec",
                     "--disable-lzmainfo", "--disable-lzma-links"):
            assert flag in steps[1].args
        assert all(not s.env for s in steps)

    def test_darwin_autopoint_path(self):
        """Test macOS prepends the autopoint directory to PATH for every step."""
        steps = make_plan("darwin", "arm64", autopoint_path="/opt/gettext/bin").steps("xz")

        for step in steps:
            assert step.env == {"PATH": "/opt/gettext/bin:/usr/bin:/bin"}

    def test_cross_host(self):
        configure = make_plan(host="x86_64-w64-mingw32").steps("xz")[1]

        assert configure.args[-1] == "--host=x86_64-w64-mingw32"


class TestTorPlan:
    """Test the daemon library plan."""

    def test_linux(self):
        steps = make_plan().steps("tor")
        configure = steps[1]

        assert argv(steps[0]) == ["sh", "-l", "./autogen.sh"]
        assert "--with-openssl-dir=/work/tor-static/_openssl/dist" in configure.args
        assert "--with-libevent-dir=/work/tor-static/libevent/dist" in configure.args
        assert "--with-zlib-dir=/work/tor-static/zlib/dist" in configure.args
        assert "--disable-gcc-hardening" in configure.args
        assert "--disable-lzma" in configure.args
        assert configure.args[-1] == "--enable-static-tor"
        assert "--disable-zstd" not in configure.args
        for step in steps:
            assert step.env == {"LDFLAGS": "-s"}

    def test_windows(self):
        steps = make_plan("windows").steps("tor")
        configure = steps[1]

        assert configure.args[-2:] == ("--enable-static-tor", "--disable-zstd")
        assert steps[0].env == {"LDFLAGS": "-s", "LIBS": "-lcrypt32 -lgdi32"}
        assert "--with-openssl-dir=/C/work/tor-static/_openssl/dist" in configure.args

    def test_darwin(self):
        configure = make_plan("darwin", "arm64").steps("tor")[1]

        assert configure.args[-2:] == ("--disable-zstd", "--disable-libscrypt")
        assert "--enable-static-tor" not in configure.args
        assert "--disable-tool-name-check" not in configure.args

    def test_darwin_cross(self):
        """Test cross-compiling on macOS disables the tool name check."""
        configure = make_plan("darwin", "x86_64", "arm64-apple-darwin").steps("tor")[1]

        assert configure.args[-4:] == (
            "--host=arm64-apple-darwin",
            "--disable-zstd",
            "--disable-libscrypt",
            "--disable-tool-name-check",
        )

    def test_linux_cross(self):
        configure = make_plan(host="aarch64-linux-gnu").steps("tor")[1]

        assert configure.args[-2:] == ("--host=aarch64-linux-gnu", "--enable-static-tor")


class TestCleanPlan:
    """Test clean plans."""

    def test_default(self):
        clean = make_plan().clean_plan("libevent")

        assert clean.control_file == ROOT / "libevent" / "Makefile"
        assert [argv(s) for s in clean.steps] == [["make", "clean"]]
        assert clean.remove_dirs == ()

    def test_openssl_removes_installed_libs(self):
        clean = make_plan().clean_plan("_openssl")

        assert clean.remove_dirs == (ROOT / "_openssl" / "dist" / "lib",)

    def test_zlib_prefix(self):
        clean = make_plan().clean_plan("zlib")

        assert clean.steps[0].env == {"PREFIX": "/work/tor-static/zlib/dist"}
        assert clean.control_file == ROOT / "zlib" / "Makefile"

    def test_zlib_windows(self):
        clean = make_plan("windows").clean_plan("zlib")

        assert clean.control_file == ROOT / "zlib" / "win32" / "Makefile.gcc"
        assert argv(clean.steps[0]) == ["make", "clean", "-fwin32/Makefile.gcc"]
        assert clean.steps[0].env == {"PREFIX": "/C/work/tor-static/zlib/dist"}

    def test_unknown_library(self):
        with pytest.raises(BuildPlanError):
            make_plan().clean_plan("all")
