"""Integration tests for the pytest plugin, driven in-process with pytester.

Each test writes a small test module plus an excludes directory and checks
which tests are skipped and that the exclude reason is reported.
"""

from __future__ import annotations

import textwrap

import pytest
import structlog

PLUGIN = ("-p", "excludes.pytest_plugin")

THREAD_TESTS = textwrap.dedent(
    """\
    import pytest


    class TestThread:
        def test_priority(self):
            pass

        def test_thread_stack_size(self):
            pass

        def test_join(self):
            pass


    class TestMutex:
        def test_priority(self):
            pass


    def test_module_level():
        pass


    @pytest.mark.parametrize("n", [1, 2])
    def test_param(n):
        pass
    """
)

THREAD_EXCLUDES = textwrap.dedent(
    """\
    # frozen_string_literal: false
    exclude(/_stack_size$/, 'often too expensive')
    exclude :test_priority, "unreliably depends on thread scheduling"
    """
)


@pytest.fixture
def suite(pytester: pytest.Pytester) -> pytest.Pytester:
    pytester.makepyfile(test_thread=THREAD_TESTS)
    excludes = pytester.mkdir("excludes")
    (excludes / "TestThread.rb").write_text(THREAD_EXCLUDES)
    return pytester


class TestPluginSkips:
    def test_excluded_tests_are_skipped(self, suite: pytest.Pytester) -> None:
        result = suite.runpytest(*PLUGIN, "--excludes-dir=excludes", "-rs")
        result.assert_outcomes(passed=5, skipped=2)
        result.stdout.fnmatch_lines([
            "*unreliably depends on thread scheduling*",
            "*often too expensive*",
        ])

    def test_lookup_is_scoped_to_class(self, suite: pytest.Pytester) -> None:
        result = suite.runpytest(*PLUGIN, "--excludes-dir=excludes", "-v")
        result.stdout.fnmatch_lines([
            "*TestThread::test_priority SKIPPED*",
            "*TestMutex::test_priority PASSED*",
        ])

    def test_module_functions_use_module_name(self, suite: pytest.Pytester) -> None:
        (suite.path / "excludes" / "test_thread.yaml").write_text(
            "excludes:\n  - name: test_module_level\n    reason: module level skip\n"
        )
        result = suite.runpytest(*PLUGIN, "--excludes-dir=excludes", "-rs")
        result.assert_outcomes(passed=4, skipped=3)
        result.stdout.fnmatch_lines(["*module level skip*"])

    def test_parametrized_tests_match_original_name(self, suite: pytest.Pytester) -> None:
        (suite.path / "excludes" / "test_thread.rb").write_text("exclude :test_param, 'all params'\n")
        result = suite.runpytest(*PLUGIN, "--excludes-dir=excludes")
        result.assert_outcomes(passed=3, skipped=4)

    def test_no_excludes_flag_runs_everything(self, suite: pytest.Pytester) -> None:
        result = suite.runpytest(*PLUGIN, "--excludes-dir=excludes", "--no-excludes")
        result.assert_outcomes(passed=7)

    def test_inert_without_configured_dirs(self, suite: pytest.Pytester) -> None:
        result = suite.runpytest(*PLUGIN)
        result.assert_outcomes(passed=7)

    def test_report_header(self, suite: pytest.Pytester) -> None:
        result = suite.runpytest(*PLUGIN, "--excludes-dir=excludes")
        result.stdout.fnmatch_lines(["excludes: 2 entries for 1 test cases"])


class TestPluginConfigSources:
    def test_ini_option(self, suite: pytest.Pytester) -> None:
        suite.makeini("[pytest]\nexcludes_dir = excludes\n")
        result = suite.runpytest(*PLUGIN)
        result.assert_outcomes(passed=5, skipped=2)

    def test_config_file(self, suite: pytest.Pytester) -> None:
        config_dir = suite.mkdir(".excludes")
        (config_dir / "config.yaml").write_text("version: 1\nexcludes:\n  dirs: [../excludes]\n")
        result = suite.runpytest(*PLUGIN)
        result.assert_outcomes(passed=5, skipped=2)

    def test_env_dir(self, suite: pytest.Pytester, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("EXCLUDES_DIR", str(suite.path / "excludes"))
        result = suite.runpytest(*PLUGIN)
        result.assert_outcomes(passed=5, skipped=2)

    def test_command_line_beats_ini(self, suite: pytest.Pytester) -> None:
        suite.mkdir("empty")
        suite.makeini("[pytest]\nexcludes_dir = empty\n")
        result = suite.runpytest(*PLUGIN, "--excludes-dir=excludes")
        result.assert_outcomes(passed=5, skipped=2)

    def test_invalid_config_is_usage_error(self, suite: pytest.Pytester) -> None:
        config_dir = suite.mkdir(".excludes")
        (config_dir / "config.yaml").write_text("excludes: {}\n")
        result = suite.runpytest(*PLUGIN)
        assert result.ret == pytest.ExitCode.USAGE_ERROR

    def test_report_header_names_config_file(self, suite: pytest.Pytester) -> None:
        config_dir = suite.mkdir(".excludes")
        (config_dir / "config.yaml").write_text("version: 1\nexcludes:\n  dirs: [../excludes]\n")
        result = suite.runpytest(*PLUGIN)
        result.stdout.fnmatch_lines(["excludes: 2 entries for 1 test cases (config: *config.yaml)"])


HOST_LOGGING_CONFTEST = textwrap.dedent(
    """\
    import structlog


    def host_marker(logger, method_name, event_dict):
        return event_dict


    structlog.configure(processors=[host_marker, structlog.processors.JSONRenderer()])
    """
)

HOST_LOGGING_TEST = textwrap.dedent(
    """\
    import structlog


    def test_host_logging_untouched():
        names = [getattr(p, "__name__", type(p).__name__) for p in structlog.get_config()["processors"]]
        assert "host_marker" in names
    """
)


@pytest.fixture
def restore_structlog():
    saved = structlog.get_config()
    yield
    structlog.configure(**saved)


@pytest.mark.usefixtures("restore_structlog")
class TestPluginLeavesHostLogging:
    def test_without_excludes_dirs(self, pytester: pytest.Pytester) -> None:
        pytester.makeconftest(HOST_LOGGING_CONFTEST)
        pytester.makepyfile(test_host=HOST_LOGGING_TEST)
        result = pytester.runpytest(*PLUGIN)
        result.assert_outcomes(passed=1)

    def test_with_excludes_dirs(self, pytester: pytest.Pytester) -> None:
        pytester.makeconftest(HOST_LOGGING_CONFTEST)
        pytester.makepyfile(test_host=HOST_LOGGING_TEST)
        excludes = pytester.mkdir("excludes")
        (excludes / "TestOther.rb").write_text("exclude :test_other, 'r'\n")
        result = pytester.runpytest(*PLUGIN, "--excludes-dir=excludes")
        result.assert_outcomes(passed=1)

    def test_importing_package_does_not_configure_structlog(self, pytester: pytest.Pytester) -> None:
        result = pytester.runpython_c(
            "import structlog, excludes, excludes.pytest_plugin; assert not structlog.is_configured()"
        )
        assert result.ret == 0
