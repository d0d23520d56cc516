"""Tests for analysis settings, diagnostics, linking and orchestration."""

import pytest

from analysis.analyzer import Analyzer
from analysis.context import AnalysisContext, AnalysisSettings, as_bool, option_key
from analysis.diagnostics import Diagnostics
from analysis.linking import DependencyLinker, build_lock_index
from analysis.orchestrator import Orchestrator, matches_pattern
from bom.graph import ComponentGraph, GraphContractError
from bom.models import Component, ComponentKind
from constants import Severity
from versioning.models import Ecosystem, parse_pep440
from versioning.ranges import PoetryVersionRange


class RecordingAnalyzer(Analyzer):
    """Analyzer stub that records dispatches."""

    name = "recording"
    patterns = ("**/*.manifest",)

    def __init__(self, veto=(), fail_on=None, accept=True):
        super().__init__()
        self.veto = set(veto)
        self.fail_on = fail_on
        self.accept = accept
        self.seen = []
        self.lifecycle = []

    def before_analysis(self, settings):
        self.lifecycle.append("before")
        if settings.get_option("--disable-recording", False, bool):
            self._enabled = False

    def can_handle(self, context, path):
        return self.accept

    def should_traverse(self, directory):
        return directory.rsplit("/", 1)[-1] not in self.veto

    def analyze(self, context, path):
        self.seen.append(path)
        if self.fail_on and path.endswith(self.fail_on):
            raise RuntimeError("boom")
        context.add_component(Component(Ecosystem.PYPI, path.rsplit("/", 1)[-1], None, ComponentKind.ROOT))

    def after_analysis(self, settings):
        self.lifecycle.append("after")


def _touch(path, text="{}"):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)


class TestSettings:
    """Option lookup."""

    def test_option_key(self):
        assert option_key("--no-npm-dev-dependencies") == "NO_NPM_DEV_DEPENDENCIES"
        assert option_key("NO_NPM_DEV_DEPENDENCIES") == "NO_NPM_DEV_DEPENDENCIES"

    def test_get_option_by_flag_or_dest(self, tmp_path):
        """Flags and dest names resolve to the same value."""
        settings = AnalysisSettings(str(tmp_path), {"VIRTUAL_ENVIRONMENT_PATH": "env", "FLAG": False})
        assert settings.get_option("--virtual-environment-path") == "env"
        assert settings.get_option("--missing", "default") == "default"
        assert settings.get_option("--flag", True, bool) is False
        assert settings.has_option("--flag")

    def test_get_list(self, tmp_path):
        """Repeatable options accept a single string or a list."""
        settings = AnalysisSettings(str(tmp_path), {"A": "docs", "B": ["x", "y"]})
        assert settings.get_list("--a") == ["docs"]
        assert settings.get_list("--b") == ["x", "y"]
        assert settings.get_list("--c") == []

    def test_boolean_option_strings(self, tmp_path):
        """Quoted config booleans are parsed, not truth-tested."""
        settings = AnalysisSettings(str(tmp_path), {"DISABLE_POETRY": "false", "DISABLE_NPM": "On"})
        assert settings.get_option("--disable-poetry", False, as_bool) is False
        assert settings.get_option("--disable-npm", False, as_bool) is True
        assert as_bool(0) is False
        with pytest.raises(ValueError):
            as_bool("maybe")


class TestDiagnostics:
    """Diagnostics sink and scoped contexts."""

    def test_ordering_and_flags(self):
        """Entries keep insertion order; has_errors only counts errors."""
        diagnostics = Diagnostics()
        diagnostics.add_warning("w1", "npm")
        assert not diagnostics.has_errors
        diagnostics.add_error("e1", "npm", "/p/package.json")
        diagnostics.add_warning("w2")
        assert [d.message for d in diagnostics.items] == ["w1", "e1", "w2"]
        assert diagnostics.has_errors
        assert len(diagnostics.warnings) == 2
        assert diagnostics.errors[0].to_dict() == {
            "severity": "error", "message": "e1", "analyzer": "npm", "path": "/p/package.json",
        }

    def test_diagnostics_are_logged(self, caplog):
        """Every diagnostic is mirrored to the log."""
        diagnostics = Diagnostics()
        with caplog.at_level("WARNING"):
            diagnostics.add_warning("something odd", "poetry")
        assert "[poetry] something odd" in caplog.text

    def test_context_errors_are_scoped(self, tmp_path):
        """An error in one dispatch does not gate another."""
        diagnostics = Diagnostics()
        base = AnalysisContext(AnalysisSettings(str(tmp_path)), ComponentGraph(), diagnostics)
        first = base.scoped("npm", "a")
        second = base.scoped("npm", "b")
        first.add_error("bad")
        second.add_warning("meh")
        assert first.has_errors
        assert not second.has_errors
        assert second.warning_count == 1
        assert diagnostics.has_errors
        assert diagnostics.items[0].severity == Severity.ERROR


class TestDependencyLinker:
    """Recursive edge resolution."""

    def _context(self, tmp_path):
        return AnalysisContext(AnalysisSettings(str(tmp_path)), ComponentGraph(), Diagnostics(), "poetry", "x")

    def _add(self, context, name, version):
        return context.add_component(Component(Ecosystem.PYPI, name, parse_pep440(version)))

    def test_cycle_terminates(self, tmp_path):
        """a -> b -> a in the lock file produces both edges and stops."""
        context = self._context(tmp_path)
        root = context.add_component(Component(Ecosystem.PYPI, "app", None, ComponentKind.ROOT))
        a = self._add(context, "a", "1.0")
        b = self._add(context, "b", "1.0")
        index = build_lock_index([(a, {"b": "*"}), (b, {"a": "*"})])
        linker = DependencyLinker(context, Ecosystem.PYPI, "Poetry", index, PoetryVersionRange)
        linker.link(root, {"a": "^1.0"})
        assert context.graph.has_edge(root, a)
        assert context.graph.has_edge(a, b)
        assert context.graph.has_edge(b, a)
        assert context.graph.edge_count == 3
        assert len(context.diagnostics) == 0

    def test_missing_and_optional_dependencies(self, tmp_path):
        """Unresolvable names warn unless optional."""
        context = self._context(tmp_path)
        root = context.add_component(Component(Ecosystem.PYPI, "app", None, ComponentKind.ROOT))
        linker = DependencyLinker(context, Ecosystem.PYPI, "Poetry", {}, PoetryVersionRange, ["extra"])
        linker.link(root, {"gone": "^1.0", "extra": "^2.0"})
        messages = [d.message for d in context.diagnostics.items]
        assert messages == ["Could not find Poetry dependency gone (^1.0)"]

    def test_missing_constraint_and_inexact_match(self, tmp_path):
        """A None constraint warns and skips; a lenient match warns and links."""
        context = self._context(tmp_path)
        root = context.add_component(Component(Ecosystem.PYPI, "app", None, ComponentKind.ROOT))
        only = self._add(context, "only", "3.0")
        self._add(context, "other", "1.0")
        linker = DependencyLinker(context, Ecosystem.PYPI, "Poetry", {}, PoetryVersionRange)
        linker.link(root, {"other": None, "only": "<2.0"})
        messages = [d.message for d in context.diagnostics.warnings]
        assert messages == [
            "No version constraint for Poetry dependency other of app",
            "Could not find exact Poetry dependency match only (<2.0)",
        ]
        assert context.graph.dependencies_of(root) == [only]


class TestOrchestrator:
    """Tree walk, pruning and dispatch."""

    def test_matches_pattern(self):
        assert matches_pattern("package.json", "**/package.json")
        assert matches_pattern("a/b/package.json", "**/package.json")
        assert matches_pattern("src/App.csproj", "**/*.csproj")
        assert not matches_pattern("a/package.json.bak", "**/package.json")

    def test_dispatch_and_lifecycle(self, tmp_path):
        """Matching files are dispatched in sorted walk order."""
        _touch(tmp_path / "b" / "two.manifest")
        _touch(tmp_path / "a" / "one.manifest")
        _touch(tmp_path / "a" / "ignored.txt")
        analyzer = RecordingAnalyzer()
        result = Orchestrator([analyzer], AnalysisSettings(str(tmp_path))).run()
        assert [p.rsplit("/", 1)[-1] for p in analyzer.seen] == ["one.manifest", "two.manifest"]
        assert analyzer.lifecycle == ["before", "after"]
        assert result.dispatched == 2
        assert result.graph.node_count == 2

    def test_veto_prunes_subtree(self, tmp_path):
        """A directory vetoed by any analyzer is not entered."""
        _touch(tmp_path / "keep" / "x.manifest")
        _touch(tmp_path / "skip" / "deep" / "y.manifest")
        _touch(tmp_path / ".git" / "z.manifest")
        analyzer = RecordingAnalyzer(veto={"skip"})
        Orchestrator([analyzer], AnalysisSettings(str(tmp_path))).run()
        assert [p.rsplit("/", 1)[-1] for p in analyzer.seen] == ["x.manifest"]

    def test_disabled_analyzer_is_skipped(self, tmp_path):
        """Disabled analyzers neither receive files nor veto directories."""
        _touch(tmp_path / "x.manifest")
        analyzer = RecordingAnalyzer()
        settings = AnalysisSettings(str(tmp_path), {"DISABLE_RECORDING": True})
        result = Orchestrator([analyzer], settings).run()
        assert analyzer.seen == []
        assert result.dispatched == 0
        assert analyzer.lifecycle == ["before", "after"]

    def test_can_handle_rejects(self, tmp_path):
        """can_handle refines the glob match."""
        _touch(tmp_path / "x.manifest")
        analyzer = RecordingAnalyzer(accept=False)
        result = Orchestrator([analyzer], AnalysisSettings(str(tmp_path))).run()
        assert analyzer.seen == []
        assert result.dispatched == 0

    def test_unexpected_failure_becomes_error(self, tmp_path):
        """An analyzer exception is recorded and the walk continues."""
        _touch(tmp_path / "a.manifest")
        _touch(tmp_path / "b.manifest")
        analyzer = RecordingAnalyzer(fail_on="a.manifest")
        result = Orchestrator([analyzer], AnalysisSettings(str(tmp_path))).run()
        assert len(analyzer.seen) == 2
        errors = result.diagnostics.errors
        assert len(errors) == 1
        assert "boom" in errors[0].message
        assert errors[0].analyzer == "recording"

    def test_graph_contract_errors_propagate(self, tmp_path):
        """Programming errors against the graph are not swallowed."""
        _touch(tmp_path / "a.manifest")

        class BadAnalyzer(RecordingAnalyzer):
            def analyze(self, context, path):
                context.connect(Component(Ecosystem.PYPI, "x"), Component(Ecosystem.PYPI, "y"))

        with pytest.raises(GraphContractError):
            Orchestrator([BadAnalyzer()], AnalysisSettings(str(tmp_path))).run()
