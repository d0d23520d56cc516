"""Tests for the npm readers and analyzer."""

import base64
import hashlib
import json

from analysis.context import AnalysisSettings
from analysis.orchestrator import Orchestrator
from ecosystems.npm import NpmAnalyzer
from ecosystems.npm.license import license_from_value, lookup_license
from ecosystems.npm.lockfile_parser import (
    package_name_from_path,
    parse_package_json,
    parse_package_lock,
)
from versioning.models import Ecosystem, TextVersion


def _sri(payload: bytes) -> str:
    return "sha512-" + base64.b64encode(hashlib.sha512(payload).digest()).decode("ascii")


PACKAGE_JSON = {
    "name": "web",
    "version": "1.0.0",
    "dependencies": {"left-pad": "^1.1.0", "@scope/util": "~2.0.0"},
    "devDependencies": {"jest": "^29.0.0"},
    "optionalDependencies": {"fsevents": "^2.3.0"},
}

PACKAGE_LOCK = {
    "name": "web",
    "version": "1.0.0",
    "lockfileVersion": 3,
    "packages": {
        "": {"name": "web", "version": "1.0.0"},
        "node_modules/left-pad": {
            "version": "1.3.0",
            "integrity": _sri(b"left-pad-1.3.0"),
            "license": "WTFPL",
        },
        "node_modules/@scope/util": {
            "version": "2.0.4",
            "dependencies": {"left-pad": "^1.0.0"},
        },
        "node_modules/@scope/util/node_modules/left-pad": {
            "version": "1.0.0",
        },
        "node_modules/jest": {"version": "29.7.0", "dev": True},
    },
}


def _write_project(directory, package_json=None, lock=None):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / "package.json").write_text(json.dumps(package_json or PACKAGE_JSON))
    (directory / "package-lock.json").write_text(json.dumps(lock or PACKAGE_LOCK))


def _run(root, options=None):
    return Orchestrator([NpmAnalyzer()], AnalysisSettings(str(root), options or {})).run()


LICENSE_WARNING = "Could not find license metadata for package "


def _license_warnings(result):
    return sorted(
        d.message[len(LICENSE_WARNING):] for d in result.diagnostics.warnings
        if d.message.startswith(LICENSE_WARNING)
    )


def _link_warnings(result):
    return [d.message for d in result.diagnostics.warnings if not d.message.startswith(LICENSE_WARNING)]


def _find(graph, name, version):
    for c in graph.find_by_ecosystem_and_name(Ecosystem.NPM, name):
        if c.version_text == version:
            return c
    raise AssertionError(f"{name}@{version} not in graph")


class TestNpmReaders:
    """package.json and package-lock.json parsing."""

    def test_package_name_from_path(self):
        assert package_name_from_path("node_modules/lodash") == "lodash"
        assert package_name_from_path("node_modules/@types/node") == "@types/node"
        assert package_name_from_path("node_modules/a/node_modules/@s/b") == "@s/b"

    def test_parse_package_json(self, tmp_path):
        """All four dependency groups are read; optional and peer names are optional."""
        path = tmp_path / "package.json"
        data = dict(PACKAGE_JSON, peerDependencies={"react": ">=17"})
        path.write_text(json.dumps(data))
        manifest = parse_package_json(str(path))
        assert manifest.project_name == "web"
        assert list(manifest.dependency_groups) == [
            "dependencies", "devDependencies", "optionalDependencies", "peerDependencies",
        ]
        assert manifest.optional_packages == ["fsevents", "react"]

    def test_parse_invalid_json(self, tmp_path):
        path = tmp_path / "package.json"
        path.write_text("{ not json")
        assert parse_package_json(str(path)) is None
        path.write_text("[]")
        assert parse_package_json(str(path)) is None

    def test_parse_lock_v3(self, tmp_path):
        """The flat packages map yields one entry per install path."""
        path = tmp_path / "package-lock.json"
        path.write_text(json.dumps(PACKAGE_LOCK))
        lock = parse_package_lock(str(path))
        assert [(p.name, p.version) for p in lock.packages] == [
            ("left-pad", "1.3.0"), ("@scope/util", "2.0.4"), ("left-pad", "1.0.0"), ("jest", "29.7.0"),
        ]
        assert lock.packages[1].dependencies == {"left-pad": "^1.0.0"}
        assert lock.packages[2].location == "node_modules/@scope/util/node_modules/left-pad"

    def test_parse_lock_v2_skips_links(self, tmp_path):
        """Workspace symlinks are skipped; their targets are listed separately."""
        path = tmp_path / "package-lock.json"
        path.write_text(json.dumps({
            "lockfileVersion": 2,
            "packages": {
                "": {"name": "mono"},
                "node_modules/lib": {"resolved": "packages/lib", "link": True},
                "packages/lib": {"name": "lib", "version": "0.1.0"},
            },
        }))
        lock = parse_package_lock(str(path))
        assert [(p.name, p.version) for p in lock.packages] == [("lib", "0.1.0")]

    def test_parse_lock_v1(self, tmp_path):
        """Nested dependencies are flattened; requires are the package's dependencies."""
        path = tmp_path / "package-lock.json"
        path.write_text(json.dumps({
            "lockfileVersion": 1,
            "dependencies": {
                "express": {
                    "version": "4.18.2",
                    "integrity": _sri(b"express"),
                    "requires": {"debug": "2.6.9"},
                    "dependencies": {"debug": {"version": "2.6.9"}},
                },
            },
        }))
        lock = parse_package_lock(str(path))
        assert [(p.name, p.version, p.location) for p in lock.packages] == [
            ("express", "4.18.2", "node_modules/express"),
            ("debug", "2.6.9", "node_modules/express/node_modules/debug"),
        ]
        assert lock.packages[0].dependencies == {"debug": "2.6.9"}
        assert lock.packages[1].dependencies == {}


class TestNpmLicenses:
    """License values from package.json files."""

    def test_license_shapes(self):
        assert license_from_value("MIT") == "MIT"
        assert license_from_value({"type": "ISC", "url": "https://x"}) == "ISC"
        assert license_from_value([{"type": "MIT"}, {"type": "Apache-2.0"}]) == "(MIT OR Apache-2.0)"
        assert license_from_value([{"type": "BSD-2-Clause"}]) == "BSD-2-Clause"
        assert license_from_value(42) is None

    def test_lookup_installed_package(self, tmp_path):
        installed = tmp_path / "node_modules" / "@scope" / "util"
        installed.mkdir(parents=True)
        (installed / "package.json").write_text(json.dumps({"licenses": [{"type": "MIT"}]}))
        assert lookup_license(str(tmp_path), "node_modules/@scope/util") == (True, "MIT")
        assert lookup_license(str(tmp_path), "node_modules/missing") == (False, None)


class TestNpmAnalyzer:
    """Four-phase resolution over real files."""

    def test_graph(self, tmp_path):
        """Each constraint links the lowest satisfying locked version."""
        _write_project(tmp_path)
        result = _run(tmp_path)
        graph = result.graph
        root = graph.roots[0]
        assert (root.name, root.version_text) == ("web", "1.0.0")
        assert [f"{c.name}@{c.version_text}" for c in graph.dependencies_of(root)] == [
            "left-pad@1.3.0", "@scope/util@2.0.4", "jest@29.7.0",
        ]
        util = _find(graph, "@scope/util", "2.0.4")
        assert [f"{c.name}@{c.version_text}" for c in graph.dependencies_of(util)] == ["left-pad@1.0.0"]
        # fsevents is optional and absent from the lock: no warning
        assert _link_warnings(result) == []
        assert not result.diagnostics.has_errors

    def test_uninstalled_packages_warn_about_licenses(self, tmp_path):
        """Without node_modules, packages lacking a lock license are reported by identity."""
        _write_project(tmp_path)
        result = _run(tmp_path)
        assert _license_warnings(result) == ["@scope/util@2.0.4", "jest@29.7.0", "left-pad@1.0.0"]
        assert _find(result.graph, "jest", "29.7.0").license is None

    def test_hash_and_licenses(self, tmp_path):
        """Integrity becomes the hash; lock and installed licenses are used."""
        _write_project(tmp_path)
        jest_dir = tmp_path / "node_modules" / "jest"
        jest_dir.mkdir(parents=True)
        (jest_dir / "package.json").write_text(json.dumps({"name": "jest", "license": {"type": "MIT"}}))

        result = _run(tmp_path)
        graph = result.graph
        left_pad = _find(graph, "left-pad", "1.3.0")
        assert str(left_pad.hash) == "sha512:" + hashlib.sha512(b"left-pad-1.3.0").hexdigest()
        assert left_pad.license.id == "WTFPL"
        assert _find(graph, "jest", "29.7.0").license.id == "MIT"
        assert _find(graph, "@scope/util", "2.0.4").license is None
        assert _license_warnings(result) == ["@scope/util@2.0.4", "left-pad@1.0.0"]
        # node_modules is never walked, so jest's package.json is not a project
        assert result.dispatched == 1

    def test_dev_dependencies_excluded(self, tmp_path):
        _write_project(tmp_path)
        graph = _run(tmp_path, {"NO_NPM_DEV_DEPENDENCIES": True}).graph
        assert [c.name for c in graph.dependencies_of(graph.roots[0])] == ["left-pad", "@scope/util"]

    def test_exclude_group_option(self, tmp_path):
        _write_project(tmp_path)
        graph = _run(tmp_path, {"NPM_EXCLUDE_GROUP": ["dependencies"]}).graph
        assert [c.name for c in graph.dependencies_of(graph.roots[0])] == ["jest"]

    def test_missing_dependency_warns(self, tmp_path):
        """A declared dependency absent from the lock is reported."""
        package_json = dict(PACKAGE_JSON, dependencies={"left-pad": "^1.1.0", "ghost": "^1.0.0"})
        _write_project(tmp_path, package_json=package_json)
        result = _run(tmp_path)
        assert _link_warnings(result) == [
            "Could not find npm dependency ghost (^1.0.0)",
        ]
        assert not result.diagnostics.has_errors

    def test_git_dependency_is_literal(self, tmp_path):
        """Non-semver versions match their literal constraint text."""
        url = "git+https://github.com/u/tool.git#v1"
        package_json = {"name": "web", "dependencies": {"tool": url}}
        lock = {"lockfileVersion": 3, "packages": {"node_modules/tool": {"version": url}}}
        _write_project(tmp_path, package_json=package_json, lock=lock)
        result = _run(tmp_path)
        graph = result.graph
        tool = graph.find_by_ecosystem_and_name(Ecosystem.NPM, "tool")[0]
        assert tool.version == TextVersion(url)
        assert graph.dependencies_of(graph.roots[0]) == [tool]
        assert _link_warnings(result) == []

    def test_requires_lock_file(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps(PACKAGE_JSON))
        assert _run(tmp_path).dispatched == 0
