"""Tests for the service table: reference parsing, URL resolution and config I/O."""

from __future__ import annotations

import tomllib
from pathlib import Path

import pytest

from cpr.config.services import (
    DEFAULT_SERVICE_URL,
    ServiceConfig,
    init_config,
    load_config,
    load_or_init_config,
    local_template_path,
    parse_template_ref,
    resolve,
    write_config,
)
from cpr.core.errors import ConfigError, UnknownServiceError
from cpr.core.models import TemplateRef

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Reference parsing
# ---------------------------------------------------------------------------


class TestParseTemplateRef:
    def test_prefix_and_path(self) -> None:
        ref = parse_template_ref("gh:cpr-rs/cpp", "gl")
        assert ref == TemplateRef(prefix="gh", repo_path="cpr-rs/cpp")

    def test_missing_prefix_uses_default_service(self) -> None:
        ref = parse_template_ref("cpr-rs/cpp", "gl")
        assert ref.prefix == "gl"
        assert ref.repo_path == "cpr-rs/cpp"

    def test_empty_repo_path_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            parse_template_ref("gh:", "gh")

    def test_project_name_strips_dot_git(self) -> None:
        assert parse_template_ref("gh:cpr-rs/cpp.git", "gh").project_name == "cpp"
        assert str(parse_template_ref("gh:cpr-rs/cpp", "gh")) == "gh:cpr-rs/cpp"


class TestLocalTemplatePath:
    def test_existing_directory(self, tmp_path: Path) -> None:
        assert local_template_path(str(tmp_path)) == tmp_path.resolve()

    def test_file_uri(self, tmp_path: Path) -> None:
        assert local_template_path(f"file://{tmp_path}") == tmp_path.resolve()

    def test_remote_reference_is_not_local(self) -> None:
        assert local_template_path("gh:cpr-rs/cpp") is None

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert local_template_path(str(tmp_path / "nope")) is None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolve:
    def test_substitutes_repo_path(self, service_config: ServiceConfig) -> None:
        url = resolve(TemplateRef(prefix="gh", repo_path="cpr-rs/cpp"), service_config)
        assert url == "https://github.com/cpr-rs/cpp.git"

    def test_placeholder_without_spaces(self, service_config: ServiceConfig) -> None:
        url = resolve(TemplateRef(prefix="gl", repo_path="group/sub/proj"), service_config)
        assert url == "https://gitlab.com/group/sub/proj.git"

    @pytest.mark.parametrize("repo_path", ["a/b", "owner/name-with-dash", "x/{y}"])
    def test_no_markers_remain(self, service_config: ServiceConfig, repo_path: str) -> None:
        url = resolve(TemplateRef(prefix="gh", repo_path=repo_path), service_config)
        assert "{{" not in url and "}}" not in url
        assert repo_path in url

    def test_unknown_prefix(self, service_config: ServiceConfig) -> None:
        with pytest.raises(UnknownServiceError) as excinfo:
            resolve(TemplateRef(prefix="bb", repo_path="a/b"), service_config)
        assert excinfo.value.prefix == "bb"


# ---------------------------------------------------------------------------
# Config model and file
# ---------------------------------------------------------------------------


class TestServiceConfig:
    def test_default(self) -> None:
        config = ServiceConfig.default()
        assert config.default_service == "gh"
        assert config.services["gh"].url == DEFAULT_SERVICE_URL

    @pytest.mark.parametrize(
        "url",
        ["https://example.com/repo.git", "https://x/{{ repo }}/{{ repo }}.git"],
    )
    def test_placeholder_count_is_validated(self, url: str) -> None:
        with pytest.raises(ConfigError):
            ServiceConfig.default().add_service("ex", url)

    def test_add_then_remove(self) -> None:
        config = ServiceConfig.default().add_service("gl", "https://gitlab.com/{{ repo }}.git")
        assert set(config.services) == {"gh", "gl"}
        config = config.remove_service("gl")
        assert set(config.services) == {"gh"}

    def test_remove_unknown(self) -> None:
        with pytest.raises(UnknownServiceError):
            ServiceConfig.default().remove_service("gl")

    def test_remove_default_is_refused(self) -> None:
        with pytest.raises(ConfigError):
            ServiceConfig.default().remove_service("gh")

    def test_set_default(self, service_config: ServiceConfig) -> None:
        assert service_config.set_default_service("gl").default_service == "gl"
        with pytest.raises(UnknownServiceError):
            service_config.set_default_service("bb")

    def test_mutations_do_not_modify_original(self, service_config: ServiceConfig) -> None:
        service_config.add_service("bb", "https://bitbucket.org/{{ repo }}.git")
        assert "bb" not in service_config.services


class TestConfigFile:
    def test_init_writes_default(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "config.toml"
        config = init_config(path)
        assert path.exists()
        assert load_config(path) == config
        data = tomllib.loads(path.read_text())
        assert data["services"]["gh"]["url"] == DEFAULT_SERVICE_URL
        assert data["default_service"] == "gh"

    def test_reads_existing_toml_table(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text(
            'default_service = "gl"\n'
            "\n"
            "[services.gh]\n"
            'url = "https://github.com/{{ repo }}.git"\n'
            "\n"
            "[services.gl]\n"
            'url = "https://gitlab.com/{{ repo }}.git"\n'
        )
        config, created = load_or_init_config(path)
        assert not created
        assert config.default_service == "gl"
        assert set(config.services) == {"gh", "gl"}

    def test_load_or_init(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        _, created = load_or_init_config(path)
        assert created
        _, created = load_or_init_config(path)
        assert not created

    def test_round_trip_after_mutation(self, tmp_path: Path, service_config: ServiceConfig) -> None:
        path = tmp_path / "config.toml"
        write_config(path, service_config.set_default_service("gl"))
        loaded = load_config(path)
        assert loaded.default_service == "gl"
        assert loaded.services == service_config.services
        assert list(tmp_path.iterdir()) == [path]

    def test_malformed_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("services = [unclosed\n")
        with pytest.raises(ConfigError) as excinfo:
            load_config(path)
        assert "line" in str(excinfo.value)

    def test_undecodable_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_bytes(b"default_service = \"\xff\"\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_default_service_must_exist(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text(
            'default_service = "bb"\n\n[services.gh]\nurl = "https://github.com/{{ repo }}.git"\n'
        )
        with pytest.raises(ConfigError):
            load_config(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(tmp_path / "missing.toml")

    def test_unwritable_location(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        with pytest.raises(ConfigError) as excinfo:
            write_config(blocker / "config.toml", ServiceConfig.default())
        assert excinfo.value.path == blocker / "config.toml"
