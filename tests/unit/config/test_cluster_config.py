"""Tests for loading the workspace configuration."""

from pathlib import Path

import pytest

from constellation.apply.errors import ConfigValidationError
from constellation.config.loader import CONFIG_FILENAME, load_config, substitute_env_vars
from constellation.config.models import ClusterConfig


class TestSubstituteEnvVars:
    def test_required_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CONSTELL_IMAGE", "ref/v2.16.0")

        assert substitute_env_vars("image: ${CONSTELL_IMAGE}") == "image: ref/v2.16.0"

    def test_default_value(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CONSTELL_NAME", raising=False)

        assert substitute_env_vars("${CONSTELL_NAME:-constell}") == "constell"

    def test_missing_required_variable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CONSTELL_MISSING", raising=False)

        with pytest.raises(ValueError, match="CONSTELL_MISSING"):
            substitute_env_vars("${CONSTELL_MISSING}")

    def test_custom_error_message(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("CONSTELL_MISSING", raising=False)

        with pytest.raises(ValueError, match="set the image"):
            substitute_env_vars("${CONSTELL_MISSING:?set the image}")


class TestLoadConfig:
    def test_missing_file_yields_defaults(self, workspace: Path) -> None:
        assert load_config(workspace) == ClusterConfig()

    def test_loads_yaml(self, workspace: Path) -> None:
        (workspace / CONFIG_FILENAME).write_text(
            """
name: prod
kubernetes_version: v1.29.4
image: ref/v2.16.0
attestation:
  measurements:
    "4": abc
helm_releases:
  - name: cilium
    chart: charts/cilium
    values: [cilium-values.yaml]
api_server_cert_sans: [constell.example.com]
"""
        )

        config = load_config(workspace)

        assert config.name == "prod"
        assert config.kubernetes_version == "v1.29.4"
        assert config.attestation == {"measurements": {"4": "abc"}}
        assert config.helm_releases[0].namespace == "kube-system"
        assert config.helm_releases[0].values == ["cilium-values.yaml"]
        assert config.api_server_cert_sans == ["constell.example.com"]

    def test_env_vars_are_substituted(
        self, workspace: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TARGET_K8S", "v1.30.1")
        (workspace / CONFIG_FILENAME).write_text("kubernetes_version: ${TARGET_K8S}\n")

        assert load_config(workspace).kubernetes_version == "v1.30.1"

    def test_missing_env_var_is_a_configuration_error(
        self, workspace: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("TARGET_K8S", raising=False)
        (workspace / CONFIG_FILENAME).write_text("kubernetes_version: ${TARGET_K8S}\n")

        with pytest.raises(ConfigValidationError):
            load_config(workspace)

    def test_invalid_yaml(self, workspace: Path) -> None:
        (workspace / CONFIG_FILENAME).write_text("name: [unclosed")

        with pytest.raises(ConfigValidationError):
            load_config(workspace)

    def test_top_level_must_be_mapping(self, workspace: Path) -> None:
        (workspace / CONFIG_FILENAME).write_text("- a\n- b\n")

        with pytest.raises(ConfigValidationError, match="mapping"):
            load_config(workspace)

    def test_invalid_field_type(self, workspace: Path) -> None:
        (workspace / CONFIG_FILENAME).write_text("helm_releases: not-a-list\n")

        with pytest.raises(ConfigValidationError) as excinfo:
            load_config(workspace)

        assert excinfo.value.details is not None
