"""Kubectl command abstractions.

This module provides commands for Kubernetes resource management via
kubectl subprocess calls.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from .types import CommandResult

if TYPE_CHECKING:
    from .runner import CommandRunner


class KubectlCommands:
    """Kubectl-related shell commands.

    Provides operations for:
    - Reading resources as JSON (CRDs, custom resources, ConfigMaps)
    - Applying manifests passed on stdin
    - Patching resources
    """

    def __init__(self, runner: CommandRunner) -> None:
        self._runner = runner

    def _run_kubectl(
        self, args: list[str], *, input_data: str | None = None
    ) -> CommandResult:
        return self._runner.run(["kubectl", *args], input_data=input_data)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_json(
        self,
        resource_type: str,
        name: str | None = None,
        *,
        namespace: str | None = None,
        all_namespaces: bool = False,
    ) -> tuple[CommandResult, dict[str, Any]]:
        """Get a resource, or a list of resources, decoded from JSON.

        Returns:
            The command result and the decoded object. The object is empty
            when the command failed or printed no valid JSON.
        """
        args = ["get", resource_type]
        if name:
            args.append(name)
        if all_namespaces:
            args.append("--all-namespaces")
        elif namespace:
            args.extend(["-n", namespace])
        args.extend(["-o", "json"])

        result = self._run_kubectl(args)
        if not result.success or not result.stdout:
            return result, {}
        try:
            return result, json.loads(result.stdout)
        except json.JSONDecodeError:
            return result, {}

    def get_configmap(self, name: str, namespace: str) -> dict[str, str] | None:
        """Get the data of a ConfigMap, or None if it cannot be read."""
        result, obj = self.get_json("configmap", name, namespace=namespace)
        if not result.success or not obj:
            return None
        data: dict[str, str] = obj.get("data") or {}
        return data

    # =========================================================================
    # Writes
    # =========================================================================

    def apply_manifest(self, manifest: str) -> CommandResult:
        """Apply a manifest passed on stdin."""
        return self._run_kubectl(["apply", "-f", "-"], input_data=manifest)

    def patch(
        self,
        resource_type: str,
        name: str,
        patch: dict[str, Any],
        *,
        namespace: str | None = None,
        patch_type: str = "merge",
    ) -> CommandResult:
        """Patch a resource."""
        args = ["patch", resource_type, name]
        if namespace:
            args.extend(["-n", namespace])
        args.extend(["--type", patch_type, "-p", json.dumps(patch)])
        return self._run_kubectl(args)
