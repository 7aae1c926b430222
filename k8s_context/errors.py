"""Error types raised by the kubeconfig store and merger."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from k8s_context.merger import DanglingReferences


class KubeconfigError(Exception):
    """Base class for every error raised by k8s-context."""


class NotFoundError(KubeconfigError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"kubeconfig not found: {path}")


class ReadError(KubeconfigError):
    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"failed to read {path}: {reason}")


class ParseError(KubeconfigError):
    def __init__(self, path: Path | None, reason: str) -> None:
        self.path = path
        self.reason = reason
        where = f" {path}" if path else ""
        super().__init__(f"invalid kubeconfig{where}: {reason}")


class SchemaError(KubeconfigError):
    """kind/apiVersion missing or not the kubeconfig constants."""

    def __init__(self, path: Path | None, field: str, value: object) -> None:
        self.path = path
        self.field = field
        self.value = value
        where = f" {path}" if path else ""
        super().__init__(f"unexpected {field} in kubeconfig{where}: {value!r}")


class WriteError(KubeconfigError):
    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"failed to write {path}: {reason}")


class NoCurrentContextError(KubeconfigError):
    def __init__(self) -> None:
        super().__init__("no current context set in kubeconfig")


class DanglingContextError(KubeconfigError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"current context not found in kubeconfig: {name}")


class UnknownContextError(KubeconfigError):
    def __init__(self, name: str, hint: str = "") -> None:
        self.name = name
        message = f"context not found: {name}"
        if hint:
            message = f"{message} ({hint})"
        super().__init__(message)


class ClusterNotFoundError(KubeconfigError):
    def __init__(self, context: str, cluster: str) -> None:
        self.context = context
        self.cluster = cluster
        super().__init__(f"cluster {cluster!r} referenced by context {context!r} not found")


class CredentialNotFoundError(KubeconfigError):
    def __init__(self, context: str, user: str) -> None:
        self.context = context
        self.user = user
        super().__init__(f"user {user!r} referenced by context {context!r} not found")


class IntegrityError(KubeconfigError):
    """Merged contexts reference clusters or users that are not defined."""

    def __init__(self, dangling: DanglingReferences) -> None:
        self.dangling = dangling
        parts = [
            f"{context} -> cluster {cluster}"
            for context, cluster in sorted(dangling.clusters.items())
        ]
        parts += [
            f"{context} -> user {user}" for context, user in sorted(dangling.users.items())
        ]
        super().__init__("dangling references in merged kubeconfig: " + ", ".join(parts))
