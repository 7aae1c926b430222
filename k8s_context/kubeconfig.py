"""Loading, saving and discovery of kubeconfig files."""

from __future__ import annotations

import contextlib
import datetime as dt
import logging
import os
import shutil
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from k8s_context.errors import NotFoundError, ParseError, ReadError, SchemaError, WriteError

logger = logging.getLogger(__name__)

KIND = "Config"
API_VERSION = "v1"

CONFIG_PREFIX = "config"
BACKUP_SUFFIXES = (".bak", ".backup", ".old", ".tmp", ".swp")

# (attribute, file key) pairs for the fields each record knows about.
# Anything else found in the file is kept in ``extra``; keys next to
# ``name`` in a list entry are kept in ``entry_extra``.
CLUSTER_FIELDS = (
    ("server", "server"),
    ("certificate_authority_data", "certificate-authority-data"),
    ("insecure_skip_tls_verify", "insecure-skip-tls-verify"),
)
CREDENTIAL_FIELDS = (
    ("token", "token"),
    ("token_file", "tokenFile"),
    ("username", "username"),
    ("password", "password"),
    ("client_certificate_data", "client-certificate-data"),
    ("client_key_data", "client-key-data"),
)
CONTEXT_FIELDS = (
    ("cluster", "cluster"),
    ("user", "user"),
    ("namespace", "namespace"),
)

TOP_LEVEL_KEYS = ("kind", "apiVersion", "clusters", "users", "contexts", "current-context")


@dataclass
class Cluster:
    server: str = ""
    certificate_authority_data: str | None = None
    insecure_skip_tls_verify: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    entry_extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class Credential:
    """Authentication material for one user entry, carried verbatim."""

    token: str | None = None
    token_file: str | None = None
    username: str | None = None
    password: str | None = None
    client_certificate_data: str | None = None
    client_key_data: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    entry_extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class Context:
    cluster: str = ""
    user: str = ""
    namespace: str = ""
    extra: dict[str, Any] = field(default_factory=dict)
    entry_extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class Document:
    """One parsed kubeconfig file."""

    clusters: dict[str, Cluster] = field(default_factory=dict)
    users: dict[str, Credential] = field(default_factory=dict)
    contexts: dict[str, Context] = field(default_factory=dict)
    current_context: str = ""
    kind: str = KIND
    api_version: str = API_VERSION
    extra: dict[str, Any] = field(default_factory=dict)


def get_kube_dir() -> Path:
    """Get the ~/.kube directory path."""
    return Path.home() / ".kube"


def default_kubeconfig_paths(environ: Mapping[str, str] | None = None) -> list[Path]:
    """
    Resolve the kubeconfig files to use when none are given explicitly.

    $KUBECONFIG (a path list) wins; otherwise ~/.kube/config.
    """
    env = os.environ if environ is None else environ
    value = env.get("KUBECONFIG", "")
    paths = [Path(item).expanduser() for item in value.split(os.pathsep) if item.strip()]
    if paths:
        return paths
    return [get_kube_dir() / "config"]


def is_backup_name(name: str) -> bool:
    lower = name.lower()
    if ".bak." in lower or ".backup." in lower:
        return True
    return lower.endswith(BACKUP_SUFFIXES)


def list_kubeconfig_files(kube_dir: Path | None = None) -> list[Path]:
    """List files in kube_dir whose name starts with "config", skipping backups."""
    if kube_dir is None:
        kube_dir = get_kube_dir()
    if not kube_dir.is_dir():
        logger.warning(f"Kube directory not found: {kube_dir}")
        return []

    configs: list[Path] = []
    for item in kube_dir.iterdir():
        if not item.is_file():
            continue
        name = item.name
        if not name.startswith(CONFIG_PREFIX):
            continue
        if is_backup_name(name):
            continue
        configs.append(item)

    return sorted(configs, key=lambda p: p.name)


def dedupe_paths(paths: Iterable[Path]) -> list[Path]:
    seen: set[Path] = set()
    result: list[Path] = []
    for path in paths:
        expanded = path.expanduser()
        resolved = expanded.resolve(strict=False)
        if resolved in seen:
            continue
        seen.add(resolved)
        result.append(expanded)
    return result


def ensure_parent_dir(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def backup_file(path: Path, backup_dir: Path | None = None) -> Path:
    if backup_dir is None:
        backup_dir = get_kube_dir() / "config_backup"
    backup_dir.mkdir(parents=True, exist_ok=True)
    timestamp = dt.datetime.now().strftime("%Y%m%d%H%M%S")
    backup_path = backup_dir / f"{path.name}.bak.{timestamp}"
    shutil.copy2(path, backup_path)
    logger.info(f"Backup created at {backup_path}")
    return backup_path


def _parse_section(
    raw: Any, section: str, payload_key: str, path: Path | None
) -> dict[str, tuple[Any, dict[str, Any]]]:
    """
    Map entry name -> (raw payload, other keys of the list entry) for one of
    clusters/users/contexts.
    """
    if raw is None:
        return {}

    entries: dict[str, tuple[Any, dict[str, Any]]] = {}
    if isinstance(raw, dict):
        for name, payload in raw.items():
            if not isinstance(name, str) or not name.strip():
                raise ParseError(path, f"{section} has an entry without a name")
            entries[name] = (payload, {})
        return entries

    if not isinstance(raw, list):
        raise ParseError(path, f"{section} must be a list")

    for item in raw:
        if not isinstance(item, dict):
            raise ParseError(path, f"{section} entries must be mappings")
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ParseError(path, f"{section} has an entry without a name")
        if name in entries:
            raise ParseError(path, f"duplicate {payload_key} name {name!r}")
        entry_extra = {k: v for k, v in item.items() if k not in ("name", payload_key)}
        entries[name] = (item.get(payload_key), entry_extra)
    return entries


def _record_from_payload(
    record_type: type,
    fields: tuple[tuple[str, str], ...],
    entry: tuple[Any, dict[str, Any]],
    label: str,
    path: Path | None,
) -> Any:
    payload, entry_extra = entry
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ParseError(path, f"{label} must be a mapping")

    extra = dict(payload)
    kwargs = {}
    for attr, key in fields:
        if key not in extra:
            continue
        value = extra.pop(key)
        if value is not None:
            kwargs[attr] = value
    return record_type(**kwargs, extra=extra, entry_extra=entry_extra)


def _record_to_payload(
    record: Any,
    fields: tuple[tuple[str, str], ...],
    omit_empty: tuple[str, ...] = (),
) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    for attr, key in fields:
        value = getattr(record, attr)
        if value is None or (value == "" and attr in omit_empty):
            continue
        payload[key] = value
    payload.update(record.extra)
    return payload


def document_from_dict(data: Any, path: Path | None = None) -> Document:
    """Build a Document from the raw YAML structure of a kubeconfig."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError(path, "kubeconfig root must be a mapping")

    kind = data.get("kind")
    if kind != KIND:
        raise SchemaError(path, "kind", kind)
    api_version = data.get("apiVersion")
    if api_version != API_VERSION:
        raise SchemaError(path, "apiVersion", api_version)

    current_context = data.get("current-context")
    if current_context is None:
        current_context = ""
    if not isinstance(current_context, str):
        raise ParseError(path, "current-context must be a string")

    clusters = {
        name: _record_from_payload(Cluster, CLUSTER_FIELDS, entry, f"cluster {name!r}", path)
        for name, entry in _parse_section(data.get("clusters"), "clusters", "cluster", path).items()
    }
    users = {
        name: _record_from_payload(Credential, CREDENTIAL_FIELDS, entry, f"user {name!r}", path)
        for name, entry in _parse_section(data.get("users"), "users", "user", path).items()
    }
    contexts = {
        name: _record_from_payload(Context, CONTEXT_FIELDS, entry, f"context {name!r}", path)
        for name, entry in _parse_section(data.get("contexts"), "contexts", "context", path).items()
    }

    return Document(
        clusters=clusters,
        users=users,
        contexts=contexts,
        current_context=current_context,
        extra={key: value for key, value in data.items() if key not in TOP_LEVEL_KEYS},
    )


def document_to_dict(document: Document) -> dict[str, Any]:
    """Serialize a Document into the standard kubeconfig layout."""
    data: dict[str, Any] = {
        "kind": KIND,
        "apiVersion": API_VERSION,
        "clusters": [
            {
                "name": name,
                "cluster": _record_to_payload(cluster, CLUSTER_FIELDS, omit_empty=("server",)),
                **cluster.entry_extra,
            }
            for name, cluster in document.clusters.items()
        ],
        "users": [
            {"name": name, "user": _record_to_payload(user, CREDENTIAL_FIELDS), **user.entry_extra}
            for name, user in document.users.items()
        ],
        "contexts": [
            {
                "name": name,
                "context": _record_to_payload(
                    context, CONTEXT_FIELDS, omit_empty=("cluster", "user", "namespace")
                ),
                **context.entry_extra,
            }
            for name, context in document.contexts.items()
        ],
        "current-context": document.current_context,
    }
    for key, value in document.extra.items():
        if key not in data:
            data[key] = value
    return data


def load_document(path: Path) -> Document:
    """
    Read and parse one kubeconfig file.

    Raises:
        NotFoundError: the path does not exist
        ReadError: any other I/O failure
        ParseError: malformed YAML, non-UTF-8 content or entries of the wrong shape
        SchemaError: kind/apiVersion missing or unexpected
    """
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        raise NotFoundError(path) from exc
    except (yaml.YAMLError, UnicodeDecodeError) as exc:
        raise ParseError(path, str(exc)) from exc
    except OSError as exc:
        raise ReadError(path, str(exc)) from exc

    document = document_from_dict(data, path)
    logger.info(
        f"Loaded {path}: {len(document.contexts)} contexts, "
        f"{len(document.clusters)} clusters, {len(document.users)} users"
    )
    return document


def load_documents(paths: Iterable[Path]) -> list[Document]:
    return [load_document(path) for path in paths]


def save_document(document: Document, path: Path) -> None:
    """
    Write a Document to path, readable by the owner only.

    The content goes to a temp file in the same directory which then
    replaces the target, so readers see either the old or the new file.
    Concurrent writers are not serialized: the last save wins.
    """
    data = document_to_dict(document)
    tmp_name: str | None = None
    try:
        ensure_parent_dir(path)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            yaml.safe_dump(
                data,
                handle,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except (OSError, yaml.YAMLError) as exc:
        if tmp_name is not None:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
        raise WriteError(path, str(exc)) from exc

    logger.info(f"Saved kubeconfig to {path}")
