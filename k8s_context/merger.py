"""Merging kubeconfig documents and managing the current context."""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from k8s_context.errors import (
    ClusterNotFoundError,
    CredentialNotFoundError,
    DanglingContextError,
    IntegrityError,
    NoCurrentContextError,
    UnknownContextError,
)
from k8s_context.kubeconfig import API_VERSION, KIND, Document

logger = logging.getLogger(__name__)


@dataclass
class DanglingReferences:
    """Context name -> referenced cluster/user name that is not defined."""

    clusters: dict[str, str] = field(default_factory=dict)
    users: dict[str, str] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return bool(self.clusters or self.users)


@dataclass
class MergeResult:
    document: Document
    duplicate_clusters: list[str]
    duplicate_users: list[str]
    duplicate_contexts: list[str]
    dangling: DanglingReferences


@dataclass
class ContextInfo:
    name: str
    cluster: str
    server: str
    user: str
    namespace: str
    current: bool


def dedupe_names(names: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for name in names:
        if name in seen:
            continue
        seen.add(name)
        result.append(name)
    return result


def merge_entries(items: dict, merged: dict, duplicates: list[str]) -> None:
    for name, item in items.items():
        if name in merged:
            duplicates.append(name)
        merged[name] = copy.deepcopy(item)


def merge_documents(documents: Iterable[Document], strict: bool = False) -> MergeResult:
    """
    Combine documents into a new one.

    Entries from later documents replace same-named entries from earlier
    ones, while current-context comes from the first document that sets it.
    With strict=True, contexts whose cluster or user did not survive the
    merge raise IntegrityError.
    """
    documents = list(documents)
    merged = Document()

    duplicate_clusters: list[str] = []
    duplicate_users: list[str] = []
    duplicate_contexts: list[str] = []

    for document in documents:
        merge_entries(document.clusters, merged.clusters, duplicate_clusters)
        merge_entries(document.users, merged.users, duplicate_users)
        merge_entries(document.contexts, merged.contexts, duplicate_contexts)
        for key, value in document.extra.items():
            merged.extra[key] = copy.deepcopy(value)

    for document in documents:
        if document.current_context:
            merged.current_context = document.current_context
            break

    merged.kind = KIND
    merged.api_version = API_VERSION

    result = MergeResult(
        document=merged,
        duplicate_clusters=dedupe_names(duplicate_clusters),
        duplicate_users=dedupe_names(duplicate_users),
        duplicate_contexts=dedupe_names(duplicate_contexts),
        dangling=find_dangling_references(merged),
    )
    for label, names in (
        ("clusters", result.duplicate_clusters),
        ("users", result.duplicate_users),
        ("contexts", result.duplicate_contexts),
    ):
        if names:
            logger.info(f"Duplicate {label} (last wins): {', '.join(names)}")

    if strict and result.dangling:
        raise IntegrityError(result.dangling)
    return result


def find_dangling_references(document: Document) -> DanglingReferences:
    dangling = DanglingReferences()
    for name, context in document.contexts.items():
        if context.cluster and context.cluster not in document.clusters:
            dangling.clusters[name] = context.cluster
        if context.user and context.user not in document.users:
            dangling.users[name] = context.user
    return dangling


def resolve_current_context(document: Document) -> str:
    """Return the current context name, checking it is defined."""
    name = document.current_context
    if not name:
        raise NoCurrentContextError()
    if name not in document.contexts:
        raise DanglingContextError(name)
    return name


def resolve_current_cluster(document: Document) -> str:
    """Return the name of the cluster the current context points to."""
    name = resolve_current_context(document)
    return document.contexts[name].cluster


def switch_context(document: Document, name: str, hint: str = "") -> Document:
    """Return a copy of document whose current context is name."""
    if name not in document.contexts:
        raise UnknownContextError(name, hint)
    switched = copy.deepcopy(document)
    switched.current_context = name
    logger.info(f"Current context set to {name}")
    return switched


def list_context_names(document: Document) -> set[str]:
    return set(document.contexts)


def describe_context(document: Document, name: str) -> ContextInfo:
    if name not in document.contexts:
        raise UnknownContextError(name)
    context = document.contexts[name]

    cluster = document.clusters.get(context.cluster)
    if cluster is None:
        raise ClusterNotFoundError(name, context.cluster)
    if context.user and context.user not in document.users:
        raise CredentialNotFoundError(name, context.user)

    return ContextInfo(
        name=name,
        cluster=context.cluster,
        server=cluster.server,
        user=context.user,
        namespace=context.namespace,
        current=name == document.current_context,
    )


def describe_contexts(document: Document) -> list[ContextInfo]:
    return [describe_context(document, name) for name in sorted(document.contexts)]


def summarize_contexts(document: Document) -> list[ContextInfo]:
    """Like describe_contexts, but a missing cluster just leaves server empty."""
    infos: list[ContextInfo] = []
    for name in sorted(document.contexts):
        context = document.contexts[name]
        cluster = document.clusters.get(context.cluster)
        infos.append(
            ContextInfo(
                name=name,
                cluster=context.cluster,
                server=cluster.server if cluster is not None else "",
                user=context.user,
                namespace=context.namespace,
                current=name == document.current_context,
            )
        )
    return infos
