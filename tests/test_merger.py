"""Tests for merge precedence, current-context resolution and switching."""

from __future__ import annotations

import pytest

from k8s_context.errors import (
    ClusterNotFoundError,
    CredentialNotFoundError,
    DanglingContextError,
    IntegrityError,
    NoCurrentContextError,
    UnknownContextError,
)
from k8s_context.kubeconfig import Cluster, Context, Credential, Document
from k8s_context.merger import (
    describe_context,
    describe_contexts,
    find_dangling_references,
    list_context_names,
    merge_documents,
    resolve_current_cluster,
    resolve_current_context,
    summarize_contexts,
    switch_context,
)


def _doc(
    clusters: dict[str, str] | None = None,
    contexts: dict[str, tuple[str, str]] | None = None,
    users: list[str] | None = None,
    current: str = "",
) -> Document:
    return Document(
        clusters={name: Cluster(server=server) for name, server in (clusters or {}).items()},
        users={name: Credential(token=f"token-{name}") for name in (users or [])},
        contexts={
            name: Context(cluster=cluster, user=user)
            for name, (cluster, user) in (contexts or {}).items()
        },
        current_context=current,
    )


class TestMergeDocuments:
    def test_last_write_wins_for_entries(self) -> None:
        d1 = _doc(clusters={"c": "https://one"})
        d2 = _doc(clusters={"c": "https://two"})

        assert merge_documents([d1, d2]).document.clusters["c"] == d2.clusters["c"]
        assert merge_documents([d2, d1]).document.clusters["c"] == d1.clusters["c"]

    def test_first_wins_for_current_context(self) -> None:
        d1 = _doc(current="a")
        d2 = _doc(current="b")

        assert merge_documents([d1, d2]).document.current_context == "a"
        assert merge_documents([d2, d1]).document.current_context == "b"

    def test_empty_current_context_falls_through(self) -> None:
        d1 = _doc(current="")
        d2 = _doc(current="b")

        assert merge_documents([d1, d2]).document.current_context == "b"

    def test_no_current_context_anywhere(self) -> None:
        assert merge_documents([_doc(), _doc()]).document.current_context == ""

    def test_empty_input(self) -> None:
        result = merge_documents([])

        assert result.document == Document()
        assert result.document.kind == "Config"
        assert result.document.api_version == "v1"
        assert result.document.current_context == ""
        assert not result.dangling

    def test_union_of_keys(self) -> None:
        merged = merge_documents([_doc(clusters={"x": "https://x"}), _doc(clusters={"y": "https://y"})])

        assert set(merged.document.clusters) == {"x", "y"}

    def test_stamps_kind_and_api_version(self) -> None:
        source = _doc()
        source.kind = "Legacy"
        source.api_version = "v0"

        merged = merge_documents([source]).document

        assert merged.kind == "Config"
        assert merged.api_version == "v1"

    def test_reports_duplicates(self) -> None:
        d1 = _doc(clusters={"c": "https://one"}, users=["u"], contexts={"ctx": ("c", "u")})
        d2 = _doc(clusters={"c": "https://two"}, users=["u"], contexts={"ctx": ("c", "u")})
        d3 = _doc(clusters={"c": "https://three"})

        result = merge_documents([d1, d2, d3])

        assert result.duplicate_clusters == ["c"]
        assert result.duplicate_users == ["u"]
        assert result.duplicate_contexts == ["ctx"]
        assert result.document.clusters["c"].server == "https://three"

    def test_result_does_not_share_entries(self) -> None:
        source = _doc(clusters={"c": "https://one"})

        merged = merge_documents([source]).document
        merged.clusters["c"].server = "https://changed"
        merged.clusters["new"] = Cluster(server="https://new")

        assert source.clusters == {"c": Cluster(server="https://one")}

    def test_permissive_by_default(self) -> None:
        result = merge_documents([_doc(contexts={"ctx": ("missing", "nobody")})])

        assert result.dangling.clusters == {"ctx": "missing"}
        assert result.dangling.users == {"ctx": "nobody"}
        assert "ctx" in result.document.contexts

    def test_strict_raises_on_dangling_reference(self) -> None:
        with pytest.raises(IntegrityError) as excinfo:
            merge_documents([_doc(contexts={"ctx": ("missing", "")})], strict=True)

        assert excinfo.value.dangling.clusters == {"ctx": "missing"}

    def test_strict_accepts_consistent_result(self) -> None:
        d1 = _doc(contexts={"ctx": ("c", "u")})
        d2 = _doc(clusters={"c": "https://c"}, users=["u"])

        result = merge_documents([d1, d2], strict=True)

        assert not result.dangling


class TestFindDanglingReferences:
    def test_empty_references_are_not_dangling(self) -> None:
        assert not find_dangling_references(_doc(contexts={"ctx": ("", "")}))


class TestResolveCurrentContext:
    def test_returns_name(self) -> None:
        document = _doc(clusters={"c": "https://c"}, contexts={"dev": ("c", "")}, current="dev")

        assert resolve_current_context(document) == "dev"

    def test_resolves_cluster_of_current_context(self) -> None:
        document = _doc(clusters={"c": "https://c"}, contexts={"dev": ("c", "")}, current="dev")

        assert resolve_current_cluster(document) == "c"

    def test_empty_pointer(self) -> None:
        with pytest.raises(NoCurrentContextError):
            resolve_current_context(_doc(contexts={"dev": ("c", "")}))

    def test_dangling_pointer(self) -> None:
        with pytest.raises(DanglingContextError) as excinfo:
            resolve_current_context(_doc(contexts={"dev": ("c", "")}, current="x"))
        assert excinfo.value.name == "x"

    def test_cluster_lookup_uses_same_checks(self) -> None:
        with pytest.raises(DanglingContextError):
            resolve_current_cluster(_doc(current="x"))


class TestSwitchContext:
    def test_unknown_context(self) -> None:
        document = _doc(contexts={"dev": ("c", "")}, current="dev")

        with pytest.raises(UnknownContextError) as excinfo:
            switch_context(document, "nonexistent")

        assert excinfo.value.name == "nonexistent"
        assert document.current_context == "dev"

    def test_pointer_only(self) -> None:
        document = _doc(
            clusters={"a": "https://a", "b": "https://b"},
            contexts={"ctx-a": ("a", ""), "ctx-b": ("b", "")},
            current="ctx-a",
        )

        switched = switch_context(document, "ctx-b")

        assert switched.current_context == "ctx-b"
        assert switched.clusters == document.clusters
        assert switched.contexts == document.contexts
        assert switched.users == document.users
        assert document.current_context == "ctx-a"

    def test_hint_in_message(self) -> None:
        with pytest.raises(UnknownContextError, match="merge it first"):
            switch_context(_doc(), "prod", hint="merge it first")


class TestDescribe:
    def test_list_context_names(self) -> None:
        document = _doc(contexts={"a": ("c", ""), "b": ("c", "")})

        assert list_context_names(document) == {"a", "b"}

    def test_describe_contexts(self) -> None:
        document = _doc(
            clusters={"c1": "https://c1", "c2": "https://c2"},
            users=["u1"],
            contexts={"prod": ("c2", ""), "dev": ("c1", "u1")},
            current="prod",
        )

        infos = describe_contexts(document)

        assert [info.name for info in infos] == ["dev", "prod"]
        assert infos[0].server == "https://c1"
        assert infos[0].user == "u1"
        assert infos[0].current is False
        assert infos[1].current is True

    def test_summarize_tolerates_missing_references(self) -> None:
        document = _doc(
            clusters={"c1": "https://c1"},
            contexts={"dev": ("c1", ""), "stale": ("gone", "nobody")},
        )

        infos = summarize_contexts(document)

        assert [(info.name, info.server) for info in infos] == [
            ("dev", "https://c1"),
            ("stale", ""),
        ]

    def test_missing_cluster(self) -> None:
        with pytest.raises(ClusterNotFoundError) as excinfo:
            describe_context(_doc(contexts={"dev": ("gone", "")}), "dev")
        assert excinfo.value.cluster == "gone"

    def test_missing_credential(self) -> None:
        document = _doc(clusters={"c": "https://c"}, contexts={"dev": ("c", "gone")})

        with pytest.raises(CredentialNotFoundError) as excinfo:
            describe_context(document, "dev")
        assert excinfo.value.user == "gone"
