"""Tests for the cross-repository mirror."""

import pytest
from conftest import FINDINGS, FakeTracker

from findings_triage.errors import InconsistentMirror, IssueNotFound, RemoteEffectFailed
from findings_triage.storage.manager import StorageManager
from findings_triage.triage.mirror import CrossRepositoryMirror


@pytest.fixture
def mirror(tracker: FakeTracker, storage: StorageManager) -> CrossRepositoryMirror:
    return CrossRepositoryMirror(tracker, storage.links, "/".join(FINDINGS))


class TestMirrorAccept:
    """Test mirroring of accepted issues."""

    def test_accept_creates_issue_and_links_both_sides(
        self, mirror: CrossRepositoryMirror, tracker: FakeTracker, storage: StorageManager
    ) -> None:
        source = tracker.add_issue(42, body="Reentrancy in withdraw()")

        mirror_ref = mirror.accept(source, "great finding")

        assert mirror_ref.repo_full_name == "audit-org/findings"
        created = tracker.issues[mirror_ref.issue_id]
        assert created.title == source.title
        assert created.body == "Reentrancy in withdraw()"
        assert storage.links.get("audit-org/validation#42") == {
            "validatedIssueId": mirror_ref.issue_id,
            "validatedIssueUrl": created.html_url,
        }
        assert storage.links.get(mirror_ref.issue_id) == {
            "originalIssueId": "audit-org/validation#42",
            "originalIssueUrl": source.html_url,
        }
        assert tracker.comments[mirror_ref.issue_id] == ["great finding"]

    def test_accept_without_comment(
        self, mirror: CrossRepositoryMirror, tracker: FakeTracker
    ) -> None:
        source = tracker.add_issue(42)

        mirror_ref = mirror.accept(source)

        assert mirror_ref.issue_id not in tracker.comments

    def test_accept_reuses_existing_link(
        self, mirror: CrossRepositoryMirror, tracker: FakeTracker
    ) -> None:
        source = tracker.add_issue(42)

        first = mirror.accept(source)
        second = mirror.accept(source)

        assert first == second
        assert [c for c in tracker.calls if c[0] == "create_issue"] == [
            ("create_issue", first.issue_id)
        ]

    def test_accept_create_failure_writes_no_links(
        self, mirror: CrossRepositoryMirror, tracker: FakeTracker, storage: StorageManager
    ) -> None:
        source = tracker.add_issue(42)
        tracker.fail_on["create_issue"] = RemoteEffectFailed("create issue", "HTTP 500")

        with pytest.raises(RemoteEffectFailed):
            mirror.accept(source)

        assert storage.links.list_ids() == []

    def test_link_write_failure_is_inconsistent_mirror(
        self,
        mirror: CrossRepositoryMirror,
        tracker: FakeTracker,
        storage: StorageManager,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        source = tracker.add_issue(42)

        def fail_put(issue_id: str, record: dict[str, str]) -> None:
            raise RemoteEffectFailed(f"write metadata for {issue_id}", "disk full")

        monkeypatch.setattr(storage.links, "put", fail_put)

        with pytest.raises(InconsistentMirror) as exc_info:
            mirror.accept(source)

        assert exc_info.value.source_id == "audit-org/validation#42"
        assert exc_info.value.mirror_id == "audit-org/findings#1"

    def test_retry_after_back_link_failure_restores_back_link(
        self,
        mirror: CrossRepositoryMirror,
        tracker: FakeTracker,
        storage: StorageManager,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Only the validation-side record survived the first attempt."""
        source = tracker.add_issue(42)
        real_put = storage.links.put
        failures = []

        def put_failing_once_on_findings(issue_id: str, record: dict[str, str]) -> None:
            if issue_id.startswith("audit-org/findings#") and not failures:
                failures.append(issue_id)
                raise RemoteEffectFailed(f"write metadata for {issue_id}", "disk full")
            real_put(issue_id, record)

        monkeypatch.setattr(storage.links, "put", put_failing_once_on_findings)

        with pytest.raises(InconsistentMirror):
            mirror.accept(source)
        assert storage.links.get("audit-org/findings#1") is None

        mirror_ref = mirror.accept(source)

        assert failures == ["audit-org/findings#1"]
        assert mirror_ref.issue_id == "audit-org/findings#1"
        assert storage.links.get("audit-org/findings#1") == {
            "originalIssueId": "audit-org/validation#42",
            "originalIssueUrl": source.html_url,
        }
        assert [c for c in tracker.calls if c[0] == "create_issue"] == [
            ("create_issue", "audit-org/findings#1")
        ]

    def test_back_link_repair_failure_is_inconsistent_mirror(
        self,
        mirror: CrossRepositoryMirror,
        tracker: FakeTracker,
        storage: StorageManager,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        source = tracker.add_issue(42)
        mirror_ref = mirror.accept(source)
        storage.links.delete(mirror_ref.issue_id)

        def fail_put(issue_id: str, record: dict[str, str]) -> None:
            raise RemoteEffectFailed(f"write metadata for {issue_id}", "disk full")

        monkeypatch.setattr(storage.links, "put", fail_put)

        with pytest.raises(InconsistentMirror, match="audit-org/findings#1"):
            mirror.accept(source)


class TestMirrorRevert:
    """Test retraction of mirrored issues."""

    def test_revert_closes_mirror_and_removes_links(
        self, mirror: CrossRepositoryMirror, tracker: FakeTracker, storage: StorageManager
    ) -> None:
        source = tracker.add_issue(42)
        mirror_ref = mirror.accept(source)

        reverted = mirror.revert_accept(source.ref)

        assert reverted == mirror_ref
        assert not tracker.issues[mirror_ref.issue_id].is_open
        assert "retracted" in tracker.comments[mirror_ref.issue_id][-1]
        assert storage.links.list_ids() == []
        assert mirror.linked_issue(source.ref) is None

    def test_revert_without_link_is_noop(
        self, mirror: CrossRepositoryMirror, tracker: FakeTracker
    ) -> None:
        source = tracker.add_issue(42)

        assert mirror.revert_accept(source.ref) is None
        assert tracker.calls == []

    def test_revert_when_mirror_deleted(
        self, mirror: CrossRepositoryMirror, tracker: FakeTracker, storage: StorageManager
    ) -> None:
        source = tracker.add_issue(42)
        mirror_ref = mirror.accept(source)
        tracker.fail_on["comment"] = IssueNotFound(f"comment on {mirror_ref}", "gone")

        assert mirror.revert_accept(source.ref) == mirror_ref
        assert storage.links.list_ids() == []

    def test_reaccept_after_revert_creates_fresh_mirror(
        self, mirror: CrossRepositoryMirror, tracker: FakeTracker
    ) -> None:
        source = tracker.add_issue(42)
        first = mirror.accept(source)
        mirror.revert_accept(source.ref)

        second = mirror.accept(source)

        assert second != first
        assert mirror.linked_issue(source.ref) == second
