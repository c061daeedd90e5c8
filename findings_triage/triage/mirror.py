"""Mirror accepted findings into the findings repository.

An accepted validation issue gets a counterpart issue in the findings
repository plus one metadata record on each side linking the pair. The
transition counts as committed only once both records are written.
"""

import logging

from ..errors import InconsistentMirror, IssueNotFound, RemoteEffectFailed
from ..github_client.client import GitHubClient
from ..github_client.models import GitHubIssue, IssueRef
from ..storage.manager import MetadataStore
from .models import OriginalLink, ValidatedLink

logger = logging.getLogger(__name__)

RETRACTION_COMMENT = (
    "The acceptance of {source} was undone; this finding is retracted and "
    "no longer linked to it."
)


class CrossRepositoryMirror:
    """Creates, links and retracts mirrored findings issues."""

    def __init__(self, tracker: GitHubClient, links: MetadataStore, findings_repo: str):
        """Initialize the mirror.

        Args:
            tracker: Tracker client for both repositories
            links: Store holding ValidatedLink and OriginalLink records
            findings_repo: ``owner/name`` of the findings repository
        """
        self.tracker = tracker
        self.links = links
        self.findings_owner, self.findings_repo = findings_repo.split("/", 1)

    def linked_issue(self, source: IssueRef) -> IssueRef | None:
        """The findings issue currently linked to a validation issue."""
        record = self.links.get(source.issue_id)
        if record is None:
            return None
        return IssueRef.parse(ValidatedLink.model_validate(record).validated_issue_id)

    def accept(self, source: GitHubIssue, comment: str | None = None) -> IssueRef:
        """Mirror an accepted issue and link both sides.

        A link left by an earlier, partially completed attempt is reused
        instead of creating a second findings issue, and its back-link is
        written if that attempt stopped before it.

        Raises:
            RemoteEffectFailed: If the findings issue cannot be created
            InconsistentMirror: If links cannot be written after creation
        """
        existing = self.linked_issue(source.ref)
        if existing is not None:
            logger.info("Reusing mirror %s of %s", existing, source.ref)
            mirror_ref = existing
            if self.links.get(existing.issue_id) is None:
                self._write_back_link(source, existing)
        else:
            created = self.tracker.create_issue(
                self.findings_owner,
                self.findings_repo,
                title=source.title,
                body=source.body or "",
            )
            mirror_ref = created.ref
            self._write_links(source, created)

        if comment:
            self.tracker.add_issue_comment(mirror_ref, comment)
        return mirror_ref

    def _write_links(self, source: GitHubIssue, created: GitHubIssue) -> None:
        validated = ValidatedLink(
            validated_issue_id=created.ref.issue_id,
            validated_issue_url=created.html_url,
        )
        original = OriginalLink(
            original_issue_id=source.ref.issue_id,
            original_issue_url=source.html_url,
        )
        try:
            self.links.put(source.ref.issue_id, validated.to_record())
            self.links.put(created.ref.issue_id, original.to_record())
        except (RemoteEffectFailed, ValueError) as e:
            logger.error(
                "Mirror links for %s -> %s not written, manual reconciliation "
                "needed: %s",
                source.ref,
                created.ref,
                e,
            )
            raise InconsistentMirror(
                source.ref.issue_id, created.ref.issue_id, str(e)
            ) from e
        logger.info("Linked %s <-> %s", source.ref, created.ref)

    def _write_back_link(self, source: GitHubIssue, mirror_ref: IssueRef) -> None:
        """Restore the findings-side record an earlier attempt failed to write."""
        original = OriginalLink(
            original_issue_id=source.ref.issue_id,
            original_issue_url=source.html_url,
        )
        try:
            self.links.put(mirror_ref.issue_id, original.to_record())
        except (RemoteEffectFailed, ValueError) as e:
            raise InconsistentMirror(
                source.ref.issue_id, mirror_ref.issue_id, str(e)
            ) from e
        logger.warning("Restored missing link %s -> %s", mirror_ref, source.ref)

    def revert_accept(self, source: IssueRef) -> IssueRef | None:
        """Retract the mirror of a previously accepted issue.

        The findings issue is closed with a retraction comment and both link
        records are removed. Idempotent: without a link this is a no-op.

        Returns:
            The retracted findings issue, or None if nothing was linked
        """
        mirror_ref = self.linked_issue(source)
        if mirror_ref is None:
            logger.debug("No mirror linked to %s, nothing to revert", source)
            return None

        try:
            self.tracker.add_issue_comment(
                mirror_ref, RETRACTION_COMMENT.format(source=source.issue_id)
            )
            self.tracker.close_issue(mirror_ref)
        except IssueNotFound:
            logger.warning("Mirror %s of %s no longer exists", mirror_ref, source)

        self.links.delete(mirror_ref.issue_id)
        self.links.delete(source.issue_id)
        logger.info("Unlinked %s <-> %s", source, mirror_ref)
        return mirror_ref
