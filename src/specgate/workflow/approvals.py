"""Approval queue for agent-proposed file edits."""
import itertools
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from specgate.exceptions import ValidationError
from specgate.protocols import FileSink

logger = structlog.get_logger()


class EditOperation(str, Enum):
    """What a proposed edit does to its path."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class FileEdit(BaseModel):
    """One proposed change to one file.

    Attributes:
        path: Target file path.
        content: New file content; ignored for deletes.
        operation: Create, update or delete.
    """

    path: str
    content: str = ""
    operation: EditOperation

    @field_validator("path")
    @classmethod
    def _path_not_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Edit path cannot be empty")
        return value


class PendingChange(BaseModel):
    """A set of proposed edits awaiting human approval.

    Attributes:
        id: Queue-assigned identifier.
        edits: Edits in the order they are applied.
        approved: Edits are never applied while this is False.
        created_at: When the change was queued (UTC).
    """

    id: str
    edits: list[FileEdit]
    approved: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class EditFailure(BaseModel):
    """An approved edit the sink could not apply."""

    change_id: str
    edit: FileEdit
    error: str


class ApplyResult(BaseModel):
    """Outcome of applying approved changes.

    Attributes:
        applied: Edits written or deleted, in application order.
        failed: Edits that raised, with the error text.
        change_ids: Approved changes that left the queue.
    """

    applied: list[FileEdit] = Field(default_factory=list)
    failed: list[EditFailure] = Field(default_factory=list)
    change_ids: list[str] = Field(default_factory=list)


def parse_edits(edits: Iterable[FileEdit | Mapping[str, Any]]) -> list[FileEdit]:
    """Validate proposed edits.

    Raises:
        ValidationError: If the list is empty or an edit is malformed.
    """
    try:
        parsed = [
            edit if isinstance(edit, FileEdit) else FileEdit.model_validate(dict(edit))
            for edit in edits
        ]
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid file edit: {e}") from e
    if not parsed:
        raise ValidationError("A pending change needs at least one edit")
    return parsed


class ApprovalQueue:
    """Holds proposed edits until a human approves or rejects them."""

    def __init__(self) -> None:
        self._changes: dict[str, PendingChange] = {}
        self._ids = itertools.count(1)

    def queue(self, edits: Iterable[FileEdit | Mapping[str, Any]]) -> str:
        """Queue edits for approval.

        Args:
            edits: Proposed edits, applied in this order once approved.

        Returns:
            Identifier of the new pending change.

        Raises:
            ValidationError: If the edits are empty or malformed.
        """
        parsed = parse_edits(edits)
        change = PendingChange(id=f"change-{next(self._ids)}", edits=parsed)
        self._changes[change.id] = change
        logger.info("change_queued", change_id=change.id, edits=len(parsed))
        return change.id

    def get(self, change_id: str) -> PendingChange | None:
        """Look up a queued change, approved or not."""
        return self._changes.get(change_id)

    def list_pending(self) -> list[PendingChange]:
        """Return changes still awaiting approval, oldest first."""
        return [change for change in self._changes.values() if not change.approved]

    def list_approved(self) -> list[PendingChange]:
        """Return approved changes not yet applied."""
        return [change for change in self._changes.values() if change.approved]

    def approve(self, change_id: str) -> bool:
        """Mark a change approved.

        Returns:
            False if the id is unknown.
        """
        change = self._changes.get(change_id)
        if change is None:
            return False
        change.approved = True
        logger.info("change_approved", change_id=change_id)
        return True

    def reject(self, change_id: str) -> bool:
        """Drop a change without applying it.

        Returns:
            False if the id is unknown.
        """
        if self._changes.pop(change_id, None) is None:
            return False
        logger.info("change_rejected", change_id=change_id)
        return True

    async def apply_approved(self, sink: FileSink) -> ApplyResult:
        """Apply every approved change through the sink.

        Create and update edits are written, delete edits removed. A
        failing edit is logged and skipped. Every approved change leaves
        the queue afterwards; unapproved changes are untouched.

        Args:
            sink: Destination for the edits.

        Returns:
            Applied and failed edits.
        """
        result = ApplyResult()
        for change in self.list_approved():
            for edit in change.edits:
                try:
                    if edit.operation is EditOperation.DELETE:
                        await sink.delete(edit.path)
                    else:
                        await sink.write_file(edit.path, edit.content)
                except Exception as e:
                    logger.warning(
                        "edit_apply_failed",
                        change_id=change.id,
                        path=edit.path,
                        operation=edit.operation.value,
                        error=str(e),
                    )
                    result.failed.append(
                        EditFailure(change_id=change.id, edit=edit, error=str(e) or type(e).__name__)
                    )
                    continue
                result.applied.append(edit)

            del self._changes[change.id]
            result.change_ids.append(change.id)

        logger.info(
            "changes_applied",
            changes=len(result.change_ids),
            applied=len(result.applied),
            failed=len(result.failed),
        )
        return result
