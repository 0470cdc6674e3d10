"""Error taxonomy shared by the transports, adapters, and sync engine.

Only genuine failures are exceptions here.  Two outcomes that look like
errors are deliberately *not* modelled as exceptions:

- **NotFound** -- ``find_project_by_id`` / ``find_item_by_id`` return
  ``None``; the engine treats that as a stale link and re-links.
- **Conflict** -- a ``SyncOutcome`` on the per-entity result; conflicts
  never travel through the error channel.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for failures raised while talking to either store.

    Attributes:
        operation: Short name of the operation that failed
            (e.g. ``"list_projects"``).
        entity_id: Store-native id of the entity involved, if any.
        detail: Upstream error text.
    """

    def __init__(
        self,
        operation: str,
        detail: str,
        entity_id: str | None = None,
    ) -> None:
        self.operation = operation
        self.detail = detail
        self.entity_id = entity_id
        super().__init__(self._format())

    def _format(self) -> str:
        target = f" [{self.entity_id}]" if self.entity_id else ""
        return f"{self.operation}{target}: {self.detail}"


class UpstreamUnavailable(SyncError):
    """A store could not be reached (network, timeout, auth, 5xx).

    Retryable by re-running the whole pass; the engine never retries.
    """


class CreateFailed(SyncError):
    """A store rejected a create request."""


class UpdateFailed(SyncError):
    """A store rejected a partial update of an existing record."""


class ConfigurationInvalid(ValueError):
    """Required configuration is missing or malformed.

    Raised before any store is contacted.
    """
