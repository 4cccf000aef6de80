"""Remote repository access.

``RemoteRepository`` lists the operations the pipeline consumes; any backend
offering them can be used. ``DataverseClient`` implements them against the
Dataverse native API with httpx.
"""

from datetime import date
from logging import INFO, getLogger
from pathlib import Path
from typing import Any, Protocol

import httpx
import orjson
from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_random_exponential,
)

from dvingest.domain.errors import RemoteError
from dvingest.domain.models import RemoteFile, RoleAssignment, UpdateType

logger = getLogger(__name__)


class RemoteRepository(Protocol):
    """Operations of the remote research-data repository used by the pipeline."""

    def create_dataset(self, dataset: dict[str, Any]) -> str: ...

    def import_dataset(self, pid: str, dataset: dict[str, Any]) -> None: ...

    def update_metadata(self, pid: str, dataset_version: dict[str, Any]) -> None: ...

    def get_dataset_state(self, pid: str) -> str | None: ...

    def list_files(self, pid: str) -> list[RemoteFile]: ...

    def add_files(
        self, pid: str, path: Path, restricted: bool, directory_label: str | None = None
    ) -> list[RemoteFile]: ...

    def replace_file(self, pid: str, existing: RemoteFile, path: Path) -> RemoteFile: ...

    def delete_files(self, pid: str, file_ids: list[int]) -> None: ...

    def update_file_metadatas(self, pid: str, files: list[RemoteFile]) -> None: ...

    def add_embargo(
        self, pid: str, date_available: date, reason: str | None, file_ids: list[int]
    ) -> None: ...

    def get_role_assignments(self, pid: str) -> list[RoleAssignment]: ...

    def get_collection_role_assignments(self, alias: str) -> list[RoleAssignment]: ...

    def add_role_assignment(self, pid: str, assignment: RoleAssignment) -> None: ...

    def delete_role_assignment(self, pid: str, assignment: RoleAssignment) -> None: ...

    def edit_metadata(self, pid: str, fields: list[dict[str, Any]], replace: bool) -> None: ...

    def delete_metadata(self, pid: str, fields: list[dict[str, Any]]) -> None: ...

    def publish(self, pid: str, update_type: UpdateType) -> None: ...

    def release_migrated(self, pid: str, release_date: date) -> None: ...


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, RemoteError) and exc.retryable


class DataverseClient:
    """Dataverse native API client.

    Write calls are issued once; a failure aborts the bag and the progress log
    decides what a restart repeats. Read calls are retried a few times on
    transient failures.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str | None = None,
        timeout: int = 30,
        parent_collection: str = "root",
        read_attempts: int = 3,
        client: httpx.Client | None = None,
    ):
        """Initialize the client.

        Args:
            api_url: Base URL of the Dataverse installation
            api_key: API token, sent as X-Dataverse-key
            timeout: Timeout in seconds for every call
            parent_collection: Alias of the collection new datasets are created in
            read_attempts: Attempts for idempotent read calls
            client: Pre-configured httpx client (for testing)
        """
        headers = {"X-Dataverse-key": api_key} if api_key else {}
        self.parent_collection = parent_collection
        self.read_attempts = max(1, read_attempts)
        self._client = client or httpx.Client(base_url=api_url, headers=headers, timeout=timeout)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "DataverseClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise RemoteError(f"{method} {url} failed: {e}") from e

        if response.is_error:
            raise RemoteError(
                f"{method} {url} returned {response.status_code}: {response.text}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        return response.json().get("data")

    def _read(self, url: str, **kwargs: Any) -> Any:
        for attempt in Retrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.read_attempts),
            wait=wait_random_exponential(multiplier=0.5, max=10),
            before_sleep=before_sleep_log(logger, INFO),
            reraise=True,
        ):
            with attempt:
                return self._request("GET", url, **kwargs)
        return None  # pragma: no cover

    @staticmethod
    def _pid_params(pid: str, **extra: Any) -> dict[str, Any]:
        return {"persistentId": pid, **extra}

    def create_dataset(self, dataset: dict[str, Any]) -> str:
        data = self._request("POST", f"/api/dataverses/{self.parent_collection}/datasets", json=dataset)
        return data["persistentId"]

    def import_dataset(self, pid: str, dataset: dict[str, Any]) -> None:
        self._request(
            "POST",
            f"/api/dataverses/{self.parent_collection}/datasets/:import",
            params={"pid": pid, "release": "no"},
            json=dataset,
        )

    def update_metadata(self, pid: str, dataset_version: dict[str, Any]) -> None:
        self._request(
            "PUT",
            "/api/datasets/:persistentId/versions/:draft",
            params=self._pid_params(pid),
            json=dataset_version,
        )

    def get_dataset_state(self, pid: str) -> str | None:
        """Return the state of the latest version, or None if the dataset does not exist."""
        try:
            data = self._read("/api/datasets/:persistentId/versions/:latest", params=self._pid_params(pid))
        except RemoteError as e:
            if e.status_code == 404:
                return None
            raise
        return data["versionState"]

    def list_files(self, pid: str) -> list[RemoteFile]:
        data = self._read("/api/datasets/:persistentId/versions/:latest/files", params=self._pid_params(pid))
        return [RemoteFile.from_api(item) for item in data or []]

    def add_files(
        self, pid: str, path: Path, restricted: bool, directory_label: str | None = None
    ) -> list[RemoteFile]:
        """Upload a file, or a zip that the remote side unpacks into several files."""
        meta: dict[str, Any] = {"restrict": restricted}
        if directory_label:
            meta["directoryLabel"] = directory_label
        json_data = orjson.dumps(meta).decode()
        with path.open("rb") as f:
            data = self._request(
                "POST",
                "/api/datasets/:persistentId/add",
                params=self._pid_params(pid),
                files={"file": (path.name, f)},
                data={"jsonData": json_data},
            )
        return [RemoteFile.from_api(item) for item in data["files"]]

    def replace_file(self, pid: str, existing: RemoteFile, path: Path) -> RemoteFile:
        meta = existing.to_api()
        meta["forceReplace"] = True
        json_data = orjson.dumps(meta).decode()
        with path.open("rb") as f:
            data = self._request(
                "POST",
                f"/api/files/{existing.id}/replace",
                files={"file": (path.name, f)},
                data={"jsonData": json_data},
            )
        return RemoteFile.from_api(data["files"][0])

    def delete_files(self, pid: str, file_ids: list[int]) -> None:
        self._request(
            "PUT", "/api/datasets/:persistentId/deleteFiles", params=self._pid_params(pid), json=file_ids
        )

    def update_file_metadatas(self, pid: str, files: list[RemoteFile]) -> None:
        payload = [{"dataFileId": f.id, **f.to_api()} for f in files]
        self._request(
            "POST", "/api/datasets/:persistentId/files/metadata", params=self._pid_params(pid), json=payload
        )

    def add_embargo(
        self, pid: str, date_available: date, reason: str | None, file_ids: list[int]
    ) -> None:
        payload: dict[str, Any] = {"dateAvailable": date_available.isoformat(), "fileIds": file_ids}
        if reason:
            payload["reason"] = reason
        self._request(
            "POST",
            "/api/datasets/:persistentId/files/actions/:set-embargo",
            params=self._pid_params(pid),
            json=payload,
        )

    @staticmethod
    def _to_assignment(item: dict[str, Any]) -> RoleAssignment:
        return RoleAssignment(assignee=item["assignee"], role=item["_roleAlias"])

    def get_role_assignments(self, pid: str) -> list[RoleAssignment]:
        data = self._read("/api/datasets/:persistentId/assignments", params=self._pid_params(pid))
        return [self._to_assignment(item) for item in data or []]

    def get_collection_role_assignments(self, alias: str) -> list[RoleAssignment]:
        data = self._read(f"/api/dataverses/{alias}/assignments")
        return [self._to_assignment(item) for item in data or []]

    def add_role_assignment(self, pid: str, assignment: RoleAssignment) -> None:
        self._request(
            "POST",
            "/api/datasets/:persistentId/assignments",
            params=self._pid_params(pid),
            json={"assignee": assignment.assignee, "role": assignment.role},
        )

    def delete_role_assignment(self, pid: str, assignment: RoleAssignment) -> None:
        data = self._read("/api/datasets/:persistentId/assignments", params=self._pid_params(pid))
        matching = [
            item
            for item in data or []
            if item["assignee"] == assignment.assignee and item["_roleAlias"] == assignment.role
        ]
        if not matching:
            logger.warning(f"Role assignment {assignment} not found on {pid}, nothing to delete")
            return
        for item in matching:
            self._request(
                "DELETE",
                f"/api/datasets/:persistentId/assignments/{item['id']}",
                params=self._pid_params(pid),
            )

    def edit_metadata(self, pid: str, fields: list[dict[str, Any]], replace: bool) -> None:
        params = self._pid_params(pid, replace="true") if replace else self._pid_params(pid)
        self._request(
            "PUT", "/api/datasets/:persistentId/editMetadata", params=params, json={"fields": fields}
        )

    def delete_metadata(self, pid: str, fields: list[dict[str, Any]]) -> None:
        self._request(
            "PUT",
            "/api/datasets/:persistentId/deleteMetadata",
            params=self._pid_params(pid),
            json={"fields": fields},
        )

    def publish(self, pid: str, update_type: UpdateType) -> None:
        self._request(
            "POST",
            "/api/datasets/:persistentId/actions/:publish",
            params=self._pid_params(pid, type=update_type.value),
        )

    def release_migrated(self, pid: str, release_date: date) -> None:
        self._request(
            "POST",
            "/api/datasets/:persistentId/actions/:releasemigrated",
            params=self._pid_params(pid),
            content=orjson.dumps({"schema:datePublished": release_date.isoformat()}),
            headers={"Content-Type": "application/ld+json"},
        )
