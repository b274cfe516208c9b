"""Artifact upload: archives to object storage, versioned archives to releases.

Versioned keys are append-only. An existing object with the same digest counts
as already uploaded; any other existing object is an ``upload_conflict`` and is
left untouched. ``latest`` keys are always overwritten.

One exception to the conflict rule: a product whose version an earlier run
already released (``keep_existing``) gets status ``kept`` instead of a
conflict when its stored archive differs, so an occupied versioned path does
not fail the run for such products. The stored object is still never
overwritten.
"""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Collection, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Literal

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol
from shipyard.services.release.errors import PipelineError, superseded
from shipyard.services.release.gh import ReleaseHost
from shipyard.services.release.model import PackagedArchive, ReleaseRecord
from shipyard.services.release.storage import ObjectStore, StorageError, sha256_file


@dataclass(frozen=True, slots=True)
class UploadReceipt:
    key: str
    sha256: str
    status: Literal["uploaded", "unchanged", "replaced", "kept"]


def _digest(archive: PackagedArchive) -> Result[str, PipelineError]:
    try:
        return Ok(sha256_file(archive.path))
    except OSError as e:
        return Err(
            PipelineError(
                kind="upload_failed",
                message=f"cannot read archive {archive.path.name}",
                hint=str(e),
            )
        )


def _upload_failed(error: StorageError) -> PipelineError:
    return PipelineError(
        kind="upload_failed",
        message=f"upload failed: {error.key}",
        hint=error.message,
    )


class ArtifactUploader:
    def __init__(self, store: ObjectStore, console: ConsoleProtocol) -> None:
        self._store = store
        self._console = console

    def upload(
        self,
        archives: Sequence[PackagedArchive],
        *,
        cancel: CancelToken,
        keep_existing: Collection[str] = (),
    ) -> Result[tuple[UploadReceipt, ...], PipelineError]:
        """Upload ``archives`` in key order.

        ``keep_existing`` names products whose version was already released:
        an existing versioned object for them is kept as-is rather than
        reported as a conflict.
        """
        receipts: list[UploadReceipt] = []
        for archive in sorted(archives, key=lambda a: a.key):
            if cancel.cancelled:
                return Err(superseded(cancel.reason))

            if archive.is_latest:
                result = self._upload_latest(archive)
            else:
                result = self._upload_versioned(archive, keep=archive.product in keep_existing)
            if isinstance(result, Err):
                return result

            receipt = result.value
            self._console.print(f"  {receipt.status:<9} {self._store.describe(receipt.key)}")
            receipts.append(receipt)

        return Ok(tuple(receipts))

    def _upload_latest(self, archive: PackagedArchive) -> Result[UploadReceipt, PipelineError]:
        hashed = _digest(archive)
        if isinstance(hashed, Err):
            return hashed
        digest = hashed.value
        put = self._store.put(archive.path, archive.key, sha256=digest, overwrite=True)
        if isinstance(put, Err):
            return Err(_upload_failed(put.error))
        return Ok(UploadReceipt(key=archive.key, sha256=digest, status="replaced"))

    def _upload_versioned(
        self, archive: PackagedArchive, *, keep: bool
    ) -> Result[UploadReceipt, PipelineError]:
        hashed = _digest(archive)
        if isinstance(hashed, Err):
            return hashed
        digest = hashed.value

        head = self._store.head(archive.key)
        if isinstance(head, Err):
            return Err(_upload_failed(head.error))
        if head.value is not None:
            return self._compare_existing(archive, digest, head.value.sha256, keep=keep)

        put = self._store.put(archive.path, archive.key, sha256=digest, overwrite=False)
        if isinstance(put, Ok):
            return Ok(UploadReceipt(key=archive.key, sha256=digest, status="uploaded"))
        if put.error.kind != "exists":
            return Err(_upload_failed(put.error))

        # Lost a race with another writer; judge against what it wrote.
        head = self._store.head(archive.key)
        if isinstance(head, Err):
            return Err(_upload_failed(head.error))
        existing = head.value.sha256 if head.value is not None else None
        return self._compare_existing(archive, digest, existing, keep=keep)

    def _compare_existing(
        self, archive: PackagedArchive, digest: str, existing: str | None, *, keep: bool
    ) -> Result[UploadReceipt, PipelineError]:
        if existing == digest:
            return Ok(UploadReceipt(key=archive.key, sha256=digest, status="unchanged"))
        if keep:
            return Ok(UploadReceipt(key=archive.key, sha256=existing or "", status="kept"))
        return Err(
            PipelineError(
                kind="upload_conflict",
                message=f"versioned archive already exists with different content: {archive.key}",
                hint=self._store.describe(archive.key),
            )
        )

    def attach(
        self,
        record: ReleaseRecord,
        archives: Sequence[PackagedArchive],
        host: ReleaseHost,
        *,
        cancel: CancelToken,
    ) -> Result[ReleaseRecord, PipelineError]:
        """Attach versioned archives to ``record`` under flat asset names."""
        versioned = sorted((a for a in archives if not a.is_latest), key=lambda a: a.asset_name)
        if not versioned:
            return Ok(record)

        with tempfile.TemporaryDirectory(prefix="shipyard-assets-") as tmp:
            staged: list[Path] = []
            for archive in versioned:
                dest = Path(tmp) / archive.asset_name
                try:
                    shutil.copyfile(archive.path, dest)
                except OSError as e:
                    return Err(
                        PipelineError(
                            kind="upload_failed",
                            message=f"cannot stage {archive.asset_name} for {record.tag}",
                            hint=str(e),
                        )
                    )
                staged.append(dest)

            result = host.attach(record, staged, cancel=cancel)
            if isinstance(result, Err):
                return result

        names = tuple(a.asset_name for a in versioned)
        self._console.success(f"{record.tag}: attached {len(names)} asset(s)")
        return Ok(replace(record, assets=record.assets + names))
