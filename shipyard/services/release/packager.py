"""Artifact packaging: one bundle -> tar.gz and zip archives per product.

Archives are laid out at ``{dist_root}/{product}/{triple}/{label}.{fmt}``,
the same relative path they take in object storage. Archives packaged for a
pipeline run go under ``{dist_root}/{run_id}/`` instead. Membership, ordering,
timestamps and permissions are fixed so repackaging the same bundle yields
the same archive bytes and re-running after a partial failure is safe.
"""

from __future__ import annotations

import gzip
import os
import tarfile
import tempfile
from collections.abc import Mapping, Sequence
from pathlib import Path
from zipfile import ZIP_DEFLATED, ZipFile, ZipInfo

from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol
from shipyard.services.release.errors import PipelineError
from shipyard.services.release.model import (
    CONTAINER_FORMATS,
    ArtifactBundle,
    ContainerFormat,
    LogicalProduct,
    PackagedArchive,
    archive_key,
)

# ZIP cannot represent timestamps before 1980.
_ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
_BINARY_MODE = 0o755


def _write_tar_gz(dest: Path, members: Sequence[tuple[Path, str]]) -> None:
    with dest.open("wb") as raw:
        # mtime=0 and no filename keep the gzip header stable.
        with gzip.GzipFile(filename="", mode="wb", fileobj=raw, mtime=0) as gz:
            with tarfile.open(fileobj=gz, mode="w", format=tarfile.GNU_FORMAT) as tar:
                for src, arc in members:
                    info = tar.gettarinfo(str(src), arcname=arc)
                    info.mtime = 0
                    info.uid = info.gid = 0
                    info.uname = info.gname = ""
                    info.mode = _BINARY_MODE
                    with src.open("rb") as f:
                        tar.addfile(info, f)


def _write_zip(dest: Path, members: Sequence[tuple[Path, str]]) -> None:
    with ZipFile(dest, "w", compression=ZIP_DEFLATED) as zf:
        for src, arc in members:
            info = ZipInfo(arc, date_time=_ZIP_EPOCH)
            info.compress_type = ZIP_DEFLATED
            info.external_attr = (0o100000 | _BINARY_MODE) << 16
            zf.writestr(info, src.read_bytes())


def _write_archive(dest: Path, fmt: ContainerFormat, members: Sequence[tuple[Path, str]]) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.")
    os.close(fd)
    tmp = Path(tmp_name)
    try:
        if fmt == "tar.gz":
            _write_tar_gz(tmp, members)
        else:
            _write_zip(tmp, members)
        os.replace(tmp, dest)
    finally:
        tmp.unlink(missing_ok=True)


class ArchivePackager:
    def __init__(self, *, dist_root: Path, console: ConsoleProtocol) -> None:
        self._dist_root = dist_root
        self._console = console

    def archive_path(
        self,
        product: str,
        triple: str,
        label: str,
        fmt: ContainerFormat,
        *,
        run_id: str | None = None,
    ) -> Path:
        root = self._dist_root if run_id is None else self._dist_root / run_id
        return root / archive_key(product, triple, label, fmt)

    def package(
        self,
        bundle: ArtifactBundle,
        products: Sequence[LogicalProduct],
        labels: Mapping[str, str],
        *,
        run_id: str | None = None,
    ) -> Result[tuple[PackagedArchive, ...], PipelineError]:
        """Package every listed product present in ``bundle`` under its label.

        ``labels`` maps product name to a version string or ``latest``.
        Products without a label are not packaged.
        """
        triple = bundle.target.triple
        out: list[PackagedArchive] = []
        for product in products:
            label = labels.get(product.name)
            if label is None:
                continue

            binary = product.binary_name(bundle.target)
            if not bundle.has(binary):
                self._console.warning(f"{triple}: {binary} not in bundle; skipped")
                continue

            members = [(bundle.root / binary, binary)]
            for fmt in CONTAINER_FORMATS:
                dest = self.archive_path(product.name, triple, label, fmt, run_id=run_id)
                try:
                    _write_archive(dest, fmt, members)
                except OSError as e:
                    return Err(
                        PipelineError(
                            kind="package_failed",
                            message=f"failed to write {dest.name} for {product.name}/{triple}",
                            hint=str(e),
                        )
                    )
                out.append(
                    PackagedArchive(
                        product=product.name,
                        target=triple,
                        label=label,
                        fmt=fmt,
                        path=dest,
                    )
                )

        return Ok(tuple(out))

    def package_all(
        self,
        bundles: Sequence[ArtifactBundle],
        products: Sequence[LogicalProduct],
        labels: Mapping[str, str],
        *,
        run_id: str | None = None,
    ) -> Result[tuple[PackagedArchive, ...], PipelineError]:
        out: list[PackagedArchive] = []
        for bundle in bundles:
            result = self.package(bundle, products, labels, run_id=run_id)
            if isinstance(result, Err):
                return result
            out.extend(result.value)
        return Ok(tuple(out))


def archive_members(path: Path) -> list[str]:
    """List member names of a packaged archive."""
    if path.name.endswith(".zip"):
        with ZipFile(path) as zf:
            return zf.namelist()
    with tarfile.open(path, "r:gz") as tar:
        return tar.getnames()
