#!/usr/bin/env python3
"""
Source tree packaging for the integration container.

The container build copies a tarball of the committed tree, produced with
``git archive`` so that untracked build output never enters the image.
"""

import tarfile
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from rita_ci.utils.file_utils import calculate_file_hash, ensure_directory, get_file_size, remove_file
from rita_ci.utils.process_utils import run_command

logger = logging.getLogger(__name__)


class ArchiveError(RuntimeError):
    """Packaging failure, carrying the git exit code when there is one"""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


@dataclass
class ArchiveInfo:
    """Source archive information"""
    path: str
    size: int
    checksum: str
    prefix: str
    ref: str
    members: int


class SourceArchiver:
    """Creates gzip tarballs of a git checkout"""

    def __init__(self, repo_path: Union[str, Path], timeout: Optional[float] = None):
        self.repo_path = Path(repo_path)
        self.timeout = timeout

    def archive_command(self, output_path: Union[str, Path], prefix: str, ref: str = "HEAD"):
        """git archive command line"""
        return [
            "git", "archive",
            "--format=tar.gz",
            "-o", str(output_path),
            f"--prefix={prefix}",
            ref
        ]

    def create_archive(self, output_path: Union[str, Path], prefix: str = "althea_rs/",
                       ref: str = "HEAD") -> ArchiveInfo:
        """
        Package the tree at ref into output_path.

        Args:
            output_path: Tarball to write
            prefix: Directory prefix for every member
            ref: Git revision to archive

        Returns:
            ArchiveInfo for the written tarball
        """
        output_path = Path(output_path).resolve()
        ensure_directory(output_path.parent)

        logger.info(f"Archiving {ref} of {self.repo_path} to {output_path}")
        result = run_command(
            self.archive_command(output_path, prefix, ref),
            cwd=self.repo_path,
            timeout=self.timeout
        )

        if not result.success:
            raise ArchiveError(
                f"git archive failed with exit code {result.returncode}: {result.tail()}",
                returncode=result.returncode
            )

        if not output_path.exists():
            raise ArchiveError(f"git archive did not produce {output_path}")

        info = self.inspect_archive(output_path, prefix, ref)
        logger.info(f"Archive created: {info.members} members, {info.size} bytes")
        return info

    def inspect_archive(self, archive_path: Union[str, Path], prefix: str,
                        ref: str = "HEAD") -> ArchiveInfo:
        """Read back a tarball and check every member is under prefix"""
        archive_path = Path(archive_path)
        root = prefix.rstrip('/')

        try:
            with tarfile.open(archive_path, 'r:gz') as tar:
                names = tar.getnames()
        except (tarfile.TarError, OSError) as e:
            raise ArchiveError(f"Unreadable archive {archive_path}: {e}") from e

        # git archive adds a pax_global_header carrying the commit id
        names = [name for name in names if name != "pax_global_header"]

        if root:
            stray = [name for name in names if name != root and not name.startswith(root + '/')]
            if stray:
                raise ArchiveError(f"Archive members outside {prefix}: {stray[:5]}")

        return ArchiveInfo(
            path=str(archive_path),
            size=get_file_size(archive_path),
            checksum=calculate_file_hash(archive_path),
            prefix=prefix,
            ref=ref,
            members=len(names)
        )

    def remove_archive(self, archive_path: Union[str, Path]) -> bool:
        """Delete the tarball"""
        removed = remove_file(archive_path)
        if removed:
            logger.info(f"Removed {archive_path}")
        else:
            logger.debug(f"No archive to remove at {archive_path}")
        return removed
