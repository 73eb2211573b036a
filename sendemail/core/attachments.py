"""
Attachment resolution and merging.

Attachments come from several sources (email-specific, CLI --attach-*,
global configs, inline global tags). Sources are concatenated in the order
they are declared, never deduplicated, and every path is made absolute
before the message reaches the transport.
"""
import logging
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Sequence

from sendemail.core.validator import validate_content_disposition
from sendemail.models import Attachment


logger = logging.getLogger(__name__)


class AttachmentResolver:
    """
    Resolves attachment paths for one invocation.

    Relative paths prefer the caller's working directory when the file
    exists there, and otherwise resolve against the tool root.
    """

    def __init__(self, root_path: Path, cwd: Optional[Path] = None):
        """
        Initialize the resolver.

        Args:
            root_path: The sendemail tool root.
            cwd: Caller's working directory. Defaults to Path.cwd().
        """
        self.root_path = Path(root_path).resolve()
        self.cwd = Path(cwd or Path.cwd()).resolve()

    def resolve_path(self, file_path: str) -> str:
        """Resolve one path, working directory first, then the tool root."""
        path = Path(file_path).expanduser()
        if path.is_absolute():
            return str(path)

        cwd_candidate = self.cwd / path
        if cwd_candidate.exists():
            return str(cwd_candidate)
        return str(self.root_path / path)

    def resolve_attachments(self, attachments: Sequence[Attachment]) -> List[Attachment]:
        """Return copies of the attachments with absolute paths."""
        return [replace(att, path=self.resolve_path(att.path)) for att in attachments]

    def validate_attachments(self, attachments: Sequence[Attachment]) -> List[str]:
        """
        Check that attachment files exist.

        Returns:
            Resolved paths of the missing files (a warning is logged for each).
        """
        missing = []
        for att in attachments:
            resolved = self.resolve_path(att.path)
            if not Path(resolved).exists():
                missing.append(resolved)
                logger.warning(f"Attachment not found: {resolved}")
            else:
                logger.debug(f"Attachment found: {resolved}")
        return missing

    def build_from_cli(
        self,
        file_names: Optional[Sequence[str]] = None,
        paths: Optional[Sequence[str]] = None,
        cids: Optional[Sequence[str]] = None,
        dispositions: Optional[Sequence[str]] = None
    ) -> List[Attachment]:
        """
        Build attachments from parallel --attach-* argument lists.

        Entries are paired by position up to the longer of file names and
        paths. Entries without a path are skipped with a warning.
        """
        file_names = list(file_names or [])
        paths = list(paths or [])
        cids = list(cids or [])
        dispositions = list(dispositions or [])

        count = max(len(file_names), len(paths))
        attachments: List[Attachment] = []

        for i in range(count):
            path = paths[i] if i < len(paths) else None
            if not path:
                logger.warning(f"Attachment at index {i} has no --attach-path, skipping.")
                continue

            file_name = file_names[i] if i < len(file_names) else None
            disposition = dispositions[i] if i < len(dispositions) else "attachment"
            cid = cids[i] if i < len(cids) else None

            attachments.append(Attachment(
                filename=file_name or Path(path).name,
                path=self.resolve_path(path),
                content_disposition=validate_content_disposition(disposition),
                cid=cid or None,
            ))

        return attachments


def resolve_attachments_from_base(
    attachments: Sequence[Attachment],
    base_path: Path
) -> List[Attachment]:
    """
    Resolve attachment paths against a known base directory.

    Used for global configs, whose base directory is already decided by
    the resolver, so no existence probing is done.
    """
    base = Path(base_path)
    resolved = []
    for att in attachments:
        path = Path(att.path).expanduser()
        if not path.is_absolute():
            path = base / path
        resolved.append(replace(att, path=str(path)))
    return resolved


def merge(first: Sequence[Attachment], second: Sequence[Attachment]) -> List[Attachment]:
    """Concatenate two attachment lists, ``first`` before ``second``."""
    return [*first, *second]
