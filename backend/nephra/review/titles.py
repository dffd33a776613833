"""Display-title resolution for application records.

Applicants fill in different fields depending on which form they used, so a
row may carry its title explicitly, inside an attachment payload, through
the linked project, or only inside the free-text proposal.
"""

import json
import logging
import re
from typing import Any, Mapping, Optional

__all__ = ["DEFAULT_TITLE", "resolve_title", "try_decode_json"]

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Project Application"
SNIPPET_LENGTH = 100

_TITLE_LINE_RE = re.compile(r"^[ \t]*title:[ \t]*(.+?)[ \t]*$", re.IGNORECASE | re.MULTILINE)


def try_decode_json(value: Any) -> Any:
    """Return ``value`` parsed if it is JSON text, as-is otherwise.

    Parse failures return ``None`` so callers treat the field as absent.
    """
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text:
        return None
    try:
        return json.loads(text)
    except (ValueError, TypeError):
        logger.debug("Ignoring undecodable JSON payload (%d chars)", len(text))
        return None


def _clean(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _attachment_title(attachments: Any) -> Optional[str]:
    decoded = try_decode_json(attachments)
    if not isinstance(decoded, list) or not decoded:
        return None
    first = try_decode_json(decoded[0])
    if not isinstance(first, dict):
        return None
    data = try_decode_json(first.get("data"))
    if not isinstance(data, dict):
        return None
    return _clean(data.get("title"))


def _project_title(row: Mapping[str, Any], projects: Optional[Mapping[str, Any]]) -> Optional[str]:
    for key in ("projects", "project"):
        joined = row.get(key)
        if isinstance(joined, dict):
            title = _clean(joined.get("title"))
            if title:
                return title
    project_id = row.get("project_id")
    if project_id and projects:
        project = projects.get(str(project_id))
        if isinstance(project, dict):
            return _clean(project.get("title"))
    return None


def _free_text(row: Mapping[str, Any]) -> Optional[str]:
    return _clean(row.get("proposal")) or _clean(row.get("purpose"))


def resolve_title(
    row: Mapping[str, Any],
    projects: Optional[Mapping[str, Any]] = None,
) -> str:
    """Pick the best display title for an application row.

    Priority: explicit ``title`` > first attachment's ``data.title`` >
    linked project title > ``Title:`` line in the proposal/purpose text >
    first 100 characters of that text > :data:`DEFAULT_TITLE`.

    Args:
        row: Raw application row.
        projects: Optional mapping of project id (str) to project row, used
            when the row carries a ``project_id`` but no joined project.
    """
    title = _clean(row.get("title"))
    if title:
        return title

    title = _attachment_title(row.get("attachments"))
    if title:
        return title

    title = _project_title(row, projects)
    if title:
        return title

    text = _free_text(row)
    if text:
        match = _TITLE_LINE_RE.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
        snippet = text[:SNIPPET_LENGTH].strip()
        if snippet:
            return snippet

    return DEFAULT_TITLE
