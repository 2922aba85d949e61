"""Issue template parsing and filling

Markdown issue templates start with a YAML front matter block:

    ---
    name: Bug report
    about: Something is broken
    title: "[BUG] "
    labels: bug, triage
    ---
    ## Steps to reproduce
    {{steps}}

Placeholders are written {{name}}; unknown placeholders are left in place.
"""
import logging
import re
from typing import Any, List, Mapping

import yaml

from providers.models import IssueDraft, IssueTemplate

logger = logging.getLogger(__name__)

FRONT_MATTER = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)
PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(part).strip() for part in value if str(part).strip()]
    return [str(value)]


def parse_template(name: str, path: str, text: str) -> IssueTemplate:
    """Split a template file into its front matter fields and body

    A template without front matter, or with front matter that is not a YAML
    mapping, is kept whole as the body.
    """
    match = FRONT_MATTER.match(text)
    if match is None:
        return IssueTemplate(name=name, path=path, content=text)

    try:
        meta = yaml.safe_load(match.group(1)) or {}
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring unreadable front matter in {path}: {e}")
        return IssueTemplate(name=name, path=path, content=text)
    if not isinstance(meta, dict):
        return IssueTemplate(name=name, path=path, content=text)

    return IssueTemplate(
        name=name,
        path=path,
        display_name=str(meta.get("name") or ""),
        about=str(meta.get("about") or meta.get("description") or ""),
        title=str(meta.get("title") or ""),
        labels=_as_list(meta.get("labels")),
        content=text[match.end():].lstrip("\n"),
    )


def fill_placeholders(text: str, variables: Mapping[str, str]) -> str:
    def replace(match: "re.Match[str]") -> str:
        key = match.group(1)
        return str(variables[key]) if key in variables else match.group(0)
    return PLACEHOLDER.sub(replace, text)


def format_issue_body(title: str, description: str, template: str = "") -> str:
    """Combine a description with an optional template body

    {{title}} and {{description}} are substituted. A template without a
    {{description}} placeholder gets the description appended after it.
    """
    if not template:
        return description
    body = fill_placeholders(template, {"title": title, "description": description})
    if not re.search(r"\{\{\s*description\s*\}\}", template) and description:
        body = f"{body.rstrip()}\n\n{description}"
    return body


def generate_issue_from_template(template: IssueTemplate, variables: Mapping[str, str]) -> IssueDraft:
    """Build an issue draft from a parsed template

    The template's default title, labels and body are filled from variables.
    """
    return IssueDraft(
        title=fill_placeholders(template.title, variables).strip(),
        body=fill_placeholders(template.content, variables),
        labels=list(template.labels),
    )
