# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Template store and ``{{identifier}}`` interpolation.

Templates are addressed by a unique, immutable slug per channel. Content is
interpolated at send time and the resolved snapshot is what gets stored on
the message record.

Example:
    store = TemplateStore(db.email_templates)
    template = await store.resolve("welcome-email")
    subject = interpolate(template["subject"], {"name": "Ana"})
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from .errors import DuplicateSlugError, SystemTemplateError, TemplateInactive, TemplateNotFound

if TYPE_CHECKING:
    from .entities import TemplateTableBase

PLACEHOLDER_RE = re.compile(r"\{\{(\w+)\}\}")


def interpolate(template: str, variables: Mapping[str, Any]) -> str:
    """Replace ``{{name}}`` placeholders with variable values.

    Placeholders without a matching key are left verbatim, so the function
    is idempotent once no further keys match.

    Args:
        template: Text containing ``{{identifier}}`` placeholders.
        variables: Values by placeholder name; non-string values are str()-ed.

    Returns:
        The interpolated text.

    Example:
        >>> interpolate("Hi {{name}}", {"name": "Jo"})
        'Hi Jo'
        >>> interpolate("Hi {{name}}", {})
        'Hi {{name}}'
    """

    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in variables and variables[key] is not None:
            return str(variables[key])
        return match.group(0)

    return PLACEHOLDER_RE.sub(replace, template)


def extract_variables(*contents: str | None) -> list[str]:
    """Placeholder names found in contents, in first-seen order."""
    names: list[str] = []
    for content in contents:
        if not content:
            continue
        for name in PLACEHOLDER_RE.findall(content):
            if name not in names:
                names.append(name)
    return names


class TemplateStore:
    """Template CRUD with slug resolution rules for one channel."""

    def __init__(self, table: TemplateTableBase):
        self.table = table

    def _declared_variables(self, data: dict[str, Any]) -> list[str]:
        return extract_variables(*(data.get(f) for f in self.table.content_fields))

    async def create(self, data: dict[str, Any]) -> dict[str, Any]:
        """Create a template.

        Raises:
            DuplicateSlugError: If a template with the same slug exists.
        """
        record = {k: v for k, v in data.items() if k in self.table.columns}
        if await self.table.get_by_slug(record["slug"]):
            raise DuplicateSlugError(f"Template slug already exists: {record['slug']}")
        if record.get("variables") is None:
            record["variables"] = self._declared_variables(record)
        created = await self.table.add(record)
        return await self.table.get(created["id"]) or created

    async def update(self, template_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial update. Content changes bump the version.

        Raises:
            TemplateNotFound: Unknown template id.
            ValueError: If changes try to modify the slug.
        """
        current = await self.table.get(template_id)
        if current is None:
            raise TemplateNotFound(template_id)
        if "slug" in changes and changes["slug"] != current["slug"]:
            raise ValueError("Template slug cannot be changed")
        updates = {
            k: v for k, v in changes.items()
            if v is not None and k in self.table.columns and k not in ("id", "slug", "version")
        }
        content_touched = any(f in updates for f in self.table.content_fields)
        if content_touched and "variables" not in updates:
            merged = {**current, **updates}
            updates["variables"] = self._declared_variables(merged)
        await self.table.update_fields(template_id, updates)
        return await self.table.get(template_id) or current

    async def delete(self, template_id: str) -> None:
        """Delete a template.

        Raises:
            TemplateNotFound: Unknown template id.
            SystemTemplateError: The template is flagged is_system.
        """
        current = await self.table.get(template_id)
        if current is None:
            raise TemplateNotFound(template_id)
        if current.get("is_system"):
            raise SystemTemplateError(f"System template cannot be deleted: {current['slug']}")
        await self.table.remove(template_id)

    async def get(self, template_id: str) -> dict[str, Any]:
        template = await self.table.get(template_id)
        if template is None:
            raise TemplateNotFound(template_id)
        return template

    async def list(self, active_only: bool = False) -> list[dict[str, Any]]:
        return await self.table.list_all(active_only)

    async def resolve(self, slug: str) -> dict[str, Any]:
        """Return the active template for slug (exact, case-sensitive).

        Raises:
            TemplateNotFound: No template has this slug.
            TemplateInactive: The template exists but is_active is false.
        """
        template = await self.table.get_by_slug(slug)
        if template is None:
            raise TemplateNotFound(slug)
        if not template.get("is_active"):
            raise TemplateInactive(slug)
        return template

    async def increment_sent_count(self, template_id: str) -> None:
        await self.table.increment_sent_count(template_id)


__all__ = ["PLACEHOLDER_RE", "TemplateStore", "extract_variables", "interpolate"]
