# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Template tables for email and SMS content addressed by slug."""

from __future__ import annotations

from typing import Any

from ...sql import Boolean, Integer, Json, String, Table


class TemplateTableBase(Table):
    """Common template columns.

    Boolean fields is_active/is_system are stored as INTEGER 0/1 and decoded
    to bool. variables is a JSON list of declared placeholder names.
    """

    generate_id = True
    created_column = "created_ts"
    updated_column = "updated_ts"
    content_fields: tuple[str, ...] = ()

    def configure(self) -> None:
        c = self.columns
        c.column("id", String, primary_key=True)
        c.column("slug", String, nullable=False, unique=True)
        c.column("name", String, nullable=False)
        c.column("description", String)
        c.column("category", String, default="TRANSACTIONAL")
        c.column("variables", Json)
        c.column("is_active", Boolean, default=True)
        c.column("is_system", Boolean, default=False)
        c.column("version", Integer, default=1)
        c.column("sent_count", Integer, default=0)
        c.column("created_ts", Integer)
        c.column("updated_ts", Integer)
        self.configure_content()

    def configure_content(self) -> None:
        pass

    async def trigger_on_inserting(self, record: dict[str, Any]) -> dict[str, Any]:
        record.setdefault("version", 1)
        record.setdefault("sent_count", 0)
        record.setdefault("is_active", True)
        record.setdefault("is_system", False)
        record.setdefault("variables", [])
        return record

    async def add(self, template: dict[str, Any]) -> dict[str, Any]:
        data = dict(template)
        await self.insert(data)
        return data

    async def get(self, template_id: str) -> dict[str, Any] | None:
        return await self.select_one(where={"id": template_id})

    async def get_by_slug(self, slug: str) -> dict[str, Any] | None:
        return await self.select_one(where={"slug": slug})

    async def list_all(self, active_only: bool = False) -> list[dict[str, Any]]:
        if active_only:
            return await self.select(where={"is_active": 1}, order_by="name")
        return await self.select(order_by="name")

    async def update_fields(self, template_id: str, updates: dict[str, Any]) -> bool:
        """Apply updates, bumping version when any content field changes."""
        async with self.record(template_id) as rec:
            if not rec:
                return False
            content_changed = any(
                field in updates and updates[field] != rec.get(field)
                for field in self.content_fields
            )
            rec.update(updates)
            if content_changed:
                rec["version"] = int(rec.get("version") or 1) + 1
        return True

    async def remove(self, template_id: str) -> bool:
        return await self.delete(where={"id": template_id}) > 0

    async def increment_sent_count(self, template_id: str) -> None:
        await self.execute(
            f"UPDATE {self.name} SET sent_count = sent_count + 1 WHERE id = :id",
            {"id": template_id},
        )


class EmailTemplatesTable(TemplateTableBase):
    name = "email_templates"
    content_fields = ("subject", "html_content", "text_content")

    def configure_content(self) -> None:
        c = self.columns
        c.column("subject", String, nullable=False)
        c.column("html_content", String, nullable=False)
        c.column("text_content", String)


class SmsTemplatesTable(TemplateTableBase):
    name = "sms_templates"
    content_fields = ("content",)

    def configure_content(self) -> None:
        self.columns.column("content", String, nullable=False)


__all__ = ["EmailTemplatesTable", "SmsTemplatesTable", "TemplateTableBase"]
