# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exceptions raised along the send pipeline and by the admin stores.

Each error carries a short ``code``. The dispatcher logs it and uses it as
the ``reason`` label of refused sends; for provider failures it is the
provider's own error code and lands in the record's error_code column.
"""

from __future__ import annotations


class DispatchError(RuntimeError):
    """Base class for dispatch errors."""

    code = "dispatch_error"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class ConfigurationError(DispatchError):
    """Channel disabled or credentials missing."""

    code = "not_configured"


class TemplateNotFound(DispatchError):
    code = "template_not_found"

    def __init__(self, slug: str):
        super().__init__(f"Template '{slug}' not found")
        self.slug = slug


class TemplateInactive(DispatchError):
    code = "template_inactive"

    def __init__(self, slug: str):
        super().__init__(f"Template '{slug}' is not active")
        self.slug = slug


class SystemTemplateError(DispatchError):
    """Raised when deleting a template flagged is_system."""

    code = "system_template"


class DuplicateSlugError(DispatchError):
    code = "duplicate_slug"


class PreferenceDenied(DispatchError):
    code = "preference_denied"


class PreferenceNotFound(DispatchError):
    code = "preference_not_found"


class RateLimitExceeded(DispatchError):
    code = "rate_limited"


class TransportError(DispatchError):
    """Provider call failed.

    Args:
        code: Provider error code, or None when the provider gave none.
        message: Provider error message. Never stored empty.
    """

    code = "transport_error"

    def __init__(self, code: str | None, message: str | None):
        super().__init__(message or "Unknown error", code=code)


__all__ = [
    "ConfigurationError",
    "DispatchError",
    "DuplicateSlugError",
    "PreferenceDenied",
    "PreferenceNotFound",
    "RateLimitExceeded",
    "SystemTemplateError",
    "TemplateInactive",
    "TemplateNotFound",
    "TransportError",
]
