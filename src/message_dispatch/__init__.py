# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Email and SMS dispatch layer for the LMS admin application.

This package provides the messaging backend with features including:

- Email delivery through Resend and SMS delivery through Twilio
- Templates addressed by slug with ``{{variable}}`` interpolation
- Per-user notification preferences and one-click unsubscribe
- Persisted message log with retry of failed sends and hourly rate limits
- Delivery statistics and provider webhooks
- Prometheus metrics and a FastAPI REST API

Example:
    Basic usage with the FastAPI application::

        from message_dispatch.service import MessagingService
        from message_dispatch.api import create_app

        service = MessagingService(load_config())
        app = create_app(service, api_token="secret")

Authors:
    Softwell S.r.l.
"""

__version__ = "0.1.0"
