# venture/core/utils/url.py
"""URL helpers for safe logging."""

from __future__ import annotations

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError


def mask_database_url(url: str) -> str:
    """Replace the password in a database URL with ``***``.

    URLs SQLAlchemy cannot parse are masked textually: everything between the
    last ``:`` before ``@`` and the ``@`` is hidden.
    """
    try:
        parsed = make_url(url)
    except ArgumentError:
        if '@' not in url:
            return url
        credentials, host = url.split('@', 1)
        user_part = credentials.rsplit(':', 1)[0]
        return f'{user_part}:***@{host}'
    if parsed.password is None:
        return url
    return parsed.render_as_string(hide_password=True)
