"""Shared pytest fixtures."""

from unittest.mock import MagicMock

import pytest

from formwork.config import get_settings
from formwork.forms.request import RequestContext


@pytest.fixture(autouse=True)
def clean_settings():
    """Drop cached settings around each test so env and app.yaml changes apply."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_context():
    """Factory fixture that returns a RequestContext with the given stores."""
    def _make(method="POST", form=None, query=None, session=None, files=None, session_id="session-1"):
        return RequestContext(
            method=method,
            form=dict(form or {}),
            query=dict(query or {}),
            files=dict(files or {}),
            session=session if session is not None else {},
            session_id=session_id,
        )
    return _make


@pytest.fixture
def mock_request_factory():
    """Factory fixture that returns mock Litestar requests with a session dict."""
    def _make(method="POST", form_data=None, query=None, session=None, cookies=None):
        request = MagicMock()
        request.method = method
        request.session = session if session is not None else {}
        request.cookies = cookies or {}
        request.query_params = query or {}

        async def _form():
            return form_data or {}

        request.form = _form
        return request
    return _make
