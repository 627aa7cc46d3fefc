"""Tests for RequestContext, submission detection and the Litestar adapter."""

from unittest.mock import AsyncMock, MagicMock, PropertyMock

import pytest
from litestar.datastructures import MultiDict
from litestar.exceptions import ImproperlyConfiguredException

from formwork.forms.request import (
    RequestContext,
    UploadedFile,
    first_value,
    from_litestar,
    is_form_submission,
)


def make_upload(filename, content=b"data", content_type="text/plain"):
    upload = MagicMock()
    upload.filename = filename
    upload.content_type = content_type
    upload.read = AsyncMock(return_value=content)
    return upload


# ---------------------------------------------------------------------------
# RequestContext
# ---------------------------------------------------------------------------

class TestRequestContext:
    def test_post_reads_form_store(self):
        context = RequestContext(form={"a": "1"}, query={"a": "2"})
        assert context.params("post") == {"a": "1"}
        assert context.params("POST") == {"a": "1"}

    def test_get_reads_query_store(self):
        context = RequestContext(form={"a": "1"}, query={"a": "2"})
        assert context.params("get") == {"a": "2"}

    def test_params_returns_live_store(self):
        context = RequestContext()
        context.params("post")["x"] = "1"
        assert context.form == {"x": "1"}

    def test_first_value(self):
        assert first_value(["a", "b"]) == "a"
        assert first_value([]) == ""
        assert first_value("a") == "a"
        assert first_value(None) is None


class TestUploadedFile:
    def test_size_and_extension(self):
        upload = UploadedFile("photo.JPEG", "image/jpeg", b"12345")
        assert upload.size == 5
        assert upload.extension == "jpeg"

    def test_no_extension(self):
        assert UploadedFile("README").extension == ""

    def test_save_creates_directories(self, tmp_path):
        destination = tmp_path / "a" / "b" / "file.txt"
        assert UploadedFile("file.txt", content=b"hi").save(destination) == destination
        assert destination.read_bytes() == b"hi"


class TestIsFormSubmission:
    def test_named_form(self):
        context = RequestContext(method="POST", form={"form": "login"})
        assert is_form_submission(context, "login", "post") is True
        assert is_form_submission(context, "signup", "post") is False

    def test_named_form_wrong_store(self):
        context = RequestContext(method="POST", form={"form": "login"})
        assert is_form_submission(context, "login", "get") is False

    def test_anonymous_form(self):
        assert is_form_submission(RequestContext(method="POST"), "", "post") is True
        assert is_form_submission(RequestContext(method="GET"), "", "post") is False


# ---------------------------------------------------------------------------
# Litestar adapter
# ---------------------------------------------------------------------------

class TestFromLitestar:
    @pytest.mark.asyncio
    async def test_collects_form_values(self, mock_request_factory):
        request = mock_request_factory(form_data={"form": "login", "email": "a@b.c"})
        context = await from_litestar(request)
        assert context.method == "POST"
        assert context.form == {"form": "login", "email": "a@b.c"}
        assert context.files == {}

    @pytest.mark.asyncio
    async def test_multi_values_become_lists(self, mock_request_factory):
        form_data = MultiDict([("form", "prefs"), ("tags[]", "a"), ("tags[]", "b")])
        query = MultiDict([("page", "1"), ("page", "2")])
        context = await from_litestar(mock_request_factory(form_data=form_data, query=query))
        assert context.form == {"form": "prefs", "tags[]": ["a", "b"]}
        assert context.query == {"page": ["1", "2"]}

    @pytest.mark.asyncio
    async def test_uploads_are_read_into_files(self, mock_request_factory):
        upload = make_upload("cv.pdf", b"%PDF", "application/pdf")
        request = mock_request_factory(form_data={"form": "apply", "cv": upload})
        context = await from_litestar(request)
        assert "cv" not in context.form
        assert context.files["cv"] == UploadedFile("cv.pdf", "application/pdf", b"%PDF")
        upload.read.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_upload_is_ignored(self, mock_request_factory):
        upload = make_upload("")
        context = await from_litestar(mock_request_factory(form_data={"cv": upload}))
        assert context.files == {}
        upload.read.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_content_type_defaults(self, mock_request_factory):
        upload = make_upload("blob", content_type=None)
        context = await from_litestar(mock_request_factory(form_data={"blob": upload}))
        assert context.files["blob"].content_type == "application/octet-stream"

    @pytest.mark.asyncio
    async def test_get_request_does_not_read_body(self, mock_request_factory):
        request = mock_request_factory(method="GET", query={"q": "forms"})
        request.form = AsyncMock()
        context = await from_litestar(request)
        request.form.assert_not_awaited()
        assert context.method == "GET"
        assert context.query == {"q": "forms"}
        assert context.form == {}

    @pytest.mark.asyncio
    async def test_keeps_live_session(self, mock_request_factory):
        session = {"user": 1}
        context = await from_litestar(mock_request_factory(session=session))
        assert context.session is session

    @pytest.mark.asyncio
    async def test_session_id_from_cookie(self, mock_request_factory):
        request = mock_request_factory(cookies={"session": "abc"})
        assert (await from_litestar(request)).session_id == "abc"

    @pytest.mark.asyncio
    async def test_custom_session_cookie(self, mock_request_factory):
        request = mock_request_factory(cookies={"sid": "xyz", "session": "abc"})
        assert (await from_litestar(request, session_cookie="sid")).session_id == "xyz"

    @pytest.mark.asyncio
    async def test_session_cookie_from_settings(self, mock_request_factory, monkeypatch):
        monkeypatch.setenv("FORMWORK_SESSION_COOKIE", "sid")
        request = mock_request_factory(cookies={"sid": "xyz"})
        assert (await from_litestar(request)).session_id == "xyz"

    @pytest.mark.asyncio
    async def test_without_session_middleware(self, mock_request_factory):
        request = mock_request_factory()
        type(request).session = PropertyMock(side_effect=ImproperlyConfiguredException("no session"))
        context = await from_litestar(request)
        assert context.session == {}
