"""Request and session state handed to forms.

Forms never read ambient globals. Everything they need from the inbound
request is collected once into a RequestContext, which tests can build by
hand and handlers build with from_litestar().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, MutableMapping

from litestar.exceptions import ImproperlyConfiguredException

if TYPE_CHECKING:
    from litestar import Request

ParamValue = str | list[str]


@dataclass
class UploadedFile:
    """An uploaded file, fully read into memory."""

    filename: str
    content_type: str = "application/octet-stream"
    content: bytes = b""

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lstrip(".").lower()

    def save(self, destination: str | Path) -> Path:
        """Write the content to destination, creating parent directories."""
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.content)
        return path


@dataclass
class RequestContext:
    """Parameter stores and session for a single request.

    `query` and `form` are mutable on purpose: Form.cleanup_fields() rewrites
    the store selected by the form's method.
    """

    method: str = "GET"
    query: dict[str, ParamValue] = field(default_factory=dict)
    form: dict[str, ParamValue] = field(default_factory=dict)
    files: dict[str, UploadedFile] = field(default_factory=dict)
    session: MutableMapping[str, Any] = field(default_factory=dict)
    session_id: str = ""

    def params(self, method: str) -> dict[str, ParamValue]:
        """Return the parameter store for a form method ("get" or "post")."""
        return self.form if method.lower() == "post" else self.query


def first_value(value: ParamValue | None) -> str | None:
    """Collapse a multi-valued parameter to its first value."""
    if isinstance(value, list):
        return value[0] if value else ""
    return value


IDENTITY_FIELD = "form"
TOKEN_FIELD = "form_token"


def is_form_submission(context: RequestContext, form_name: str, method: str) -> bool:
    """Decide whether the request in context is a submission of the named form.

    A named form is identified by its hidden identity field. An anonymous form
    cannot be told apart from any other form and only matches on HTTP method.
    """
    if form_name:
        return first_value(context.params(method).get(IDENTITY_FIELD)) == form_name
    return context.method.upper() == method.upper()


def _collect(items) -> dict[str, ParamValue]:
    collected: dict[str, ParamValue] = {}
    for key, value in items:
        if key in collected:
            existing = collected[key]
            if isinstance(existing, list):
                existing.append(value)
            else:
                collected[key] = [existing, value]
        else:
            collected[key] = value
    return collected


def _multi_items(data) -> list[tuple[str, Any]]:
    if hasattr(data, "multi_items"):
        return list(data.multi_items())
    return list(data.items())


async def from_litestar(request: Request, *, session_cookie: str | None = None) -> RequestContext:
    """Build a RequestContext from a Litestar request.

    Reads the form body once, splits uploads from plain values and keeps a
    reference to the live session mapping so tokens written by the form end
    up in the response's session.
    """
    if session_cookie is None:
        from formwork.config import get_settings

        session_cookie = get_settings().session_cookie

    values: list[tuple[str, str]] = []
    files: dict[str, UploadedFile] = {}

    if request.method.upper() != "GET":
        form_data = await request.form()
        for key, value in _multi_items(form_data):
            if isinstance(value, str):
                values.append((key, value))
            elif getattr(value, "filename", None):
                content = await value.read()
                files[key] = UploadedFile(
                    filename=value.filename,
                    content_type=value.content_type or "application/octet-stream",
                    content=content,
                )

    try:
        session = request.session
    except ImproperlyConfiguredException:
        session = {}

    return RequestContext(
        method=request.method.upper(),
        query=_collect(_multi_items(request.query_params)),
        form=_collect(values),
        files=files,
        session=session,
        session_id=request.cookies.get(session_cookie, ""),
    )
