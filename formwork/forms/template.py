"""Template sink that collects parsed forms for Jinja rendering."""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Any, Protocol

import jinja2
from litestar.response import Template as TemplateResponse
from markupsafe import Markup, escape

from formwork.forms.fields import Capability
from formwork.forms.request import IDENTITY_FIELD, TOKEN_FIELD
from formwork.lib.template import Template

if TYPE_CHECKING:
    from formwork.forms.core import Form


class TemplateSink(Protocol):
    """Anything a Form can be parsed into."""

    def assign(self, name: str, value: Any) -> None: ...

    def add_form(self, form: Form) -> None: ...


@lru_cache
def _environment() -> jinja2.Environment:
    return jinja2.Environment(autoescape=True)


class FormTag:
    """The form-level part of a parsed form: the <form> tag and its hidden fields.

    Usable in templates as:
        {{ forms.login.open() }} ... {{ forms.login.close() }}
        {{ forms.login }}   - the whole form in the built-in layout
    """

    def __init__(self, form: Form):
        self.form = form

    @property
    def name(self) -> str:
        return self.form.name

    @property
    def errors(self) -> str:
        return self.form.errors

    def hidden_fields(self) -> Markup:
        html = str(self.form.get_field(IDENTITY_FIELD).widget())
        if self.form.use_token:
            html += str(self.form.get_field(TOKEN_FIELD).widget())
        return Markup(html)

    def open(self) -> Markup:
        html = f'<form method="{escape(self.form.method)}"'
        if self.form.action:
            html += f' action="{escape(self.form.action)}"'
        if self.form.name:
            html += f' id="{escape(self.form.name)}"'
        html += str(self.form.parameters_html())
        html += ">\n" + str(self.hidden_fields())
        return Markup(html)

    def close(self) -> Markup:
        return Markup("</form>")

    def render_default(self) -> Markup:
        """Programmatic fallback when no template exists."""
        html = str(self.open()) + "\n"

        if self.form.errors:
            html += f'<article role="alert">{escape(self.form.errors)}</article>\n'

        for field in self.form:
            if field.name in (IDENTITY_FIELD, TOKEN_FIELD):
                continue
            html += f"<p>{field.widget()}"
            if Capability.ERRORS in field.capabilities:
                html += str(field.error_markup())
            html += "</p>\n"

        html += str(self.close())
        return Markup(html)

    def __html__(self) -> str:
        return str(self.render_default())

    def __repr__(self) -> str:
        return f"FormTag({self.name!r})"


class TemplateContext:
    """Collects what forms parse into it and renders it with Jinja.

    Fields assign variables named after their prefix and name (txtEmail,
    txtEmailError, chkRemember, ...); forms are available as forms[<name>].
    """

    def __init__(self, **variables: Any):
        self.variables: dict[str, Any] = dict(variables)
        self.forms: dict[str, FormTag] = {}

    def assign(self, name: str, value: Any) -> None:
        self.variables[name] = value

    def add_form(self, form: Form) -> None:
        self.forms[form.name] = FormTag(form)

    def as_dict(self, **extra: Any) -> dict[str, Any]:
        return {**self.variables, "forms": dict(self.forms), **extra}

    def render_string(self, source: str, **extra: Any) -> str:
        return _environment().from_string(source).render(**self.as_dict(**extra))

    def render_form(self, name: str, template_engine, **extra: Any) -> Markup:
        """Render one form via form-<name>.html, then form.html, then the built-in layout."""
        tag = self.forms[name]
        rendered = Template("form", name).try_render(template_engine, form=tag, **self.as_dict(**extra))
        if rendered is not None:
            return Markup(rendered)
        return tag.render_default()

    def response(self, template_name: str, **extra: Any) -> TemplateResponse:
        """A Litestar template response carrying everything collected so far."""
        return TemplateResponse(template_name, context=self.as_dict(**extra))
