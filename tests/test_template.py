"""Tests for template resolution, form tags and the template context."""

import jinja2
import pytest
from litestar.contrib.jinja import JinjaTemplateEngine
from litestar.template import TemplateConfig

from formwork.forms.core import Form
from formwork.forms.template import FormTag, TemplateContext
from formwork.lib.template import Template, get_template_config


class MockTemplateEngine:
    def __init__(self, templates: dict[str, str]):
        self._env = jinja2.Environment(loader=jinja2.DictLoader(templates), autoescape=True)

    def get_template(self, name: str):
        return self._env.get_template(name)


@pytest.fixture
def login_form(make_context):
    form = Form("login", make_context(session={"form_token": "tok"}), use_token=True)
    form.add_text("email")
    form.add_button("submit", "Log in")
    return form


# --- Template resolution ---


class TestTemplate:
    def test_candidates_no_slugs(self):
        assert Template("form")._candidates() == ["form.html"]

    def test_candidates_one_slug(self):
        assert Template("form", "contact")._candidates() == ["form-contact.html", "form.html"]

    def test_candidates_skip_empty_slugs(self):
        assert Template("form", "")._candidates() == ["form.html"]

    def test_candidates_two_slugs(self):
        assert Template("form", "contact", "modal")._candidates() == [
            "form-contact-modal.html",
            "form-contact.html",
            "form.html",
        ]

    def test_try_render_uses_most_specific(self):
        engine = MockTemplateEngine({"form.html": "generic", "form-contact.html": "specific"})
        assert Template("form", "contact").try_render(engine) == "specific"

    def test_try_render_falls_back(self):
        engine = MockTemplateEngine({"form.html": "generic {{ x }}"})
        assert Template("form", "contact").try_render(engine, x=1) == "generic 1"

    def test_try_render_returns_none_when_missing(self):
        assert Template("form", "contact").try_render(MockTemplateEngine({})) is None

    def test_try_render_merges_context(self):
        engine = MockTemplateEngine({"form.html": "{{ a }}{{ b }}"})
        template = Template("form", context={"a": "1", "b": "2"})
        assert template.try_render(engine, b="3") == "13"

    def test_try_render_with_litestar_engine(self, tmp_path):
        (tmp_path / "form.html").write_text("from disk")
        engine = JinjaTemplateEngine(directory=tmp_path)
        assert Template("form", "contact").try_render(engine) == "from disk"

    def test_try_render_with_litestar_engine_missing(self, tmp_path):
        engine = JinjaTemplateEngine(directory=tmp_path)
        assert Template("form", "contact").try_render(engine) is None

    def test_get_template_config(self, tmp_path):
        config = get_template_config(tmp_path, str(tmp_path / "shared"))
        assert isinstance(config, TemplateConfig)
        assert config.directory == [tmp_path, tmp_path / "shared"]
        assert config.engine is JinjaTemplateEngine


# --- Form tag ---


class TestFormTag:
    def test_open_includes_hidden_fields(self, login_form):
        assert str(FormTag(login_form).open()) == (
            '<form method="post" id="login">\n'
            '<input type="hidden" name="form" id="formLogin" value="login">'
            '<input type="hidden" name="form_token" id="formTokenLogin" value="tok">'
        )

    def test_open_with_action_and_parameters(self, make_context):
        form = Form("search", make_context(), action="/search", method="get")
        form.set_parameter("class", "inline")
        html = str(FormTag(form).open())
        assert html.startswith('<form method="get" action="/search" id="search" class="inline">\n')

    def test_anonymous_form_has_no_id(self, make_context):
        html = str(FormTag(Form("", make_context())).open())
        assert html.startswith('<form method="post">\n')

    def test_multipart_form(self, make_context):
        form = Form("upload", make_context())
        form.add_file("doc")
        assert 'enctype="multipart/form-data"' in str(FormTag(form).open())

    def test_close(self, login_form):
        assert str(FormTag(login_form).close()) == "</form>"

    def test_render_default(self, login_form):
        html = str(FormTag(login_form).render_default())
        assert '<p><input type="text" name="email"' in html
        assert '<p><input type="submit" name="submit"' in html
        assert 'role="alert"' not in html
        assert html.endswith("</form>")

    def test_render_default_shows_errors(self, make_context):
        form = Form("login", make_context(form={"form": "login"}))
        form.add_text("email").is_filled("Email is required")
        form.add_error("Try again")
        form.validate()
        html = str(FormTag(form).render_default())
        assert '<article role="alert">Try again\nEmail is required</article>' in html
        assert '<span class="formError">Email is required</span>' in html


# --- Template context ---


class TestTemplateContext:
    def test_parse_collects_variables(self, login_form):
        context = TemplateContext(title="Sign in")
        login_form.parse(context)
        assert set(context.variables) == {"title", "txtEmail", "txtEmailError", "btnSubmit"}
        assert list(context.forms) == ["login"]

    def test_as_dict(self, login_form):
        context = TemplateContext()
        login_form.parse(context)
        data = context.as_dict(extra=1)
        assert data["extra"] == 1
        assert isinstance(data["forms"]["login"], FormTag)

    def test_render_string(self, login_form):
        context = TemplateContext()
        login_form.parse(context)
        html = context.render_string("{{ forms.login.open() }}{{ txtEmail }}{{ forms.login.close() }}")
        assert html.startswith('<form method="post" id="login">')
        assert '<input type="text" name="email"' in html
        assert html.endswith("</form>")

    def test_render_string_escapes_plain_values(self):
        assert TemplateContext(title="<b>").render_string("{{ title }}") == "&lt;b&gt;"

    def test_whole_form_renders_default_layout(self, login_form):
        context = TemplateContext()
        login_form.parse(context)
        assert context.render_string("{{ forms.login }}") == str(FormTag(login_form).render_default())

    def test_render_form_falls_back_to_default(self, login_form):
        context = TemplateContext()
        login_form.parse(context)
        rendered = context.render_form("login", MockTemplateEngine({}))
        assert rendered == FormTag(login_form).render_default()

    def test_render_form_uses_named_template(self, login_form):
        engine = MockTemplateEngine({
            "form-login.html": "{{ form.open() }}{{ txtEmail }}{{ btnSubmit }}{{ form.close() }}",
            "form.html": "generic",
        })
        context = TemplateContext()
        login_form.parse(context)
        rendered = str(context.render_form("login", engine))
        assert rendered.startswith('<form method="post" id="login">')
        assert 'value="Log in"' in rendered

    def test_form_render_shortcut(self, login_form):
        engine = MockTemplateEngine({"form.html": "{{ form.name }}: {{ label }}"})
        assert login_form.render(engine, label="Sign in") == "login: Sign in"

    def test_response(self, login_form):
        context = TemplateContext()
        login_form.parse(context)
        response = context.response("login.html", title="Sign in")
        assert response.template_name == "login.html"
        assert response.context["title"] == "Sign in"
        assert "txtEmail" in response.context
        assert "login" in response.context["forms"]
