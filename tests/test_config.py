"""Tests for formwork.config settings loading."""

import pytest

from formwork.config import Settings, get_settings, interpolate_env_vars, load_app_config
from formwork.forms.core import Form


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    """Run the test from an empty directory so no stray app.yaml or .env is read."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestSettings:
    def test_defaults(self, workdir):
        settings = get_settings()
        assert settings.token_error == "Invalid token"
        assert settings.token_session_key == "form_token"
        assert settings.default_method == "post"
        assert settings.session_cookie == "session"

    def test_environment_overrides(self, workdir, monkeypatch):
        monkeypatch.setenv("FORMWORK_TOKEN_ERROR", "Session expired")
        assert get_settings().token_error == "Session expired"

    def test_app_yaml_forms_section(self, workdir):
        (workdir / "app.yaml").write_text(
            "forms:\n"
            "  token_error: From yaml\n"
            "  default_method: get\n"
            "  unknown_key: ignored\n"
        )
        settings = get_settings()
        assert settings.token_error == "From yaml"
        assert settings.default_method == "get"
        assert not hasattr(settings, "unknown_key")

    def test_app_yaml_wins_over_environment(self, workdir, monkeypatch):
        monkeypatch.setenv("FORMWORK_TOKEN_ERROR", "From env")
        (workdir / "app.yaml").write_text("forms:\n  token_error: From yaml\n")
        assert get_settings().token_error == "From yaml"

    def test_app_yaml_without_forms_section(self, workdir):
        (workdir / "app.yaml").write_text("other:\n  key: value\n")
        assert get_settings() == Settings()

    def test_empty_app_yaml(self, workdir):
        (workdir / "app.yaml").write_text("")
        assert get_settings().token_error == "Invalid token"

    def test_settings_are_cached(self, workdir):
        assert get_settings() is get_settings()


class TestSettingsApplyToForms:
    def test_token_error_from_settings(self, workdir, make_context):
        (workdir / "app.yaml").write_text("forms:\n  token_error: Please reload\n")
        form = Form("login", make_context(form={"form": "login"}), use_token=True)
        form.validate()
        assert form.errors == "Please reload"

    def test_explicit_token_error_wins(self, workdir, make_context, monkeypatch):
        monkeypatch.setenv("FORMWORK_TOKEN_ERROR", "From env")
        form = Form("login", make_context(form={"form": "login"}), use_token=True, token_error="Explicit")
        form.validate()
        assert form.errors == "Explicit"

    def test_default_method_from_settings(self, workdir, make_context, monkeypatch):
        monkeypatch.setenv("FORMWORK_DEFAULT_METHOD", "get")
        assert Form("search", make_context()).method == "get"

    def test_token_session_key_from_settings(self, workdir, make_context, monkeypatch):
        monkeypatch.setenv("FORMWORK_TOKEN_SESSION_KEY", "csrf")
        context = make_context()
        form = Form("login", context, use_token=True)
        assert context.session == {"csrf": form.get_token()}


class TestAppConfig:
    def test_missing_file_raises(self, workdir):
        with pytest.raises(FileNotFoundError):
            load_app_config()

    def test_interpolates_environment(self, workdir, monkeypatch):
        monkeypatch.setenv("LOGIN_ERROR", "Nope")
        (workdir / "app.yaml").write_text("forms:\n  token_error: $LOGIN_ERROR\n")
        assert load_app_config() == {"forms": {"token_error": "Nope"}}


class TestInterpolateEnvVars:
    def test_nested_structures(self, monkeypatch):
        monkeypatch.setenv("NAME", "value")
        data = {"a": "$NAME", "b": ["x-$NAME", 3], "c": {"d": "$NAME"}}
        assert interpolate_env_vars(data) == {"a": "value", "b": ["x-value", 3], "c": {"d": "value"}}

    def test_missing_variable_raises(self, monkeypatch):
        monkeypatch.delenv("MISSING_VAR", raising=False)
        with pytest.raises(ValueError, match="MISSING_VAR"):
            interpolate_env_vars("$MISSING_VAR")

    def test_lowercase_is_left_alone(self):
        assert interpolate_env_vars("$lower") == "$lower"
