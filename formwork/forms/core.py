"""Core Form class: field registry, submission detection, token and validation."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Mapping

from markupsafe import Markup

from formwork.config import get_settings
from formwork.forms.fields import (
    ButtonField,
    Capability,
    CheckboxField,
    Choices,
    DateField,
    DropdownField,
    Field,
    FileField,
    HiddenField,
    ImageField,
    MultiCheckboxField,
    PasswordField,
    RadiobuttonField,
    TextareaField,
    TextField,
    TimeField,
    TokenField,
    _render_attrs,
)
from formwork.forms.registry import FieldRegistry
from formwork.forms.request import IDENTITY_FIELD, TOKEN_FIELD, RequestContext, first_value, is_form_submission
from formwork.forms.template import TemplateSink
from formwork.forms.tokens import TokenManager
from formwork.lib.text import to_camel_case

logger = logging.getLogger(__name__)

METHODS = ("get", "post")
MULTIPART = "multipart/form-data"


class FormState(str, Enum):
    """Outcome of the last validation pass."""

    UNVALIDATED = "unvalidated"
    VALID = "valid"
    INVALID = "invalid"


class Form:
    """A named collection of fields bound to one request.

    Usage:
        form = Form("login", context, use_token=True)
        form.add_text("email")
        form.add_password("password")

        if form.is_submitted():
            form.cleanup_fields()
            form.get_field("email").is_email("Please enter a valid e-mail address.")
            if form.is_correct():
                values = form.get_values("form", "form_token")

    Construction always registers a hidden identity field named "form" holding
    the form name, plus a hidden "form_token" field when use_token is set.
    """

    def __init__(
        self,
        name: str,
        context: RequestContext | None = None,
        action: str | None = None,
        method: str | None = None,
        use_token: bool = False,
        *,
        token_error: str | None = None,
    ):
        settings = get_settings()

        self._name = str(name)
        self.context = context if context is not None else RequestContext()
        self._registry = FieldRegistry()
        self.parameters: dict[str, str] = {}
        self.token_error = token_error if token_error is not None else settings.token_error
        self.tokens = TokenManager(
            self.context.session,
            self.context.session_id,
            session_key=settings.token_session_key,
        )

        self._state = FormState.UNVALIDATED
        self._caller_errors: list[str] = []
        self._collected_errors: list[str] = []

        self.action = action
        self._method = "post"
        self.set_method(method or settings.default_method)
        self._use_token = bool(use_token)

        self.add(HiddenField(
            IDENTITY_FIELD,
            self._name,
            attributes={"id": to_camel_case(f"form_{self._name}", lower_first=True)},
        ))
        if self._use_token:
            self.get_token()
            self.add(TokenField(
                TOKEN_FIELD,
                self.tokens,
                attributes={"id": to_camel_case(f"form_token_{self._name}", lower_first=True)},
            ))

    # -- Properties --

    @property
    def name(self) -> str:
        return self._name

    @property
    def method(self) -> str:
        return self._method

    @property
    def action(self) -> str:
        return self._action

    @action.setter
    def action(self, action: str | None) -> None:
        # Quotes would end the action attribute early; %22 is the same URL.
        self._action = "" if action is None else str(action).replace('"', "%22")

    @property
    def use_token(self) -> bool:
        return self._use_token

    @property
    def state(self) -> FormState:
        return self._state

    @property
    def validated(self) -> bool:
        return self._state is not FormState.UNVALIDATED

    @property
    def correct(self) -> bool | None:
        """None until validated, then the verdict of the last pass."""
        if self._state is FormState.UNVALIDATED:
            return None
        return self._state is FormState.VALID

    @property
    def errors(self) -> str:
        """Form-level error text: caller errors first, then collected errors."""
        return "\n".join(self._caller_errors + self._collected_errors)

    def get_errors(self) -> str:
        return self.errors

    # -- Configuration --

    def set_action(self, action: str | None) -> Form:
        self.action = action
        return self

    def set_method(self, method: str = "post") -> Form:
        """Set the method; anything other than get or post means post."""
        method = str(method).lower()
        self._method = method if method in METHODS else "post"
        for field in self._registry:
            field.bind(self._name, self._method, self.context)
        return self

    def set_parameter(self, key: str, value: Any) -> Form:
        self.parameters[str(key)] = str(value)
        return self

    def set_parameters(self, parameters: Mapping[str, Any]) -> Form:
        for key, value in parameters.items():
            self.set_parameter(key, value)
        return self

    def parameters_html(self) -> Markup:
        return Markup(_render_attrs(self.parameters))

    def set_token_error(self, error: str) -> Form:
        self.token_error = str(error)
        return self

    # -- Token --

    def get_token(self) -> str:
        return self.tokens.get_token()

    def has_token(self) -> bool:
        return self.tokens.has_token()

    # -- Registry --

    def add(self, *items: Any) -> None:
        """Register fields (or nested lists of fields) on this form."""
        for field in self._registry.add(*items):
            field.bind(self._name, self._method, self.context)
            if Capability.UPLOAD in field.capabilities and "enctype" not in self.parameters:
                self.set_parameter("enctype", MULTIPART)

    def exists_field(self, name: str) -> bool:
        return self._registry.exists(name)

    def get_field(self, name: str) -> Field:
        return self._registry.get(name)

    @property
    def fields(self) -> dict[str, Field]:
        return self._registry.all()

    def get_fields(self) -> dict[str, Field]:
        return self._registry.all()

    def __iter__(self) -> Iterator[Field]:
        return iter(self._registry)

    def __getitem__(self, name: str) -> Field:
        return self._registry.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    def __len__(self) -> int:
        return len(self._registry)

    def cleanup_fields(self) -> None:
        """Make the method's parameter store hold exactly the keys this form owns.

        Keys that no field declares are removed; declared keys that were not
        sent are filled in with an empty string. Upload fields are skipped,
        their content lives in the request's files.
        """
        expected = self._registry.expected_keys(IDENTITY_FIELD)
        params = self.context.params(self._method)

        removed = [key for key in params if key not in expected]
        for key in removed:
            del params[key]
        for key in expected:
            params.setdefault(key, "")

        if removed:
            logger.debug("Form %r dropped undeclared request keys: %s", self._name, ", ".join(removed))

    # -- Field factories --

    def add_button(self, name: str, value: str, button_type: str | None = None, css_class: str = "inputButton") -> ButtonField:
        return self._add_one(ButtonField(name, value, button_type, css_class))

    def add_checkbox(
        self,
        name: str,
        checked: bool = False,
        css_class: str = "inputCheckbox",
        css_class_error: str = "inputCheckboxError",
    ) -> CheckboxField:
        return self._add_one(CheckboxField(name, checked, css_class, css_class_error))

    def add_date(
        self,
        name: str,
        value: Any = None,
        mask: str | None = None,
        css_class: str = "inputDate",
        css_class_error: str = "inputDateError",
    ) -> DateField:
        return self._add_one(DateField(name, value, mask, css_class, css_class_error))

    def add_dropdown(
        self,
        name: str,
        values: Choices | None = None,
        selected: Any = None,
        multiple: bool = False,
        css_class: str = "inputDropdown",
        css_class_error: str = "inputDropdownError",
    ) -> DropdownField:
        return self._add_one(DropdownField(name, values, selected, multiple, css_class, css_class_error))

    def add_file(self, name: str, css_class: str = "inputFile", css_class_error: str = "inputFileError") -> FileField:
        return self._add_one(FileField(name, css_class, css_class_error))

    def add_hidden(self, name: str, value: Any = None) -> HiddenField:
        return self._add_one(HiddenField(name, value))

    def add_image(self, name: str, css_class: str = "inputFile", css_class_error: str = "inputFileError") -> ImageField:
        return self._add_one(ImageField(name, css_class, css_class_error))

    def add_multi_checkbox(
        self,
        name: str,
        values: Choices,
        checked: Any = None,
        css_class: str = "inputCheckbox",
    ) -> MultiCheckboxField:
        return self._add_one(MultiCheckboxField(name, values, checked, css_class))

    def add_password(
        self,
        name: str,
        value: Any = None,
        max_length: int | None = None,
        css_class: str = "inputPassword",
        css_class_error: str = "inputPasswordError",
    ) -> PasswordField:
        return self._add_one(PasswordField(name, value, max_length, css_class, css_class_error))

    def add_radiobutton(
        self,
        name: str,
        values: Choices,
        checked: str | None = None,
        css_class: str = "inputRadio",
    ) -> RadiobuttonField:
        return self._add_one(RadiobuttonField(name, values, checked, css_class))

    def add_text(
        self,
        name: str,
        value: Any = None,
        max_length: int | None = None,
        css_class: str = "inputText",
        css_class_error: str = "inputTextError",
    ) -> TextField:
        return self._add_one(TextField(name, value, max_length, css_class, css_class_error))

    def add_textarea(
        self,
        name: str,
        value: Any = None,
        css_class: str = "inputTextarea",
        css_class_error: str = "inputTextareaError",
    ) -> TextareaField:
        return self._add_one(TextareaField(name, value, css_class, css_class_error))

    def add_time(
        self,
        name: str,
        value: Any = None,
        css_class: str = "inputTime",
        css_class_error: str = "inputTimeError",
    ) -> TimeField:
        return self._add_one(TimeField(name, value, css_class, css_class_error))

    # Bulk factories take names, mappings of name -> default, or sequences
    # of (name, default) pairs.

    def add_checkboxes(self, *arguments: Any) -> list[Field]:
        return self._add_many(lambda name, checked: CheckboxField(name, bool(checked)), arguments)

    def add_files(self, *arguments: Any) -> list[Field]:
        return self._add_many(lambda name, _: FileField(name), arguments)

    def add_hiddens(self, *arguments: Any) -> list[Field]:
        return self._add_many(HiddenField, arguments)

    def add_images(self, *arguments: Any) -> list[Field]:
        return self._add_many(lambda name, _: ImageField(name), arguments)

    def add_passwords(self, *arguments: Any) -> list[Field]:
        return self._add_many(PasswordField, arguments)

    def add_textareas(self, *arguments: Any) -> list[Field]:
        return self._add_many(TextareaField, arguments)

    def add_texts(self, *arguments: Any) -> list[Field]:
        return self._add_many(TextField, arguments)

    def add_times(self, *arguments: Any) -> list[Field]:
        return self._add_many(TimeField, arguments)

    def _add_one(self, field: Field):
        self.add(field)
        return self._registry.get(field.name)

    def _add_many(self, factory: Callable[[str, Any], Field], arguments: Iterable[Any]) -> list[Field]:
        added = []
        for argument in arguments:
            if isinstance(argument, Mapping):
                pairs = list(argument.items())
            elif isinstance(argument, (list, tuple)):
                pairs = [item if isinstance(item, (list, tuple)) else (item, None) for item in argument]
            else:
                pairs = [(argument, None)]
            for name, default in pairs:
                added.append(self._add_one(factory(str(name), default)))
        return added

    # -- Submission & validation --

    def is_submitted(self) -> bool:
        """Whether the current request is a submission of this form.

        Named forms look for their identity field in the parameter store of
        their method. Anonymous forms only compare the HTTP method, so any
        request with that method counts as submitted.
        """
        return is_form_submission(self.context, self._name, self._method)

    def add_error(self, error: str) -> Form:
        """Add a form-level error. Forces the verdict to incorrect."""
        error = str(error).strip()
        if error:
            self._caller_errors.append(error)
            if self._state is not FormState.UNVALIDATED:
                self._state = FormState.INVALID
        return self

    def validate(self) -> Form:
        """Run one validation pass: token check, then every field's own errors.

        Never raises for invalid input. The outcome is available through
        is_correct(), correct and errors.
        """
        collected: list[str] = []

        if self._use_token and not self._token_is_valid():
            collected.append(self.token_error)

        collected.extend(self._registry.errors())
        self._collected_errors = collected

        if self.errors.strip():
            self._state = FormState.INVALID
        else:
            self._state = FormState.VALID

        logger.debug(
            "Validated form %r: %s, %d error(s)",
            self._name,
            self._state.value,
            len(self._caller_errors) + len(collected),
        )
        return self

    def is_correct(self, revalidate: bool = False) -> bool:
        """Return the verdict, validating first if that never happened or if asked to."""
        if self._state is FormState.UNVALIDATED or revalidate:
            self.validate()
        return self._state is FormState.VALID

    def _token_is_valid(self) -> bool:
        submitted = first_value(self.context.params(self._method).get(TOKEN_FIELD))
        return self.tokens.verify(submitted)

    # -- Values --

    def get_values(self, *excluded: Any) -> dict[str, Any]:
        """Values of every value-carrying field, except the excluded names.

        Each argument is a name or a (nested) collection of names.
        """
        return self._registry.values(*excluded)

    # -- Rendering --

    def parse(self, sink: TemplateSink) -> None:
        """Hand every visible field, then the form itself, to a template sink."""
        for name, field in self._registry.all().items():
            if name not in (IDENTITY_FIELD, TOKEN_FIELD):
                field.parse(sink)
        sink.add_form(self)

    def render(self, template_engine, **context: Any) -> Markup:
        """Render through form-<name>.html, then form.html, then a built-in layout."""
        from formwork.forms.template import TemplateContext

        template_context = TemplateContext()
        self.parse(template_context)
        return template_context.render_form(self._name, template_engine, **context)

    def __repr__(self) -> str:
        return f"Form({self._name!r}, method={self._method!r}, state={self._state.value!r})"
