"""Form model base class with automatic name registration, and forms built from models."""

from __future__ import annotations

import datetime
import types
from typing import Any, ClassVar, TypeVar, Union, get_args, get_origin

from pydantic import BaseModel, SecretStr, ValidationError
from pydantic.fields import FieldInfo

from formwork.forms.core import Form
from formwork.forms.fields import (
    Capability,
    CheckboxField,
    DateField,
    DropdownField,
    Field,
    FileField,
    HiddenField,
    MultiCheckboxField,
    PasswordField,
    RadiobuttonField,
    TextareaField,
    TextField,
    TimeField,
)
from formwork.forms.request import RequestContext
from formwork.lib.text import camel_to_kebab

T = TypeVar("T", bound=BaseModel)

_form_registry: dict[str, type[BaseModel]] = {}

# Model-backed date fields use ISO dates so pydantic can parse them as-is.
MODEL_DATE_MASK = "Y-m-d"


def derive_form_name(cls: type) -> str:
    """Derive a form name from a class name, stripping 'Form' suffix."""
    name = cls.__name__
    if name.endswith("Form"):
        name = name[:-4]
    return camel_to_kebab(name)


def register_form_model(
    cls: type[BaseModel],
    form_name: str | None = None,
    form_action: str = "",
    form_method: str = "post",
    form_use_token: bool = False,
) -> type[BaseModel]:
    """Attach form metadata to a model class and make it findable by name."""
    if form_name is None:
        form_name = derive_form_name(cls)

    cls._form_name = form_name
    cls._form_action = form_action
    cls._form_method = form_method
    cls._form_use_token = form_use_token

    _form_registry[form_name] = cls
    return cls


def get_form_model(name: str) -> type[BaseModel]:
    """Look up a registered form model by name. Raises LookupError if not found."""
    try:
        return _form_registry[name]
    except KeyError:
        available = ", ".join(sorted(_form_registry)) or "(none)"
        raise LookupError(f"No form named '{name}'. Registered: {available}")


class FormModel(BaseModel):
    """Base class for form-backed Pydantic models.

    Usage:
        class ContactForm(FormModel, form_name="contact", form_use_token=True):
            name: str
            email: EmailStr

    If form_name is omitted, it's derived from the class name:
        ContactForm -> "contact"
        NewsletterSignupForm -> "newsletter-signup"
    """

    _form_name: ClassVar[str]
    _form_action: ClassVar[str]
    _form_method: ClassVar[str]
    _form_use_token: ClassVar[bool]

    def __init_subclass__(
        cls,
        form_name: str | None = None,
        form_action: str = "",
        form_method: str = "post",
        form_use_token: bool = False,
        **kwargs,
    ):
        super().__init_subclass__(**kwargs)
        register_form_model(cls, form_name, form_action, form_method, form_use_token)


# ---------------------------------------------------------------------------
# Building and validating forms from models
# ---------------------------------------------------------------------------


def build_form(
    model: type[BaseModel],
    context: RequestContext | None = None,
    *,
    name: str | None = None,
    action: str | None = None,
    method: str | None = None,
    use_token: bool | None = None,
) -> Form:
    """Create a Form holding one field per model field.

    Metadata comes from the model (FormModel options or the form decorator),
    keyword arguments override it. Widgets are inferred from the annotation
    unless json_schema_extra names one:

        bio: str = Field("", json_schema_extra={"widget": "textarea"})
        role: str = Field("user", json_schema_extra={"widget": "select", "choices": [...]})
    """
    form = Form(
        name or getattr(model, "_form_name", None) or derive_form_name(model),
        context,
        action=action if action is not None else getattr(model, "_form_action", ""),
        method=method or getattr(model, "_form_method", None),
        use_token=use_token if use_token is not None else getattr(model, "_form_use_token", False),
    )
    for field_name, info in model.model_fields.items():
        form.add(field_for(field_name, info))
    return form


def field_for(name: str, info: FieldInfo) -> Field:
    """Create the field matching one pydantic field."""
    extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
    widget = extra.get("widget") or _infer_widget(info.annotation)
    default = None if info.is_required() else info.get_default(call_default_factory=True)
    choices = extra.get("choices", [])
    attributes = extra.get("attrs")

    if widget == "textarea":
        return TextareaField(name, default, attributes=attributes)
    if widget == "password":
        return PasswordField(name, attributes=attributes)
    if widget == "select":
        return DropdownField(name, choices, default, attributes=attributes)
    if widget == "radio":
        return RadiobuttonField(name, choices, default, attributes=attributes)
    if widget == "multi_checkbox":
        return MultiCheckboxField(name, choices, default, attributes=attributes)
    if widget == "checkbox":
        return CheckboxField(name, bool(default), attributes=attributes)
    if widget == "hidden":
        return HiddenField(name, default, attributes=attributes)
    if widget == "date":
        return DateField(name, default, MODEL_DATE_MASK, attributes=attributes)
    if widget == "time":
        return TimeField(name, default, attributes=attributes)
    if widget == "file":
        return FileField(name, attributes=attributes)
    return TextField(name, default, extra.get("max_length"), attributes=attributes)


def validate_model(form: Form, model: type[T]) -> T | None:
    """Validate the form and its values against model.

    The first pydantic error of each field is recorded on that field (or on
    the form when no such field exists), then the form is revalidated.
    Returns the model instance when the form is correct, None otherwise.
    """
    data: dict[str, Any] = {}
    for field_name, info in model.model_fields.items():
        if not form.exists_field(field_name):
            continue
        field = form.get_field(field_name)
        if Capability.UPLOAD in field.capabilities:
            value = field.get_file()
        elif Capability.VALUE in field.capabilities:
            value = field.get_value()
        else:
            continue
        # Left empty: let the model's default apply
        if value in ("", None) and not info.is_required():
            continue
        data[field_name] = value

    instance = None
    try:
        instance = model(**data)
    except ValidationError as e:
        seen: set[str] = set()
        for err in e.errors():
            field_name = str(err["loc"][0]) if err["loc"] else ""
            # Only keep first error per field
            if field_name in seen:
                continue
            seen.add(field_name)
            target = form.get_field(field_name) if form.exists_field(field_name) else None
            if target is None or Capability.ERRORS not in target.capabilities:
                target = form
            # Repeated validation records each message once
            if err["msg"] not in target.get_errors().split("\n"):
                target.add_error(err["msg"])

    if not form.is_correct(revalidate=True):
        return None
    return instance


def _infer_widget(annotation: Any) -> str:
    """Infer widget type from a pydantic field annotation."""
    annotation = _unwrap_optional(annotation)
    if annotation is bool:
        return "checkbox"
    if annotation is datetime.datetime:
        return "text"
    if annotation is datetime.date:
        return "date"
    if annotation is datetime.time:
        return "time"
    if annotation is SecretStr:
        return "password"
    return "text"


def _unwrap_optional(annotation: Any) -> Any:
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation
