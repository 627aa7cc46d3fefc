"""Form system - field registry, submission detection, tokens and validation."""

from formwork.forms.core import Form, FormState
from formwork.forms.decorators import form
from formwork.forms.exceptions import FieldNotFound, FormException, InvalidArgument
from formwork.forms.fields import (
    ButtonField,
    Capability,
    CheckboxField,
    DateField,
    DropdownField,
    Field,
    FileField,
    HiddenField,
    ImageField,
    InputField,
    MultiCheckboxField,
    PasswordField,
    RadiobuttonField,
    TextareaField,
    TextField,
    TimeField,
    TokenField,
)
from formwork.forms.model import FormModel, build_form, get_form_model, validate_model
from formwork.forms.registry import FieldRegistry
from formwork.forms.request import RequestContext, UploadedFile, from_litestar
from formwork.forms.template import FormTag, TemplateContext
from formwork.forms.tokens import TokenManager

__all__ = [
    "Form",
    "FormState",
    "FormModel",
    "FieldRegistry",
    "TokenManager",
    "RequestContext",
    "UploadedFile",
    "TemplateContext",
    "FormTag",
    "Capability",
    "Field",
    "InputField",
    "TextField",
    "PasswordField",
    "TextareaField",
    "DateField",
    "TimeField",
    "HiddenField",
    "ButtonField",
    "CheckboxField",
    "MultiCheckboxField",
    "RadiobuttonField",
    "DropdownField",
    "FileField",
    "ImageField",
    "TokenField",
    "FormException",
    "InvalidArgument",
    "FieldNotFound",
    "form",
    "build_form",
    "validate_model",
    "get_form_model",
    "from_litestar",
]
