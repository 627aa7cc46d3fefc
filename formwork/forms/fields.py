"""Field variants that can be registered on a Form.

Every field has a name and a set of capabilities. Fields with
Capability.VALUE expose get_value(), fields with Capability.ERRORS expose
get_errors(), and fields with Capability.UPLOAD read from the request's files
instead of its parameter store.

Once registered, a field is bound to its form's name, method and request
context. A bound field reports the submitted value when its form was
submitted, and its default otherwise.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from enum import Flag, auto
from pathlib import Path
from typing import TYPE_CHECKING, Any, ClassVar, Iterable, Mapping, Sequence
from urllib.parse import urlparse

from markupsafe import Markup, escape

from formwork.forms.request import RequestContext, UploadedFile, first_value, is_form_submission
from formwork.forms.tokens import TokenManager
from formwork.lib.text import to_camel_case

if TYPE_CHECKING:
    from formwork.forms.template import TemplateSink

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+\Z")
_NUMERIC_RE = re.compile(r"^\d+\Z")
_INTEGER_RE = re.compile(r"^-?\d+\Z")
_FLOAT_RE = re.compile(r"^-?\d+([.,]\d+)?\Z")
_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)\Z")

Choices = Mapping[str, Any] | Iterable[Any]


class Capability(Flag):
    """What a field can do beyond having a name."""

    NONE = 0
    VALUE = auto()
    ERRORS = auto()
    UPLOAD = auto()


class Field:
    """Base class for everything a Form can hold."""

    capabilities: ClassVar[Capability] = Capability.NONE
    prefix: ClassVar[str] = ""

    def __init__(self, name: str, *, attributes: Mapping[str, Any] | None = None):
        self.name = str(name)
        self.form_name: str | None = None
        self.method = "post"
        self._context: RequestContext | None = None
        self.attributes: dict[str, Any] = {"id": to_camel_case(self.name, lower_first=True)}
        if attributes:
            self.attributes.update(attributes)

    # -- Binding --

    def bind(self, form_name: str, method: str, context: RequestContext | None) -> None:
        """Attach the field to its owning form."""
        self.form_name = form_name
        self.method = method
        self._context = context

    @property
    def is_submitted(self) -> bool:
        if self._context is None or self.form_name is None:
            return False
        return is_form_submission(self._context, self.form_name, self.method)

    def submitted_data(self) -> Mapping[str, Any] | None:
        """The parameter store of the owning form, or None if it was not submitted."""
        if not self.is_submitted:
            return None
        return self._context.params(self.method)

    # -- Attributes --

    @property
    def id(self) -> str:
        return str(self.attributes.get("id", ""))

    def get_attribute(self, key: str, default: Any = None) -> Any:
        return self.attributes.get(key, default)

    def set_attribute(self, key: str, value: Any) -> Field:
        self.attributes[str(key)] = value
        return self

    def set_attributes(self, attributes: Mapping[str, Any]) -> Field:
        for key, value in attributes.items():
            self.set_attribute(key, value)
        return self

    # -- Rendering --

    @property
    def template_name(self) -> str:
        """Template variable this field is assigned to, e.g. txtFirstName."""
        return self.prefix + to_camel_case(self.name)

    def widget(self, **override_attrs) -> Markup:
        raise NotImplementedError

    def parse(self, sink: TemplateSink) -> None:
        sink.assign(self.template_name, self.widget())

    def __html__(self) -> str:
        return str(self.widget())

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class InputField(Field):
    """A field that carries a value and collects its own validation errors."""

    capabilities = Capability.VALUE | Capability.ERRORS

    def __init__(
        self,
        name: str,
        css_class: str = "",
        css_class_error: str = "",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, attributes=attributes)
        self.css_class = css_class
        self.css_class_error = css_class_error
        self._errors: list[str] = []

    def get_errors(self) -> str:
        return "\n".join(self._errors)

    def add_error(self, error: str) -> InputField:
        error = str(error).strip()
        if error:
            self._errors.append(error)
        return self

    def set_error(self, error: str) -> InputField:
        self._errors = []
        return self.add_error(error)

    def _check(self, passed: bool, error: str | None) -> bool:
        if not passed and error:
            self.add_error(error)
        return passed

    def _class_attr(self) -> str | None:
        classes = [self.css_class]
        if self._errors:
            classes.append(self.css_class_error)
        return " ".join(c for c in classes if c) or None

    def error_markup(self) -> Markup:
        if not self._errors:
            return Markup("")
        return Markup('<span class="formError">{}</span>').format(self.get_errors())

    def parse(self, sink: TemplateSink) -> None:
        sink.assign(self.template_name, self.widget())
        sink.assign(self.template_name + "Error", self.error_markup())


# ---------------------------------------------------------------------------
# Text-like fields
# ---------------------------------------------------------------------------


class TextField(InputField):
    prefix = "txt"
    input_type = "text"

    def __init__(
        self,
        name: str,
        value: Any = None,
        max_length: int | None = None,
        css_class: str = "inputText",
        css_class_error: str = "inputTextError",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, css_class, css_class_error, attributes=attributes)
        self.default = self._format_default(value)
        self.max_length = max_length

    def _format_default(self, value: Any) -> str:
        return "" if value is None else str(value)

    def get_value(self) -> str:
        data = self.submitted_data()
        if data is None:
            return self.default
        value = first_value(data.get(self.name))
        return "" if value is None else str(value)

    # -- Validators --

    def is_filled(self, error: str | None = None) -> bool:
        return self._check(self.get_value().strip() != "", error)

    def is_email(self, error: str | None = None) -> bool:
        return self._check(bool(_EMAIL_RE.match(self.get_value().strip())), error)

    def is_numeric(self, error: str | None = None) -> bool:
        return self._check(bool(_NUMERIC_RE.match(self.get_value())), error)

    def is_integer(self, error: str | None = None) -> bool:
        return self._check(bool(_INTEGER_RE.match(self.get_value())), error)

    def is_float(self, error: str | None = None) -> bool:
        return self._check(bool(_FLOAT_RE.match(self.get_value())), error)

    def is_url(self, error: str | None = None) -> bool:
        parsed = urlparse(self.get_value().strip())
        return self._check(parsed.scheme in ("http", "https") and bool(parsed.netloc), error)

    def is_alphabetical(self, error: str | None = None) -> bool:
        return self._check(self.get_value().isalpha(), error)

    def is_alpha_numeric(self, error: str | None = None) -> bool:
        return self._check(self.get_value().isalnum(), error)

    def is_minimum_characters(self, minimum: int, error: str | None = None) -> bool:
        return self._check(len(self.get_value()) >= minimum, error)

    def is_maximum_characters(self, maximum: int, error: str | None = None) -> bool:
        return self._check(len(self.get_value()) <= maximum, error)

    def is_between(self, minimum: float, maximum: float, error: str | None = None) -> bool:
        value = self.get_value().replace(",", ".")
        if not _FLOAT_RE.match(value):
            return self._check(False, error)
        return self._check(minimum <= float(value) <= maximum, error)

    def is_valid_against_regexp(self, pattern: str | re.Pattern, error: str | None = None) -> bool:
        return self._check(re.search(pattern, self.get_value()) is not None, error)

    # -- Rendering --

    def _widget_value(self) -> str:
        return self.get_value()

    def widget(self, **override_attrs) -> Markup:
        attrs = {
            "type": self.input_type,
            "name": self.name,
            **self.attributes,
            "value": self._widget_value(),
            "maxlength": self.max_length,
            "class": self._class_attr(),
            **override_attrs,
        }
        return Markup(f"<input{_render_attrs(attrs)}>")


class PasswordField(TextField):
    input_type = "password"

    def __init__(
        self,
        name: str,
        value: Any = None,
        max_length: int | None = None,
        css_class: str = "inputPassword",
        css_class_error: str = "inputPasswordError",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, value, max_length, css_class, css_class_error, attributes=attributes)

    def _widget_value(self) -> str:
        # Submitted passwords are never echoed back into the page.
        return ""


class TextareaField(TextField):
    def __init__(
        self,
        name: str,
        value: Any = None,
        css_class: str = "inputTextarea",
        css_class_error: str = "inputTextareaError",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, value, None, css_class, css_class_error, attributes=attributes)

    def widget(self, **override_attrs) -> Markup:
        attrs = {"name": self.name, **self.attributes, "class": self._class_attr(), **override_attrs}
        return Markup(f"<textarea{_render_attrs(attrs)}>{escape(self.get_value())}</textarea>")


class DateField(TextField):
    """A text field holding a date written according to a mask.

    Mask tokens: d (day), m (month), Y (4-digit year), y (2-digit year).
    Every other character is taken literally.
    """

    def __init__(
        self,
        name: str,
        value: Any = None,
        mask: str | None = None,
        css_class: str = "inputDate",
        css_class_error: str = "inputDateError",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        self.mask = mask or "d-m-Y"
        super().__init__(name, value, _mask_length(self.mask), css_class, css_class_error, attributes=attributes)

    def _format_default(self, value: Any) -> str:
        if isinstance(value, (date, datetime)):
            return value.strftime(_mask_to_format(self.mask))
        return super()._format_default(value)

    def get_date(self) -> date | None:
        try:
            return datetime.strptime(self.get_value().strip(), _mask_to_format(self.mask)).date()
        except ValueError:
            return None

    def is_valid(self, error: str | None = None) -> bool:
        return self._check(self.get_date() is not None, error)


class TimeField(TextField):
    """A text field holding a 24-hour HH:MM time."""

    def __init__(
        self,
        name: str,
        value: Any = None,
        css_class: str = "inputTime",
        css_class_error: str = "inputTimeError",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, value, 5, css_class, css_class_error, attributes=attributes)

    def _format_default(self, value: Any) -> str:
        if isinstance(value, (time, datetime)):
            return value.strftime("%H:%M")
        return super()._format_default(value)

    def get_time(self) -> time | None:
        match = _TIME_RE.match(self.get_value().strip())
        if not match:
            return None
        return time(int(match.group(1)), int(match.group(2)))

    def is_valid(self, error: str | None = None) -> bool:
        return self._check(self.get_time() is not None, error)


# ---------------------------------------------------------------------------
# Value-only fields
# ---------------------------------------------------------------------------


class HiddenField(Field):
    capabilities = Capability.VALUE
    prefix = "hid"

    def __init__(self, name: str, value: Any = None, *, attributes: Mapping[str, Any] | None = None):
        super().__init__(name, attributes=attributes)
        self.default = "" if value is None else str(value)

    def get_value(self) -> str:
        data = self.submitted_data()
        if data is None:
            return self.default
        value = first_value(data.get(self.name))
        return "" if value is None else str(value)

    def widget(self, **override_attrs) -> Markup:
        attrs = {"type": "hidden", "name": self.name, **self.attributes, "value": self.get_value(), **override_attrs}
        return Markup(f"<input{_render_attrs(attrs)}>")


class TokenField(HiddenField):
    """Hidden anti-forgery field.

    Always carries the token currently stored in the session, never the
    submitted one.
    """

    def __init__(self, name: str, tokens: TokenManager, *, attributes: Mapping[str, Any] | None = None):
        super().__init__(name, attributes=attributes)
        self.tokens = tokens

    def get_value(self) -> str:
        return self.tokens.get_token()


class ButtonField(Field):
    capabilities = Capability.VALUE
    prefix = "btn"

    def __init__(
        self,
        name: str,
        value: str,
        button_type: str | None = None,
        css_class: str = "inputButton",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, attributes=attributes)
        self.value = str(value)
        self.button_type = button_type or "submit"
        self.css_class = css_class

    def get_value(self) -> str:
        return self.value

    def widget(self, **override_attrs) -> Markup:
        attrs = {
            "type": self.button_type,
            "name": self.name,
            **self.attributes,
            "value": self.value,
            "class": self.css_class or None,
            **override_attrs,
        }
        return Markup(f"<input{_render_attrs(attrs)}>")


# ---------------------------------------------------------------------------
# Choice fields
# ---------------------------------------------------------------------------


class CheckboxField(InputField):
    prefix = "chk"

    def __init__(
        self,
        name: str,
        checked: bool = False,
        css_class: str = "inputCheckbox",
        css_class_error: str = "inputCheckboxError",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, css_class, css_class_error, attributes=attributes)
        self.checked = bool(checked)

    def get_value(self) -> bool:
        data = self.submitted_data()
        if data is None:
            return self.checked
        return bool(first_value(data.get(self.name)))

    def is_checked(self, error: str | None = None) -> bool:
        return self._check(self.get_value(), error)

    def widget(self, **override_attrs) -> Markup:
        attrs = {
            "type": "checkbox",
            "name": self.name,
            **self.attributes,
            "value": "Y",
            "checked": self.get_value(),
            "class": self._class_attr(),
            **override_attrs,
        }
        return Markup(f"<input{_render_attrs(attrs)}>")


class _OptionsField(InputField):
    """Shared behaviour of fields that pick from a fixed list of values."""

    element_type = "checkbox"

    def __init__(
        self,
        name: str,
        values: Choices,
        css_class: str = "",
        css_class_error: str = "",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, css_class, css_class_error, attributes=attributes)
        self.choices = normalize_choices(values)

    @property
    def allowed_values(self) -> list[str]:
        return [value for value, _ in self.choices]

    def _submitted_values(self, data: Mapping[str, Any]) -> list[str]:
        raw = data.get(self.name)
        if raw is None or raw == "":
            return []
        if not isinstance(raw, list):
            raw = [raw]
        submitted = {str(v) for v in raw}
        return [value for value in self.allowed_values if value in submitted]

    def _is_selected(self, value: str) -> bool:
        raise NotImplementedError

    def elements(self) -> list[dict[str, Any]]:
        """One entry per option, for iterating in templates."""
        elements = []
        for value, label in self.choices:
            element_id = self.id + to_camel_case(value.replace("-", "_"))
            attrs = {
                "type": self.element_type,
                "name": self.name,
                **self.attributes,
                "id": element_id,
                "value": value,
                "checked": self._is_selected(value),
                "class": self._class_attr(),
            }
            elements.append({
                "id": element_id,
                "value": value,
                "label": label,
                "element": Markup(f"<input{_render_attrs(attrs)}>"),
            })
        return elements

    def widget(self, **override_attrs) -> Markup:
        html = ""
        for element in self.elements():
            html += str(
                Markup('<label for="{}">{} {}</label>\n').format(
                    element["id"], element["element"], element["label"]
                )
            )
        return Markup(html)

    def parse(self, sink: TemplateSink) -> None:
        sink.assign(self.name.replace("[]", ""), self.elements())
        sink.assign(self.template_name + "Error", self.error_markup())


class MultiCheckboxField(_OptionsField):
    prefix = "chk"

    def __init__(
        self,
        name: str,
        values: Choices,
        checked: str | Sequence[str] | None = None,
        css_class: str = "inputCheckbox",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, values, css_class, attributes=attributes)
        self.checked = _as_list(checked)

    def get_value(self) -> list[str]:
        data = self.submitted_data()
        if data is None:
            return [value for value in self.allowed_values if value in self.checked]
        return self._submitted_values(data)

    def _is_selected(self, value: str) -> bool:
        return value in self.get_value()

    def is_filled(self, error: str | None = None) -> bool:
        return self._check(bool(self.get_value()), error)


class RadiobuttonField(_OptionsField):
    prefix = "rbt"
    element_type = "radio"

    def __init__(
        self,
        name: str,
        values: Choices,
        checked: str | None = None,
        css_class: str = "inputRadio",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, values, css_class, attributes=attributes)
        self.checked = None if checked is None else str(checked)

    def get_value(self) -> str | None:
        data = self.submitted_data()
        if data is None:
            return self.checked if self.checked in self.allowed_values else None
        selected = self._submitted_values(data)
        return selected[0] if selected else None

    def _is_selected(self, value: str) -> bool:
        return value == self.get_value()

    def is_filled(self, error: str | None = None) -> bool:
        return self._check(self.get_value() is not None, error)


class DropdownField(InputField):
    prefix = "ddm"

    def __init__(
        self,
        name: str,
        values: Choices | None = None,
        selected: str | Sequence[str] | None = None,
        multiple: bool = False,
        css_class: str = "inputDropdown",
        css_class_error: str = "inputDropdownError",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, css_class, css_class_error, attributes=attributes)
        self.choices = normalize_choices(values)
        self.selected = _as_list(selected)
        self.multiple = bool(multiple)
        self.default_element: tuple[str, str] | None = None

    def set_default_element(self, label: str, value: str = "") -> DropdownField:
        """Add a leading option such as "Choose one", usually with an empty value."""
        self.default_element = (str(value), str(label))
        return self

    @property
    def allowed_values(self) -> list[str]:
        values = [value for value, _ in self.choices]
        if self.default_element is not None:
            values.insert(0, self.default_element[0])
        return values

    def get_value(self) -> str | list[str] | None:
        data = self.submitted_data()
        if data is None:
            picked = [value for value in self.allowed_values if value in self.selected]
        else:
            raw = data.get(self.name)
            raw = raw if isinstance(raw, list) else ([] if raw is None else [raw])
            submitted = {str(v) for v in raw}
            picked = [value for value in self.allowed_values if value in submitted]

        if self.multiple:
            return picked
        return picked[0] if picked else None

    def is_filled(self, error: str | None = None) -> bool:
        value = self.get_value()
        return self._check(bool(value), error)

    def widget(self, **override_attrs) -> Markup:
        current = self.get_value()
        current = set(current) if isinstance(current, list) else {current}
        attrs = {
            "name": self.name,
            **self.attributes,
            "multiple": self.multiple,
            "class": self._class_attr(),
            **override_attrs,
        }
        options = list(self.choices)
        if self.default_element is not None:
            options.insert(0, self.default_element)
        html = f"<select{_render_attrs(attrs)}>"
        for value, label in options:
            selected = " selected" if value in current else ""
            html += f'<option value="{escape(value)}"{selected}>{escape(label)}</option>'
        html += "</select>"
        return Markup(html)


# ---------------------------------------------------------------------------
# Upload fields
# ---------------------------------------------------------------------------

_SIZE_UNITS = {"b": 1, "kb": 1024, "mb": 1024 ** 2, "gb": 1024 ** 3}


class FileField(InputField):
    """An upload field. Its content lives in the request's files, not its parameters."""

    capabilities = Capability.ERRORS | Capability.UPLOAD
    prefix = "file"

    def __init__(
        self,
        name: str,
        css_class: str = "inputFile",
        css_class_error: str = "inputFileError",
        *,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(name, css_class, css_class_error, attributes=attributes)

    def get_file(self) -> UploadedFile | None:
        if not self.is_submitted:
            return None
        upload = self._context.files.get(self.name)
        if upload is None or not upload.filename:
            return None
        return upload

    def get_file_name(self, with_extension: bool = True) -> str:
        upload = self.get_file()
        if upload is None:
            return ""
        filename = Path(upload.filename).name
        return filename if with_extension else Path(filename).stem

    def get_extension(self) -> str:
        upload = self.get_file()
        return upload.extension if upload else ""

    def get_file_size(self, unit: str = "b") -> float:
        if unit.lower() not in _SIZE_UNITS:
            raise ValueError(f"Unknown size unit {unit!r}")
        upload = self.get_file()
        if upload is None:
            return 0
        return upload.size / _SIZE_UNITS[unit.lower()]

    def is_filled(self, error: str | None = None) -> bool:
        return self._check(self.get_file() is not None, error)

    def is_allowed_extension(self, extensions: Iterable[str], error: str | None = None) -> bool:
        allowed = {ext.lower().lstrip(".") for ext in extensions}
        return self._check(self.get_extension() in allowed, error)

    def is_allowed_mime_type(self, mime_types: Iterable[str], error: str | None = None) -> bool:
        upload = self.get_file()
        return self._check(upload is not None and upload.content_type in set(mime_types), error)

    def is_filesize(
        self,
        size: float,
        unit: str = "kb",
        operator: str = "smaller",
        error: str | None = None,
    ) -> bool:
        """Compare the upload size against size (in unit) using smaller, equal or greater."""
        actual = self.get_file_size(unit)
        if operator == "smaller":
            passed = actual < size
        elif operator == "equal":
            passed = actual == size
        elif operator == "greater":
            passed = actual > size
        else:
            raise ValueError(f"Unknown size operator {operator!r}")
        return self._check(self.get_file() is not None and passed, error)

    def save(self, destination: str | Path) -> Path | None:
        """Write the uploaded file to destination. Returns None if nothing was uploaded."""
        upload = self.get_file()
        if upload is None:
            return None
        return upload.save(destination)

    def widget(self, **override_attrs) -> Markup:
        attrs = {"type": "file", "name": self.name, **self.attributes, "class": self._class_attr(), **override_attrs}
        return Markup(f"<input{_render_attrs(attrs)}>")


class ImageField(FileField):
    ALLOWED_EXTENSIONS = ("jpg", "jpeg", "gif", "png", "webp")

    def is_allowed_extension(self, extensions: Iterable[str] | None = None, error: str | None = None) -> bool:
        return super().is_allowed_extension(extensions or self.ALLOWED_EXTENSIONS, error)

    def is_image(self, error: str | None = None) -> bool:
        upload = self.get_file()
        return self._check(upload is not None and upload.content_type.startswith("image/"), error)

    def widget(self, **override_attrs) -> Markup:
        return super().widget(**{"accept": "image/*", **override_attrs})


# -- Utilities --


def normalize_choices(values: Choices | None) -> list[tuple[str, str]]:
    """Turn choices into (value, label) pairs.

    Accepts a mapping of value -> label, pairs, {"value": ..., "label": ...}
    dicts, or bare values used as their own label.
    """
    if values is None:
        return []
    items = values.items() if isinstance(values, Mapping) else values
    choices = []
    for item in items:
        if isinstance(item, Mapping):
            value = str(item["value"])
            choices.append((value, str(item.get("label", value))))
        elif isinstance(item, (tuple, list)):
            choices.append((str(item[0]), str(item[1])))
        else:
            choices.append((str(item), str(item)))
    return choices


def _as_list(value: str | Sequence[str] | None) -> list[str]:
    if value is None:
        return []
    if isinstance(value, (str, int)):
        return [str(value)]
    return [str(v) for v in value]


def _mask_to_format(mask: str) -> str:
    tokens = {"d": "%d", "m": "%m", "Y": "%Y", "y": "%y"}
    return "".join(tokens.get(char, char.replace("%", "%%")) for char in mask)


def _mask_length(mask: str) -> int:
    """Longest text a date written with mask can take."""
    return len(date(2000, 12, 31).strftime(_mask_to_format(mask)))


def _render_attrs(attrs: Mapping[str, Any]) -> str:
    """Render a dict as HTML attributes string. Returns '' or ' key="val" key2="val2"'.

    None and False are left out, True renders a bare attribute.
    """
    parts = []
    for k, v in attrs.items():
        if v is None or v is False:
            continue
        # Convert Python naming to HTML: class_ -> class, data_id -> data-id
        attr_name = k.rstrip("_").replace("_", "-")
        if v is True:
            parts.append(attr_name)
        else:
            parts.append(f'{attr_name}="{escape(str(v))}"')
    if not parts:
        return ""
    return " " + " ".join(parts)
