"""Decorator alternative to FormModel subclassing."""

from __future__ import annotations

from formwork.forms.model import register_form_model


def form(name: str | None = None, *, action: str = "", method: str = "post", use_token: bool = False):
    """Register a plain BaseModel as a named form.

    Usage:
        @form("contact", use_token=True)
        class ContactForm(BaseModel):
            name: str
            email: EmailStr

    If name is omitted, derived from class name (same as FormModel).
    """

    def decorator(cls):
        return register_form_model(cls, name, action, method, use_token)

    return decorator
