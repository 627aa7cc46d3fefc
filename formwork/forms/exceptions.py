"""Exceptions raised for programmer errors in form construction."""


class FormException(Exception):
    """Base class for form errors that should never reach an end user."""


class InvalidArgument(FormException, TypeError):
    """Something that is not a field was registered on a form."""


class FieldNotFound(FormException, KeyError):
    """A field name was looked up that was never registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f'The field "{self.name}" does not exist.'
