from formwork.lib.template import Template, get_template_config
from formwork.lib.text import camel_to_kebab, to_camel_case

__all__ = [
    "Template",
    "get_template_config",
    "camel_to_kebab",
    "to_camel_case",
]
