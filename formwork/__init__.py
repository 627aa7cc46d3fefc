"""formwork - server-side form construction and validation."""

from formwork.forms import Form, RequestContext, TemplateContext

__all__ = ["Form", "RequestContext", "TemplateContext"]
