"""rewrite_rules — regex rewrite rules with controllers, templates and access control.

Rules are registered during setup and dispatched per request: an access
predicate can deny the request, a redirect callback can send the visitor
elsewhere, a controller runs, and a template renders the result.

Basic usage::

    from rewrite_rules import App, AppConfig, g, get_query_var

    app = App(AppConfig(template_dir="templates"))
    app.add_query_vars(["product"])

    @app.rule(r"^shop/([^/]+)/?$", query="index.php?product=$matches[1]",
              template="product.html")
    def product():
        g.product = catalog.find(get_query_var("product"))
"""

__version__ = "0.1.0"
__all__ = [
    "AccessDenied",
    "App",
    "AppConfig",
    "ConfigurationError",
    "Dispatcher",
    "HTTPError",
    "LoginRequired",
    "MethodNotAllowed",
    "Middleware",
    "Next",
    "NotFound",
    "Position",
    "Redirect",
    "Request",
    "Response",
    "RewriteError",
    "Rule",
    "RuleRegistry",
    "Template",
    "g",
    "get_query_var",
    "get_request",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import rewrite_rules`` fast while providing a clean top-level API.
    """
    if name == "App":
        from rewrite_rules.app import App

        return App

    if name == "AppConfig":
        from rewrite_rules.config import AppConfig

        return AppConfig

    if name == "Request":
        from rewrite_rules.http.request import Request

        return Request

    if name in ("Response", "Redirect"):
        from rewrite_rules.http import response as _resp

        return getattr(_resp, name)

    if name == "Template":
        from rewrite_rules.templating.returns import Template

        return Template

    if name in ("Middleware", "Next"):
        from rewrite_rules.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in ("g", "get_request", "get_query_var"):
        from rewrite_rules import context as _ctx

        return getattr(_ctx, name)

    if name in ("AccessDenied", "Dispatcher", "LoginRequired", "Position", "Rule", "RuleRegistry"):
        from rewrite_rules import rules as _rules

        return getattr(_rules, name)

    if name in ("ConfigurationError", "HTTPError", "MethodNotAllowed", "NotFound", "RewriteError"):
        from rewrite_rules import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
