"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass
from pathlib import Path

DEFAULT_ACCESS_DENIED_MESSAGE = "You do not have permission to access this page."
DEFAULT_ACCESS_DENIED_TITLE = "Access Denied"


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(
            template_dir="themes/shop",
            login_url="/account/login",
            access_denied_title="Members only",
        )
    """

    debug: bool = False

    # Templates
    template_dir: str | Path = "templates"
    component_dirs: tuple[str | Path, ...] = ()
    autoescape: bool = True
    trim_blocks: bool = True
    lstrip_blocks: bool = True

    # Template selection for requests handled by a rewrite rule
    default_template: str = "index.html"
    not_found_template: str = "404.html"
    access_denied_template: str = "403.html"

    # Access-denied flow
    login_url: str = "/login"
    login_redirect_param: str = "redirect_to"
    access_denied_message: str = DEFAULT_ACCESS_DENIED_MESSAGE
    access_denied_title: str = DEFAULT_ACCESS_DENIED_TITLE
    access_denied_status: int = 403

    # Rules
    strict_rules: bool = False  # raise instead of warn on empty patterns
    redirect_schemes: frozenset[str] = frozenset({"http", "https"})
