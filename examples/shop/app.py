"""Shop — rewrite rules driving a small storefront.

Product pages, a legacy URL scheme that redirects to the new one, and a
members-only area, all declared as rewrite rules on top of a couple of
plain routes.

Demonstrates:
- ``add_query_vars`` + ``$matches[N]`` query templates
- a controller handing data to a template override through ``g``
- a redirect callback issuing 301s for legacy URLs
- an access predicate: 403 for signed-in users, login redirect otherwise
- a bottom rule that only applies when no route claimed the path

Run with any ASGI server:
    uvicorn app:app
"""

from dataclasses import dataclass
from pathlib import Path

from rewrite_rules import App, AppConfig, NotFound, Request, Template, g, get_query_var
from rewrite_rules.middleware.auth import AuthConfig, AuthMiddleware, get_user, login, logout
from rewrite_rules.middleware.sessions import SessionConfig, SessionMiddleware
from rewrite_rules.security import is_safe_url

TEMPLATES_DIR = Path(__file__).parent / "templates"

# ---------------------------------------------------------------------------
# Catalog + members
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Product:
    slug: str
    title: str
    price: float
    members_only: bool = False


CATALOG: dict[str, Product] = {
    p.slug: p
    for p in (
        Product("trail-boots", "Trail Boots", 129.0),
        Product("rain-jacket", "Rain Jacket", 89.5),
        Product("summit-pack", "Summit Pack", 210.0, members_only=True),
    )
}


@dataclass(frozen=True, slots=True)
class Member:
    id: str
    name: str
    is_staff: bool = False
    is_authenticated: bool = True


MEMBERS: dict[str, Member] = {
    "ada": Member(id="ada", name="Ada"),
    "grace": Member(id="grace", name="Grace", is_staff=True),
}


def load_member(member_id: str) -> Member | None:
    return MEMBERS.get(member_id)


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = App(AppConfig(template_dir=TEMPLATES_DIR, login_url="/login"))
app.add_middleware(SessionMiddleware(SessionConfig(secret_key="change-me-in-production")))
app.add_middleware(AuthMiddleware(AuthConfig(load_user=load_member)))

app.add_query_vars(["product", "section"])


@app.template_filter()
def money(value: float) -> str:
    return f"${value:,.2f}"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@app.rule(r"^shop/?$", template="shop.html")
def list_products():
    """Catalog page; members also see members-only products."""
    signed_in = get_user().is_authenticated
    g.products = [p for p in CATALOG.values() if signed_in or not p.members_only]


@app.rule(
    r"^shop/([a-z-]+)/?$",
    query="index.php?product=$matches[1]",
    template="product.html",
)
def show_product():
    product = CATALOG.get(get_query_var("product", ""))
    if product is None:
        raise NotFound("No such product")
    g.product = product


def legacy_target(request: Request) -> str:
    """``/catalog/item/<slug>`` became ``/shop/<slug>``."""
    return "/shop/" + request.query_vars.get("product", "")


app.add_rule(
    r"^catalog/item/([a-z-]+)/?$",
    query="index.php?product=$matches[1]",
    redirect=legacy_target,
)


def staff_only() -> bool:
    user = get_user()
    return bool(getattr(user, "is_staff", False))


app.add_rules(
    [
        {
            "regex": r"^members/?$",
            "template": "members.html",
            "access": lambda: get_user().is_authenticated,
        },
        {
            "regex": r"^staff/([a-z]+)/?$",
            "query": "index.php?section=$matches[1]",
            "template": "staff.html",
            "access": staff_only,
        },
        # Anything else under /pages/ falls back to the default template.
        {"regex": r"^pages/", "after": "bottom"},
    ]
)

# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.route(r"^login$")
def login_page(request: Request):
    return_to = request.query.get("redirect_to", "/")
    return Template("login.html", redirect_to=return_to if is_safe_url(return_to) else "/")


@app.route(r"^login$", methods=["POST"])
async def do_login(request: Request):
    data = await request.json()
    member = MEMBERS.get(data.get("member", ""))
    if member is None:
        return {"error": "unknown member"}, 401
    login(member)
    return {"member": member.id}


@app.route(r"^logout$", methods=["POST"])
def do_logout():
    logout()
    return {"member": None}


@app.route(r"^pages/about$")
def about():
    return "<h1>About the shop</h1>"
