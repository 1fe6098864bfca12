"""Tests for the controller handler variant and import strings."""

import logging

import pytest

from rewrite_rules.rules.rule import InstantiableType, Invocable, import_string, to_handler

# Module-level targets so import strings can resolve them.
CONSTRUCTED: list[str] = []


class Widget:
    def __init__(self) -> None:
        CONSTRUCTED.append("widget")


def build_widget() -> str:
    return "built"


class TestToHandler:
    def test_nothing(self) -> None:
        assert to_handler(None) is None
        assert to_handler("") is None

    def test_function(self) -> None:
        assert to_handler(build_widget) == Invocable(build_widget)

    def test_class(self) -> None:
        assert to_handler(Widget) == InstantiableType(Widget)

    def test_import_string(self) -> None:
        handler = to_handler(f"{__name__}:Widget")
        assert isinstance(handler, InstantiableType)

    def test_already_tagged(self) -> None:
        handler = Invocable(build_widget)
        assert to_handler(handler) is handler

    def test_unusable_value(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="rewrite_rules.rules"):
            assert to_handler(42) is None
            assert to_handler("widget") is None
        assert "Ignoring controller" in caplog.text


class TestRun:
    async def test_invocable_returns_result(self) -> None:
        assert await Invocable(build_widget).run() == "built"

    async def test_invocable_async(self) -> None:
        async def fetch() -> str:
            return "fetched"

        assert await Invocable(fetch).run() == "fetched"

    async def test_instantiable_constructs_once(self) -> None:
        CONSTRUCTED.clear()
        assert await InstantiableType(Widget).run() is None
        assert CONSTRUCTED == ["widget"]

    async def test_instantiable_import_string(self) -> None:
        CONSTRUCTED.clear()
        handler = InstantiableType(f"{__name__}:Widget")
        await handler.run()
        await handler.run()
        assert CONSTRUCTED == ["widget", "widget"]
        assert handler.resolve() is Widget

    async def test_import_string_naming_a_function(self) -> None:
        handler = InstantiableType(f"{__name__}.build_widget")
        assert await handler.run() == "built"


class TestImportString:
    def test_colon_form(self) -> None:
        assert import_string("logging:getLogger") is logging.getLogger

    def test_dotted_form(self) -> None:
        assert import_string("logging.getLogger") is logging.getLogger

    def test_invalid(self) -> None:
        with pytest.raises(ImportError):
            import_string(":Name")

    def test_missing_module(self) -> None:
        with pytest.raises(ModuleNotFoundError):
            import_string("no_such_module_xyz:Thing")
