"""Tests for atrium.hooks: ordering, decorators, clearing."""

from atrium.hooks import Hook, Hooks


class TestFilters:
    def test_no_filters_returns_value(self) -> None:
        assert Hooks().apply_filters(Hook.ITEMS_PER_PAGE, 24, "report") == 24

    def test_priority_then_registration_order(self) -> None:
        hooks = Hooks()
        hooks.add_filter("name", lambda value: value + "b")
        hooks.add_filter("name", lambda value: value + "a", priority=5)
        hooks.add_filter("name", lambda value: value + "c")
        assert hooks.apply_filters("name", "") == "abc"

    def test_context_arguments(self) -> None:
        hooks = Hooks()

        @hooks.filter(Hook.ITEMS_PER_PAGE)
        def twelve(per_page: int, artifact_type: str) -> int:
            return 12 if artifact_type == "report" else per_page

        assert hooks.apply_filters(Hook.ITEMS_PER_PAGE, 24, "report") == 12
        assert hooks.apply_filters(Hook.ITEMS_PER_PAGE, 24, "source") == 24
        assert hooks.has_filter(Hook.ITEMS_PER_PAGE)
        assert not hooks.has_action(Hook.ITEMS_PER_PAGE)

    def test_string_and_enum_names_match(self) -> None:
        hooks = Hooks()
        hooks.add_filter("upgrade_url", lambda url, level: "/join/")
        assert hooks.apply_filters(Hook.UPGRADE_URL, "", "premium") == "/join/"


class TestActions:
    def test_order(self) -> None:
        hooks = Hooks()
        calls: list[str] = []

        @hooks.action("build", priority=20)
        def late(label: str) -> None:
            calls.append(f"late:{label}")

        @hooks.action("build")
        def early(label: str) -> None:
            calls.append(f"early:{label}")

        hooks.do_action("build", "x")
        assert calls == ["early:x", "late:x"]

    def test_unknown_action_is_a_no_op(self) -> None:
        Hooks().do_action("nothing", 1, 2)


class TestClear:
    def test_clear_one_name(self) -> None:
        hooks = Hooks()
        hooks.add_filter("a", lambda v: v)
        hooks.add_action("a", lambda: None)
        hooks.add_filter("b", lambda v: v)
        hooks.clear("a")
        assert not hooks.has_filter("a")
        assert not hooks.has_action("a")
        assert hooks.has_filter("b")

    def test_clear_everything(self) -> None:
        hooks = Hooks()
        hooks.add_filter("a", lambda v: v)
        hooks.add_action("b", lambda: None)
        hooks.clear()
        assert not hooks.has_filter("a")
        assert not hooks.has_action("b")
