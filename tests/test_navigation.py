"""Tests for the browser binding and the navigation interceptor."""

from __future__ import annotations

from triostack_audit.client import BrowserEnvironment, NavigationInterceptor, NavigationState


def _interceptor(env):
    calls: list[str] = []
    interceptor = NavigationInterceptor(env, lambda: calls.append(env.location.pathname))
    return interceptor, calls


class TestHistory:
    def test_push_and_back(self):
        env = BrowserEnvironment(pathname="/a")
        pops: list[str] = []
        env.window.add_event_listener("popstate", lambda _: pops.append(env.location.pathname))

        env.history.push_state(None, "", "/b")
        env.history.push_state(None, "", "/c?q=1")
        assert env.location.pathname == "/c"
        assert env.history.length == 3

        env.history.back()
        assert env.location.pathname == "/b"
        env.history.forward()
        assert pops == ["/b", "/c"]

    def test_push_does_not_fire_popstate(self):
        env = BrowserEnvironment(pathname="/a")
        pops: list[str] = []
        env.window.add_event_listener("popstate", lambda _: pops.append("pop"))
        env.history.push_state(None, "", "/b")
        assert pops == []

    def test_back_at_start_is_noop(self):
        env = BrowserEnvironment(pathname="/a")
        env.history.back()
        assert env.location.pathname == "/a"

    def test_relative_url(self):
        env = BrowserEnvironment(pathname="/docs/intro")
        env.history.push_state(None, "", "setup")
        assert env.location.pathname == "/docs/setup"


class TestNavigationInterceptor:
    def test_programmatic_and_native_share_one_signal(self):
        env = BrowserEnvironment(pathname="/a")
        interceptor, calls = _interceptor(env)
        interceptor.install()

        env.history.push_state(None, "", "/b")
        env.history.replace_state(None, "", "/b2")
        env.history.back()
        assert calls == ["/b", "/b2", "/a"]
        assert interceptor.state is NavigationState.ACTIVE

    def test_original_effect_runs_before_signal(self):
        env = BrowserEnvironment(pathname="/a")
        interceptor, calls = _interceptor(env)
        interceptor.install()
        env.history.push_state({"k": 1}, "", "/b")
        assert calls == ["/b"]
        assert env.history.state == {"k": 1}

    def test_one_signal_per_call(self):
        env = BrowserEnvironment(pathname="/a")
        interceptor, calls = _interceptor(env)
        interceptor.install()
        interceptor.install()
        env.history.push_state(None, "", "/b")
        assert len(calls) == 1

    def test_restore_round_trip(self):
        env = BrowserEnvironment(pathname="/a")
        pristine_push = env.history.push_state
        interceptor, calls = _interceptor(env)
        interceptor.install()
        assert "push_state" in vars(env.history)

        interceptor.restore()
        assert "push_state" not in vars(env.history)
        assert "replace_state" not in vars(env.history)
        assert env.history.push_state == pristine_push

        env.history.push_state(None, "", "/b")
        env.history.back()
        assert calls == []
        assert env.location.pathname == "/a"
        assert env.window.listener_count() == 0

    def test_restore_keeps_prior_instance_override(self):
        env = BrowserEnvironment(pathname="/a")
        seen: list[str] = []
        original_push = env.history.push_state

        def router_push(state, title="", url=None):
            seen.append(url)
            original_push(state, title, url)

        env.history.push_state = router_push
        interceptor, calls = _interceptor(env)
        interceptor.install()
        env.history.push_state(None, "", "/b")
        interceptor.restore()

        assert env.history.push_state is router_push
        assert seen == ["/b"]
        assert calls == ["/b"]

    def test_restore_is_idempotent(self):
        env = BrowserEnvironment(pathname="/a")
        interceptor, _ = _interceptor(env)
        interceptor.install()
        interceptor.restore()
        interceptor.restore()
        assert interceptor.state is NavigationState.TORN_DOWN
        assert env.window.listener_count() == 0

    def test_restore_before_install(self):
        env = BrowserEnvironment(pathname="/a")
        interceptor, calls = _interceptor(env)
        interceptor.restore()
        assert interceptor.state is NavigationState.TORN_DOWN
        interceptor.install()
        env.history.push_state(None, "", "/b")
        assert calls == []
