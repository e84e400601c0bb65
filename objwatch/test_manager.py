"""
WatchManager, session registry and global observer tests.
"""

import gc
import logging
import weakref
from unittest.mock import MagicMock

import pytest

from objwatch.config import KindProfile, WatchConfig
from objwatch.errors import ConfigurationError, InvalidStateTransitionError, InvalidTargetError
from objwatch.facade import is_revoked, target_of
from objwatch.manager import WatchManager, get_default_manager, reset_default_manager
from objwatch.models import ObserverPhase, SessionState
from objwatch.observers import GlobalObserverChain
from objwatch.registry import Session, SessionRegistry


@pytest.fixture
def manager():
    return WatchManager()


class Widget:
    pass


# =============================================================================
# install
# =============================================================================

class TestInstall:
    @pytest.mark.parametrize("target", [None, 1, 2.5, True, "text", b"raw"])
    def test_scalar_targets_fail_loudly(self, manager, target):
        with pytest.raises(InvalidTargetError) as excinfo:
            manager.install(target)
        assert isinstance(excinfo.value, TypeError)

    def test_reinstall_returns_existing_facade(self, manager, caplog):
        target = {"a": 1}
        first = manager.install(target, {"log": True})
        with caplog.at_level(logging.WARNING, logger="objwatch"):
            second = manager.install(target, {"intercept_get": lambda ctx: "other"})
        assert second is first
        assert second["a"] == 1
        assert "already being watched" in caplog.text

    def test_invalid_options_raise_configuration_error(self, manager):
        with pytest.raises(ConfigurationError):
            manager.install({}, {"not_an_option": True})
        assert manager.sessions() == []

    def test_lifecycle_is_logged_at_info(self, manager, caplog):
        with caplog.at_level(logging.INFO, logger="objwatch"):
            facade = manager.install({}, name="settings")
            manager.revoke(facade)
        assert "[LIFECYCLE] Started watching settings" in caplog.text
        assert "[LIFECYCLE] Stopped watching settings" in caplog.text

    def test_lifecycle_logging_respects_log_toggle(self, manager, caplog):
        with caplog.at_level(logging.INFO, logger="objwatch"):
            manager.install({}, {"log": False}, name="quiet")
        assert "quiet" not in caplog.text


# =============================================================================
# revoke and lookup
# =============================================================================

class TestRevoke:
    def test_revoke_by_name(self, manager):
        target = Widget()
        manager.install(target, name="widget")
        assert manager.revoke("widget") is target
        assert not manager.is_watched(target)

    def test_unknown_handles_warn_and_return_none(self, manager, caplog):
        with caplog.at_level(logging.WARNING, logger="objwatch"):
            assert manager.revoke("nobody") is None
            assert manager.revoke({"not": "a facade"}) is None
        assert "name 'nobody'" in caplog.text
        assert "non-facade dict" in caplog.text

    def test_target_can_be_watched_again_after_revoke(self, manager):
        target = {}
        first = manager.install(target)
        manager.revoke(first)
        second = manager.install(target)
        assert second is not first
        assert manager.is_watched(target)

    def test_facade_from_other_manager_is_unknown(self, manager):
        other = WatchManager()
        facade = other.install({})
        assert manager.revoke(facade) is None
        assert other.get_session(facade) is not None

    def test_get_session_and_sessions(self, manager):
        target = Widget()
        facade = manager.install(target, name="w")
        session = manager.get_session(facade)
        assert session is manager.get_session("w")
        assert session.target is target
        assert session.facade is facade
        assert session.state == SessionState.ACTIVE
        assert manager.sessions() == [session]

    def test_session_revoke_twice_is_illegal(self):
        session = Session({}, WatchConfig())
        session.revoke()
        assert session.state == SessionState.REVOKED
        with pytest.raises(InvalidStateTransitionError, match="Cannot move watch session .dict. from revoked to revoked"):
            session.revoke()


class TestGetConfig:
    def test_returns_live_config(self, manager):
        facade = manager.install({}, {"log": False})
        config = manager.get_config(facade)
        assert isinstance(config, WatchConfig)
        assert config.log is False

    def test_kind_profile_created_on_demand(self, manager):
        facade = manager.install({})
        profile = manager.get_config(facade, "getPrototypeOf")
        assert isinstance(profile, KindProfile)
        assert manager.get_config(facade, "get_prototype_of") is profile

    def test_disabled_kind_has_no_profile(self, manager):
        facade = manager.install({}, {"ownKeys": None})
        assert manager.get_config(facade, "own_keys") is None

    def test_unknown_kind_raises(self, manager):
        facade = manager.install({})
        with pytest.raises(ConfigurationError):
            manager.get_config(facade, "teleport")

    def test_unknown_handle_returns_none(self, manager):
        assert manager.get_config("missing") is None


class TestRevokeSilence:
    def test_lifecycle_calls_on_live_facade_run_no_hooks_or_observers(self, manager):
        observer = MagicMock()
        on_before = MagicMock()
        on_after = MagicMock()
        manager.add_global_observer(observer)
        target = {"a": 1}
        facade = manager.install(target, {"on_before": on_before, "on_after": on_after}, name="cfg")

        assert manager.get_session(facade) is manager.get_session("cfg")
        assert manager.get_config(facade) is manager.get_config("cfg")
        assert manager.get_config(facade, "get") is not None
        assert manager.revoke(facade) is target

        observer.assert_not_called()
        on_before.assert_not_called()
        on_after.assert_not_called()

    def test_calls_on_revoked_facade_warn_instead_of_raising(self, manager, caplog):
        facade = manager.install({"a": 1})
        manager.revoke(facade)
        with caplog.at_level(logging.WARNING, logger="objwatch"):
            assert manager.revoke(facade) is None
            assert manager.get_session(facade) is None
            assert manager.get_config(facade) is None
        assert caplog.text.count("revoked or unknown facade") == 2


# =============================================================================
# Registry
# =============================================================================

class TestSessionOwnership:
    def test_named_session_outlives_dropped_facade(self, manager):
        target = Widget()
        manager.install(target, name="widget")
        gc.collect()

        session = manager.get_session("widget")
        assert session is not None
        assert session.target is target
        assert session.facade is None
        assert manager.is_watched(target)
        assert manager.revoke("widget") is target

    def test_session_ends_when_target_is_collected(self, manager):
        target = Widget()
        target_ref = weakref.ref(target)
        manager.install(target, name="temp")
        gc.collect()
        assert manager.get_session("temp") is not None

        del target
        gc.collect()
        assert target_ref() is None
        assert manager.get_session("temp") is None
        assert len(manager.registry) == 0

    def test_unweakrefable_target_is_held_until_revoke(self, manager):
        target = {"a": 1}
        manager.install(target, name="settings")
        gc.collect()
        assert manager.is_watched(target)
        assert len(manager.registry) == 1
        assert manager.revoke("settings") is target
        assert len(manager.registry) == 0

    def test_reinstall_after_dropped_facade_reuses_session(self, manager, caplog):
        target = Widget()
        manager.install(target, {"log": False}, name="widget")
        gc.collect()
        session = manager.get_session("widget")

        with caplog.at_level(logging.WARNING, logger="objwatch"):
            facade = manager.install(target, {"log": True})
        assert manager.get_session(facade) is session
        assert session.facade is facade
        assert manager.get_config(facade).log is False
        assert "already being watched" in caplog.text
        assert manager.revoke(facade) is target
        assert manager.get_session("widget") is None

    def test_revoked_facade_releases_target(self, manager):
        target = Widget()
        target_ref = weakref.ref(target)
        facade = manager.install(target)
        manager.revoke(facade)

        del target
        gc.collect()
        assert target_ref() is None
        assert is_revoked(facade)
        assert target_of(facade) is None

    def test_name_collision_rebinds_with_warning(self, manager, caplog):
        first = manager.install({}, name="shared")
        with caplog.at_level(logging.WARNING, logger="objwatch"):
            second = manager.install([], name="shared")
        assert manager.get_session("shared") is manager.get_session(second)
        assert manager.get_session(first) is not None
        assert "rebound" in caplog.text

    def test_register_requires_live_facade(self):
        registry = SessionRegistry()
        with pytest.raises(ValueError):
            registry.register(Session({}, WatchConfig()))

    def test_injected_registry_is_used(self):
        registry = SessionRegistry()
        manager = WatchManager(registry=registry)
        facade = manager.install({})
        assert registry.lookup_facade(facade) is manager.get_session(facade)


# =============================================================================
# Global observers
# =============================================================================

class TestGlobalObservers:
    def test_fan_out_across_sessions(self, manager):
        first_observer = MagicMock()
        second_observer = MagicMock()
        manager.add_global_observer(first_observer)
        manager.add_global_observer(second_observer)

        double = manager.install(lambda x: x * 2)
        triple = manager.install(lambda x: x * 3)

        assert double(2) == 4
        for observer in (first_observer, second_observer):
            phases = [c[0][0] for c in observer.call_args_list]
            assert phases == [ObserverPhase.BEFORE, ObserverPhase.AFTER]

        assert triple(2) == 6
        assert first_observer.call_count == 4
        assert second_observer.call_count == 4

    def test_failing_observer_does_not_stop_others(self, manager, caplog):
        def broken(phase, ctx):
            raise RuntimeError("observer broke")

        healthy = MagicMock()
        manager.add_global_observer(broken)
        manager.add_global_observer(healthy)
        facade = manager.install({"a": 1})

        with caplog.at_level(logging.ERROR, logger="objwatch"):
            assert facade["a"] == 1
        assert healthy.call_count == 2
        assert "[OBSERVER]" in caplog.text

    def test_remove_observer(self, manager):
        observer = MagicMock()
        manager.add_global_observer(observer)
        manager.remove_global_observer(observer)
        manager.remove_global_observer(observer)
        manager.install({"a": 1})["a"]
        observer.assert_not_called()

    def test_non_callable_observer_rejected(self, manager):
        with pytest.raises(TypeError):
            manager.add_global_observer("not callable")

    def test_observer_added_during_broadcast_applies_next_time(self):
        chain = GlobalObserverChain()
        late = MagicMock()

        def adder(phase, ctx):
            if late not in chain:
                chain.add(late)

        chain.add(adder)
        manager = WatchManager(observers=chain)
        facade = manager.install({"a": 1})

        facade["a"]
        assert late.call_count == 1
        facade["a"]
        assert late.call_count == 3

    def test_managers_do_not_share_observers(self):
        observer = MagicMock()
        first = WatchManager()
        second = WatchManager()
        first.add_global_observer(observer)
        second.install({"a": 1})["a"]
        observer.assert_not_called()


# =============================================================================
# Default manager
# =============================================================================

def test_default_manager_is_lazy_singleton():
    reset_default_manager()
    try:
        assert get_default_manager() is get_default_manager()
    finally:
        reset_default_manager()
