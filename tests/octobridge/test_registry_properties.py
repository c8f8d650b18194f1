"""Property-based tests for the quick-action menu registry.

Properties:
- The registry never holds more than max_entries menus.
- A menu is never returned once its ttl has elapsed.
- A menu registered within the last ttl seconds, and not pushed out by
  capacity, is always returned.
"""

from hypothesis import given, settings, strategies as st

from octobridge.replies.actions import LinkAction, build_menu
from octobridge.replies.registry import ReplyRegistry


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


ids = st.sampled_from([f"m{i}" for i in range(8)])
steps = st.lists(
    st.tuples(ids, st.floats(min_value=0, max_value=30, allow_nan=False)),
    min_size=1,
    max_size=40,
)


@settings(max_examples=100)
@given(steps=steps, max_entries=st.integers(min_value=1, max_value=5))
def test_registry_matches_reference_model(steps, max_entries):
    clock = FakeClock()
    ttl = 45.0
    registry = ReplyRegistry(ttl=ttl, max_entries=max_entries, clock=clock)
    # Reference: id -> registration time, in registration order
    expected = {}

    for notification_id, elapsed in steps:
        clock.now += elapsed
        expected = {
            key: at for key, at in expected.items() if clock.now < at + ttl
        }
        expected.pop(notification_id, None)
        expected[notification_id] = clock.now
        while len(expected) > max_entries:
            expected.pop(next(iter(expected)))

        registry.register(notification_id, build_menu(LinkAction(url=notification_id)))

        assert len(registry) <= max_entries
        for key in [f"m{i}" for i in range(8)]:
            menu = registry.lookup(key)
            if key in expected:
                assert menu is not None
                assert menu["link"].url == key
            else:
                assert menu is None


@settings(max_examples=50)
@given(elapsed=st.floats(min_value=0, max_value=200, allow_nan=False))
def test_lookup_respects_ttl(elapsed):
    clock = FakeClock()
    registry = ReplyRegistry(ttl=100, clock=clock)
    registry.register("m", build_menu(LinkAction(url="u")))

    clock.now += elapsed

    found = registry.lookup("m") is not None
    assert found == (elapsed < 100)
