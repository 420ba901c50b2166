"""Tests for the routing resolver."""

import pytest

from app.errors import UnroutableTask
from app.models import DirectoryMember
from app.routing import NoOp, Patch, RoutingResolver
from app.routing_config import RoutingConfig, UnitRoute

GROUP_MARKER = "UF_AUTO_554734207359"
RESPONSIBLE_MARKER = "UF_AUTO_899417333101"


@pytest.fixture
def resolver(routing_config):
    return RoutingResolver(routing_config)


class TestForcedRouting:
    """Forced flag bypasses department lookup."""

    @pytest.mark.parametrize("flag", [True, "Y", "1", 1])
    def test_forced_flag_routes_to_forced_group(self, resolver, make_snapshot, flag):
        """Every truthy encoding sends the task to the forced group."""
        snapshot = make_snapshot(forced_routing=flag)
        decision = resolver.resolve(snapshot, [])

        assert isinstance(decision, Patch)
        assert decision.fields == {"GROUP_ID": 150}
        assert decision.target_group_id == 150

    def test_forced_ignores_responsible_and_directory(self, resolver, make_snapshot, members):
        """Responsible user outside all departments doesn't matter."""
        snapshot = make_snapshot(responsible_member_id=999, forced_routing="Y")
        decision = resolver.resolve(snapshot, members)
        assert decision.fields == {"GROUP_ID": 150}

    def test_forced_without_responsible(self, resolver, make_snapshot):
        """Forced tasks route even with no responsible user."""
        snapshot = make_snapshot(responsible_member_id=None, forced_routing=True)
        assert resolver.resolve(snapshot, []).target_group_id == 150

    def test_forced_already_in_group_is_noop(self, resolver, make_snapshot):
        """No update when the forced task already sits in the forced group."""
        snapshot = make_snapshot(forced_routing="Y", current_group_id=150)
        assert isinstance(resolver.resolve(snapshot, []), NoOp)

    @pytest.mark.parametrize("flag", [False, "N", "0", 0, None, ""])
    def test_falsy_flag_uses_department(self, resolver, make_snapshot, members, flag):
        """Non-truthy flag values fall through to department routing."""
        snapshot = make_snapshot(forced_routing=flag)
        assert resolver.resolve(snapshot, members).target_group_id == 156


class TestDepartmentRouting:
    """Department -> group mapping."""

    def test_programmer_goes_to_programmers_group(self, resolver, make_snapshot, members):
        """Member 5 of unit 154 with no markers gets a full patch to 156."""
        decision = resolver.resolve(make_snapshot(), members)

        assert isinstance(decision, Patch)
        assert decision.fields == {
            "GROUP_ID": 156,
            GROUP_MARKER: 156,
            RESPONSIBLE_MARKER: 5,
        }

    def test_integrator_goes_to_integrators_group(self, resolver, make_snapshot, members):
        snapshot = make_snapshot(responsible_member_id=8)
        decision = resolver.resolve(snapshot, members)
        assert decision.fields["GROUP_ID"] == 148

    def test_programmers_take_priority(self, resolver, make_snapshot):
        """Member of both departments resolves to the programmers group."""
        both = DirectoryMember(id=5, unit_memberships={3, 154})
        decision = resolver.resolve(make_snapshot(), [both])
        assert decision.target_group_id == 156

    def test_priority_follows_route_order(self, make_snapshot):
        """Reordering routes changes which department wins."""
        config = RoutingConfig(
            routes=(UnitRoute(unit_id=3, group_id=148), UnitRoute(unit_id=154, group_id=156))
        )
        both = DirectoryMember(id=5, unit_memberships={154, 3})
        decision = RoutingResolver(config).resolve(make_snapshot(), [both])
        assert decision.target_group_id == 148

    def test_untracked_units_ignored(self, resolver, make_snapshot):
        """Membership outside the allow-list plays no part."""
        member = DirectoryMember(id=5, unit_memberships={999, 3})
        assert resolver.resolve(make_snapshot(), [member]).target_group_id == 148

    def test_unknown_responsible_raises(self, resolver, make_snapshot, members):
        """Responsible user not among members is unroutable."""
        snapshot = make_snapshot(responsible_member_id=404)
        with pytest.raises(UnroutableTask) as exc_info:
            resolver.resolve(snapshot, members)
        assert exc_info.value.task_id == 42

    def test_empty_directory_raises(self, resolver, make_snapshot):
        """No members for the allow-list means nobody is routable."""
        with pytest.raises(UnroutableTask):
            resolver.resolve(make_snapshot(), [])

    def test_missing_responsible_raises(self, resolver, make_snapshot, members):
        snapshot = make_snapshot(responsible_member_id=None)
        with pytest.raises(UnroutableTask):
            resolver.resolve(snapshot, members)

    def test_unrouted_department_raises(self, resolver, make_snapshot, members):
        """Sales is tracked but has no group route."""
        snapshot = make_snapshot(responsible_member_id=11)
        with pytest.raises(UnroutableTask, match="not in a routed department"):
            resolver.resolve(snapshot, members)


class TestIdempotency:
    """Marker-based short-circuits."""

    def test_consistent_markers_noop(self, resolver, make_snapshot, members):
        """Same responsible, marker matches current group: nothing to do."""
        snapshot = make_snapshot(
            previous_responsible_marker=5,
            previous_group_marker=156,
            current_group_id=156,
        )
        assert isinstance(resolver.resolve(snapshot, members), NoOp)

    def test_resolving_twice_stays_noop(self, resolver, make_snapshot, members):
        snapshot = make_snapshot(
            previous_responsible_marker=5,
            previous_group_marker=156,
            current_group_id=156,
        )
        first = resolver.resolve(snapshot, members)
        second = resolver.resolve(snapshot, members)
        assert isinstance(first, NoOp)
        assert isinstance(second, NoOp)

    def test_out_of_band_move_resyncs_marker(self, resolver, make_snapshot, members):
        """Same responsible but group moved by hand: only the marker is rewritten."""
        snapshot = make_snapshot(
            previous_responsible_marker=5,
            previous_group_marker=156,
            current_group_id=148,
        )
        decision = resolver.resolve(snapshot, members)

        assert isinstance(decision, Patch)
        assert decision.fields == {GROUP_MARKER: 148}
        assert not decision.moves_task

    def test_same_responsible_skips_department_change(self, resolver, make_snapshot):
        """A department change alone doesn't move a task whose responsible is unchanged."""
        moved = DirectoryMember(id=5, unit_memberships={3})
        snapshot = make_snapshot(
            previous_responsible_marker=5,
            previous_group_marker=156,
            current_group_id=156,
        )
        assert isinstance(resolver.resolve(snapshot, [moved]), NoOp)

    def test_new_responsible_already_placed_noop(self, resolver, make_snapshot, members):
        """Responsible changed but marker == current == target."""
        snapshot = make_snapshot(
            responsible_member_id=8,
            previous_responsible_marker=5,
            previous_group_marker=148,
            current_group_id=148,
        )
        assert isinstance(resolver.resolve(snapshot, members), NoOp)

    def test_new_responsible_different_department_moves(self, resolver, make_snapshot, members):
        """Responsible changed to an integrator: full patch to 148."""
        snapshot = make_snapshot(
            responsible_member_id=8,
            previous_responsible_marker=5,
            previous_group_marker=156,
            current_group_id=156,
        )
        decision = resolver.resolve(snapshot, members)
        assert decision.fields == {
            "GROUP_ID": 148,
            GROUP_MARKER: 148,
            RESPONSIBLE_MARKER: 8,
        }

    def test_in_place_without_markers_writes_markers(self, resolver, make_snapshot, members):
        """Correct group but no markers yet: markers get written."""
        snapshot = make_snapshot(current_group_id=156)
        decision = resolver.resolve(snapshot, members)
        assert isinstance(decision, Patch)
        assert decision.fields[GROUP_MARKER] == 156

    def test_marker_for_unconfigured_group_raises(self, resolver, make_snapshot, members):
        """Marker pointing outside the configured groups is ambiguous."""
        snapshot = make_snapshot(
            previous_responsible_marker=8,
            previous_group_marker=777,
            current_group_id=777,
        )
        with pytest.raises(UnroutableTask, match="unconfigured group"):
            resolver.resolve(snapshot, members)


class TestScenarios:
    """End-to-end resolver scenarios."""

    def test_first_touch_then_redelivery(self, resolver, make_snapshot, members):
        first = resolver.resolve(make_snapshot(), members)
        assert first.fields == {"GROUP_ID": 156, GROUP_MARKER: 156, RESPONSIBLE_MARKER: 5}

        # Upstream now reflects the patch; an unrelated edit re-delivers the event
        after = make_snapshot(
            current_group_id=156,
            previous_group_marker=156,
            previous_responsible_marker=5,
        )
        assert isinstance(resolver.resolve(after, members), NoOp)
