"""
Tests for the placement state machine.

Tests:
- Queue filtering by category and placement status
- Inert clicks (view mode, empty queue)
- Queue advancement and marker commands on clicks
- Move workflow front-insertion
- Assignment acknowledgement and failure handling
- Stale fetches and fetch failures
"""

import pytest

from logic.placement import (
    AddMarker,
    AssignCoordinates,
    AssignmentConfirmed,
    AssignmentFailed,
    CategorySelected,
    ClubsFetched,
    DropMarker,
    FetchFailed,
    MapClicked,
    MoveConfirmed,
    MoveFailed,
    PlacementModeToggled,
    PlacementState,
    QueueItemSelected,
    StatusReported,
    order_queue,
    reduce,
    state_to_dict,
)
from fakes import make_club


def run(state, *events):
    """Apply events in order, returning the final state and all commands."""
    commands = []
    for event in events:
        state, produced = reduce(state, event)
        commands.extend(produced)
    return state, commands


def ids(clubs):
    return [c.id for c in clubs]


@pytest.fixture
def clubs():
    return [
        make_club(1, "Sports"),
        make_club(2, "Arts"),
        make_club(3, "Sports"),
        make_club(4, "Sports", x=1.0, y=2.0),
        make_club(5, "Music"),
    ]


@pytest.fixture
def loaded(clubs):
    state, _ = run(PlacementState(), ClubsFetched(clubs=clubs, generation=1))
    return state


class TestCategorySelection:
    def test_categories_derived_from_every_fetched_record(self, loaded):
        assert loaded.categories == ["Sports", "Arts", "Music"]

    def test_category_kept_while_all_its_clubs_placed(self):
        clubs = [make_club(1, "Sports"), make_club(2, "Dance", x=1.0, y=1.0)]
        state, _ = run(PlacementState(), ClubsFetched(clubs=clubs, generation=1))
        assert state.categories == ["Sports", "Dance"]

        state, _ = run(state, CategorySelected("Dance"))
        assert state.queue == []

    def test_click_keeps_category_list(self):
        state, _ = run(
            PlacementState(),
            ClubsFetched(clubs=[make_club(1, "Sports"), make_club(2, "Arts")], generation=1),
            CategorySelected("Arts"),
            MapClicked(1, 1),
        )
        assert state.categories == ["Sports", "Arts"]

    def test_no_queue_before_category_selected(self, loaded):
        assert loaded.queue == []
        assert loaded.selection is None

    @pytest.mark.parametrize("category", ["Sports", "Arts", "Music", "Missing"])
    def test_queue_only_holds_unplaced_clubs_of_category(self, loaded, category):
        state, _ = run(loaded, CategorySelected(category))
        for club in state.queue:
            assert club.category == category
            assert club.coordinates is None

    def test_selection_is_queue_head(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"))
        assert ids(state.queue) == [1, 3]
        assert state.selection.id == 1

    def test_empty_category_clears_selection(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"), CategorySelected("Missing"))
        assert state.queue == []
        assert state.selection is None

    def test_switching_category_resets_selection(self, loaded):
        state, _ = run(
            loaded,
            CategorySelected("Sports"),
            QueueItemSelected(3),
            CategorySelected("Arts"),
            CategorySelected("Sports"),
        )
        assert state.selection.id == 1


class TestMapClick:
    def test_click_in_view_mode_is_inert(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"), PlacementModeToggled(False))
        after, commands = reduce(state, MapClicked(10, 20))
        assert commands == []
        assert after is state

    def test_click_with_empty_queue_is_inert(self, loaded):
        state, _ = run(loaded, CategorySelected("Missing"))
        after, commands = reduce(state, MapClicked(10, 20))
        assert commands == []
        assert after is state

    def test_mode_toggle_does_not_touch_queue(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"), QueueItemSelected(3))
        after, _ = run(state, PlacementModeToggled(False), PlacementModeToggled(True))
        assert after.queue == state.queue
        assert after.selection == state.selection

    def test_click_places_selection_and_advances(self):
        a = make_club("A", "X")
        b = make_club("B", "X")
        state, _ = run(
            PlacementState(placement_mode=True),
            ClubsFetched(clubs=[a, b]),
            CategorySelected("X"),
        )

        state, commands = reduce(state, MapClicked(10, 20))

        assert ids(state.queue) == ["B"]
        assert state.selection.id == "B"
        assert commands == [
            AddMarker(lng=10, lat=20, club=a),
            AssignCoordinates(club=a, lng=10, lat=20),
        ]
        assert state.pending["A"].lng == 10
        assert state.pending["A"].lat == 20

    def test_n_clicks_shrink_queue_by_n(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"))
        positions = [(1.0, 1.0), (2.0, 2.0)]
        expected = ids(state.queue)

        placed = []
        for lng, lat in positions:
            before = len(state.queue)
            state, commands = reduce(state, MapClicked(lng, lat))
            assert len(state.queue) == before - 1
            assign = commands[1]
            placed.append((assign.club.id, assign.lng, assign.lat))

        assert placed == [(expected[0], 1.0, 1.0), (expected[1], 2.0, 2.0)]
        assert state.queue == []
        assert state.selection is None

    def test_click_uses_explicit_selection(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"), QueueItemSelected(3))
        state, commands = reduce(state, MapClicked(5, 5))
        assert commands[1].club.id == 3
        assert ids(state.queue) == [1]
        assert state.selection.id == 1

    def test_placed_club_not_requeued_by_category_change(self, loaded):
        state, _ = run(
            loaded,
            CategorySelected("Sports"),
            MapClicked(5, 5),
            CategorySelected("Arts"),
            CategorySelected("Sports"),
        )
        assert ids(state.queue) == [3]

    def test_pending_club_ignored_by_stale_fetch(self, loaded, clubs):
        state, _ = run(loaded, CategorySelected("Sports"), MapClicked(5, 5))
        # Directory has not persisted the assignment yet
        state, _ = run(state, ClubsFetched(clubs=clubs, generation=2))
        assert ids(state.queue) == [3]


class TestSelectInQueue:
    def test_select_member(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"), QueueItemSelected(3))
        assert state.selection.id == 3
        assert ids(state.queue) == [1, 3]

    def test_select_non_member_is_noop(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"))
        after, _ = reduce(state, QueueItemSelected(2))
        assert after is state


class TestMove:
    def test_moved_club_goes_to_front_and_is_selected(self, loaded):
        moved = make_club(4, "Sports", x=1.0, y=2.0)
        refetched = [
            make_club(1, "Sports"),
            make_club(2, "Arts"),
            make_club(3, "Sports"),
            make_club(4, "Sports"),
        ]
        state, _ = run(
            loaded,
            CategorySelected("Arts"),
            ClubsFetched(clubs=refetched, generation=2),
            MoveConfirmed(moved),
        )

        assert state.selected_category == "Sports"
        assert ids(state.queue) == [4, 1, 3]
        assert state.selection.id == 4
        assert state.selection.coordinates is None
        assert state.moving_club is None

    def test_moved_club_stays_first_when_category_reselected(self, loaded):
        moved = make_club(4, "Sports", x=1.0, y=2.0)
        state, _ = run(loaded, MoveConfirmed(moved), CategorySelected("Sports"))
        assert state.queue[0].id == 4
        assert state.selection.id == 4

    def test_moved_club_spliced_in_when_fetch_lags(self, loaded):
        # The unplaced fetch still shows the club as placed
        moved = make_club(4, "Sports", x=1.0, y=2.0)
        state, _ = run(loaded, MoveConfirmed(moved))
        assert ids(state.queue) == [4, 1, 3]
        assert "Sports" in state.categories

    def test_moved_club_placed_again(self, loaded):
        moved = make_club(4, "Sports", x=1.0, y=2.0)
        state, commands = run(loaded, MoveConfirmed(moved), MapClicked(9, 9))
        assert commands[1].club.id == 4
        assert ids(state.queue) == [1, 3]
        assert 4 not in state.front_ids

    def test_second_move_releases_first_pin(self):
        clubs = [make_club(i, "Sports") for i in (1, 2, 3, 4)]
        state, _ = run(
            PlacementState(),
            ClubsFetched(clubs=clubs, generation=1),
            MoveConfirmed(make_club(3, "Sports", x=1.0, y=1.0)),
            MoveConfirmed(make_club(4, "Sports", x=2.0, y=2.0)),
            CategorySelected("Sports"),
        )
        assert ids(state.queue) == [4, 1, 2, 3]
        assert state.front_ids == [4]

    def test_second_move_keeps_failed_assignment_pin(self):
        clubs = [make_club(i, "Sports") for i in (1, 2, 3, 4)]
        state, _ = run(
            PlacementState(),
            ClubsFetched(clubs=clubs, generation=1),
            CategorySelected("Sports"),
            QueueItemSelected(2),
            MapClicked(5, 5),
            AssignmentFailed(2, "offline"),
            MoveConfirmed(make_club(4, "Sports", x=2.0, y=2.0)),
        )
        assert ids(state.queue) == [4, 2, 1, 3]

    def test_move_failed_only_reports(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"))
        after, commands = reduce(state, MoveFailed(make_club(4, "Sports", name="Chess"), "offline"))
        assert commands == []
        assert after.queue == state.queue
        assert after.selection == state.selection
        assert after.status == "Could not move Chess: offline"


class TestAssignmentAcknowledgement:
    def test_confirmation_clears_pending(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"), MapClicked(5, 5))
        state, commands = reduce(state, AssignmentConfirmed(1))
        assert state.pending == {}
        assert commands == []

    def test_late_confirmation_is_informational(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"))
        after, commands = reduce(state, AssignmentConfirmed(99))
        assert after is state
        assert commands == []

    def test_failure_requeues_at_front(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"), MapClicked(5, 5))
        assert ids(state.queue) == [3]

        state, commands = reduce(state, AssignmentFailed(1, "HTTP error! status: 500"))

        assert ids(state.queue) == [1, 3]
        assert state.selection.id == 3
        assert state.pending == {}
        assert commands == [DropMarker(club_id=1)]
        assert "Failed to place Club 1" in state.status

    def test_failure_selects_requeued_club_when_queue_was_empty(self):
        a = make_club("A", "X")
        state, _ = run(
            PlacementState(),
            ClubsFetched(clubs=[a]),
            CategorySelected("X"),
            MapClicked(1, 1),
        )
        assert state.selection is None

        state, _ = reduce(state, AssignmentFailed("A", "timeout"))
        assert ids(state.queue) == ["A"]
        assert state.selection.id == "A"

    def test_failure_for_other_category_keeps_queue(self, loaded):
        state, _ = run(
            loaded,
            CategorySelected("Sports"),
            MapClicked(5, 5),
            CategorySelected("Arts"),
            AssignmentFailed(1, "timeout"),
        )
        assert ids(state.queue) == [2]

        state, _ = reduce(state, CategorySelected("Sports"))
        assert ids(state.queue) == [1, 3]

    def test_failure_after_confirmation_ignored(self, loaded):
        state, _ = run(
            loaded, CategorySelected("Sports"), MapClicked(5, 5), AssignmentConfirmed(1)
        )
        after, commands = reduce(state, AssignmentFailed(1, "late"))
        assert after is state
        assert commands == []


class TestFetching:
    def test_older_fetch_is_dropped(self, loaded):
        state, _ = reduce(loaded, ClubsFetched(clubs=[make_club(9, "Chess")], generation=0))
        assert state is loaded

    def test_fetch_failure_keeps_state(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"))
        after, _ = reduce(state, FetchFailed("Connection error"))
        assert after.queue == state.queue
        assert after.known_clubs == state.known_clubs
        assert after.status == "Error fetching clubs: Connection error"

    def test_refetch_keeps_selection_if_still_queued(self, loaded, clubs):
        state, _ = run(loaded, CategorySelected("Sports"), QueueItemSelected(3))
        state, _ = reduce(state, ClubsFetched(clubs=clubs, generation=2))
        assert state.selection.id == 3

    def test_refetch_falls_back_to_head(self, loaded):
        state, _ = run(loaded, CategorySelected("Sports"), QueueItemSelected(3))
        remaining = [make_club(1, "Sports"), make_club(3, "Sports", x=0.0, y=0.0)]
        state, _ = reduce(state, ClubsFetched(clubs=remaining, generation=2))
        assert ids(state.queue) == [1]
        assert state.selection.id == 1


def test_order_queue_puts_pinned_first():
    clubs = [make_club(i) for i in (1, 2, 3)]
    assert ids(order_queue(clubs, [3, 99, 2])) == [3, 2, 1]


def test_status_reported():
    state, _ = reduce(PlacementState(), StatusReported("Sending invitations..."))
    assert state.status == "Sending invitations..."


def test_unknown_event_raises():
    with pytest.raises(TypeError):
        reduce(PlacementState(), object())


def test_state_to_dict(loaded):
    state, _ = run(loaded, CategorySelected("Sports"), MapClicked(3.5, 4.5))
    data = state_to_dict(state)
    assert data["selected_category"] == "Sports"
    assert [c["id"] for c in data["queue"]] == [3]
    assert data["selection"]["id"] == 3
    assert data["pending"] == [{"id": 1, "name": "Club 1", "x": 3.5, "y": 4.5}]
    assert data["placement_mode"] is True
