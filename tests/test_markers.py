"""
Tests for marker bookkeeping and marker synchronisation.
"""

import pytest

from logic.markers import MarkerSet
from server.errors import DirectoryError
from server.markers import CONSISTENT, STALE, MarkerSynchronizer
from fakes import FakeDirectory, make_club


class TestMarkerSet:
    def test_add_assigns_unique_handles(self):
        markers = MarkerSet()
        first = markers.add(1.0, 2.0)
        second = markers.add(1.0, 2.0)
        assert first.handle != second.handle
        assert len(markers) == 2
        assert first.handle in markers

    def test_clear_is_safe_when_empty(self):
        markers = MarkerSet()
        assert markers.clear() == 0
        assert markers.clear() == 0

    def test_find_at_prefers_identified_marker(self):
        markers = MarkerSet()
        markers.add(1.0, 2.0)
        identified = markers.add(1.0, 2.0, make_club(7))
        assert markers.find_at(1.0, 2.0) is identified
        assert markers.find_at(1.0, 2.5) is None

    def test_remove_club(self):
        markers = MarkerSet()
        markers.add(1.0, 2.0, make_club(7))
        keep = markers.add(3.0, 4.0, make_club(8))
        removed = markers.remove_club(7)
        assert [m.club_id for m in removed] == [7]
        assert list(markers) == [keep]
        assert markers.find_by_club(8) is keep

    def test_positions_and_to_list(self):
        markers = MarkerSet()
        marker = markers.add(1.0, 2.0, make_club(7, name="Chess"))
        assert markers.positions() == {marker.handle: (1.0, 2.0)}
        assert markers.to_list() == [
            {"handle": marker.handle, "x": 1.0, "y": 2.0, "club_id": 7, "name": "Chess"}
        ]


def placed_directory():
    return FakeDirectory([
        make_club(1, "Sports", x=5.0, y=5.0),
        make_club(2, "Arts", x=6.0, y=7.0),
        make_club(3, "Arts"),
    ])


@pytest.mark.asyncio
async def test_refresh_mirrors_placed_clubs():
    sync = MarkerSynchronizer(placed_directory(), "1")
    assert sync.phase == STALE

    count = await sync.refresh()

    assert count == 2
    assert sync.phase == CONSISTENT
    assert sorted(m.club_id for m in sync.markers) == [1, 2]


@pytest.mark.asyncio
async def test_refresh_is_idempotent():
    sync = MarkerSynchronizer(placed_directory(), "1")
    await sync.refresh()
    first = sorted((m.club_id, m.lng, m.lat) for m in sync.markers)
    await sync.refresh()
    second = sorted((m.club_id, m.lng, m.lat) for m in sync.markers)
    assert first == second
    assert len(sync.markers) == 2


@pytest.mark.asyncio
async def test_refresh_tears_down_ad_hoc_markers():
    sync = MarkerSynchronizer(placed_directory(), "1")
    sync.add_marker(9.0, 9.0)
    await sync.refresh()
    assert sync.markers.find_at(9.0, 9.0) is None


@pytest.mark.asyncio
async def test_refresh_skips_clubs_without_coordinates():
    directory = placed_directory()
    directory.extra_placed.append(make_club(4, "Arts"))
    sync = MarkerSynchronizer(directory, "1")
    assert await sync.refresh() == 2
    assert sync.markers.find_by_club(4) is None


@pytest.mark.asyncio
async def test_refresh_keeps_in_flight_assignments():
    directory = placed_directory()
    sync = MarkerSynchronizer(directory, "1")
    pending_club = directory.clubs[3]
    await sync.refresh([(pending_club, 8.0, 8.0)])
    assert len(sync.markers) == 3
    assert sync.markers.find_by_club(3).lng == 8.0


@pytest.mark.asyncio
async def test_refresh_failure_leaves_markers():
    directory = placed_directory()
    sync = MarkerSynchronizer(directory, "1")
    await sync.refresh()
    sync.mark_stale()
    directory.fail.add("get_placed_clubs")

    with pytest.raises(DirectoryError):
        await sync.refresh()

    assert len(sync.markers) == 2
    assert sync.phase == STALE


@pytest.mark.asyncio
async def test_resolve_uses_marker_identity():
    directory = placed_directory()
    sync = MarkerSynchronizer(directory, "1")
    club = make_club(3, "Arts")
    sync.add_marker(8.0, 8.0, club)

    assert await sync.resolve(8.0, 8.0) == club
    assert "find_club_by_coordinates" not in directory.calls


@pytest.mark.asyncio
async def test_resolve_falls_back_to_directory():
    directory = placed_directory()
    sync = MarkerSynchronizer(directory, "1")
    sync.add_marker(6.0, 7.0)

    club = await sync.resolve(6.0, 7.0)

    assert club.id == 2
    assert directory.calls[-1] == "find_club_by_coordinates"


@pytest.mark.asyncio
async def test_resolve_unknown_position_returns_none():
    sync = MarkerSynchronizer(placed_directory(), "1")
    assert await sync.resolve(0.0, 0.0) is None


@pytest.mark.asyncio
async def test_click_by_handle():
    sync = MarkerSynchronizer(placed_directory(), "1")
    await sync.refresh()
    marker = sync.markers.find_by_club(2)

    club = await sync.click(marker.handle)

    assert club.id == 2
    assert await sync.click("missing") is None


def test_drop_club_removes_marker():
    sync = MarkerSynchronizer(placed_directory(), "1")
    sync.add_marker(1.0, 1.0, make_club(1))
    assert sync.drop_club(1) == 1
    assert len(sync.markers) == 0


@pytest.mark.asyncio
async def test_provisional_marker_swaps_in_directory_record():
    directory = FakeDirectory([make_club(3, "Arts", x=8.0, y=8.0, description="Pottery")])
    sync = MarkerSynchronizer(directory, "1")
    sync.add_marker(8.0, 8.0, make_club(3, "Arts"), provisional=True)

    club = await sync.resolve(8.0, 8.0)

    assert club.description == "Pottery"
    marker = sync.markers.find_by_club(3)
    assert marker.provisional is False
    assert await sync.click(marker.handle) == club
    assert directory.calls.count("find_club_by_coordinates") == 1


@pytest.mark.asyncio
async def test_provisional_marker_falls_back_to_queue_copy():
    directory = placed_directory()
    directory.fail.add("find_club_by_coordinates")
    sync = MarkerSynchronizer(directory, "1")
    queued = make_club(3, "Arts")
    sync.add_marker(8.0, 8.0, queued, provisional=True)

    assert await sync.resolve(8.0, 8.0) == queued
