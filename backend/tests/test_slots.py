from datetime import date

from backend.app.domain.conflicts import block_interval, booking_interval
from backend.app.domain.slots import (
    BookableTable,
    BookingWindow,
    generate_time_slots,
    list_slots,
    slot_is_available,
    weekday_code,
)

THURSDAY = date(2026, 11, 5)
FRIDAY = date(2026, 11, 6)

DINNER = BookingWindow(days=("thu", "fri"), start_time="18:00", end_time="19:00")
LATE = BookingWindow(days=("thu",), start_time="18:30", end_time="19:30")


def test_weekday_code():
    assert weekday_code(THURSDAY) == "thu"
    assert weekday_code(date(2026, 11, 9)) == "mon"
    assert weekday_code(date(2026, 11, 8)) == "sun"


def test_slots_every_fifteen_minutes_excluding_window_end():
    assert generate_time_slots([DINNER], THURSDAY) == ["18:00", "18:15", "18:30", "18:45"]


def test_overlapping_windows_are_merged_and_sorted():
    assert generate_time_slots([LATE, DINNER], THURSDAY) == [
        "18:00",
        "18:15",
        "18:30",
        "18:45",
        "19:00",
        "19:15",
    ]


def test_windows_closed_on_the_weekday_are_skipped():
    assert generate_time_slots([LATE, DINNER], FRIDAY) == ["18:00", "18:15", "18:30", "18:45"]
    assert generate_time_slots([LATE], FRIDAY) == []


def test_slot_free_when_a_large_enough_table_is_free():
    tables = [BookableTable(1, 2), BookableTable(2, 4)]
    occupied = [booking_interval(10, "18:00", 120, "Grace Hopper", 2, table_id=2)]

    assert slot_is_available(occupied, tables, "18:00", 90, 2) is True
    assert slot_is_available(occupied, tables, "18:00", 90, 4) is False


def test_slot_free_again_once_the_booking_ends():
    tables = [BookableTable(1, 4)]
    occupied = [booking_interval(10, "18:00", 90, "Grace Hopper", 2, table_id=1)]

    assert slot_is_available(occupied, tables, "19:15", 60, 2) is False
    assert slot_is_available(occupied, tables, "19:30", 60, 2) is True
    # A later booking cuts into the requested duration.
    assert slot_is_available(occupied, tables, "17:00", 90, 2) is False
    assert slot_is_available(occupied, tables, "16:30", 90, 2) is True


def test_venue_wide_block_closes_every_table():
    tables = [BookableTable(1, 4), BookableTable(2, 6)]
    occupied = [block_interval(5, "20:00", "22:00", "Private event")]

    assert slot_is_available(occupied, tables, "19:00", 90, 2) is False
    assert slot_is_available(occupied, tables, "18:30", 90, 2) is True


def test_table_block_closes_only_that_table():
    tables = [BookableTable(1, 4), BookableTable(2, 4)]
    occupied = [block_interval(5, "18:00", "23:00", "Repairs", table_ids=[1])]

    assert slot_is_available(occupied, tables, "19:00", 90, 2) is True
    assert slot_is_available(occupied, [BookableTable(1, 4)], "19:00", 90, 2) is False


def test_list_slots_marks_each_time():
    tables = [BookableTable(1, 4)]
    occupied = [booking_interval(10, "18:45", 60, "Grace Hopper", 2, table_id=1)]

    slots = list_slots([DINNER], occupied, tables, THURSDAY, 30, 2)

    assert [(slot.time, slot.available) for slot in slots] == [
        ("18:00", True),
        ("18:15", True),
        ("18:30", False),
        ("18:45", False),
    ]
