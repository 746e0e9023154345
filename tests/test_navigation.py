"""Tests for cursor stepping, removal adjustment, and the navigation guard.

Stepping must wrap at both ends and enter from staging at the right end.
The fallback timer must never clear a newer navigation's flag.
"""

from __future__ import annotations

import unittest

from waymark.navigation import (
    STAGING,
    NavigationGuard,
    adjust_index_after_removal,
    step,
    step_down,
    step_up,
)
from waymark.scheduler import ManualClock, Scheduler
from waymark.state import MarkState


class StepTests(unittest.TestCase):
    def test_step_down_enters_from_staging_at_last_index(self) -> None:
        self.assertEqual(step_down(STAGING, 5), 5)

    def test_step_up_enters_from_staging_at_first_index(self) -> None:
        self.assertEqual(step_up(STAGING, 5), 1)

    def test_steps_wrap_around_both_ends(self) -> None:
        self.assertEqual(step_up(5, 5), 1)
        self.assertEqual(step_down(1, 5), 5)
        self.assertEqual(step_up(2, 5), 3)
        self.assertEqual(step_down(4, 5), 3)

    def test_single_element_list_always_resolves_to_one(self) -> None:
        for idx in (STAGING, 1, 7):
            self.assertEqual(step_up(idx, 1), 1)
            self.assertEqual(step_down(idx, 1), 1)

    def test_out_of_range_cursor_is_reentered(self) -> None:
        self.assertEqual(step_down(9, 5), 5)
        self.assertEqual(step_up(9, 5), 1)

    def test_step_applies_count_in_one_direction(self) -> None:
        self.assertEqual(step(STAGING, 5, toward_end=True, count=3), 3)
        self.assertEqual(step(STAGING, 5, toward_end=False, count=2), 4)
        self.assertEqual(step(4, 5, toward_end=True, count=3), 2)

    def test_step_treats_non_positive_count_as_one(self) -> None:
        self.assertEqual(step(2, 5, toward_end=True, count=0), 3)


class AdjustIndexAfterRemovalTests(unittest.TestCase):
    def test_removing_current_element_returns_to_staging(self) -> None:
        self.assertEqual(adjust_index_after_removal(3, 3, 4), STAGING)

    def test_removal_before_cursor_shifts_it_down(self) -> None:
        self.assertEqual(adjust_index_after_removal(4, 2, 4), 3)

    def test_removal_after_cursor_leaves_it(self) -> None:
        self.assertEqual(adjust_index_after_removal(2, 4, 4), 2)

    def test_staging_stays_staging(self) -> None:
        self.assertEqual(adjust_index_after_removal(STAGING, 1, 3), STAGING)

    def test_cursor_beyond_new_length_returns_to_staging(self) -> None:
        self.assertEqual(adjust_index_after_removal(3, 5, 2), STAGING)


class NavigationGuardTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = ManualClock()
        self.scheduler = Scheduler(self.clock)
        self.state = MarkState()
        self.guard = NavigationGuard(self.state, self.scheduler)

    def test_fallback_clears_flag_when_end_never_runs(self) -> None:
        self.guard.begin_with_fallback()
        self.assertTrue(self.state.navigating)

        self.clock.advance(2.5)
        self.scheduler.run_due()

        self.assertFalse(self.state.navigating)

    def test_stale_fallback_does_not_clear_newer_navigation(self) -> None:
        self.guard.begin_with_fallback()
        self.clock.advance(1.0)
        self.guard.begin_with_fallback()

        self.clock.advance(1.5)
        self.scheduler.run_due()
        self.assertTrue(self.state.navigating)

        self.clock.advance(1.0)
        self.scheduler.run_due()
        self.assertFalse(self.state.navigating)

    def test_jumping_context_clears_flag_even_on_error(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.guard.jumping():
                self.assertTrue(self.state.navigating)
                raise RuntimeError("boom")
        self.assertFalse(self.state.navigating)

    def test_each_navigation_bumps_generation(self) -> None:
        self.guard.begin()
        self.guard.begin()
        self.assertEqual(self.state.nav_generation, 2)


if __name__ == "__main__":
    unittest.main()
