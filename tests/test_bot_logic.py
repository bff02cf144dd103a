import random

from sinkships.battleship import apply_shot, all_sunk
from sinkships.bot_logic import DEFAULT_SHOT, Mode, TargetingAI


def parity(rc):
    return (rc[0] + rc[1]) % 2


def orthonbrs(rc):
    r, c = rc
    for dr, dc in ((-1, 0), (1, 0), (0, -1), (0, 1)):
        nr, nc = r + dr, c + dc
        if 0 <= nr < 10 and 0 <= nc < 10:
            yield (nr, nc)


def test_visits_every_square_once_without_hits():
    ai = TargetingAI(rng=random.Random(3))
    seen = []
    for _ in range(100):
        rc = ai.pick()
        assert rc not in seen
        seen.append(rc)
        ai.mark(rc, False)
    assert len(set(seen)) == 100
    # board exhausted: explicit last resort
    assert ai.pick() == DEFAULT_SHOT


def test_hunt_prefers_even_parity():
    ai = TargetingAI(rng=random.Random(11))
    for _ in range(40):
        rc = ai.pick()
        assert parity(rc) == 0
        assert ai.mode is Mode.HUNT
        ai.mark(rc, False)


def test_hit_queues_orthogonal_neighbours():
    ai = TargetingAI(rng=random.Random(0))
    ai.mark((5, 5), True)
    assert ai.mode is Mode.TARGET
    nxt = ai.pick()
    assert nxt in {(4, 5), (6, 5), (5, 4), (5, 6)}
    assert ai.mode is Mode.TARGET


def test_target_skips_visited_neighbours():
    ai = TargetingAI(rng=random.Random(0))
    ai.mark((4, 5), False)
    ai.mark((6, 5), False)
    ai.mark((5, 5), True)
    picks = set()
    for _ in range(2):
        rc = ai.pick()
        picks.add(rc)
        ai.mark(rc, False)
    assert picks == {(5, 4), (5, 6)}
    ai.pick()
    assert ai.mode is Mode.HUNT


def test_corner_hit_only_queues_in_bounds():
    ai = TargetingAI(rng=random.Random(0))
    ai.mark((0, 0), True)
    assert set(ai.queue) == set(orthonbrs((0, 0))) == {(1, 0), (0, 1)}


def test_row_major_fallback_when_sampling_disabled():
    ai = TargetingAI(rng=random.Random(0), hunt_samples=0)
    assert ai.pick() == (0, 0)
    ai.mark((0, 0), False)
    assert ai.pick() == (0, 1)


def test_reset_forgets_history():
    ai = TargetingAI(rng=random.Random(0))
    ai.mark((5, 5), True)
    ai.reset()
    assert not ai.visited and not ai.queue
    assert ai.mode is Mode.HUNT


def test_sinks_fixed_fleet_without_repeats(fixed_board):
    ai = TargetingAI(seed=42)
    fired = set()
    while not all_sunk(fixed_board):
        rc = ai.pick()
        assert rc not in fired
        fired.add(rc)
        ai.mark(rc, apply_shot(fixed_board, rc).hit)
    assert len(fired) <= 100
