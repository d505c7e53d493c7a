"""
Scoring service: final per-seat scores and the winner set

Pure computation, run once when the last round closes.

Scoring rules:
┌──────────────────────────┬──────────────────────────────────────┐
│ Project stage            │ Contribution                         │
├──────────────────────────┼──────────────────────────────────────┤
│ NONE                     │ nothing                              │
│ MV                       │ catalog growth/fuel once             │
│ TF                       │ catalog growth/fuel twice            │
│ paused or abandoned      │ -1 from the final score              │
└──────────────────────────┴──────────────────────────────────────┘

baseScore  = min(growth, fuel) + floor((max - min) / 3)
finalScore = baseScore - pausedOrAbandonedCount

Balanced portfolios win: surplus on the stronger axis only counts a third.
"""
from typing import Mapping, Sequence

from core.room_state import FinalScoring, SeatScore, SeatState, Stage
from services.catalog import get_project


def calculate_seat_score(seat: SeatState) -> SeatScore:
    """
    Score one seat from its project instances

    Projects whose id is missing from the catalog are worth nothing but
    still count toward the paused/abandoned penalty.
    """
    score = SeatScore()

    for instance in seat.projects:
        card = get_project(instance.id)
        reward_growth = card.rewards.growth if card else 0
        reward_fuel = card.rewards.fuel if card else 0

        if instance.stage in (Stage.MV, Stage.TF):
            score.mv_completed_count += 1
            score.growth += reward_growth
            score.fuel += reward_fuel

        if instance.stage == Stage.TF:
            score.tf_completed_count += 1
            score.growth += reward_growth
            score.fuel += reward_fuel

        if instance.paused or instance.abandoned_penalty_count > 0:
            score.paused_or_abandoned_count += 1

    lower = min(score.growth, score.fuel)
    upper = max(score.growth, score.fuel)
    score.base_score = lower + (upper - lower) // 3
    score.final_score = score.base_score - score.paused_or_abandoned_count
    return score


def calculate_final_scoring(seats: Mapping[str, SeatState], joined_seats: Sequence[str]) -> FinalScoring:
    """
    Score every joined seat and pick the winners

    All seats tied on the best final score win together; is_tie flags that.
    """
    by_seat = {
        seat: calculate_seat_score(seats.get(seat, SeatState()))
        for seat in joined_seats
    }
    if not by_seat:
        return FinalScoring()

    best = max(score.final_score for score in by_seat.values())
    winners = [seat for seat in joined_seats if by_seat[seat].final_score == best]

    return FinalScoring(by_seat=by_seat, winners=winners, is_tie=len(winners) > 1)
