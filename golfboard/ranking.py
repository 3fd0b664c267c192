"""
Ranking of team aggregates into a position-assigned leaderboard.
"""

from typing import List, Sequence, Tuple

from .models import LeaderboardEntry, TeamAggregate


def ranking_key(aggregate: TeamAggregate) -> Tuple[int, int, int]:
    """
    Sort key: to-par, then total strokes, lower first.

    team_id is the final tiebreak so the order is fully deterministic; it
    never affects positions.
    """
    return (aggregate.to_par, aggregate.strokes_total, aggregate.team_id)


def rank_aggregates(
    aggregates: Sequence[TeamAggregate],
) -> List[LeaderboardEntry]:
    """
    Sort aggregates and assign positions, accounting for ties.

    Entries with equal to-par and equal strokes share a position; the next
    distinct entry takes its 1-based index (1, 1, 3 rather than 1, 1, 2).
    The input is left untouched.

    @param aggregates: Team aggregates for one scope, in any order
    @return: New list of LeaderboardEntry sorted best first
    """
    if not aggregates:
        return []

    ordered = sorted(aggregates, key=ranking_key)

    ranked_data = []
    current_position = 1
    previous_score = None

    for i, aggregate in enumerate(ordered):
        score = _score_of(aggregate)

        # Different score from the previous entry moves the position to the index
        if previous_score is not None and score != previous_score:
            current_position = i + 1

        is_tied = False
        if i > 0 and score == _score_of(ordered[i - 1]):
            is_tied = True
        elif i < len(ordered) - 1 and score == _score_of(ordered[i + 1]):
            is_tied = True

        ranked_data.append(
            LeaderboardEntry(
                team_id=aggregate.team_id,
                display_name=aggregate.display_name,
                total_strokes=aggregate.strokes_total,
                total_to_par=aggregate.to_par,
                position=current_position,
                holes_completed=aggregate.holes_completed,
                per_round=dict(aggregate.rounds),
                is_tied=is_tied,
                player1=aggregate.player1,
                player2=aggregate.player2,
                hole_scores=aggregate.hole_scores,
            )
        )

        previous_score = score

    return ranked_data


def _score_of(aggregate: TeamAggregate) -> Tuple[int, int]:
    return (aggregate.to_par, aggregate.strokes_total)


def position_window(
    entries: Sequence[LeaderboardEntry],
    team_id: int,
    window: int,
) -> List[LeaderboardEntry]:
    """
    Slice of a ranked list around one team.

    @param entries: Ranked leaderboard entries
    @param team_id: Team to focus on
    @param window: Number of entries to include above and below the team
    @return: Entries from index-window to index+window (clipped), empty if absent
    """
    for index, entry in enumerate(entries):
        if entry.team_id == team_id:
            start = max(0, index - window)
            return list(entries[start:index + window + 1])
    return []
