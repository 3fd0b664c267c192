"""
Score aggregation: per-hole records into per-round and per-team totals.

Everything here is pure and synchronous; holes that were never entered
contribute nothing to either sum.
"""

from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, List, Sequence

from .models import HoleScore, Round, RoundAggregate, ScoreRecord, Team, TeamAggregate


def aggregate_scores(
    records: Iterable[ScoreRecord],
    round_number: int = 0,
) -> RoundAggregate:
    """
    Sum a set of score records.

    @param records: Score records for one team in the scope (order irrelevant)
    @param round_number: Round label for the aggregate (0 when not round-scoped)
    @return: RoundAggregate, all zero for an empty scope
    """
    strokes_total = 0
    par_total = 0
    holes_completed = 0

    for record in records:
        strokes_total += record.strokes
        par_total += record.par
        holes_completed += 1

    return RoundAggregate(
        round_number=round_number,
        strokes_total=strokes_total,
        par_total=par_total,
        to_par=strokes_total - par_total,
        holes_completed=holes_completed,
    )


def aggregate_team(
    team: Team,
    rounds: Sequence[Round],
    records: Iterable[ScoreRecord],
) -> TeamAggregate:
    """
    Aggregate a team over several rounds.

    Per-round aggregates are computed first and then summed, so the
    breakdown is always consistent with the totals. Records belonging to
    other teams or to rounds outside the scope are ignored.

    @param team: Team being aggregated
    @param rounds: Rounds making up the scope
    @param records: Score records (may include other teams' records)
    @return: TeamAggregate with per-round breakdown keyed by round number
    """
    by_round: Dict[int, List[ScoreRecord]] = defaultdict(list)
    for record in records:
        if record.team_id == team.team_id:
            by_round[record.round_id].append(record)

    per_round: Dict[int, RoundAggregate] = {}
    for round_ in rounds:
        per_round[round_.round_number] = aggregate_scores(
            by_round.get(round_.round_id, ()), round_.round_number
        )

    strokes_total = sum(a.strokes_total for a in per_round.values())
    par_total = sum(a.par_total for a in per_round.values())

    return TeamAggregate(
        team_id=team.team_id,
        display_name=team.display_name,
        strokes_total=strokes_total,
        par_total=par_total,
        to_par=strokes_total - par_total,
        holes_completed=sum(a.holes_completed for a in per_round.values()),
        rounds=per_round,
        player1=team.player1,
        player2=team.player2,
    )


def aggregate_tournament(
    teams: Sequence[Team],
    rounds: Sequence[Round],
    records: Iterable[ScoreRecord],
) -> List[TeamAggregate]:
    """
    Aggregate every team of a tournament across all rounds.

    @param teams: All teams, in the order they should be emitted
    @param rounds: All rounds of the tournament
    @param records: All score records of the tournament
    @return: One TeamAggregate per team, teams without scores included
    """
    by_team: Dict[int, List[ScoreRecord]] = defaultdict(list)
    for record in records:
        by_team[record.team_id].append(record)

    return [aggregate_team(team, rounds, by_team.get(team.team_id, ())) for team in teams]


def aggregate_round(
    teams: Sequence[Team],
    round_: Round,
    records: Iterable[ScoreRecord],
) -> List[TeamAggregate]:
    """
    Aggregate a single round, a one-round scope of the tournament pipeline.

    Only teams with at least one record in the round are returned, each
    with its hole-by-hole breakdown ordered by hole number.

    @param teams: Teams of the tournament
    @param round_: The round being aggregated
    @param records: Score records; records from other rounds are ignored
    @return: TeamAggregate list for teams that have played in the round
    """
    scoped = [record for record in records if record.round_id == round_.round_id]
    by_team: Dict[int, List[ScoreRecord]] = defaultdict(list)
    for record in scoped:
        by_team[record.team_id].append(record)

    aggregates = []
    for team in teams:
        played = by_team.get(team.team_id)
        if not played:
            continue
        holes = [
            HoleScore(record.hole_number, record.strokes, record.par)
            for record in sorted(played, key=lambda r: r.hole_number)
        ]
        aggregates.append(replace(aggregate_team(team, [round_], played), hole_scores=holes))

    return aggregates
