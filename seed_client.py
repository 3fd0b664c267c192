#!/usr/bin/env python3
"""
Seed client to generate demo data for the golf leaderboard.
Creates a tournament with teams and rounds, then submits random hole scores.
"""

import asyncio
import random
import sys

import aiohttp

# Par layout of a standard 18-hole course
COURSE_PARS = [4, 4, 3, 5, 4, 4, 3, 4, 5, 4, 4, 3, 5, 4, 4, 3, 4, 5]

TEAM_NAMES = [
    "Birdie Hunters",
    "Fairway Kings",
    "Sand Savers",
    "Bogey Busters",
    "Eagle Eyes",
    "Chip Shots",
    "Green Machines",
    "Double Trouble",
    "Pin Seekers",
    "Slice of Life",
]

PLAYER_NAMES = [
    "Alice", "Bob", "Charlie", "Diana", "Eve", "Frank", "Grace", "Henry",
    "Ivy", "Jack", "Kate", "Leo", "Maya", "Noah", "Olivia", "Paul",
    "Quinn", "Ruby", "Sam", "Tina",
]


async def post_json(session, url, payload):
    """POST a JSON payload and return the decoded response body."""
    async with session.post(url, json=payload) as response:
        body = await response.json()
        if response.status >= 400:
            raise RuntimeError(f"{url} -> {response.status}: {body}")
        return body


async def send_score(session, base_url, team_id, round_id, hole_number, strokes, par):
    """Submit a single hole score."""
    try:
        await post_json(
            session,
            f"{base_url}/api/scores",
            {
                "team_id": team_id,
                "round_id": round_id,
                "hole_number": hole_number,
                "strokes": strokes,
                "par": par,
            },
        )
        return True
    except (aiohttp.ClientError, RuntimeError) as e:
        print(f"Error sending score: {e}")
        return False


def random_strokes(par):
    """Strokes for a hole: mostly par or bogey, occasionally birdie or worse."""
    roll = random.random()
    if roll < 0.05:
        return max(1, par - 2)
    if roll < 0.25:
        return par - 1
    if roll < 0.65:
        return par
    if roll < 0.90:
        return par + 1
    return par + 2


async def generate_test_data(
    base_url="http://localhost:8080",
    num_teams=8,
    num_rounds=2,
    delay=0.05,
):
    """Create a demo tournament and fill it with scores."""
    async with aiohttp.ClientSession() as session:
        tournament = await post_json(
            session, f"{base_url}/api/tournaments", {"name": "Demo Invitational"}
        )
        tournament_id = tournament["tournament_id"]
        print(f"Created tournament {tournament_id}: {tournament['name']}")

        teams = []
        players = random.sample(PLAYER_NAMES, min(num_teams * 2, len(PLAYER_NAMES)))
        for i, name in enumerate(TEAM_NAMES[:num_teams]):
            team = await post_json(
                session,
                f"{base_url}/api/tournaments/{tournament_id}/teams",
                {
                    "display_name": name,
                    "player1": players[(2 * i) % len(players)],
                    "player2": players[(2 * i + 1) % len(players)],
                },
            )
            teams.append(team)

        rounds = []
        for number in range(1, num_rounds + 1):
            rounds.append(
                await post_json(
                    session,
                    f"{base_url}/api/tournaments/{tournament_id}/rounds",
                    {"round_number": number},
                )
            )

        print(f"Created {len(teams)} teams and {len(rounds)} rounds")

        total_entries = 0
        for round_ in rounds:
            for hole_number, par in enumerate(COURSE_PARS, start=1):
                for team in teams:
                    if await send_score(
                        session,
                        base_url,
                        team["team_id"],
                        round_["round_id"],
                        hole_number,
                        random_strokes(par),
                        par,
                    ):
                        total_entries += 1
                    await asyncio.sleep(delay)

        print("\nDemo data generation complete!")
        print(f"Submitted {total_entries} scores for tournament {tournament_id}")
        return total_entries


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] in ["--help", "-h"]:
        print("Golf Leaderboard Seed Client")
        print("=" * 30)
        print("")
        print("Usage:")
        print("  python seed_client.py                 # Seed http://localhost:8080")
        print("  python seed_client.py URL             # Seed a specific server")
        print("  python seed_client.py URL TEAMS ROUNDS")
        print("")
        print("Watch the live channel while seeding to see ScoreUpdate,")
        print("LeaderboardUpdated and PositionChange events arrive.")
    else:
        url = sys.argv[1] if len(sys.argv) > 1 else "http://localhost:8080"
        teams = int(sys.argv[2]) if len(sys.argv) > 2 else 8
        rounds = int(sys.argv[3]) if len(sys.argv) > 3 else 2
        asyncio.run(generate_test_data(url.rstrip("/"), teams, rounds))
