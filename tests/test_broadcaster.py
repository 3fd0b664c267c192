"""Tests for tournament channel fan-out."""

import asyncio

from golfboard import events
from golfboard.broadcaster import Broadcaster

from conftest import FakeConnection


async def _wait_for_count(broadcaster, tournament_id, expected):
    for _ in range(100):
        if broadcaster.viewer_count(tournament_id) == expected:
            # Let the eviction hang up the connection
            await asyncio.sleep(0.05)
            return
        await asyncio.sleep(0.01)


async def _join(broadcaster, tournament_id, connection_id, conn, user_name="Anonymous"):
    subscriber = broadcaster.create_subscriber(
        connection_id, conn.send, user_name=user_name, on_evict=conn.close
    )
    await broadcaster.add(tournament_id, subscriber)
    return subscriber


async def test_broadcast_reaches_every_viewer_of_the_tournament(broadcaster):
    first, second, elsewhere = FakeConnection(), FakeConnection(), FakeConnection()
    subs = [
        await _join(broadcaster, 1, "c1", first),
        await _join(broadcaster, 1, "c2", second),
        await _join(broadcaster, 2, "c3", elsewhere),
    ]

    delivered = await broadcaster.broadcast(1, events.error("hello"))
    for subscriber in subs:
        await subscriber.drain()

    assert delivered == 2
    assert first.types() == ["Error"]
    assert second.of_type("Error") == [{"message": "hello"}]
    assert elsewhere.messages == []


async def test_events_arrive_in_broadcast_order(broadcaster):
    conn = FakeConnection()
    subscriber = await _join(broadcaster, 1, "c1", conn)

    for n in range(5):
        await broadcaster.broadcast(1, events.viewer_joined(f"v{n}", n))
    await subscriber.drain()

    assert [m["data"]["user_name"] for m in conn.messages] == ["v0", "v1", "v2", "v3", "v4"]


async def test_failing_viewer_is_dropped_and_others_still_receive(broadcaster):
    healthy, broken = FakeConnection(), FakeConnection(fail=True)
    good_sub = await _join(broadcaster, 1, "good", healthy)
    await _join(broadcaster, 1, "bad", broken)

    await broadcaster.broadcast(1, events.error("first"))
    await good_sub.drain()
    await _wait_for_count(broadcaster, 1, 1)

    assert broadcaster.viewer_count(1) == 1
    assert broken.closed is True

    await broadcaster.broadcast(1, events.error("second"))
    await good_sub.drain()
    assert [m["data"]["message"] for m in healthy.messages] == ["first", "second"]


async def test_slow_viewer_is_dropped_on_timeout():
    broadcaster = Broadcaster(queue_size=10, send_timeout=0.05)
    slow = FakeConnection(delay=1.0)
    await _join(broadcaster, 1, "slow", slow)

    await broadcaster.broadcast(1, events.error("late"))
    await _wait_for_count(broadcaster, 1, 0)

    assert broadcaster.viewer_count(1) == 0
    assert slow.closed is True
    await broadcaster.close()


async def test_full_queue_evicts_the_lagging_viewer():
    broadcaster = Broadcaster(queue_size=2, send_timeout=5.0)
    stuck, fast = FakeConnection(delay=10.0), FakeConnection()
    await _join(broadcaster, 1, "stuck", stuck)
    fast_sub = await _join(broadcaster, 1, "fast", fast)

    # The stuck viewer holds one event in flight and two queued; the fourth overflows
    for n in range(4):
        await broadcaster.broadcast(1, events.error(str(n)))
        await fast_sub.drain()

    assert broadcaster.viewer_count(1) == 1
    assert fast_sub.closed is False
    assert stuck.closed is True
    assert len(fast.messages) == 4
    await broadcaster.close()


async def test_exclude_skips_one_connection(broadcaster):
    joiner, other = FakeConnection(), FakeConnection()
    joiner_sub = await _join(broadcaster, 1, "joiner", joiner)
    other_sub = await _join(broadcaster, 1, "other", other)

    delivered = await broadcaster.broadcast(1, events.viewer_joined("joiner", 2), exclude="joiner")
    await joiner_sub.drain()
    await other_sub.drain()

    assert delivered == 1
    assert joiner.messages == []
    assert other.types() == ["ViewerJoined"]


async def test_broadcast_to_empty_channel(broadcaster):
    assert await broadcaster.broadcast(7, events.error("nobody")) == 0


async def test_joining_another_tournament_moves_the_viewer(broadcaster):
    conn = FakeConnection()
    subscriber = await _join(broadcaster, 1, "c1", conn)

    count = await broadcaster.add(2, subscriber)

    assert count == 1
    assert subscriber.tournament_id == 2
    assert broadcaster.viewer_count(1) == 0
    assert broadcaster.viewer_count(2) == 1


async def test_remove_and_discard(broadcaster):
    first, second = FakeConnection(), FakeConnection()
    sub1 = await _join(broadcaster, 1, "c1", first)
    sub2 = await _join(broadcaster, 1, "c2", second)

    removed = await broadcaster.remove("c1")
    assert removed is sub1
    assert await broadcaster.remove("c1") is None
    assert broadcaster.viewer_count(1) == 1

    assert await broadcaster.discard(sub2) == 1
    assert sub2.closed is True
    assert broadcaster.viewer_count(1) == 0
    await sub1.close()


async def test_viewers_leaving_during_broadcast(broadcaster):
    conns = [FakeConnection(delay=0.01) for _ in range(5)]
    subs = [await _join(broadcaster, 1, f"c{n}", conn) for n, conn in enumerate(conns)]

    await asyncio.gather(
        broadcaster.broadcast(1, events.error("busy")),
        broadcaster.remove("c0"),
        broadcaster.discard(subs[1]),
    )
    for subscriber in subs[2:]:
        await subscriber.drain()

    assert broadcaster.viewer_count(1) == 3
    for conn in conns[2:]:
        assert conn.types() == ["Error"]
    await subs[0].close()


async def test_send_to_single_subscriber_without_channel(broadcaster):
    conn = FakeConnection()
    subscriber = broadcaster.create_subscriber("lonely", conn.send)

    assert await broadcaster.send_to(subscriber, events.error("not found")) is True
    await subscriber.drain()

    assert conn.of_type("Error") == [{"message": "not found"}]
    assert broadcaster.viewer_count(1) == 0
    await subscriber.close()


async def test_evicted_viewer_is_reported_as_departed(broadcaster):
    departures = []

    async def on_departure(subscriber, tournament_id):
        departures.append((subscriber.connection_id, tournament_id))

    broadcaster.set_departure_handler(on_departure)
    healthy, broken = FakeConnection(), FakeConnection(fail=True)
    good_sub = await _join(broadcaster, 3, "good", healthy)
    await _join(broadcaster, 3, "bad", broken)

    await broadcaster.broadcast(3, events.error("boom"))
    await good_sub.drain()
    await _wait_for_count(broadcaster, 3, 1)

    assert departures == [("bad", 3)]


async def test_explicit_removal_is_not_reported_as_departure(broadcaster):
    departures = []

    async def on_departure(subscriber, tournament_id):
        departures.append(subscriber.connection_id)

    broadcaster.set_departure_handler(on_departure)
    subscriber = await _join(broadcaster, 1, "c1", FakeConnection())

    await broadcaster.discard(subscriber)

    assert departures == []


async def test_close_flushes_queued_events():
    broadcaster = Broadcaster(queue_size=10, send_timeout=1.0)
    conn = FakeConnection(delay=0.01)
    await _join(broadcaster, 1, "c1", conn)

    for n in range(3):
        await broadcaster.broadcast(1, events.error(str(n)))
    await broadcaster.close()

    assert [m["data"]["message"] for m in conn.messages] == ["0", "1", "2"]
    assert broadcaster.viewer_count(1) == 0
