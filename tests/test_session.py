import asyncio
import gc
import logging

import pytest

from cdpsession import MalformedResponse, ProtocolError, Session, SessionClosed, TransportClosed
from conftest import FakeTransport, settle

pytestmark = pytest.mark.asyncio


async def test_send_resolves_with_matching_result(transport, make_session):
    session = make_session()
    task = asyncio.create_task(session.send("Storage.getUsageAndQuota", {"origin": "https://example.com"}))
    request = await transport.next_request()
    assert request["method"] == "Storage.getUsageAndQuota"
    assert request["params"] == {"origin": "https://example.com"}

    transport.respond(request, {"usage": 100})
    assert await asyncio.wait_for(task, 1) == {"usage": 100}
    assert session.pending_count == 0
    await session.close()


async def test_ids_are_monotonic_and_unique(transport, make_session):
    session = make_session()
    tasks = [asyncio.create_task(session.send("Test.ping")) for _ in range(5)]
    requests = [await transport.next_request() for _ in tasks]
    ids = [r["id"] for r in requests]
    assert ids == sorted(ids)
    assert len(set(ids)) == 5
    for r in requests:
        transport.respond(r)
    await asyncio.wait_for(asyncio.gather(*tasks), 1)
    await session.close()


async def test_out_of_order_responses_reach_their_own_callers(transport, make_session):
    session = make_session()
    first = asyncio.create_task(session.send("Test.first"))
    second = asyncio.create_task(session.send("Test.second"))
    req1 = await transport.next_request()
    req2 = await transport.next_request()

    # second request answered first
    transport.respond(req2, {"who": "second"})
    await settle()
    assert second.done() and not first.done()
    transport.respond(req1, {"who": "first"})

    assert await asyncio.wait_for(first, 1) == {"who": "first"}
    assert await asyncio.wait_for(second, 1) == {"who": "second"}
    await session.close()


async def test_error_body_raises_protocol_error(transport, make_session):
    session = make_session()
    task = asyncio.create_task(session.send("Storage.nope"))
    request = await transport.next_request()
    transport.feed({"id": request["id"], "error": {"code": -32601, "message": "'Storage.nope' wasn't found"}})

    with pytest.raises(ProtocolError) as info:
        await asyncio.wait_for(task, 1)
    assert info.value.code == -32601
    assert info.value.message == "'Storage.nope' wasn't found"
    assert info.value.method == "Storage.nope"
    assert not session.closed
    await session.close()


async def test_malformed_response_fails_only_that_command(transport, make_session):
    session = make_session()
    bad = asyncio.create_task(session.send("Test.bad"))
    good = asyncio.create_task(session.send("Test.good"))
    req_bad = await transport.next_request()
    req_good = await transport.next_request()

    transport.feed({"id": req_bad["id"], "result": {}, "error": {"code": 1, "message": "x"}})
    transport.respond(req_good, {"fine": True})

    with pytest.raises(MalformedResponse):
        await asyncio.wait_for(bad, 1)
    assert await asyncio.wait_for(good, 1) == {"fine": True}
    assert not session.closed
    await session.close()


async def test_bad_peer_request_sharing_an_id_leaves_the_command_pending(transport, make_session):
    session = make_session()
    task = asyncio.create_task(session.send("Test.wait"))
    request = await transport.next_request()

    # the peer numbers its own requests; one of them reusing our id is not our answer
    transport.feed({"id": request["id"], "method": "Target.attach", "params": [1]})
    await settle()
    assert not task.done()
    assert session.pending_count == 1

    transport.respond(request, {"ok": True})
    assert await asyncio.wait_for(task, 1) == {"ok": True}
    await session.close()


async def test_unknown_response_id_is_logged_and_ignored(transport, make_session, caplog):
    session = make_session()
    with caplog.at_level(logging.WARNING, logger="cdpsession.session"):
        transport.feed({"id": 999, "result": {}})
        transport.feed("garbage that is not json")
        await settle()
    assert not session.closed
    assert "unknown or abandoned" in caplog.text
    assert "undecodable frame" in caplog.text

    # still usable afterwards
    task = asyncio.create_task(session.send("Test.after"))
    transport.respond(await transport.next_request(), {"ok": 1})
    assert await asyncio.wait_for(task, 1) == {"ok": 1}
    await session.close()


async def test_timeout_releases_slot_and_late_response_is_tolerated(transport, make_session):
    session = make_session()
    task = asyncio.create_task(session.send("Test.slow", timeout=0.05))
    request = await transport.next_request()
    with pytest.raises(asyncio.TimeoutError):
        await task
    assert session.pending_count == 0

    transport.respond(request, {"late": True})
    await settle()
    assert not session.closed
    await session.close()


async def test_default_command_timeout(transport, make_session):
    session = make_session(command_timeout=0.05)
    with pytest.raises(asyncio.TimeoutError):
        await session.send("Test.slow")
    assert session.pending_count == 0
    await session.close()


async def test_cancelled_caller_releases_slot(transport, make_session):
    session = make_session()
    task = asyncio.create_task(session.send("Test.cancelled"))
    request = await transport.next_request()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert session.pending_count == 0
    transport.respond(request)
    await settle()
    assert not session.closed
    await session.close()


async def test_close_fails_every_pending_command(transport, make_session):
    session = make_session()
    cancelled = []
    tasks = [
        asyncio.create_task(session.send("Test.wait", on_cancel=lambda cmd, reason: cancelled.append(cmd.id)))
        for _ in range(3)
    ]
    for _ in tasks:
        await transport.next_request()
    sub = session.subscribe("Storage.indexedDBListUpdated")

    await session.close("shutting down")

    for task in tasks:
        with pytest.raises(SessionClosed) as info:
            await asyncio.wait_for(task, 1)
        assert info.value.reason == "shutting down"
    assert len(cancelled) == 3
    assert session.pending_count == 0
    assert transport.closed
    # the subscription ends instead of hanging
    assert [ev async for ev in sub] == []


async def test_close_is_idempotent(transport, make_session):
    session = make_session()
    await session.close("first")
    await session.close("second")
    assert session.closed
    assert session.close_reason == "first"


async def test_send_after_close_raises(transport, make_session):
    session = make_session()
    await session.close("done")
    with pytest.raises(SessionClosed):
        await session.send("Test.late")


async def test_transport_hang_up_closes_session(transport, make_session):
    session = make_session()
    task = asyncio.create_task(session.send("Test.wait"))
    await transport.next_request()
    events = session.events()

    transport.hang_up()
    with pytest.raises(SessionClosed) as info:
        await asyncio.wait_for(task, 1)
    assert info.value.reason == "peer hung up"
    await asyncio.wait_for(session.wait_closed(), 1)
    assert session.closed
    assert [ev async for ev in events] == []


async def test_failed_write_closes_session(transport, make_session):
    session = make_session()
    transport.fail_sends = True
    with pytest.raises(SessionClosed):
        await session.send("Test.unsent")
    assert session.closed
    assert session.pending_count == 0


async def test_session_id_is_sent_when_given(transport, make_session):
    session = make_session()
    task = asyncio.create_task(session.send("Storage.getTrustTokens", session_id="TARGET-1"))
    request = await transport.next_request()
    assert request["sessionId"] == "TARGET-1"
    transport.respond(request, {"tokens": []})
    await asyncio.wait_for(task, 1)
    await session.close()


async def test_responses_and_events_keep_wire_order(transport, make_session):
    session = make_session()
    events = session.events()
    task = asyncio.create_task(session.send("Test.cmd"))
    request = await transport.next_request()

    transport.emit("Test.before")
    transport.respond(request)
    transport.emit("Test.after")
    await asyncio.wait_for(task, 1)
    await session.close()

    assert [ev.method async for ev in events] == ["Test.before", "Test.after"]


async def test_context_manager_starts_and_closes(transport):
    async with Session(transport) as session:
        task = asyncio.create_task(session.send("Test.ping"))
        transport.respond(await transport.next_request(), {"pong": True})
        assert await asyncio.wait_for(task, 1) == {"pong": True}
    assert session.closed


class StallingTransport(FakeTransport):
    """writes hang until released, then find the socket gone."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def send(self, frame: str):
        await self.release.wait()
        raise TransportClosed("write failed")


class SlowShutdownTransport(FakeTransport):
    """recv takes a moment to unwind once cancelled."""

    async def recv(self):
        try:
            return await super().recv()
        except asyncio.CancelledError:
            await asyncio.sleep(0.2)
            raise


async def test_write_failing_after_peer_hang_up_leaves_no_stray_errors():
    loop = asyncio.get_running_loop()
    errors = []
    previous = loop.get_exception_handler()
    loop.set_exception_handler(lambda _, context: errors.append(context))
    try:
        transport = StallingTransport()
        session = Session(transport)
        session.start()
        task = asyncio.create_task(session.send("Test.stuck"))
        await settle()
        assert session.pending_count == 1

        # the reader closes the session while the write is still in flight
        transport.hang_up()
        await asyncio.wait_for(session.wait_closed(), 1)
        transport.release.set()
        with pytest.raises(SessionClosed):
            await asyncio.wait_for(task, 1)

        del task
        gc.collect()
        assert errors == []
    finally:
        loop.set_exception_handler(previous)


async def test_cancelling_close_still_cancels_the_caller():
    transport = SlowShutdownTransport()
    session = Session(transport)
    session.start()
    await settle()

    closer = asyncio.create_task(session.close())
    await asyncio.sleep(0.01)
    closer.cancel()
    with pytest.raises(asyncio.CancelledError):
        await closer
    assert session.closed
    assert transport.closed
