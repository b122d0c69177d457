import anyio
import pytest

from coreason_analyst.channel import MessageEvent, ResultChannel, ResultEvent
from coreason_analyst.models import ResultKind


@pytest.mark.asyncio
async def test_publish_fans_out_to_every_subscriber() -> None:
    channel = ResultChannel()
    first = channel.subscribe()
    second = channel.subscribe()

    channel.publish_result("run-1", ResultKind.TABLE, '[{"a": 1}]')
    channel.publish_message("run-1", "done")

    for stream in (first, second):
        result = stream.receive_nowait()
        assert isinstance(result, ResultEvent)
        assert result.decoded() == [{"a": 1}]
        message = stream.receive_nowait()
        assert message == MessageEvent(run_id="run-1", level="info", text="done")


@pytest.mark.asyncio
async def test_full_subscriber_drops_without_blocking() -> None:
    channel = ResultChannel()
    slow = channel.subscribe(buffer=1)
    fast = channel.subscribe(buffer=10)

    for i in range(3):
        channel.publish_message("run", f"m{i}")

    assert slow.receive_nowait().text == "m0"
    with pytest.raises(anyio.WouldBlock):
        slow.receive_nowait()
    assert [fast.receive_nowait().text for _ in range(3)] == ["m0", "m1", "m2"]


@pytest.mark.asyncio
async def test_closed_subscriber_is_pruned() -> None:
    channel = ResultChannel()
    gone = channel.subscribe()
    kept = channel.subscribe()
    await gone.aclose()

    channel.publish_message("run", "hello")

    assert channel.subscriber_count == 1
    assert kept.receive_nowait().text == "hello"


@pytest.mark.asyncio
async def test_close_ends_iteration() -> None:
    channel = ResultChannel()
    stream = channel.subscribe()
    channel.publish_message("run", "last")
    channel.close()

    received = [event async for event in stream]
    assert [e.text for e in received] == ["last"]
    assert channel.closed

    channel.publish_message("run", "ignored")
    with pytest.raises(RuntimeError):
        channel.subscribe()


def test_result_event_keeps_structured_payload() -> None:
    event = ResultEvent(run_id="r", result_kind="plot", payload={"data": [], "layout": {}})
    assert event.decoded() == {"data": [], "layout": {}}
