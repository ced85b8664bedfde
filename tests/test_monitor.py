"""Tests for the background health monitor."""

import asyncio

import pytest

from ptprint.commands import PTouchCommands
from ptprint.exceptions import DeviceFaultError, DeviceIOError, PrinterError
from ptprint.monitor import HealthMonitor, exit_on_failure, log_and_continue
from ptprint.protocol import RetryPolicy, StatusProtocol
from ptprint.responses import HardwareVersion, StatusFrame, TransientError
from ptprint.session import PrinterSession, PrinterState

STATUS_QUERY = PTouchCommands.status_query()


def _session(link, make_frame, **frame_args):
    frame = StatusFrame.parse(make_frame(**frame_args))
    return PrinterSession(link, PrinterState.from_status(frame, TransientError.ALL_IS_WELL))


def _fast_protocol(clock):
    return StatusProtocol(RetryPolicy(max_attempts=2, delay=0, sleep=clock.sleep))


def _slow_writes(link, delay):
    """Make each write on the link take a while; returns an event set when one starts."""
    started = asyncio.Event()
    write = link.write

    async def slow_write(data):
        started.set()
        await asyncio.sleep(delay)
        await write(data)

    link.write = slow_write
    return started


class TestSubmit:
    """Write requests are serialized through the monitor."""

    @pytest.mark.asyncio
    async def test_submit_writes_bytes(self, link, make_frame):
        monitor = HealthMonitor(_session(link, make_frame), interval=60)
        monitor.start()
        try:
            await monitor.submit(b"\x1a")
        finally:
            await monitor.stop()

        assert link.writes == [b"\x1a"]

    @pytest.mark.asyncio
    async def test_concurrent_submissions_keep_order(self, link, make_frame):
        monitor = HealthMonitor(_session(link, make_frame), interval=60)
        monitor.start()
        payloads = [bytes([i]) * (i + 1) for i in range(20)]
        try:
            await asyncio.gather(*(monitor.submit(p) for p in payloads))
        finally:
            await monitor.stop()

        # Each submission is one discrete write, in acceptance order
        assert link.writes == payloads

    @pytest.mark.asyncio
    async def test_write_failure_reported_to_submitter(self, link, make_frame, io_error):
        monitor = HealthMonitor(_session(link, make_frame), interval=60)
        monitor.start()
        link.write_error = io_error
        try:
            with pytest.raises(DeviceIOError, match="device went away"):
                await monitor.submit(b"abc")
            # The monitor keeps serving after a failed write
            link.write_error = None
            await monitor.submit(b"def")
        finally:
            await monitor.stop()

        assert link.writes == [b"def"]

    @pytest.mark.asyncio
    async def test_submit_when_not_running(self, link, make_frame):
        monitor = HealthMonitor(_session(link, make_frame))
        with pytest.raises(PrinterError, match="not running"):
            await monitor.submit(b"abc")

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, link, make_frame):
        monitor = HealthMonitor(_session(link, make_frame), interval=60)
        monitor.start()
        assert monitor.is_running
        await monitor.stop()
        await monitor.stop()
        assert not monitor.is_running

    @pytest.mark.asyncio
    async def test_stop_lets_write_in_flight_finish(self, link, make_frame):
        started = _slow_writes(link, 0.2)
        monitor = HealthMonitor(_session(link, make_frame), interval=60)
        monitor.start()
        submitter = asyncio.create_task(monitor.submit(b"G" * 20))
        await started.wait()

        await monitor.stop()

        done, _ = await asyncio.wait({submitter}, timeout=2)
        assert submitter in done
        assert submitter.exception() is None
        assert link.writes == [b"G" * 20]

    @pytest.mark.asyncio
    async def test_stop_fails_queued_requests(self, link, make_frame):
        started = _slow_writes(link, 0.2)
        monitor = HealthMonitor(_session(link, make_frame), interval=60)
        monitor.start()
        first = asyncio.create_task(monitor.submit(b"first"))
        await started.wait()
        second = asyncio.create_task(monitor.submit(b"second"))
        await asyncio.sleep(0)

        await monitor.stop()

        await asyncio.wait_for(first, timeout=2)
        with pytest.raises(PrinterError, match="health monitor stopped"):
            await asyncio.wait_for(second, timeout=2)
        assert link.writes == [b"first"]

    @pytest.mark.asyncio
    async def test_cancelled_task_resolves_taken_request(self, link, make_frame):
        started = _slow_writes(link, 0.5)
        monitor = HealthMonitor(_session(link, make_frame), interval=60)
        monitor.start()
        submitter = asyncio.create_task(monitor.submit(b"x"))
        await started.wait()

        monitor._task.cancel()

        with pytest.raises(PrinterError, match="health monitor stopped"):
            await asyncio.wait_for(submitter, timeout=2)
        await monitor.stop()
        assert not monitor.is_running


class TestPeriodicCheck:
    """The timer fires status checks when the link is idle."""

    @pytest.mark.asyncio
    async def test_check_updates_session(self, link_factory, make_frame):
        link = link_factory(
            frames=[make_frame(error1=0x02, media_width=9, hardware_version=0x67)]
        )
        session = _session(link, make_frame)
        monitor = HealthMonitor(session, interval=0.01)
        monitor.start()
        try:
            for _ in range(100):
                if session.media_width_mm == 9:
                    break
                await asyncio.sleep(0.01)
        finally:
            await monitor.stop()

        assert link.status_queries >= 1
        assert session.transient_error == TransientError.TAPE_RAN_OUT
        assert session.media_width_mm == 9
        assert session.hardware_version == HardwareVersion.PTP700

    @pytest.mark.asyncio
    async def test_writes_defer_check(self, link, make_frame):
        monitor = HealthMonitor(_session(link, make_frame), interval=0.3)
        monitor.start()
        try:
            # Keep the link busy for longer than one interval
            for _ in range(10):
                await monitor.submit(b"x")
                await asyncio.sleep(0.05)
            assert link.status_queries == 0
        finally:
            await monitor.stop()

    @pytest.mark.asyncio
    async def test_check_never_interleaves_with_write(self, link, make_frame):
        monitor = HealthMonitor(_session(link, make_frame), interval=0.01)
        monitor.start()
        try:
            for i in range(20):
                await monitor.submit(bytes([0x47, i]))
                await asyncio.sleep(0.005)
        finally:
            await monitor.stop()

        # Every write is whole: either a status query or one of ours
        for w in link.writes:
            assert w == STATUS_QUERY or (len(w) == 2 and w[0] == 0x47)
        assert [w[1] for w in link.writes if w != STATUS_QUERY] == list(range(20))

    @pytest.mark.asyncio
    async def test_check_now_success(self, link_factory, make_frame):
        link = link_factory(frames=[make_frame(error2=0x10)])
        session = _session(link, make_frame)
        monitor = HealthMonitor(session)

        state = await monitor.check_now()

        assert state.transient_error == TransientError.COVER_OPEN
        assert session.state is state
        assert not state.degraded


class TestFailurePolicy:
    """What happens when a periodic check fails."""

    @pytest.mark.asyncio
    async def test_default_policy_exits(self, link_factory, make_frame, clock):
        link = link_factory(frames=[make_frame(head_mark=0x00)])
        monitor = HealthMonitor(_session(link, make_frame), protocol=_fast_protocol(clock))
        assert monitor.on_failure is exit_on_failure

        with pytest.raises(SystemExit) as exc_info:
            await monitor.check_now()
        assert exc_info.value.code == 1

    @pytest.mark.asyncio
    async def test_degrade_keeps_stale_state(self, link_factory, make_frame, clock):
        link = link_factory(frames=[make_frame(error2=0x04)])
        session = _session(link, make_frame, media_width=12)
        before = session.state
        monitor = HealthMonitor(
            session, protocol=_fast_protocol(clock), on_failure=log_and_continue
        )

        assert await monitor.check_now() is None

        assert session.state.degraded
        assert session.transient_error == before.transient_error
        assert session.media_width_mm == 12

    @pytest.mark.asyncio
    async def test_policy_receives_error(self, link_factory, make_frame, clock):
        errors = []
        link = link_factory()  # never answers
        monitor = HealthMonitor(
            _session(link, make_frame), protocol=_fast_protocol(clock), on_failure=errors.append
        )

        await monitor.check_now()

        assert len(errors) == 1
        assert isinstance(errors[0], DeviceIOError)

    @pytest.mark.asyncio
    async def test_fault_then_recovery_clears_degraded(self, link_factory, make_frame, clock):
        link = link_factory(frames=[make_frame(error2=0x40), make_frame()])
        session = _session(link, make_frame)
        errors = []
        monitor = HealthMonitor(session, protocol=_fast_protocol(clock), on_failure=errors.append)

        await monitor.check_now()
        assert session.state.degraded
        assert isinstance(errors[0], DeviceFaultError)

        await monitor.check_now()
        assert not session.state.degraded
