"""Unit tests for EnergyMonitor."""

import asyncio
from unittest.mock import Mock

import pytest

from voicegate.audio.monitor import EnergyMonitor


class LevelAnalyser:
    def __init__(self, level=0.0):
        self.level = level
        self.samples = 0

    def sample(self):
        self.samples += 1
        return self.level

    def close(self):
        pass


@pytest.mark.unit
@pytest.mark.asyncio
class TestEnergyMonitor:
    """Test cases for EnergyMonitor class."""

    async def test_reports_sound_above_threshold(self):
        """Test sound above threshold is reported."""
        on_sound = Mock()
        monitor = EnergyMonitor(asyncio.get_running_loop(), LevelAnalyser(50.0), threshold=20.0,
                                on_sound=on_sound, is_active=lambda: True, tick_seconds=0.005)

        monitor.start()
        await asyncio.sleep(0.03)
        monitor.stop()

        assert monitor.ticks >= 2
        assert on_sound.call_count == monitor.ticks

    async def test_quiet_audio_is_not_reported(self):
        """Test quiet audio is not reported."""
        on_sound = Mock()
        analyser = LevelAnalyser(5.0)
        monitor = EnergyMonitor(asyncio.get_running_loop(), analyser, threshold=20.0,
                                on_sound=on_sound, is_active=lambda: True, tick_seconds=0.005)

        monitor.start()
        await asyncio.sleep(0.03)
        monitor.stop()

        assert analyser.samples >= 2
        on_sound.assert_not_called()
        assert monitor.last_energy == 5.0

    async def test_no_tick_after_stop(self):
        """Test no sampling after stop."""
        analyser = LevelAnalyser(50.0)
        monitor = EnergyMonitor(asyncio.get_running_loop(), analyser, threshold=20.0,
                                on_sound=Mock(), is_active=lambda: True, tick_seconds=0.005)

        monitor.start()
        await asyncio.sleep(0.02)
        monitor.stop()
        samples = analyser.samples
        await asyncio.sleep(0.03)

        assert not monitor.running
        assert analyser.samples == samples

    async def test_stops_rescheduling_when_session_ends(self):
        """Test monitor stops when the session ends."""
        active = {"recording": True}
        analyser = LevelAnalyser(0.0)
        monitor = EnergyMonitor(asyncio.get_running_loop(), analyser, threshold=20.0,
                                on_sound=Mock(), is_active=lambda: active["recording"],
                                tick_seconds=0.005)

        monitor.start()
        await asyncio.sleep(0.02)
        active["recording"] = False
        # A tick already queued re-checks the session and does not sample
        samples = analyser.samples
        await asyncio.sleep(0.03)

        assert analyser.samples == samples
        assert not monitor.running

    async def test_sampling_error_stops_monitor(self):
        """Test sampling error stops the monitor."""
        analyser = Mock()
        analyser.sample.side_effect = RuntimeError("device gone")
        monitor = EnergyMonitor(asyncio.get_running_loop(), analyser, threshold=20.0,
                                on_sound=Mock(), is_active=lambda: True, tick_seconds=0.005)

        monitor.start()
        await asyncio.sleep(0.03)

        assert analyser.sample.call_count == 1
        assert not monitor.running

    async def test_cannot_restart_after_stop(self):
        """Test starting a stopped monitor."""
        monitor = EnergyMonitor(asyncio.get_running_loop(), LevelAnalyser(), threshold=20.0,
                                on_sound=Mock(), is_active=lambda: True)
        monitor.stop()

        with pytest.raises(RuntimeError):
            monitor.start()
