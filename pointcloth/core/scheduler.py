"""ISI-driven frame-advance state machine.

The scheduler maps wall-clock time onto a display frame index and decides, on
each display refresh, whether to draw that frame, draw nothing (blank ISI) or
end the trial. Decisions are made by the pure function :func:`decide`;
:class:`FrameScheduler` only stores the state it returns, so the timing logic
can be tested without any drawing surface.

Trial status moves ``IDLE -> RUNNING -> ENDED`` and never leaves ``ENDED``.
While running, each tick falls into one phase:

* ``VISIBLE``: the displayed frame is drawn. In blank mode this happens
  exactly once per logical frame; in hold mode it marks the first tick of a
  hold interval.
* ``BLANK_WAIT``: blank mode only; nothing is drawn until the ISI elapses.
* ``HOLD_WAIT``: hold mode only; the held frame is drawn again.

Example:
    >>> params = ScheduleParams.build(total_frames=10, base_duration_s=1.0)
    >>> scheduler = FrameScheduler(params)
    >>> scheduler.tick(0.0).action
    <TickAction.DRAW: 'draw'>
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from pointcloth.errors import ConfigurationError

ISI_MODES = ("blank", "hold")

# Tolerance for millisecond timers against float round-off of tick timestamps
_TIMER_EPS_MS = 1e-6


class TrialStatus(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    ENDED = "ended"


class Phase(str, Enum):
    VISIBLE = "visible"
    BLANK_WAIT = "blank_wait"
    HOLD_WAIT = "hold_wait"


class TickAction(str, Enum):
    DRAW = "draw"
    BLANK = "blank"
    END = "end"


@dataclass(frozen=True)
class ScheduleParams:
    """Timing parameters of one trial.

    Attributes:
        total_frames: Number of displayable frames, cycles included.
        duration_s: Trial duration in seconds, ISI extension included.
        base_duration_s: Duration before any ISI extension.
        isi_ms: Inter-stimulus gap in milliseconds.
        isi_extends: Whether the gap was added to the duration.
        isi_mode: ``"blank"`` or ``"hold"``.
        hold_ms: Display time of a held frame (hold mode).
        reverse: Play frames from last to first.
    """

    total_frames: int
    duration_s: float
    base_duration_s: float
    isi_ms: float = 0.0
    isi_extends: bool = True
    isi_mode: str = "blank"
    hold_ms: float = 100.0
    reverse: bool = False

    @classmethod
    def build(
        cls,
        total_frames: int,
        base_duration_s: float,
        isi_ms: float = 0.0,
        isi_extends: bool = True,
        isi_mode: str = "blank",
        hold_ms: float = 100.0,
        reverse: bool = False,
    ) -> "ScheduleParams":
        """Create parameters, inflating the duration for ISI when requested.

        With ``isi_extends`` and a positive gap the duration grows by
        ``(total_frames - 1) * isi_ms / 1000`` so that every frame can still be
        shown. Otherwise the duration is kept and the gaps skip frames.

        Raises:
            ConfigurationError: On an unknown ISI mode or a negative gap.
        """
        if isi_mode not in ISI_MODES:
            raise ConfigurationError(
                f"isi_mode must be one of {ISI_MODES}, got '{isi_mode}'"
            )
        if isi_ms < 0:
            raise ConfigurationError(f"isi_ms must be non-negative, got {isi_ms}")
        if hold_ms < 0:
            raise ConfigurationError(f"hold_ms must be non-negative, got {hold_ms}")

        duration = float(base_duration_s)
        if isi_extends and isi_ms > 0 and total_frames > 1:
            duration += (total_frames - 1) * isi_ms / 1000.0
        return cls(
            total_frames=int(total_frames),
            duration_s=duration,
            base_duration_s=float(base_duration_s),
            isi_ms=float(isi_ms),
            isi_extends=bool(isi_extends),
            isi_mode=isi_mode,
            hold_ms=float(hold_ms),
            reverse=bool(reverse),
        )


@dataclass(frozen=True)
class FrameState:
    """Mutable-by-replacement scheduler state.

    Attributes:
        status: Trial status.
        index: Displayed frame index, ``None`` before the first running tick.
        phase: Phase of the most recent tick.
        start_time: Timestamp of the first tick (seconds).
        phase_start: When the current displayed frame (or hold interval)
            began.
        blank_start: When the current blank-mode gap began.
    """

    status: TrialStatus = TrialStatus.IDLE
    index: Optional[int] = None
    phase: Phase = Phase.VISIBLE
    start_time: float = 0.0
    phase_start: float = 0.0
    blank_start: float = 0.0


@dataclass(frozen=True)
class TickDecision:
    """What a single tick should do.

    Attributes:
        action: Draw the frame, draw nothing, or end the trial.
        index: Frame index to draw, ``None`` for blank/end ticks.
        phase: Phase the tick belongs to.
        elapsed_s: Seconds since the first tick.
        phase_s: Seconds since the current displayed frame began.
        size_step: Whether the displayed frame changed on this tick, i.e.
            whether the size controller must step exactly once.
    """

    action: TickAction
    index: Optional[int]
    phase: Phase
    elapsed_s: float
    phase_s: float
    size_step: bool = False


def target_index(
    elapsed_s: float,
    duration_s: float,
    total_frames: int,
    reverse: bool = False,
) -> int:
    """Map elapsed time to a frame index.

    ``floor(clamp(elapsed / duration, 0, 1) * total_frames)``, mirrored for
    reverse playback and clamped to ``[0, total_frames - 1]``.
    """
    if total_frames <= 0:
        return 0
    fraction = elapsed_s / duration_s if duration_s > 0 else 1.0
    fraction = min(max(fraction, 0.0), 1.0)
    raw = int(math.floor(fraction * total_frames))
    if reverse:
        raw = total_frames - 1 - raw
    return min(max(raw, 0), total_frames - 1)


def _advance(
    params: ScheduleParams,
    state: FrameState,
    now: float,
    elapsed: float,
) -> Tuple[FrameState, TickDecision]:
    new_index = target_index(elapsed, params.duration_s, params.total_frames, params.reverse)
    changed = new_index != state.index
    state = replace(
        state,
        index=new_index,
        phase=Phase.VISIBLE,
        phase_start=now,
        blank_start=now,
    )
    return state, TickDecision(
        TickAction.DRAW, new_index, Phase.VISIBLE, elapsed, 0.0, size_step=changed
    )


def decide(
    params: ScheduleParams,
    state: FrameState,
    now: float,
) -> Tuple[FrameState, TickDecision]:
    """Compute the next scheduler state and the action for one tick.

    Args:
        params: Trial timing parameters.
        state: State returned by the previous call (or a fresh ``FrameState``).
        now: Current timestamp in seconds (any monotonic origin).

    Returns:
        ``(next_state, decision)``. ``state`` itself is never modified.
    """
    if state.status is TrialStatus.ENDED:
        return state, TickDecision(TickAction.END, None, state.phase, 0.0, 0.0)

    if state.status is TrialStatus.IDLE:
        state = replace(
            state,
            status=TrialStatus.RUNNING,
            start_time=now,
            phase_start=now,
            blank_start=now,
        )

    elapsed = now - state.start_time
    phase_s = now - state.phase_start

    if params.total_frames <= 0 or elapsed >= params.duration_s:
        ended = replace(state, status=TrialStatus.ENDED)
        return ended, TickDecision(TickAction.END, None, state.phase, elapsed, phase_s)

    if state.index is None:
        first = target_index(elapsed, params.duration_s, params.total_frames, params.reverse)
        state = replace(state, index=first, phase=Phase.VISIBLE, phase_start=now, blank_start=now)
        return state, TickDecision(TickAction.DRAW, first, Phase.VISIBLE, elapsed, 0.0)

    if params.isi_mode == "hold":
        if phase_s * 1000.0 + _TIMER_EPS_MS >= params.hold_ms:
            return _advance(params, state, now, elapsed)
        state = replace(state, phase=Phase.HOLD_WAIT)
        return state, TickDecision(
            TickAction.DRAW, state.index, Phase.HOLD_WAIT, elapsed, phase_s
        )

    gap_ms = (now - state.blank_start) * 1000.0
    if params.isi_ms <= 0 or gap_ms + _TIMER_EPS_MS >= params.isi_ms:
        return _advance(params, state, now, elapsed)
    state = replace(state, phase=Phase.BLANK_WAIT)
    return state, TickDecision(TickAction.BLANK, None, Phase.BLANK_WAIT, elapsed, phase_s)


class FrameScheduler:
    """Stateful wrapper around :func:`decide`.

    Args:
        params: Trial timing parameters.
    """

    def __init__(self, params: ScheduleParams) -> None:
        self.params = params
        self.state = FrameState()

    def tick(self, now: float) -> TickDecision:
        self.state, decision = decide(self.params, self.state, now)
        return decision

    def end(self) -> None:
        """Force the trial into ``ENDED`` (used on cancellation)."""
        self.state = replace(self.state, status=TrialStatus.ENDED)

    @property
    def status(self) -> TrialStatus:
        return self.state.status

    @property
    def index(self) -> Optional[int]:
        return self.state.index

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def is_ended(self) -> bool:
        return self.state.status is TrialStatus.ENDED
