"""Cooperative session clocks ticking once per second."""


class CountUpClock:
    def __init__(self):
        self.elapsed = 0

    def tick(self) -> bool:
        self.elapsed += 1
        return False


class CountdownClock:
    """Counts down to zero; tick() reports expiry exactly once."""

    def __init__(self, seconds: int):
        self.duration = max(0, int(seconds))
        self.remaining = self.duration
        self.expired = self.duration == 0
        self.paused = False

    def tick(self) -> bool:
        if self.paused or self.expired:
            return False
        self.remaining = max(0, self.remaining - 1)
        return self._check_expiry()

    def deduct(self, seconds: int) -> bool:
        """Take time off the clock. Returns True if this deduction expired it."""
        if self.expired:
            return False
        self.remaining = max(0, self.remaining - int(seconds))
        return self._check_expiry()

    def pause(self) -> None:
        self.paused = True

    def resume(self) -> None:
        self.paused = False

    def reset(self, seconds: int = None) -> None:
        if seconds is not None:
            self.duration = max(0, int(seconds))
        self.remaining = self.duration
        self.expired = self.duration == 0
        self.paused = False

    def _check_expiry(self) -> bool:
        if self.remaining == 0:
            self.expired = True
            return True
        return False


class ReplenishableClock(CountdownClock):
    """Countdown that can gain time back, as in SyntaxSprint."""

    def credit(self, seconds: int) -> None:
        if not self.expired:
            self.remaining += int(seconds)
