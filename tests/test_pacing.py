from discogs_sync.pacing import MinIntervalGate


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_first_call_does_not_wait():
    clock = FakeClock()
    gate = MinIntervalGate(0.5, clock=clock, sleep=clock.sleep)

    assert gate.wait() == 0.0
    assert clock.sleeps == []


def test_waits_only_for_the_remaining_interval():
    clock = FakeClock()
    gate = MinIntervalGate(0.5, clock=clock, sleep=clock.sleep)

    gate.wait()
    clock.now += 0.2
    gate.wait()
    clock.now += 1.0
    gate.wait()

    assert len(clock.sleeps) == 1
    assert abs(clock.sleeps[0] - 0.3) < 1e-9


def test_per_second():
    assert MinIntervalGate.per_second(2.0).min_interval == 0.5
