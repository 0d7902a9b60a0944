"""Time source for the workflow services.

Services take a clock at construction so tests can pin "now" instead of
reading the wall clock.
"""
from django.utils import timezone


class SystemClock:
    def now(self):
        return timezone.now()


class FixedClock:
    def __init__(self, moment):
        self.moment = moment

    def now(self):
        return self.moment

    def advance(self, delta):
        self.moment = self.moment + delta
        return self.moment


default_clock = SystemClock()
