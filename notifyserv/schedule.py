import abc

from tempora import schedule


class IScheduler(metaclass=abc.ABCMeta):
    """
    Time-based work for the reactor, run between reads.
    """

    @abc.abstractmethod
    def execute_every(self, period, func):
        "execute func every period"

    @abc.abstractmethod
    def execute_after(self, delay, func):
        "execute func after delay (in seconds)"

    @abc.abstractmethod
    def run_pending(self):
        "invoke the functions that are due"


class DefaultScheduler(schedule.InvokeScheduler, IScheduler):
    def execute_every(self, period, func):
        self.add(schedule.PeriodicCommand.after(period, func))

    def execute_after(self, delay, func):
        self.add(schedule.DelayedCommand.after(delay, func))
