from __future__ import annotations

import heapq
import itertools
from typing import Callable, List, Optional, Tuple


class TimerHandle:
    def __init__(self, due_ms: int, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not self.cancelled and not self.fired


class Scheduler:
    """
    Таймеры поверх внешних часов.

    Часы: любая функция, возвращающая миллисекунды (pygame.time.get_ticks
    в игре, ManualClock в тестах). Scheduler сам ничего не ждёт: главный цикл
    вызывает poll() каждый кадр, и все просроченные таймеры срабатывают
    в порядке due_ms.
    """

    def __init__(self, clock: Callable[[], int]) -> None:
        self._clock = clock
        self._queue: List[Tuple[int, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now_ms(self) -> int:
        return int(self._clock())

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self.now_ms() + max(0, int(delay_ms)), callback)
        heapq.heappush(self._queue, (handle.due_ms, next(self._seq), handle))
        return handle

    def pending_count(self) -> int:
        return sum(1 for _, _, h in self._queue if h.pending)

    def next_due_ms(self) -> Optional[int]:
        self._drop_cancelled()
        if not self._queue:
            return None
        return self._queue[0][0]

    def poll(self) -> int:
        """Запускает все таймеры, чей срок наступил. Возвращает сколько сработало."""
        fired = 0
        now = self.now_ms()
        while True:
            self._drop_cancelled()
            if not self._queue or self._queue[0][0] > now:
                return fired
            _, _, handle = heapq.heappop(self._queue)
            handle.fired = True
            handle.callback()
            fired += 1

    def _drop_cancelled(self) -> None:
        while self._queue and not self._queue[0][2].pending:
            heapq.heappop(self._queue)


class ManualClock:
    def __init__(self, start_ms: int = 0) -> None:
        self.value = start_ms

    def __call__(self) -> int:
        return self.value


class ManualScheduler(Scheduler):
    """
    Детерминированный scheduler для тестов: время двигаем руками.

    advance() выставляет часы ровно на due_ms каждого таймера перед его
    запуском, поэтому RT и переходы считаются без погрешности кадра.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self.clock = ManualClock(start_ms)
        super().__init__(self.clock)

    def advance(self, delta_ms: int) -> int:
        target = self.clock.value + int(delta_ms)
        fired = 0
        while True:
            due = self.next_due_ms()
            if due is None or due > target:
                break
            self.clock.value = max(self.clock.value, due)
            fired += self.poll()
        self.clock.value = target
        return fired
