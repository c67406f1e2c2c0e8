"""
碼錶 (Clock)

累積經過時間，每秒 tick 一次，並在秒/分/時邊界通知註冊的 listener。
計時器是事件迴圈上的單一 asyncio task，UI 與 workflow 共用同一條執行緒。
"""

import asyncio
import logging
from typing import Callable, Optional

from .duration import Duration

logger = logging.getLogger(__name__)

ROUND_MINUTE = "minute"
ROUND_HOUR = "hour"

Listener = Callable[[Duration], None]


def round_duration(duration: Duration, round_to: str) -> Duration:
    """四捨五入到最接近的分鐘或小時，回傳新的 Duration"""
    rounded = duration.copy()
    if round_to == ROUND_MINUTE:
        carry = rounded.seconds >= 30
        rounded.seconds = 0
        if carry:
            rounded.minutes += 1
            if rounded.minutes == 60:
                rounded.minutes = 0
                rounded.hours += 1
    elif round_to == ROUND_HOUR:
        carry = rounded.minutes >= 30
        rounded.minutes = 0
        rounded.seconds = 0
        if carry:
            rounded.hours += 1
    else:
        raise ValueError(f"round_to must be '{ROUND_MINUTE}' or '{ROUND_HOUR}', got {round_to!r}")
    return rounded


class Clock:
    """碼錶"""

    def __init__(self, interval: float = 1.0):
        """
        初始化碼錶

        Args:
            interval: tick 間隔（秒），測試時可調小
        """
        self.interval = interval
        self._time = Duration()
        self._task: Optional[asyncio.Task] = None

        self._sec_listeners: list[Listener] = []
        self._min_listeners: list[Listener] = []
        self._hour_listeners: list[Listener] = []

    # ----- Listeners -----
    def on_second(self, fn: Listener) -> None:
        self._sec_listeners.append(self._check_listener(fn))

    def on_minute(self, fn: Listener) -> None:
        self._min_listeners.append(self._check_listener(fn))

    def on_hour(self, fn: Listener) -> None:
        self._hour_listeners.append(self._check_listener(fn))

    @staticmethod
    def _check_listener(fn: Listener) -> Listener:
        if not callable(fn):
            raise TypeError(f"listener must be callable, got {type(fn).__name__}")
        return fn

    def _notify(self, listeners: list[Listener]) -> None:
        for listener in listeners:
            try:
                listener(self._time.copy())
            except Exception:
                # 單一 listener 失敗不能讓碼錶停下
                logger.exception("Clock listener %r failed", listener)

    # ----- Public API -----
    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """開始計時（需在事件迴圈中呼叫），已在計時中則不做任何事"""
        if self.is_running:
            return
        if self._time.is_zero():
            self.reset()
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.debug("Clock started at %s", self._time)

    def stop(self, reset_after: bool = False) -> None:
        """停止計時，reset_after 為 True 時歸零"""
        if not self.is_running:
            return
        self._task.cancel()
        self._task = None
        if reset_after:
            self.reset()
        logger.debug("Clock stopped at %s", self._time)

    def reset(self) -> None:
        """歸零（不影響是否在計時）"""
        self._time = Duration()

    def restart(self) -> None:
        self.stop(True)
        self.start()

    async def wait(self) -> None:
        """等待計時器結束（被 stop 或取消為止）"""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def get_time(self, round_to: Optional[str] = None) -> Duration:
        """
        取得目前經過時間

        Args:
            round_to: "minute" 或 "hour"，四捨五入到最接近的單位（不修改目前時間）

        Returns:
            Duration 副本
        """
        if round_to:
            return round_duration(self._time, round_to)
        return self._time.copy()

    def deduct(self, amount: Duration) -> None:
        """
        扣除一段時間

        逐單位相減，不足時向上一個單位借位；無法借位的單位歸零，不會變成負數。
        """
        current = self._time
        sec_changed = min_changed = hour_changed = False

        if amount.seconds:
            current.seconds -= amount.seconds
            sec_changed = True
            while current.seconds < 0 and current.minutes > 0:
                current.seconds += 60
                current.minutes -= 1
                min_changed = True
            current.seconds = max(current.seconds, 0)

        if amount.minutes:
            current.minutes -= amount.minutes
            min_changed = True
            while current.minutes < 0 and current.hours > 0:
                current.minutes += 60
                current.hours -= 1
                hour_changed = True
            current.minutes = max(current.minutes, 0)

        if amount.hours:
            current.hours = max(current.hours - amount.hours, 0)
            hour_changed = True

        if sec_changed:
            self._notify(self._sec_listeners)
        if min_changed:
            self._notify(self._min_listeners)
        if hour_changed:
            self._notify(self._hour_listeners)

    def tick(self) -> None:
        """前進一秒"""
        current = self._time
        min_changed = hour_changed = False

        current.seconds += 1
        if current.seconds == 60:
            current.seconds = 0
            current.minutes += 1
            min_changed = True
        if current.minutes == 60:
            current.minutes = 0
            current.hours += 1
            hour_changed = True

        self._notify(self._sec_listeners)
        if min_changed:
            self._notify(self._min_listeners)
        if hour_changed:
            self._notify(self._hour_listeners)

    async def _run(self) -> None:
        # 以事件迴圈時間為基準排程下一個 tick
        loop = asyncio.get_running_loop()
        next_tick = loop.time() + self.interval
        while True:
            await asyncio.sleep(max(next_tick - loop.time(), 0))
            self.tick()
            next_tick += self.interval
