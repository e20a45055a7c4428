"""
Named-event notification for the pose detector.
- Listeners are called synchronously, in registration order.
- on() returns an unsubscribe handle.
"""
from typing import Any, Callable, Dict, List

Listener = Callable[..., Any]


class EventEmitter:
    """
    이벤트 채널별 리스너 목록을 관리합니다.
    emit()은 호출 시점의 리스너 스냅샷을 순회하므로, 리스너가 실행 중에 구독을 해제해도 안전합니다.
    """
    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """리스너를 등록하고, 호출하면 등록을 해제하는 함수를 반환합니다."""
        if not callable(listener):
            raise TypeError("listener must be callable")
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe():
            self.off(event, listener)

        return unsubscribe

    def once(self, event: str, listener: Listener) -> Callable[[], None]:
        """한 번만 호출되고 자동으로 해제되는 리스너를 등록합니다."""
        def wrapper(*args):
            self.off(event, wrapper)
            return listener(*args)

        return self.on(event, wrapper)

    def off(self, event: str, listener: Listener) -> None:
        listeners = self._listeners.get(event)
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            return
        if not listeners:
            del self._listeners[event]

    def emit(self, event: str, *args) -> bool:
        """등록된 리스너를 순서대로 호출합니다. 리스너가 하나라도 있었으면 True."""
        listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            listener(*args)
        return bool(listeners)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))
