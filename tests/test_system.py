from __future__ import annotations

import signal

from wifi_ble_prov.services.common import system


class FakeNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


def test_notify_ready_sends_ready_and_status(monkeypatch) -> None:
    notifier = FakeNotifier()
    monkeypatch.setattr(system, '_sd_notifier', notifier)

    system.notify_ready('Advertising as wifi-prov')

    assert notifier.messages == ['READY=1', 'STATUS=Advertising as wifi-prov']


def test_signal_handlers_invoke_shutdown(monkeypatch) -> None:
    installed = {}
    monkeypatch.setattr(signal, 'signal', lambda signum, handler: installed.__setitem__(signum, handler))
    calls = []

    system.setup_signal_handlers(lambda: calls.append('shutdown'))
    installed[signal.SIGTERM](signal.SIGTERM, None)
    installed[signal.SIGINT](signal.SIGINT, None)

    assert calls == ['shutdown', 'shutdown']
