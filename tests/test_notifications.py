import threading

from worktimer.models import TimerState
from worktimer.notifications import NotificationChannel, StateChange


def change(sequence: int, state: TimerState = TimerState.idle()) -> StateChange:
    return StateChange(sequence=sequence, state=state)


class TestNotificationChannel:
    def test_subscribers_receive_changes_in_order(self):
        channel = NotificationChannel()
        first = channel.subscribe()
        second = channel.subscribe()
        for sequence in range(1, 4):
            channel.publish(change(sequence))
        assert [c.sequence for c in first.drain()] == [1, 2, 3]
        assert [c.sequence for c in second.drain()] == [1, 2, 3]

    def test_late_subscriber_gets_latest_replayed(self):
        channel = NotificationChannel()
        channel.publish(change(1))
        channel.publish(change(2, TimerState.running("a")))
        subscription = channel.subscribe()
        [replayed] = subscription.drain()
        assert replayed.sequence == 2
        assert channel.subscribe(replay_latest=False).drain() == []

    def test_get_times_out(self):
        subscription = NotificationChannel().subscribe()
        assert subscription.get(timeout=0.01) is None

    def test_closed_subscription_stops_receiving(self):
        channel = NotificationChannel()
        subscription = channel.subscribe()
        subscription.close()
        channel.publish(change(1))
        assert subscription.closed
        assert subscription.drain() == []
        assert subscription.get(timeout=0.01) is None

    def test_iteration_ends_on_close(self):
        channel = NotificationChannel()
        subscription = channel.subscribe()
        received: list[int] = []

        def consume() -> None:
            for item in subscription:
                received.append(item.sequence)

        consumer = threading.Thread(target=consume)
        consumer.start()
        channel.publish(change(1))
        channel.publish(change(2))
        subscription.close()
        consumer.join(timeout=5)
        assert not consumer.is_alive()
        assert received == [1, 2]

    def test_context_manager_closes(self):
        channel = NotificationChannel()
        with channel.subscribe() as subscription:
            pass
        assert subscription.closed
