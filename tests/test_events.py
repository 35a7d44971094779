from olivia.events import Channel


def test_publish_reaches_subscribers_in_order():
    channel = Channel[int]("numbers")
    received = []
    channel.subscribe(lambda value: received.append(("a", value)))
    channel.subscribe(lambda value: received.append(("b", value)))

    channel.publish(1)

    assert received == [("a", 1), ("b", 1)]


def test_unsubscribe_stops_delivery():
    channel = Channel[str]()
    received = []
    unsubscribe = channel.subscribe(received.append)

    channel.publish("first")
    unsubscribe()
    unsubscribe()
    channel.publish("second")

    assert received == ["first"]
    assert len(channel) == 0


def test_failing_subscriber_is_isolated(caplog):
    channel = Channel[int]("numbers")
    received = []

    def broken(value):
        raise ValueError("nope")

    channel.subscribe(broken)
    channel.subscribe(received.append)

    channel.publish(7)

    assert received == [7]
    assert "numbers" in caplog.text
