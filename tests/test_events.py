import json

import redis

from src.renderme.infrastructure import events


class FakeRedisClient:
    attempt = 0
    published = []
    publish_should_fail = False

    def ping(self):
        if FakeRedisClient.attempt == 0:
            FakeRedisClient.attempt += 1
            raise redis.ConnectionError("connect failed")

    def publish(self, channel, payload):
        if FakeRedisClient.publish_should_fail:
            FakeRedisClient.publish_should_fail = False
            raise redis.ConnectionError("publish failed")
        FakeRedisClient.published.append((channel, payload))


def _install_fake(monkeypatch, url="redis://localhost:6379/0"):
    FakeRedisClient.attempt = 0
    FakeRedisClient.published = []
    FakeRedisClient.publish_should_fail = False
    monkeypatch.setenv("REDIS_URL", url)
    monkeypatch.setattr(events.redis.Redis, "from_url", staticmethod(lambda *args, **kwargs: FakeRedisClient()))
    events.reset_publisher()


def test_publish_event_without_url_returns_false():
    assert events._get_publisher() is None
    assert events.publish_event("chat.turn_finished", {"chat_id": "c1"}) is False


def test_publisher_recovers_after_connection_failure(monkeypatch):
    _install_fake(monkeypatch)

    publisher = events._get_publisher()
    assert publisher is not None
    assert FakeRedisClient.attempt == 1  # first ping failed

    assert events.publish_event("chat.title_updated", {"chat_id": "c1", "title": "简历优化"}) is True
    channel, payload = FakeRedisClient.published[-1]
    assert channel == "renderme.events.chat.title_updated"
    assert json.loads(payload) == {"chat_id": "c1", "title": "简历优化"}
    assert events._get_publisher() is publisher


def test_publish_failure_is_swallowed(monkeypatch):
    _install_fake(monkeypatch)
    events.publish_event("chat.turn_finished", {"n": 1})

    FakeRedisClient.publish_should_fail = True
    assert events.publish_event("chat.turn_finished", {"n": 2}) is False
    # next publish reconnects
    assert events.publish_event("chat.turn_finished", {"n": 3}) is True
    assert [json.loads(p)["n"] for _, p in FakeRedisClient.published] == [1, 3]
