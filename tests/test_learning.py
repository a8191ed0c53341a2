"""Tests for the learning module."""

from datetime import date, datetime

import pytest

from butler.modules.learning import LearningModule, week_start

from conftest import converse


@pytest.fixture
def learning(bot, data_dir) -> LearningModule:
    module = LearningModule(data_dir, reminder_hour=20)
    bot.add_module(module)
    return module


def test_week_start_is_monday():
    assert week_start(date(2024, 1, 7)) == date(2024, 1, 1)
    assert week_start(date(2024, 1, 1)) == date(2024, 1, 1)


class TestCommands:
    @pytest.mark.asyncio
    async def test_add_and_log(self, bot, connector, learning):
        await converse(bot, "/learning add", "Spanish")
        await converse(bot, "/learning log", "span", "30")
        assert connector.last == "Logged 30 min of Spanish (30/120 this week)."
        topic = learning.topics[0]
        assert topic.sessions == 1
        assert topic.last_studied == "2024-01-01"

    @pytest.mark.asyncio
    async def test_duplicate_topic(self, bot, connector, learning):
        await converse(bot, "/learning add", "Spanish", "/learning add", "spanish")
        assert connector.last == "Topic spanish already exists."
        assert len(learning.topics) == 1

    @pytest.mark.asyncio
    async def test_log_rejects_bad_minutes(self, bot, connector, learning):
        await converse(bot, "/learning add", "Spanish", "/learning log", "Spanish", "-5")
        assert connector.last == "Minutes must be a positive number."
        assert learning.topics[0].minutes == 0

    @pytest.mark.asyncio
    async def test_goal_and_summary(self, bot, connector, learning):
        await converse(bot, "/learning add", "Piano", "/learning goal", "piano", "90")
        assert connector.last == "Weekly goal for Piano is 90 min."
        await converse(bot, "/learning log", "piano", "45", "/learning")
        assert connector.last == "Piano: 45/90 min this week, 45 min in 1 sessions total"

    @pytest.mark.asyncio
    async def test_delete(self, bot, connector, learning):
        await converse(bot, "/learning add", "Piano", "/learning delete", "pia")
        assert learning.topics == []
        await converse(bot, "/learning delete", "pia")
        assert connector.last == "No such topic."


class TestReminder:
    @pytest.mark.asyncio
    async def test_weekday_reminder(self, bot, connector, learning):
        await converse(bot, "/learning add", "Piano")
        connector.sent.clear()
        await learning.cycle(bot, datetime(2024, 1, 2, 20, 0))
        await learning.cycle(bot, datetime(2024, 1, 2, 20, 1))
        assert connector.texts == ["Nothing logged today for: Piano"]

    @pytest.mark.asyncio
    async def test_no_reminder_when_studied(self, bot, connector, learning):
        await converse(bot, "/learning add", "Piano", "/learning log", "Piano", "20")
        connector.sent.clear()
        await learning.cycle(bot, datetime(2024, 1, 1, 20, 0))
        assert connector.sent == []

    @pytest.mark.asyncio
    async def test_sunday_summary(self, bot, connector, learning):
        await converse(bot, "/learning add", "Piano", "/learning log", "Piano", "20")
        connector.sent.clear()
        await learning.cycle(bot, datetime(2024, 1, 7, 20, 0))
        assert connector.texts == [
            "Nothing logged today for: Piano",
            "Learning this week:\nPiano: 20/120 min this week, 20 min in 1 sessions total",
        ]
