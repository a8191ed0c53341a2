"""Learning trackers: minutes studied per topic against a weekly goal."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from butler.modules.base import Module, find_by_subject, matches, parse_int
from butler.storage import JsonStore, from_dict

if TYPE_CHECKING:
    from butler.connectors.base import IncomingMessage, Keyboard
    from butler.core import Butler

logger = logging.getLogger(__name__)

SUNDAY = 6


@dataclass
class LearningTopic:
    subject: str
    sessions: int = 0
    minutes: int = 0
    last_studied: str | None = None
    goal_minutes: int = 120
    log: list[dict] = field(default_factory=list)

    def minutes_since(self, start: date) -> int:
        return sum(e["minutes"] for e in self.log if date.fromisoformat(e["date"]) >= start)


def week_start(day: date) -> date:
    return day - timedelta(days=day.weekday())


class LearningModule(Module):
    name = "learning"

    def __init__(self, data_dir: Path, reminder_hour: int = 20) -> None:
        self._reminder_hour = reminder_hour
        self._store = JsonStore(data_dir / "learning.json")
        data = self._store.load({"topics": [], "last_reminder": None})
        self.topics: list[LearningTopic] = [from_dict(LearningTopic, t) for t in data.get("topics", [])]
        self.last_reminder: str | None = data.get("last_reminder")

    def save(self) -> None:
        self._store.save({"topics": [asdict(t) for t in self.topics], "last_reminder": self.last_reminder})

    def keyboard(self) -> Keyboard:
        return [
            ["/learning log", "/learning add", "/learning delete"],
            ["/learning", "/learning goal"],
            ["/exit"],
        ]

    def find(self, text: str) -> LearningTopic | None:
        return find_by_subject(self.topics, text, lambda t: t.subject)

    def summary(self, today: date) -> str:
        start = week_start(today)
        lines = []
        for t in self.topics:
            week = t.minutes_since(start)
            lines.append(
                f"{t.subject}: {week}/{t.goal_minutes} min this week, "
                f"{t.minutes} min in {t.sessions} sessions total"
            )
        return "\n".join(lines)

    async def cycle(self, bot: Butler, now: datetime) -> None:
        today = now.date()
        if now.hour != self._reminder_hour or self.last_reminder == today.isoformat():
            return
        self.last_reminder = today.isoformat()
        self.save()

        idle = [t.subject for t in self.topics if t.last_studied != today.isoformat()]
        if idle:
            await bot.send("Nothing logged today for: " + ", ".join(idle), self.keyboard())
        if today.weekday() == SUNDAY and self.topics:
            await bot.send(f"Learning this week:\n{self.summary(today)}")

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        if matches(msg, r"^/learning log"):
            await bot.ask("Which topic did you study?", self._log(bot))
            return True
        if matches(msg, r"^/learning add"):
            await bot.ask("Write the name of the topic to add.", self._add(bot))
            return True
        if matches(msg, r"^/learning delete"):
            await bot.ask("Write the name of the topic to remove.", self._delete(bot))
            return True
        if matches(msg, r"^/learning goal"):
            await bot.ask("Which topic's weekly goal to change?", self._goal(bot))
            return True
        if matches(msg, r"^/learning$"):
            await self.reply(bot, msg, self.summary(msg.timestamp.date()) or "No topics yet.")
            return True
        return False

    def _add(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            subject = msg.text.strip()
            if not subject:
                await self.reply(bot, msg, "Specify which topic to add.")
                return
            if any(t.subject.lower() == subject.lower() for t in self.topics):
                await self.reply(bot, msg, f"Topic {subject} already exists.")
                return
            self.topics.append(LearningTopic(subject=subject))
            self.save()
            await self.reply(bot, msg, f"Added topic {subject}.")

        return callback

    def _delete(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            topic = self.find(msg.text)
            if topic is None:
                await self.reply(bot, msg, "No such topic.")
                return
            self.topics.remove(topic)
            self.save()
            await self.reply(bot, msg, f"Removed topic {topic.subject}.")

        return callback

    def _log(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            topic = self.find(msg.text)
            if topic is None:
                await self.reply(bot, msg, "No such topic.")
                return

            async def on_minutes(m: IncomingMessage) -> None:
                minutes = parse_int(m.text)
                if minutes is None or minutes <= 0:
                    await self.reply(bot, m, "Minutes must be a positive number.")
                    return
                day = m.timestamp.date().isoformat()
                topic.sessions += 1
                topic.minutes += minutes
                topic.last_studied = day
                topic.log.append({"date": day, "minutes": minutes})
                self.save()
                week = topic.minutes_since(week_start(m.timestamp.date()))
                await self.reply(
                    bot, m, f"Logged {minutes} min of {topic.subject} ({week}/{topic.goal_minutes} this week)."
                )

            await bot.ask("How many minutes?", on_minutes)

        return callback

    def _goal(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            topic = self.find(msg.text)
            if topic is None:
                await self.reply(bot, msg, "No such topic.")
                return

            async def on_goal(m: IncomingMessage) -> None:
                minutes = parse_int(m.text)
                if minutes is None or minutes <= 0:
                    await self.reply(bot, m, "Goal must be a positive number of minutes.")
                    return
                topic.goal_minutes = minutes
                self.save()
                await self.reply(bot, m, f"Weekly goal for {topic.subject} is {minutes} min.")

            await bot.ask("Weekly goal in minutes?", on_goal)

        return callback
