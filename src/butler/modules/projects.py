"""Projects: weekly schedule of personal projects with hourly reminders.

Every project has an hour of day and a set of weekdays. When the clock
reaches that hour on one of those days the project is suggested in chat,
and the user reports back with ``/projects done``.
"""

from __future__ import annotations

import csv
import functools
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from butler.modules.base import WEEKDAYS, Module, find_by_subject, matches, parse_int, string_includes
from butler.storage import JsonStore, from_dict

if TYPE_CHECKING:
    from butler.connectors.base import IncomingMessage, Keyboard
    from butler.core import Butler

logger = logging.getLogger(__name__)


@dataclass
class Project:
    subject: str
    time: int = 18
    days: list[int] = field(default_factory=list)
    suggested_times: int = 0
    done_times: int = 0


@dataclass
class ProjectEntry:
    """One suggestion or one reported work session."""

    subject: str
    suggested: int = 0
    done: int = 0
    created: str = ""
    updated: str = ""


def compare_projects(a: Project, b: Project) -> int:
    """Order by day lists element-wise, longer list first on a shared prefix, then hour."""
    depth = 0
    while True:
        if len(a.days) > depth and len(b.days) > depth:
            if a.days[depth] != b.days[depth]:
                return a.days[depth] - b.days[depth]
        elif len(a.days) != len(b.days):
            return len(b.days) - len(a.days)
        else:
            return a.time - b.time
        depth += 1


def format_days(project: Project) -> str:
    return ", ".join(WEEKDAYS[d] for d in project.days)


def done_percent(project: Project) -> str:
    if not project.suggested_times:
        return "0.00"
    return f"{project.done_times * 100 / project.suggested_times:.2f}"


class ProjectsModule(Module):
    name = "projects"

    def __init__(self, data_dir: Path, default_hour: int = 18) -> None:
        self._data_dir = data_dir
        self._default_hour = default_hour
        self._store = JsonStore(data_dir / "projects.json")
        data = self._store.load({"projects": [], "total_days": 0, "entries": []})
        self.projects: list[Project] = [from_dict(Project, p) for p in data.get("projects", [])]
        self.entries: list[ProjectEntry] = [from_dict(ProjectEntry, e) for e in data.get("entries", [])]
        self.total_days: int = data.get("total_days", 0)
        self.last_hour_checked: int = -1
        logger.info("Read %d projects.", len(self.projects))

    def save(self) -> None:
        self._store.save(
            {
                "projects": [asdict(p) for p in self.projects],
                "total_days": self.total_days,
                "entries": [asdict(e) for e in self.entries],
            }
        )

    def keyboard(self) -> Keyboard:
        return [
            ["/projects done", "/projects add", "/projects delete"],
            ["/projects list", "/projects stats", "/projects export"],
            ["/project add day", "/project remove day", "/project set time"],
            ["/exit"],
        ]

    def find(self, text: str) -> Project | None:
        return find_by_subject(self.projects, text, lambda p: p.subject)

    def sorted_projects(self) -> list[Project]:
        return sorted(self.projects, key=functools.cmp_to_key(compare_projects))

    # ── Cycle ────────────────────────────────────────────────

    async def cycle(self, bot: Butler, now: datetime, force: bool = False) -> None:
        triggered: list[Project] = []
        if force or self.last_hour_checked != now.hour:
            weekday = now.weekday()
            triggered = [p for p in self.projects if p.time == now.hour and weekday in p.days]

        if triggered:
            stamp = now.isoformat(timespec="seconds")
            text = f"Your current projects on {WEEKDAYS[now.weekday()]}:"
            for project in triggered:
                text += f"\n{project.subject} ({project.done_times}/{project.suggested_times})"
                project.suggested_times += 1
                self.entries.append(
                    ProjectEntry(subject=project.subject, suggested=1, created=stamp, updated=stamp)
                )
            self.total_days += 1
            self.save()
            await bot.send(text)

        self.last_hour_checked = now.hour

    # ── Commands ─────────────────────────────────────────────

    async def handle(self, msg: IncomingMessage, bot: Butler) -> bool:
        if matches(msg, r"/projects done"):
            await bot.ask("Write the name of the project to be marked.", self._mark_done(bot))
            return True
        if matches(msg, r"/projects list"):
            lines = [
                f"\n{p.subject} - {p.time}h, {format_days(p)}." for p in self.sorted_projects()
            ]
            await self.reply(bot, msg, "".join(lines) or "No projects yet.")
            return True
        if matches(msg, r"/projects stats"):
            await self.reply(bot, msg, self.stats_text() or "No projects yet.")
            return True
        if matches(msg, r"/projects add"):
            await bot.ask("Write the name of the project to add.", self._add(bot))
            return True
        if matches(msg, r"/projects delete"):
            await bot.ask("Write the name of the project to remove.", self._delete(bot))
            return True
        if matches(msg, r"/project add day"):
            await bot.ask("Write the name of the project to add day to.", self._add_day(bot))
            return True
        if matches(msg, r"/project remove day"):
            await bot.ask("Write the name of the project to remove day from.", self._remove_day(bot))
            return True
        if matches(msg, r"/project set time"):
            await bot.ask("Write the name of the project to change time.", self._set_time(bot))
            return True
        if matches(msg, r"/projects export"):
            path = self.export()
            await bot.send_document(path, "Projects stats")
            return True
        if matches(msg, r"^/projects force$"):
            await self.cycle(bot, datetime.now(), force=True)
            return True
        if matches(msg, r"^/projects$"):
            await self.reply(
                bot,
                msg,
                f"Projects module.\n{len(self.projects)} projects, {self.total_days} reminder days.",
            )
            return True
        return False

    def stats_text(self) -> str:
        seen: set[str] = set()
        text = ""
        for p in self.sorted_projects():
            if p.subject in seen:
                continue
            text += f"\n{p.subject} ({p.done_times} / {p.suggested_times}, {done_percent(p)}%)"
            seen.add(p.subject)
        return text

    def export(self) -> Path:
        path = self._data_dir / "projects_stats.csv"
        with path.open("w", newline="", encoding="utf-8") as f:
            writer = csv.writer(f)
            writer.writerow(["subject", "time", "days", "suggested", "done", "percent"])
            for p in self.sorted_projects():
                writer.writerow(
                    [p.subject, p.time, " ".join(str(d) for d in p.days),
                     p.suggested_times, p.done_times, done_percent(p)]
                )
        return path

    def _mark_done(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            project = self.find(msg.text)
            if project is None:
                await self.reply(bot, msg, "No such project.")
                return

            project.done_times += 1
            stamp = msg.timestamp.isoformat(timespec="seconds")
            undone = [e for e in self.entries if e.subject == project.subject and not e.done]
            if undone:
                undone[0].done = 1
                undone[0].updated = stamp
                text = f"Marked project {project.subject} worked on."
            else:
                self.entries.append(ProjectEntry(subject=project.subject, done=1, created=stamp, updated=stamp))
                text = f"New work entry for {project.subject}."
            self.save()
            await self.reply(bot, msg, text)

        return callback

    def _add(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            subject = msg.text.strip()
            if not subject:
                await self.reply(bot, msg, "Specify which project to add.")
                return
            self.projects.append(Project(subject=subject, time=self._default_hour))
            self.save()
            await self.reply(bot, msg, f"Added project {subject}.")

        return callback

    def _delete(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            subject = msg.text.strip()
            if not subject:
                await self.reply(bot, msg, "Specify which project to remove.")
                return
            self.projects = [p for p in self.projects if not string_includes(p.subject, subject)]
            self.save()
            await self.reply(bot, msg, f"Removed project {subject}.")

        return callback

    def _add_day(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            project = self.find(msg.text)
            if project is None:
                await self.reply(bot, msg, "No such project.")
                return

            async def on_day(m: IncomingMessage) -> None:
                day = parse_int(m.text)
                if day is None or not 0 <= day <= 6:
                    await self.reply(bot, m, "Project days must be in range [0,6].")
                    return
                if day in project.days:
                    await self.reply(bot, m, "Project already has this day in schedule.")
                    return
                project.days = sorted(project.days + [day])
                self.save()
                await self.reply(
                    bot, m,
                    f"Added day {day} to the project {project.subject}. "
                    f"Now its schedule is {format_days(project)}.",
                )

            await bot.ask("Write number of the day to add to the project.", on_day)

        return callback

    def _remove_day(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            project = self.find(msg.text)
            if project is None:
                await self.reply(bot, msg, "No such project.")
                return

            async def on_day(m: IncomingMessage) -> None:
                day = parse_int(m.text)
                if day is None or not 0 <= day <= 6:
                    await self.reply(bot, m, "Project days must be in range [0,6].")
                    return
                if day not in project.days:
                    await self.reply(bot, m, "Project doesn't have this day in schedule.")
                    return
                project.days = [d for d in project.days if d != day]
                self.save()
                await self.reply(
                    bot, m,
                    f"Removed day {day} from the project {project.subject}. "
                    f"Now its schedule is {format_days(project)}.",
                )

            await bot.ask("Write number of the day to remove from the project.", on_day)

        return callback

    def _set_time(self, bot: Butler):
        async def callback(msg: IncomingMessage) -> None:
            project = self.find(msg.text)
            if project is None:
                await self.reply(bot, msg, "No such project.")
                return

            async def on_time(m: IncomingMessage) -> None:
                hour = parse_int(m.text)
                if hour is None or not 0 <= hour <= 23:
                    await self.reply(bot, m, "Project time must be in range [0,23].")
                    return
                project.time = hour
                self.save()
                await self.reply(bot, m, f"Set project {project.subject} time to {hour}.")

            await bot.ask("Write time.", on_time)

        return callback
