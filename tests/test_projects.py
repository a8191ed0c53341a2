"""Tests for the projects module."""

import csv
import functools
from datetime import datetime

import pytest

from butler.modules.projects import Project, ProjectsModule, compare_projects, format_days

from conftest import MONDAY_18, converse


@pytest.fixture
def projects(bot, data_dir) -> ProjectsModule:
    module = ProjectsModule(data_dir)
    bot.add_module(module)
    return module


def add_project(module: ProjectsModule, subject: str, time: int = 18, days=None) -> Project:
    project = Project(subject=subject, time=time, days=days or [])
    module.projects.append(project)
    module.save()
    return project


class TestDialogs:
    @pytest.mark.asyncio
    async def test_add(self, bot, connector, projects):
        await converse(bot, "/projects add", "Guitar")
        assert connector.texts == ["Write the name of the project to add.", "Added project Guitar."]
        assert projects.projects[0].subject == "Guitar"
        assert projects.projects[0].time == 18
        assert projects.projects[0].days == []

    @pytest.mark.asyncio
    async def test_add_persists(self, bot, projects, data_dir):
        await converse(bot, "/projects add", "Guitar")
        reloaded = ProjectsModule(data_dir)
        assert [p.subject for p in reloaded.projects] == ["Guitar"]

    @pytest.mark.asyncio
    async def test_delete_removes_all_matches(self, bot, connector, projects):
        add_project(projects, "Guitar basics")
        add_project(projects, "Guitar solos")
        add_project(projects, "Chess")
        await converse(bot, "/projects delete", "Guitar")
        assert [p.subject for p in projects.projects] == ["Chess"]
        assert connector.last == "Removed project Guitar."

    @pytest.mark.asyncio
    async def test_delete_ignores_case(self, bot, connector, projects):
        add_project(projects, "Guitar")
        await converse(bot, "/projects delete", "guitar")
        assert projects.projects == []

    @pytest.mark.asyncio
    async def test_add_day(self, bot, connector, projects):
        project = add_project(projects, "Guitar", days=[4])
        await converse(bot, "/project add day", "guit", "0")
        assert project.days == [0, 4]
        assert connector.last == (
            "Added day 0 to the project Guitar. Now its schedule is Monday, Friday."
        )

    @pytest.mark.asyncio
    async def test_add_day_out_of_range(self, bot, connector, projects):
        project = add_project(projects, "Guitar")
        await converse(bot, "/project add day", "Guitar", "7")
        assert connector.last == "Project days must be in range [0,6]."
        assert project.days == []

    @pytest.mark.asyncio
    async def test_add_day_not_a_number(self, bot, connector, projects):
        add_project(projects, "Guitar")
        await converse(bot, "/project add day", "Guitar", "monday")
        assert connector.last == "Project days must be in range [0,6]."

    @pytest.mark.asyncio
    async def test_add_existing_monday(self, bot, connector, projects):
        add_project(projects, "Guitar", days=[0])
        await converse(bot, "/project add day", "Guitar", "0")
        assert connector.last == "Project already has this day in schedule."

    @pytest.mark.asyncio
    async def test_remove_day(self, bot, connector, projects):
        project = add_project(projects, "Guitar", days=[0, 2])
        await converse(bot, "/project remove day", "Guitar", "0")
        assert project.days == [2]
        await converse(bot, "/project remove day", "Guitar", "5")
        assert connector.last == "Project doesn't have this day in schedule."

    @pytest.mark.asyncio
    async def test_unknown_project(self, bot, connector, projects):
        await converse(bot, "/project add day", "Nothing")
        assert connector.last == "No such project."
        assert not bot.waiting

    @pytest.mark.asyncio
    async def test_set_time(self, bot, connector, projects):
        project = add_project(projects, "Guitar")
        await converse(bot, "/project set time", "Guitar", "24")
        assert connector.last == "Project time must be in range [0,23]."
        await converse(bot, "/project set time", "Guitar", "7")
        assert project.time == 7
        assert connector.last == "Set project Guitar time to 7."

    @pytest.mark.asyncio
    async def test_done_marks_open_suggestion(self, bot, connector, projects):
        project = add_project(projects, "Guitar", days=[0])
        await projects.cycle(bot, MONDAY_18)
        await converse(bot, "/projects done", "guitar")
        assert project.done_times == 1
        assert connector.last == "Marked project Guitar worked on."
        assert projects.entries[0].done == 1

    @pytest.mark.asyncio
    async def test_done_without_suggestion(self, bot, connector, projects):
        add_project(projects, "Guitar")
        await converse(bot, "/projects done", "Guitar")
        assert connector.last == "New work entry for Guitar."
        assert len(projects.entries) == 1
        assert projects.entries[0].suggested == 0

    @pytest.mark.asyncio
    async def test_exit_abandons_dialog(self, bot, connector, projects):
        await converse(bot, "/projects add", "/exit")
        assert projects.projects == []
        assert connector.last == "Cancelled."


class TestListing:
    def test_sort_order(self):
        a = Project("a", time=10, days=[0, 2])
        b = Project("b", time=10, days=[0])
        c = Project("c", time=9, days=[1])
        d = Project("d", time=8, days=[0])
        ordered = sorted([c, b, a, d], key=functools.cmp_to_key(compare_projects))
        # [0,2] beats [0] (longer first on shared prefix), [0] at 8h before [0] at 10h
        assert [p.subject for p in ordered] == ["a", "d", "b", "c"]

    def test_format_days(self):
        assert format_days(Project("x", days=[0, 6])) == "Monday, Sunday"

    @pytest.mark.asyncio
    async def test_list(self, bot, connector, projects):
        add_project(projects, "Chess", time=20, days=[2])
        add_project(projects, "Guitar", time=18, days=[0, 4])
        await converse(bot, "/projects list")
        assert connector.last == "\nGuitar - 18h, Monday, Friday.\nChess - 20h, Wednesday."

    @pytest.mark.asyncio
    async def test_stats(self, bot, connector, projects):
        p = add_project(projects, "Guitar")
        p.suggested_times, p.done_times = 4, 1
        add_project(projects, "Chess")
        await converse(bot, "/projects stats")
        assert "Guitar (1 / 4, 25.00%)" in connector.last
        assert "Chess (0 / 0, 0.00%)" in connector.last

    @pytest.mark.asyncio
    async def test_export(self, bot, connector, projects):
        p = add_project(projects, "Guitar", days=[0, 4])
        p.suggested_times, p.done_times = 2, 1
        await converse(bot, "/projects export")
        _, path, _ = connector.documents[0]
        with path.open() as f:
            rows = list(csv.reader(f))
        assert rows[0] == ["subject", "time", "days", "suggested", "done", "percent"]
        assert rows[1] == ["Guitar", "18", "0 4", "2", "1", "50.00"]

    @pytest.mark.asyncio
    async def test_bare_command(self, bot, connector, projects):
        await converse(bot, "/projects")
        assert connector.last.startswith("Projects module.")
        assert connector.sent[-1][2] == projects.keyboard()


class TestCycle:
    @pytest.mark.asyncio
    async def test_triggers_on_hour_and_day(self, bot, connector, projects):
        guitar = add_project(projects, "Guitar", time=18, days=[0])
        add_project(projects, "Chess", time=18, days=[1])
        add_project(projects, "Run", time=7, days=[0])

        await projects.cycle(bot, MONDAY_18)

        assert connector.texts == ["Your current projects on Monday:\nGuitar (0/0)"]
        assert guitar.suggested_times == 1
        assert projects.total_days == 1
        assert projects.entries[0].suggested == 1

    @pytest.mark.asyncio
    async def test_once_per_hour(self, bot, connector, projects):
        add_project(projects, "Guitar", time=18, days=[0])
        await projects.cycle(bot, MONDAY_18)
        await projects.cycle(bot, MONDAY_18.replace(minute=30))
        assert len(connector.sent) == 1

    @pytest.mark.asyncio
    async def test_sunday_matches(self, bot, connector, projects):
        add_project(projects, "Rest", time=10, days=[6])
        await projects.cycle(bot, datetime(2024, 1, 7, 10, 0))
        assert connector.last == "Your current projects on Sunday:\nRest (0/0)"

    @pytest.mark.asyncio
    async def test_nothing_due_sends_nothing(self, bot, connector, projects):
        add_project(projects, "Guitar", time=9, days=[0])
        await projects.cycle(bot, MONDAY_18)
        assert connector.sent == []
        assert projects.total_days == 0

    @pytest.mark.asyncio
    async def test_force_ignores_hour_guard(self, bot, connector, projects):
        add_project(projects, "Guitar", time=18, days=[0])
        await projects.cycle(bot, MONDAY_18)
        await projects.cycle(bot, MONDAY_18, force=True)
        assert len(connector.sent) == 2
        assert connector.last.endswith("Guitar (0/1)")
