"""Party quest board: add chores, share them out and complete them."""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional, Sequence

import discord
from discord import app_commands
from discord.ext import commands

from chorequest import (
    DIFFICULTIES,
    FREQUENCIES,
    TASK_CATEGORIES,
    Character,
    ChoreQuestServices,
    CompletionResult,
    DistributionResult,
    InvalidInput,
    NotFoundError,
    PartyMember,
    RewardBundle,
    RewardLogError,
    Task,
    TaskNotFound,
    TaskRewardConfig,
    load_settings,
)

log = logging.getLogger(__name__)

MAX_BOARD_LINES = 20


def _label(value: str) -> str:
    return value.replace("_", " ").title()


def format_bundle(bundle: RewardBundle) -> str:
    parts = [f"{bundle.xp} XP", f"{bundle.gold} gold"]
    if bundle.items:
        parts.append(", ".join(f"{item.name} ({item.rarity})" for item in bundle.items))
    return " · ".join(parts)


def format_task_line(task: Task, names: Mapping[str, str] | None = None) -> str:
    owner = "unassigned"
    if task.assigned_to:
        owner = (names or {}).get(task.assigned_to, f"<@{task.assigned_to}>")
    return (
        f"`{task.task_id[:8]}` **{task.title}** "
        f"({_label(task.difficulty)}, {_label(task.frequency)}) → {owner}"
    )


def party_members(characters: Iterable[Character], present: Optional[Iterable[str]] = None) -> list[PartyMember]:
    """Turn stored characters into distribution members, optionally filtered by presence."""

    allowed = {str(user_id) for user_id in present} if present is not None else None
    members = [
        PartyMember(member_id=character.user_id, level=character.level, name=character.name)
        for character in characters
        if allowed is None or character.user_id in allowed
    ]
    members.sort(key=lambda member: member.member_id)
    return members


def format_distribution(result: DistributionResult, names: Mapping[str, str]) -> str:
    if not result.assignments:
        return "There were no unassigned quests to hand out."
    lines = [format_task_line(task, names) for task in result.tasks]
    if not result.fair:
        lines.append(
            f"⚠️ Workloads are uneven (spread {result.spread:.0%}); consider adding more quests."
        )
    return "\n".join(lines)


def format_completion(result: CompletionResult) -> str:
    lines = [f"**{result.task.title}** completed!"]
    for action, bundle in zip(result.actions, result.combat_rewards):
        lines.append(
            f"{_label(action.attack_type)} attack on {action.target}: "
            f"{action.damage:g} damage → {format_bundle(bundle)}"
        )
    lines.append(f"Quest reward: {format_bundle(result.task_reward)}")
    lines.append(f"Total: {result.total_xp} XP, {result.total_gold} gold")
    return "\n".join(lines)


def _resolve_task_id(tasks: Sequence[Task], value: str) -> str:
    """Match ``value`` against this party's task ids, exactly or by unique prefix."""

    cleaned = value.strip()
    if any(task.task_id == cleaned for task in tasks):
        return cleaned
    matches = [task.task_id for task in tasks if cleaned and task.task_id.startswith(cleaned)]
    if len(matches) > 1:
        raise InvalidInput(f"'{cleaned}' matches {len(matches)} quests; use more of the id")
    if not matches:
        raise TaskNotFound(cleaned)
    return matches[0]


class QuestBoard(commands.GroupCog, name="quest", description="Manage your party's household quests"):
    def __init__(self, bot: commands.Bot) -> None:
        super().__init__()
        self.bot = bot
        services = getattr(bot, "services", None)
        self.services: ChoreQuestServices = services or ChoreQuestServices.from_settings(load_settings())

    @app_commands.command(name="add", description="Post a new quest on the party board")
    @app_commands.describe(item_chance="Chance (0-1) that completing the quest drops an item")
    @app_commands.choices(
        difficulty=[app_commands.Choice(name=_label(value), value=value) for value in DIFFICULTIES],
        frequency=[app_commands.Choice(name=_label(value), value=value) for value in FREQUENCIES],
        category=[app_commands.Choice(name=_label(value), value=value) for value in TASK_CATEGORIES],
    )
    async def quest_add(
        self,
        interaction: discord.Interaction,
        title: str,
        difficulty: app_commands.Choice[str],
        frequency: app_commands.Choice[str],
        category: Optional[app_commands.Choice[str]] = None,
        description: str = "",
        item_chance: app_commands.Range[float, 0.0, 1.0] = 0.0,
    ) -> None:
        if not interaction.guild:
            await interaction.response.send_message(
                "Quests can only be posted inside servers.",
                ephemeral=True,
            )
            return
        try:
            task = await self.services.tasks.create(
                str(interaction.guild.id),
                title=title,
                difficulty=difficulty.value,
                frequency=frequency.value,
                category=category.value if category else "chores",
                description=description,
                rewards=TaskRewardConfig(item_chance=float(item_chance)),
            )
        except InvalidInput as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        await interaction.response.send_message(f"Quest posted: {format_task_line(task)}")

    @app_commands.command(name="board", description="Show the open quests for this server")
    async def quest_board(self, interaction: discord.Interaction) -> None:
        if not interaction.guild:
            await interaction.response.send_message(
                "The quest board is only available inside servers.",
                ephemeral=True,
            )
            return
        tasks = await self.services.tasks.list_party_tasks(str(interaction.guild.id))
        if not tasks:
            await interaction.response.send_message(
                "The quest board is empty. Use /quest add to post one.",
                ephemeral=True,
            )
            return
        characters = await self.services.characters.list_characters(
            task.assigned_to for task in tasks if task.assigned_to
        )
        names = {user_id: character.name for user_id, character in characters.items()}
        lines = [format_task_line(task, names) for task in tasks[:MAX_BOARD_LINES]]
        if len(tasks) > MAX_BOARD_LINES:
            lines.append(f"…and {len(tasks) - MAX_BOARD_LINES} more.")
        embed = discord.Embed(
            title="Quest Board",
            description="\n".join(lines),
            colour=discord.Colour.gold(),
        )
        await interaction.response.send_message(embed=embed)

    @app_commands.command(name="distribute", description="Share unassigned quests fairly across the party")
    async def quest_distribute(self, interaction: discord.Interaction) -> None:
        guild = interaction.guild
        if not guild:
            await interaction.response.send_message(
                "Quests can only be distributed inside servers.",
                ephemeral=True,
            )
            return
        characters = await self.services.characters.list_characters()
        present = [user_id for user_id in characters if guild.get_member(int(user_id)) is not None]
        members = party_members(characters.values(), present)
        if not members:
            await interaction.response.send_message(
                "Nobody in this server has a character yet. Run /character create first.",
                ephemeral=True,
            )
            return
        result = await self.services.distributor.distribute_party(str(guild.id), members)
        names = {member.member_id: member.name for member in members}
        await interaction.response.send_message(format_distribution(result, names))

    @app_commands.command(name="complete", description="Complete a quest and attack the party's foes")
    @app_commands.describe(task_id="The quest id shown on the board (a unique prefix is enough)")
    async def quest_complete(self, interaction: discord.Interaction, task_id: str) -> None:
        if not interaction.guild:
            await interaction.response.send_message(
                "Quests can only be completed inside servers.",
                ephemeral=True,
            )
            return
        tasks = await self.services.tasks.list_party_tasks(
            str(interaction.guild.id), include_completed=True
        )
        try:
            resolved = _resolve_task_id(tasks, task_id)
            result = await self.services.completions.complete_task(resolved, str(interaction.user.id))
        except (NotFoundError, InvalidInput) as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        except RewardLogError as exc:
            log.warning("Reward history incomplete for %s: %s", interaction.user.id, exc)
            await interaction.response.send_message(
                f"Quest completed and {format_bundle(exc.bundle)} granted, "
                "but your reward history could not be updated.",
                ephemeral=True,
            )
            return
        await interaction.response.send_message(format_completion(result))


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(QuestBoard(bot))
