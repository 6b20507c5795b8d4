"""Character commands: create an adventurer, view the sheet and reward history."""

from __future__ import annotations

from typing import Sequence

import discord
from discord import app_commands
from discord.ext import commands

from chorequest import (
    AVAILABLE_CLASSES,
    Character,
    ChoreQuestServices,
    InvalidInput,
    RewardRecord,
    calculate_combat_stats,
    create_character,
    experience_for_level,
    load_settings,
)

HISTORY_LIMIT = 10


def format_experience(character: Character) -> str:
    return f"{character.experience} / {experience_for_level(character.level + 1)}"


def format_inventory(character: Character) -> str:
    if not character.inventory:
        return "Empty"
    lines = []
    for entry in character.inventory:
        label = entry.name or entry.item_id
        lines.append(f"{label} ×{entry.quantity}" if entry.quantity > 1 else label)
    return "\n".join(lines)


def format_history(records: Sequence[RewardRecord]) -> str:
    if not records:
        return "No rewards earned yet."
    lines = []
    for record in records:
        bundle = record.bundle
        items = f", {len(bundle.items)} item(s)" if bundle.items else ""
        lines.append(
            f"{record.timestamp:%Y-%m-%d %H:%M} · {record.event_type} ({record.source_id[:12]}): "
            f"{bundle.xp} XP, {bundle.gold} gold{items}"
        )
    return "\n".join(lines)


def build_sheet_embed(character: Character) -> discord.Embed:
    combat = calculate_combat_stats(character.stats)
    embed = discord.Embed(
        title=character.name,
        description=f"Level {character.level} {character.character_class.name}",
        colour=discord.Colour.blurple(),
    )
    embed.add_field(name="Experience", value=format_experience(character), inline=True)
    embed.add_field(name="Gold", value=str(character.gold), inline=True)
    if character.unspent_stat_points:
        embed.add_field(name="Unspent Points", value=str(character.unspent_stat_points), inline=True)
    embed.add_field(name="Stats", value="\n".join(character.stats.as_lines()), inline=False)
    embed.add_field(
        name="Combat",
        value=(
            f"Health {combat.max_health}\n"
            f"Melee {combat.melee_damage} · Ranged {combat.ranged_damage} · Magic {combat.magic_damage}\n"
            f"Healing {combat.heal_power:g}"
        ),
        inline=False,
    )
    embed.add_field(name="Inventory", value=format_inventory(character), inline=False)
    if character.achievements:
        embed.add_field(name="Achievements", value=str(len(character.achievements)), inline=True)
    return embed


class Adventurers(commands.GroupCog, name="character", description="Create and review your adventurer"):
    def __init__(self, bot: commands.Bot) -> None:
        super().__init__()
        self.bot = bot
        services = getattr(bot, "services", None)
        self.services: ChoreQuestServices = services or ChoreQuestServices.from_settings(load_settings())

    @app_commands.command(name="create", description="Create your adventurer")
    @app_commands.choices(
        character_class=[
            app_commands.Choice(name=character_class.name, value=key)
            for key, character_class in AVAILABLE_CLASSES.items()
        ]
    )
    async def character_create(
        self,
        interaction: discord.Interaction,
        name: str,
        character_class: app_commands.Choice[str],
    ) -> None:
        user_id = str(interaction.user.id)
        if await self.services.characters.exists(user_id):
            await interaction.response.send_message(
                "You already have an adventurer. Use /character sheet to view them.",
                ephemeral=True,
            )
            return
        try:
            character = create_character(user_id, name, character_class.value)
        except InvalidInput as exc:
            await interaction.response.send_message(str(exc), ephemeral=True)
            return
        await self.services.characters.save(character)
        await interaction.response.send_message(embed=build_sheet_embed(character), ephemeral=True)

    @app_commands.command(name="sheet", description="View your adventurer")
    async def character_sheet(self, interaction: discord.Interaction) -> None:
        character = await self.services.characters.get(str(interaction.user.id))
        if not character:
            await interaction.response.send_message(
                "You don't have an adventurer yet. Run /character create to begin.",
                ephemeral=True,
            )
            return
        await interaction.response.send_message(embed=build_sheet_embed(character), ephemeral=True)

    @app_commands.command(name="history", description="Show your most recent rewards")
    async def character_history(self, interaction: discord.Interaction) -> None:
        records = await self.services.rewards.reward_history(
            str(interaction.user.id), limit=HISTORY_LIMIT
        )
        await interaction.response.send_message(format_history(records), ephemeral=True)


async def setup(bot: commands.Bot) -> None:
    await bot.add_cog(Adventurers(bot))
