from __future__ import annotations

import logging
import random
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from ..core.feature_state import FeatureState
from ..core.wording import random_auto_reply


logger = logging.getLogger(__name__)

MAX_AUTO_REPLY_LENGTH = 21


class ModerationCog(commands.Cog):
    """Auto-disconnect, auto-reply and announcement crossposting."""

    def __init__(
        self,
        bot: commands.Bot,
        feature_state: FeatureState,
        *,
        dev_mode: bool = False,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.bot = bot
        self.feature_state = feature_state
        self.dev_mode = dev_mode
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Slash commands
    # ------------------------------------------------------------------
    @app_commands.command(name="auto-disconnect", description="Déconnecte automatiquement un utilisateur des salons vocaux")
    @app_commands.describe(target="L'utilisateur à déconnecter automatiquement. Laisser vide pour désactiver")
    @app_commands.default_permissions(move_members=True)
    @app_commands.guild_only()
    async def auto_disconnect(self, interaction: discord.Interaction, target: Optional[discord.Member] = None) -> None:
        await self.feature_state.set_auto_disconnect(target.id if target else None)

        if target is None:
            logger.info("Auto-disconnect disabled by %s", interaction.user)
            await interaction.response.send_message(
                "Déconnexion automatique désactivée, c'est bien de laisser les gens vivre !", ephemeral=True
            )
            return

        logger.info("Auto-disconnect enabled by %s for %s", interaction.user, target)
        await interaction.response.send_message("Déconnexion automatique activé, un vrai 😈 😈 😈", ephemeral=True)

    @app_commands.command(name="auto-reply", description="Pour répondre automatiquement lorsqu'une personne vous mentionne")
    @app_commands.describe(
        target="L'utilisateur à répondre automatiquement.",
        disable="Renseigner pour désactiver la réponse automatique pour l'utilisateur",
    )
    @app_commands.rename(disable="désactiver")
    @app_commands.choices(disable=[app_commands.Choice(name="oui", value="oui")])
    @app_commands.guild_only()
    async def auto_reply(
        self,
        interaction: discord.Interaction,
        target: discord.User,
        disable: Optional[app_commands.Choice[str]] = None,
    ) -> None:
        user_id = interaction.user.id

        if disable is not None:
            await self.feature_state.delete_auto_reply(user_id, target.id)
            logger.info("AutoReply deactivated for %s to reply to %s", interaction.user, target)
            await interaction.response.send_message(f"Réponse automatique désactiver pour <@{target.id}>", ephemeral=True)
            return

        if not await self.feature_state.add_auto_reply(user_id, target.id):
            logger.info("AutoReply already activated for %s to reply to %s", interaction.user, target)
            await interaction.response.send_message(
                f"Tu as déjà une réponse automatique mis en place pour <@{target.id}>", ephemeral=True
            )
            return

        logger.info("AutoReply activated for %s to reply to %s", interaction.user, target)
        await interaction.response.send_message(f"Réponse automatique mis en place pour <@{target.id}>", ephemeral=True)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_voice_state_update(
        self, member: discord.Member, before: discord.VoiceState, after: discord.VoiceState
    ) -> None:
        target = self.feature_state.auto_disconnect
        if target is None or member.id != target:
            return
        if after.channel is None or before.channel == after.channel:
            return

        logger.debug("Disconnect user %s because auto-disconnect set for him", member)
        try:
            await member.move_to(None)
        except discord.HTTPException as exc:
            logger.warning("Unable to disconnect %s: %s", member, exc)

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if self.dev_mode:
            return

        if getattr(message.channel, "type", None) == discord.ChannelType.news:
            logger.debug("📢 Announcement message received")
            try:
                await message.crosspost()
            except discord.HTTPException as exc:
                logger.error("Failed to crosspost announcement message: %s", exc)
            return

        await self.auto_reply_to(message)

    async def auto_reply_to(self, message: discord.Message) -> bool:
        """Answer ``message`` when its author mentions someone with an auto-reply on them."""

        if message.author.bot or not message.mentions or message.reference is not None:
            return False
        if len(message.content) > MAX_AUTO_REPLY_LENGTH:
            return False

        mentioned = {user.id for user in message.mentions}
        rules = self.feature_state.replies_for(message.author.id)
        if not any(rule["activate_for"] in mentioned for rule in rules):
            return False

        logger.info("Auto-reply triggered for %s", message.author)
        await message.reply(random_auto_reply(message.author.id, self.rng))
        return True


__all__ = ["ModerationCog"]
