import discord
from discord.ext import commands
import logging
import asyncio
from dataclasses import dataclass
from typing import Dict, Optional
import os
from pathlib import Path

from .config_manager import ConfigManager
from .models import FeedbackView, QuestionView, ResultSummary
from .playback import PlaybackTimer
from .question_store import QuestionStore
from .session_controller import SessionController, SessionEvent
from .session_state import SessionPhase
from .voice_player import DiscordVoicePlayer

logger = logging.getLogger(__name__)

ERROR_COLOR = 0xff0000
WARNING_COLOR = 0xffaa00
INFO_COLOR = 0x6699ff
QUESTION_COLOR = 0xcb6ce6
CORRECT_COLOR = 0x00cc66

HOW_TO_PLAY_STEPS = [
    ("🎧 Listen", "You'll hear a short snippet from a song"),
    ("❓ Guess", "Guess the title, artist, or release year"),
    ("✅ Score", "Each correct answer earns you 1 point"),
    ("🔁 Replay", "Play again with new questions"),
]

BUTTON_LABEL_LIMIT = 80


def setup_logging(level: str = "INFO", log_directory: str = "./logs/"):
    """Set up logging for debugging and monitoring."""
    logs_dir = Path(log_directory)
    logs_dir.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),  # Console output
            logging.FileHandler(logs_dir / "bot.log", encoding='utf-8'),  # File output
        ]
    )

    # Set up error-specific logging
    error_handler = logging.FileHandler(logs_dir / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logging.getLogger().addHandler(error_handler)

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)

    return logging.getLogger("tune_trivia")


def progress_bar(current: int, total: int, width: int = 10) -> str:
    if total <= 0:
        return "▱" * width
    filled = round(width * current / total)
    return "▰" * filled + "▱" * (width - filled)


def build_question_embed(view: QuestionView, feedback: Optional[FeedbackView] = None) -> discord.Embed:
    """Render the current question and, once answered, its feedback."""
    embed = discord.Embed(
        title=f"🎵 Question {view.number} of {view.total}",
        description=f"**{view.question_text}**",
        color=QUESTION_COLOR
    )
    embed.add_field(name="Progress", value=progress_bar(view.number, view.total), inline=False)
    if view.is_playing:
        embed.add_field(name="🔊 Now playing", value="Listen closely...", inline=False)
    if feedback is not None:
        embed.color = CORRECT_COLOR if feedback.is_correct else ERROR_COLOR
        embed.add_field(name="Result", value=feedback.message, inline=False)
    else:
        embed.set_footer(text="Press ▶ to hear the clip, then pick an answer")
    return embed


def build_result_embed(summary: ResultSummary) -> discord.Embed:
    embed = discord.Embed(
        title=summary.message,
        description=f"You scored **{summary.score}** out of **{summary.total}**",
        color=CORRECT_COLOR if summary.celebrate else QUESTION_COLOR
    )
    embed.add_field(name="Score", value=f"{summary.percentage:.0f}%", inline=True)
    if summary.celebrate:
        embed.add_field(name="🎊", value="🎉🎉🎉", inline=True)
    embed.set_footer(text="Use /play to play again with new questions")
    return embed


def build_how_to_play_embed() -> discord.Embed:
    embed = discord.Embed(
        title="How to Play",
        description="Tune Trivia tests how well you know your music.",
        color=INFO_COLOR
    )
    for title, description in HOW_TO_PLAY_STEPS:
        embed.add_field(name=title, value=description, inline=False)
    embed.set_footer(text="Use /play to start playing")
    return embed


class PlayClipButton(discord.ui.Button):
    def __init__(self, enabled: bool, is_playing: bool):
        super().__init__(
            style=discord.ButtonStyle.primary,
            label="Replay clip" if is_playing else "Play clip",
            emoji="🔁" if is_playing else "▶️",
            disabled=not enabled,
            row=0
        )

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_play_clip(interaction, self.view.channel_id)


class AnswerButton(discord.ui.Button):
    def __init__(self, option: str, style: discord.ButtonStyle, enabled: bool, row: int):
        super().__init__(
            style=style,
            label=option[:BUTTON_LABEL_LIMIT],
            disabled=not enabled,
            row=row
        )
        self.option = option

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_answer(interaction, self.view.channel_id, self.option)


class NextButton(discord.ui.Button):
    def __init__(self):
        super().__init__(style=discord.ButtonStyle.success, label="Next", row=4)

    async def callback(self, interaction: discord.Interaction):
        await self.view.bot.handle_next(interaction, self.view.channel_id)


class TriviaView(discord.ui.View):
    """Buttons for one render of the current question."""

    def __init__(self, bot: "TriviaBot", channel_id: int, owner_id: int,
                 view: QuestionView, feedback: Optional[FeedbackView], show_next: bool):
        super().__init__(timeout=None)
        self.bot = bot
        self.channel_id = channel_id
        self.owner_id = owner_id

        self.add_item(PlayClipButton(enabled=view.can_answer, is_playing=view.is_playing))
        for i, option in enumerate(view.options):
            self.add_item(AnswerButton(
                option,
                style=self._style_for(option, feedback),
                enabled=view.can_answer,
                row=1 + i // 5
            ))
        if feedback is not None and show_next:
            self.add_item(NextButton())

    @staticmethod
    def _style_for(option: str, feedback: Optional[FeedbackView]) -> discord.ButtonStyle:
        if feedback is None:
            return discord.ButtonStyle.secondary
        if option == feedback.correct_answer:
            return discord.ButtonStyle.success
        if option == feedback.selected_answer:
            return discord.ButtonStyle.danger
        return discord.ButtonStyle.secondary

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id == self.owner_id:
            return True
        await interaction.response.send_message(
            "This round belongs to someone else. Use /play to start your own.",
            ephemeral=True
        )
        return False


@dataclass
class ChannelSession:
    """A running trivia session and the message that renders it."""
    controller: SessionController
    owner_id: int
    message: Optional[discord.Message] = None


class TriviaBot(commands.Bot):
    """Discord bot hosting one trivia session per text channel"""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands
        intents.voice_states = True  # Required to find the caller's voice channel

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}
        self.config_manager = ConfigManager()
        self.sessions: Dict[int, ChannelSession] = {}

    async def setup_hook(self):
        """Called when the bot is starting up"""
        logger.info("Setting up bot components...")
        errors = self.config_manager.apply_config(self.app_config.get('quiz', {}))
        for error in errors:
            logger.warning(f"Configuration value rejected: {error}")
        await self.setup_commands()
        logger.info("Bot setup completed successfully")

    async def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="play", description="Start a new round of Tune Trivia")
        async def play_command(interaction: discord.Interaction):
            await self.handle_play(interaction)

        @self.tree.command(name="stop", description="Stop the current round")
        async def stop_command(interaction: discord.Interaction):
            await self.handle_stop(interaction)

        @self.tree.command(name="status", description="Show the score and progress of the current round")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        @self.tree.command(name="howtoplay", description="Explain how Tune Trivia works")
        async def how_to_play_command(interaction: discord.Interaction):
            await self.handle_how_to_play(interaction)

        @self.tree.command(name="help", description="Display available commands")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def close(self):
        for channel_id in list(self.sessions):
            self.end_session(channel_id)
        await super().close()

    # Session management

    def create_controller(self, guild: Optional[discord.Guild]) -> SessionController:
        """Build a fresh session wired to this guild's voice connection."""
        settings = self.config_manager.get_quiz_settings()
        player = DiscordVoicePlayer(lambda: guild.voice_client if guild else None)
        return SessionController(
            QuestionStore(settings.questions_file),
            PlaybackTimer(player, settings.media_ready_timeout),
            settings=settings
        )

    def get_active_session(self, channel_id: int) -> Optional[ChannelSession]:
        session = self.sessions.get(channel_id)
        if session is None or session.controller.is_terminal:
            return None
        return session

    def end_session(self, channel_id: int) -> bool:
        session = self.sessions.pop(channel_id, None)
        if session is None:
            return False
        session.controller.close()
        return True

    async def connect_voice(self, interaction: discord.Interaction) -> None:
        """Join the caller's voice channel if they are in one."""
        voice_state = getattr(interaction.user, "voice", None)
        guild = interaction.guild
        if guild is None or voice_state is None or voice_state.channel is None:
            return
        try:
            if guild.voice_client is None:
                await voice_state.channel.connect()
            elif guild.voice_client.channel != voice_state.channel:
                await guild.voice_client.move_to(voice_state.channel)
        except (discord.ClientException, asyncio.TimeoutError) as e:
            logger.warning(f"Could not join voice channel {voice_state.channel}: {e}")

    def _on_session_event(self, channel_id: int, event: SessionEvent, controller: SessionController) -> None:
        # Controller callbacks are synchronous; rendering happens in a task
        asyncio.get_running_loop().create_task(self.render_session(channel_id, event, controller))

    async def render_session(self, channel_id: int, event: SessionEvent, controller: SessionController) -> None:
        session = self.sessions.get(channel_id)
        if session is None or session.controller is not controller or session.message is None:
            return

        try:
            if event is SessionEvent.COMPLETED:
                await session.message.edit(embed=build_result_embed(controller.result_summary()), view=None)
                self.end_session(channel_id)
                return
            if event is SessionEvent.CLOSED:
                return
            if event is SessionEvent.PLAYBACK_FAILED:
                await session.message.channel.send(
                    embed=discord.Embed(
                        title="⚠️ Playback Error",
                        description=controller.last_playback_error,
                        color=WARNING_COLOR
                    ),
                    delete_after=10
                )
            await self.refresh_question_message(session)
        except discord.HTTPException as e:
            logger.error(f"Failed to render session event {event.value} in channel {channel_id}: {e}")

    def build_view(self, channel_id: int, session: ChannelSession) -> Optional[TriviaView]:
        question_view = session.controller.question_view()
        if question_view is None:
            return None
        return TriviaView(
            self,
            channel_id,
            session.owner_id,
            question_view,
            session.controller.feedback_view(),
            show_next=session.controller.settings.feedback_delay is None
        )

    async def refresh_question_message(self, session: ChannelSession) -> None:
        question_view = session.controller.question_view()
        if question_view is None:
            return
        await session.message.edit(
            embed=build_question_embed(question_view, session.controller.feedback_view()),
            view=self.build_view(session.message.channel.id, session)
        )

    # Command handlers

    async def handle_play(self, interaction: discord.Interaction):
        """Handle /play command"""
        channel_id = interaction.channel_id
        if self.get_active_session(channel_id) is not None:
            await self.send_warning_response(
                interaction,
                "A round is already running in this channel. Use /stop to end it first."
            )
            return
        self.end_session(channel_id)

        await interaction.response.defer()
        await self.connect_voice(interaction)

        controller = self.create_controller(interaction.guild)
        controller.start()

        if controller.phase is SessionPhase.ERROR:
            logger.error(
                f"Could not start trivia round in channel {channel_id}: "
                f"{type(controller.load_error).__name__}: {controller.load_error}"
            )
            await self.send_error_response(interaction, controller.error_message, "❌ Could Not Load Questions")
            controller.close()
            return

        if controller.phase is SessionPhase.COMPLETE:
            await interaction.followup.send(embed=build_result_embed(controller.result_summary()))
            return

        session = ChannelSession(controller=controller, owner_id=interaction.user.id)
        self.sessions[channel_id] = session
        question_view = controller.question_view()
        session.message = await interaction.followup.send(
            embed=build_question_embed(question_view),
            view=self.build_view(channel_id, session),
            wait=True
        )
        controller.add_listener(lambda event, ctrl: self._on_session_event(channel_id, event, ctrl))
        logger.info(f"Started trivia round in channel {channel_id} with {question_view.total} questions")

    async def handle_play_clip(self, interaction: discord.Interaction, channel_id: int):
        session = self.get_active_session(channel_id)
        if session is None:
            await self.send_info_response(interaction, "This round has ended. Use /play to start a new one.")
            return
        await interaction.response.defer()
        session.controller.request_play()

    async def handle_answer(self, interaction: discord.Interaction, channel_id: int, option: str):
        session = self.get_active_session(channel_id)
        if session is None:
            await self.send_info_response(interaction, "This round has ended. Use /play to start a new one.")
            return
        await interaction.response.defer()
        if session.controller.select_answer(option) is None:
            await interaction.followup.send("You already answered this question.", ephemeral=True)

    async def handle_next(self, interaction: discord.Interaction, channel_id: int):
        session = self.get_active_session(channel_id)
        if session is None:
            await self.send_info_response(interaction, "This round has ended. Use /play to start a new one.")
            return
        await interaction.response.defer()
        session.controller.advance()

    async def handle_stop(self, interaction: discord.Interaction):
        """Handle /stop command"""
        channel_id = interaction.channel_id
        session = self.get_active_session(channel_id)
        if session is None:
            await self.send_info_response(interaction, "There is no round running in this channel.")
            return

        progress = session.controller.get_progress()
        self.end_session(channel_id)
        if session.message is not None:
            try:
                await session.message.edit(view=None)
            except discord.HTTPException as e:
                logger.warning(f"Could not disable buttons after stop: {e}")

        guild = interaction.guild
        if guild is not None and guild.voice_client is not None:
            await guild.voice_client.disconnect()

        await interaction.response.send_message(embed=discord.Embed(
            title="⏹️ Round Stopped",
            description=f"Final score: {progress['score']} after {progress['current_question']} question(s)",
            color=WARNING_COLOR
        ))

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        session = self.get_active_session(interaction.channel_id)
        if session is None:
            await self.send_info_response(interaction, "There is no round running in this channel.")
            return
        progress = session.controller.get_progress()
        embed = discord.Embed(title="📊 Round Status", color=INFO_COLOR)
        embed.add_field(
            name="Progress",
            value=f"Question {progress['current_question']} of {progress['total_questions']}",
            inline=True
        )
        embed.add_field(name="Score", value=str(progress['score']), inline=True)
        embed.add_field(name="Phase", value=progress['phase'].title(), inline=True)
        await interaction.response.send_message(embed=embed, ephemeral=True)

    async def handle_how_to_play(self, interaction: discord.Interaction):
        """Handle /howtoplay command"""
        await interaction.response.send_message(embed=build_how_to_play_embed())

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        help_embed = discord.Embed(
            title="🎯 Tune Trivia Commands",
            description="Listen to a clip, answer the question, and score points",
            color=0x00ff00
        )
        help_embed.add_field(
            name="🎮 Commands",
            value=(
                "`/play` - Start a new round (join a voice channel first to hear the clips)\n"
                "`/stop` - Stop the current round\n"
                "`/status` - Show progress and score\n"
                "`/howtoplay` - Explain the rules\n"
                "`/help` - Show this message"
            ),
            inline=False
        )
        help_embed.add_field(
            name="⚙️ Current Settings",
            value=f"```\n{self.config_manager.get_settings_summary()}\n```",
            inline=False
        )
        await interaction.response.send_message(embed=help_embed)

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send formatted error response to user"""
        await self._send_embed_response(interaction, message, title, ERROR_COLOR)

    async def send_info_response(self, interaction: discord.Interaction, message: str, title: str = "ℹ️ Information"):
        """Send formatted info response to user"""
        await self._send_embed_response(interaction, message, title, INFO_COLOR)

    async def send_warning_response(self, interaction: discord.Interaction, message: str, title: str = "⚠️ Warning"):
        """Send formatted warning response to user"""
        await self._send_embed_response(interaction, message, title, WARNING_COLOR)

    async def _send_embed_response(self, interaction: discord.Interaction, message: str, title: str, color: int):
        embed = discord.Embed(title=title, description=message, color=color)
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Failed to send embed, falling back to plain text: {e}")
            try:
                simple_message = f"{title}: {message}"
                if interaction.response.is_done():
                    await interaction.followup.send(simple_message, ephemeral=True)
                else:
                    await interaction.response.send_message(simple_message, ephemeral=True)
            except discord.HTTPException:
                logger.error("Failed to send fallback message")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = TriviaBot(config)

    try:
        logger.info("Starting Tune Trivia bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
