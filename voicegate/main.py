"""Main application entry point for voicegate."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path
from typing import Optional

from pubsub import pub
from rich.console import Console

from . import __version__
from .config import VoiceGateConfig
from .models.snapshot import VoiceSnapshot
from .models.transcription import ConversationRecord
from .services.factory import build_orchestrator
from .services.orchestrator import VoiceCaptureOrchestrator

logger = logging.getLogger(__name__)


class Server:

    def __init__(self, config_path: Optional[str], log_level: Optional[str] = None):
        # Load configuration
        self.config = VoiceGateConfig(config_path)
        # Command line overrides config
        level = log_level or self.config.get('logging.level', 'INFO')
        setup_logging(self.config, level)
        self.console = Console()
        self.orchestrator: Optional[VoiceCaptureOrchestrator] = None
        self._last_status: Optional[str] = None

        topic_root = self.config.get('pubsub.topic_root', 'voicegate')
        self.status_topic = f"{topic_root}.status"
        self.conversation_topic = f"{topic_root}.conversation"

    def on_status(self, snapshot: VoiceSnapshot) -> None:
        if snapshot.status == self._last_status:
            return
        self._last_status = snapshot.status
        style = "red" if snapshot.error else "cyan"
        self.console.print(f"[{style}][{snapshot.state.value}][/{style}] {snapshot.status}")

    def on_record(self, record: ConversationRecord) -> None:
        self.console.print(f"[bold green]🗣  {record.timestamp:%H:%M:%S}[/bold green] {record.text}")

    async def run(self, duration: int) -> int:
        pub.subscribe(self.on_status, self.status_topic)
        pub.subscribe(self.on_record, self.conversation_topic)
        try:
            logger.info("Initializing services...")
            self.orchestrator = build_orchestrator(self.config)
            if not self.orchestrator.init():
                self.console.print(f"[red]❌ {self.orchestrator.status}[/red]")
                return 1
            if not await self.orchestrator.start():
                self.console.print(f"[red]❌ {self.orchestrator.status}[/red]")
                return 1

            phrases = ", ".join(self.config.get_wake_phrases())
            self.console.print(f"👂 Say [bold]{phrases}[/bold] to start recording (Ctrl+C to quit)")
            if duration:
                await asyncio.sleep(duration)
            else:
                while True:
                    await asyncio.sleep(1)
            return 0
        finally:
            self.cleanup()

    def cleanup(self):
        if self.orchestrator is not None:
            self.orchestrator.dispose()
            history = self.orchestrator.history
            if history:
                self.console.print(f"\n📝 {len(history)} utterance(s) recognized")
        try:
            pub.unsubscribe(self.on_status, self.status_topic)
            pub.unsubscribe(self.on_record, self.conversation_topic)
        except Exception as e:
            logger.warning(f"Error during unsubscribe: {e}")


def setup_logging(config, level: str = "INFO") -> None:

    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/voicegate.log')
    console_output = config.get('logging.console_output', True)

    # Create logs directory if it doesn't exist
    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    # Console handler - only if enabled in config
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger = logging.getLogger(__name__)
    logger.info("="*50)
    logger.info("voicegate starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("="*50)


def main() -> None:
    """Main entry point for voicegate."""
    parser = argparse.ArgumentParser(
        description="voicegate - wake-word activated voice transcription",
        epilog="Set SILICONFLOW_API_KEY (or transcription.api_key_env) before running"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to configuration YAML file (default: built-in defaults)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: from config, INFO)"
    )

    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Stop after this many seconds (default: 0, run until Ctrl+C)"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"voicegate v{__version__}"
    )

    args = parser.parse_args()

    try:
        server = Server(args.config, args.log_level)
        exit_code = asyncio.run(server.run(args.duration))
    except KeyboardInterrupt:
        print("\n👋 Goodbye!")
        exit_code = 0
    except Exception as e:
        print(f"❌ Error: {e}")
        logging.error(f"Application error: {e}", exc_info=True)
        exit_code = 1
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
