"""Main entry point for the journey voice session."""

import argparse
import asyncio
import logging
import sys

from .config import JourneyConfig
from .dashboard import ConversationLogger, create_dashboard_app
from .engines import create_speech_engines
from .orchestrator import DialogueOrchestrator
from .session_state import SessionStore
from .speech_input import SpeechInputCoordinator
from .speech_output import SpeechOutputCoordinator


def build_orchestrator(
    config: JourneyConfig,
    engine_type: str | None = None
) -> DialogueOrchestrator:
    """Wire engines, coordinators and the store into an orchestrator.

    Args:
        config: Loaded configuration
        engine_type: Overrides config.engine when given

    Returns:
        Orchestrator with a conversation logger attached
    """
    recognition, synthesis = create_speech_engines(engine_type or config.engine, config)

    speech_in = SpeechInputCoordinator(
        recognition,
        language=config.speech.language,
        config=config.listening,
    )
    speech_out = SpeechOutputCoordinator(synthesis, config=config.speech)

    orchestrator = DialogueOrchestrator(SessionStore(), speech_in, speech_out, config=config)
    orchestrator.conversation_logger = ConversationLogger()
    return orchestrator


async def run_session(
    config: JourneyConfig,
    engine_type: str | None = None,
    dashboard_port: int | None = None,
    with_dashboard: bool = True,
) -> None:
    """Run a session until interrupted.

    Args:
        config: Loaded configuration
        engine_type: Speech engine (console, google)
        dashboard_port: Port for the dashboard API server
        with_dashboard: Serve the dashboard alongside the session
    """
    orchestrator = build_orchestrator(config, engine_type)
    port = dashboard_port or config.dashboard_port

    print(f"Starting journey session ({engine_type or config.engine} engine)...")

    try:
        await orchestrator.start_session()
        print("Session started. Speak (or type) your answer.\n")

        if with_dashboard:
            import uvicorn

            print(f"Dashboard available at http://localhost:{port}")
            dashboard_app = create_dashboard_app(orchestrator, orchestrator.conversation_logger)
            server = uvicorn.Server(uvicorn.Config(
                dashboard_app,
                host="0.0.0.0",
                port=port,
                log_level="warning"
            ))
            await server.serve()
        else:
            while True:
                await asyncio.sleep(3600)
    finally:
        await orchestrator.end_session()


def cli() -> None:
    """Command-line interface entry point."""
    parser = argparse.ArgumentParser(
        description="Journey voice - guided spoken reflection exercise",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Type answers in the terminal, prompts are printed
  journey-voice --engine console

  # Microphone + Google Cloud Speech-to-Text / Text-to-Speech
  journey-voice --engine google

Environment variables:
  GOOGLE_APPLICATION_CREDENTIALS  Required for the google engine.
"""
    )

    parser.add_argument(
        "--engine",
        choices=["console", "google"],
        default=None,
        help="Speech engine (default: from config, else console)"
    )

    parser.add_argument(
        "--config",
        default=".journey/config.yaml",
        help="Path to config file (default: .journey/config.yaml)"
    )

    parser.add_argument(
        "--dashboard-port",
        type=int,
        default=None,
        help="Dashboard server port (default: from config, else 8080)"
    )

    parser.add_argument(
        "--no-dashboard",
        action="store_true",
        help="Run without the dashboard server"
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        config = JourneyConfig.load(args.config)
    except ValueError as e:
        print(f"Error: invalid config: {e}")
        sys.exit(1)

    try:
        asyncio.run(run_session(
            config,
            engine_type=args.engine,
            dashboard_port=args.dashboard_port,
            with_dashboard=not args.no_dashboard,
        ))
    except KeyboardInterrupt:
        print("\nShutting down...")


if __name__ == "__main__":
    cli()
