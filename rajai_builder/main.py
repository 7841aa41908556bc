"""Command-line entry point for the RajAI app builder."""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

from rajai_builder.config import load_settings
from rajai_builder.errors import ConfigurationError, SessionBusyError
from rajai_builder.io import JsonFileStore, write_generated_app
from rajai_builder.session import ChatSession

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)


def print_progress(change: str, session: ChatSession) -> None:
    """Observer that echoes agent progress to stdout."""
    if change == "agent_progress":
        for record in session.agent_progress.values():
            print(f"  [{record.status:>8}] {record.agent_name}: {record.message}")
        print()


def main(argv=None):
    """Build one app from a prompt."""
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="RajAI: build a single-file web app from an idea")
    parser.add_argument(
        "--prompt",
        type=str,
        required=True,
        help="Description of the app to build"
    )
    parser.add_argument(
        "--out",
        type=str,
        default=None,
        help="Output directory for generated apps (default: RAJAI_OUTPUT_DIR or ./generated_apps)"
    )
    parser.add_argument(
        "--store-dir",
        type=str,
        default=None,
        help="Directory holding the persisted session and history (default: RAJAI_STORE_DIR or ~/.rajai)"
    )
    parser.add_argument(
        "--new-chat",
        action="store_true",
        help="Discard the persisted session before building"
    )
    parser.add_argument(
        "--no-write",
        action="store_true",
        help="Don't write the generated app to disk, print it instead"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging level (default: INFO)"
    )

    args = parser.parse_args(argv)

    # Set logging level from argument
    logging.getLogger().setLevel(getattr(logging, args.log_level))

    logger.info("=" * 60)
    logger.info("RAJAI APP BUILDER")
    logger.info("=" * 60)

    settings = load_settings()
    if settings.configuration_error:
        logger.error(f"❌ {settings.configuration_error}")
        print(f"Error: {settings.configuration_error}", file=sys.stderr)
        sys.exit(1)

    store_dir = Path(args.store_dir).expanduser() if args.store_dir else settings.store_dir
    output_dir = args.out or str(settings.output_dir)
    logger.info(f"Session store: {store_dir}")
    logger.info(f"Output directory: {output_dir}")
    logger.info("")

    session = ChatSession(settings, store=JsonFileStore(store_dir))
    session.restore()
    if args.new_chat:
        session.reset_conversation()
        logger.info("✓ Started a new chat")
    session.subscribe(print_progress)

    try:
        final_state = asyncio.run(session.submit(args.prompt))
    except (ConfigurationError, SessionBusyError, ValueError) as e:
        logger.error(f"❌ {e}")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(session.messages[-1].content)

    logger.info("")
    logger.info("=" * 60)
    logger.info("FINAL STATUS")
    logger.info("=" * 60)
    logger.info(f"Status: {final_state.status}")
    logger.info(f"Agent updates: {final_state.status_events}")
    logger.info(f"Code length: {len(session.generated_code)}")

    if final_state.status != "success":
        logger.error("Generation completed with errors")
        sys.exit(1)

    if args.no_write:
        logger.info("Skipping file write (--no-write flag set)")
        print(session.generated_code)
        return

    project = session.projects[0]
    try:
        path = write_generated_app(session.generated_code, output_dir, project.id)
        logger.info(f"✓ App written to {path}")
        print(f"✓ App written to {path}")
    except OSError as e:
        logger.error(f"❌ Failed to write app: {e}")
        print(f"Warning: Failed to write app: {e}", file=sys.stderr)


if __name__ == "__main__":
    main()
