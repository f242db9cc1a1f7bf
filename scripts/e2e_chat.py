#!/usr/bin/env python
"""End-to-end test script for fcrm_chat.

This script runs the full session flow against a real chat backend:
initialize, register, send a message, then listen for live replies.

Usage:
    python scripts/e2e_chat.py [--listen SECONDS]

Prerequisites:
    1. Chat backend reachable at FCRM_CHAT_BASE_URL
    2. .env file with the chat app credentials

Environment variables (via .env):
    FCRM_CHAT_BASE_URL=http://localhost:8000
    FCRM_CHAT_COMPANY_TOKEN=your_company_token
    FCRM_CHAT_APP_KEY=your_app_key
    FCRM_CHAT_APP_SECRET=your_app_secret
    FCRM_CHAT_SOCKET_URL=https://socket.example.com  (optional override)
    FCRM_CHAT_STORAGE_BACKEND=file                   (resume across runs)
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add src to path for development
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fcrm_chat.config import ChatSettings
from fcrm_chat.exceptions import ChatError
from fcrm_chat.logging import configure_logging, get_logger
from fcrm_chat.models.message import ChatMessage
from fcrm_chat.models.state import ConnectionState
from fcrm_chat.session import ChatSession

# Configure logging
configure_logging(level=logging.INFO)
logger = get_logger(__name__)

TEST_USER = {
    "name": "Test User",
    "phone": "+998901234567",
    "email": "test@example.com",
}


class E2EChatRunner:
    """End-to-end runner for one chat session."""

    def __init__(self, settings: ChatSettings, listen_seconds: float) -> None:
        self.settings = settings
        self.listen_seconds = listen_seconds
        self.chat = ChatSession(settings)
        self.received: list[ChatMessage] = []

        self.chat.on_connection_change.subscribe(self._on_connection)
        self.chat.on_message.subscribe(self._on_message)
        self.chat.on_typing.subscribe(self._on_typing)

    def _on_connection(self, state: ConnectionState) -> None:
        print(f"  Connection status: {state.value}")

    def _on_message(self, message: ChatMessage) -> None:
        self.received.append(message)
        print("  New message received:")
        print(f"    - Type: {message.type.value}")
        print(f"    - Sender: {message.sender_name}")
        print(f"    - Content: {message.content}")
        print(f"    - Time: {message.created_at.isoformat()}")

    def _on_typing(self, is_typing: bool) -> None:
        if is_typing:
            print("  Agent is typing...")

    async def step_initialize(self) -> None:
        print("\nStep 1: Initializing chat...")
        await self.chat.initialize()
        config = self.chat.remote_config
        assert config is not None
        print(f"  Chat initialized: {config.app_name}")
        print(f"  Required fields: {', '.join(config.required_fields) or '-'}")

        # Give the socket time to connect
        await asyncio.sleep(2)

    async def step_register(self) -> None:
        print("\nStep 2: Registering user...")
        if await self.chat.is_registered():
            print(f"  Already registered, resuming browser key {self.chat.browser_key}")
            page = await self.chat.load_history_for_resume()
            print(f"  Loaded {len(page.messages)} of {page.total} messages")
            return

        result = await self.chat.register(TEST_USER, endpoint="Test Script - Main")
        print("  User registered successfully")
        print(f"    - Browser Key: {result.browser_key}")
        print(f"    - Chat ID: {result.chat_id}")

        # Give the socket time to join the room
        await asyncio.sleep(2)

    async def step_send(self) -> None:
        print('\nStep 3: Sending message "Bismillah"...')
        response = await self.chat.send_message("Bismillah")
        print("  Message sent successfully")
        print(f"    - Message ID: {response.user_message_id}")
        print(f"    - Chat ID: {response.chat_id}")
        if response.ai_message is not None:
            print(f"    - AI Response: {response.ai_message.get('content')}")

    async def step_listen(self) -> None:
        print(f"\nListening for incoming messages for {self.listen_seconds:.0f} seconds...")
        print("  (Press Ctrl+C to exit)")
        await asyncio.sleep(self.listen_seconds)
        print(f"  Received {len(self.received)} live message(s)")

    async def run(self) -> None:
        """Run every step, always closing the session."""
        print("=" * 60)
        print("Starting fcrm_chat end-to-end test")
        print("=" * 60)

        try:
            await self.step_initialize()
            await self.step_register()
            await self.step_send()
            await self.step_listen()

            print("\n" + "=" * 60)
            print("ALL STEPS COMPLETED SUCCESSFULLY")
            print("=" * 60)

        except ChatError as e:
            logger.error("e2e_chat_error", error=str(e))
            print(f"\nChat error: {e}")
            raise

        finally:
            print("\nCleaning up...")
            await self.chat.close()
            print("  Done")


async def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="fcrm_chat end-to-end test")
    parser.add_argument("--listen", type=float, default=30.0, help="Seconds to wait for replies")
    args = parser.parse_args()

    # Load configuration from environment
    settings = ChatSettings()

    # Validate required config
    missing = [
        name
        for name, value in (
            ("FCRM_CHAT_COMPANY_TOKEN", settings.company_token),
            ("FCRM_CHAT_APP_KEY", settings.app_key),
            ("FCRM_CHAT_APP_SECRET", settings.app_secret.get_secret_value()),
        )
        if not value
    ]
    if missing:
        print(f"ERROR: {', '.join(missing)} not set in environment")
        print("Please set up your .env file with the required variables.")
        sys.exit(1)

    runner = E2EChatRunner(settings, listen_seconds=args.listen)
    await runner.run()


if __name__ == "__main__":
    asyncio.run(main())
