"""
Terminal chat with Claude

Keeps the conversation history for the session. Type 'exit' or 'quit'
to leave.

Usage: python scripts/claude_chat.py
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from app.core.exceptions import ProviderError
from app.services.claude_service import claude_service

EXIT_COMMANDS = {"exit", "quit"}


async def chat():
    if not claude_service.is_configured():
        print("❌ ANTHROPIC_API_KEY is not set")
        return

    print("=" * 60)
    print(f"  Claude chat ({claude_service.model})")
    print("  Type 'exit' or 'quit' to leave")
    print("=" * 60 + "\n")

    history = []
    while True:
        try:
            text = input("You: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not text:
            continue
        if text.lower() in EXIT_COMMANDS:
            break

        history.append({"role": "user", "content": text})
        try:
            reply = await claude_service.reply(history)
        except ProviderError as e:
            print(f"❌ {e.message}: {e.details}\n")
            history.pop()
            continue

        history.append({"role": "assistant", "content": reply})
        print(f"\nClaude: {reply}\n")

    print("👋 Bye")


if __name__ == "__main__":
    asyncio.run(chat())
