"""
Points provider callbacks at a public tunnel (e.g. ngrok)

Writes WEBHOOK_BASE_URL into .env, replacing any previous value.

Usage: python scripts/setup_webhook.py https://abc123.ngrok-free.app
"""

import re
import sys
from pathlib import Path

ENV_PATH = Path(__file__).parent.parent / ".env"


def update_webhook_url(url: str, env_path: Path = ENV_PATH) -> None:
    content = env_path.read_text(encoding="utf-8") if env_path.exists() else ""
    content = re.sub(r"^WEBHOOK_BASE_URL=.*\n?", "", content, flags=re.MULTILINE)

    if content and not content.endswith("\n"):
        content += "\n"
    content += f"WEBHOOK_BASE_URL={url.rstrip('/')}\n"

    env_path.write_text(content, encoding="utf-8")


def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/setup_webhook.py <public-https-url>")
        sys.exit(1)

    url = sys.argv[1]
    if not url.startswith("https://"):
        print("❌ Error: Webhook URL must be HTTPS")
        sys.exit(1)

    update_webhook_url(url)
    print(f"✅ Updated WEBHOOK_BASE_URL to: {url}")
    print("🔄 Restart the server to use the new webhook URL")


if __name__ == "__main__":
    main()
