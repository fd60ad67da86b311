# demo_mcp_list_sessions.py
# Version: v1

r"""
Demo: create an anonymous session, log an event on it, attach it to a
user and list it back through the MCP tasks.

Usage:

  USERUP_MOCK_MODE=1 python demo_mcp_list_sessions.py

  # Against a real server, attaching the session to user 42:
  export USERUP_TEST_USER_ID=42
  python demo_mcp_list_sessions.py
"""

from __future__ import annotations

import asyncio
import os

from userup.tools.tasks import (
    add_session,
    get_session_events,
    identify_session,
    list_sessions,
    log_session_event,
)

USER_ID = os.environ.get("USERUP_TEST_USER_ID", "1")


async def main() -> None:
    created = await add_session(document={"landing_page": "/pricing"})
    key = created["session_key"]
    print("Session created:", key)

    await log_session_event(key, "io.userup.page.view", "pricing", {"path": "/pricing"})
    await identify_session(key, USER_ID)

    sessions = (await list_sessions(user_id=USER_ID))["sessions"]
    print(f"\nSessions for user {USER_ID}: {len(sessions)}")
    for s in sessions:
        print(f"- {s['key']} -> {s['user_id']} {s['object']}")

    events = (await get_session_events(key))["events"]
    print(f"\nEvents on {key}:")
    for e in events:
        print(f"- {e['type']} ({e['subject']}): {e['data']}")


if __name__ == "__main__":
    asyncio.run(main())
