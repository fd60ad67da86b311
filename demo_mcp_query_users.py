# demo_mcp_query_users.py
# Version: v1

r"""
Demo: call the MCP task `query_users` with a filter, ordering and limit.

Usage:

  USERUP_MOCK_MODE=1 python demo_mcp_query_users.py

  # Filter on a different attribute value:
  export USERUP_TEST_GROUP=attributes
  export USERUP_TEST_FIELD=user_type
  export USERUP_TEST_VALUE=member
  export USERUP_TEST_ORDERBY="username desc"
  export USERUP_TEST_LIMIT=5
  python demo_mcp_query_users.py
"""

from __future__ import annotations

import asyncio
import os
from typing import Any, Dict, List

from userup.tools.tasks import query_users


# Read settings from environment, with sensible defaults
GROUP = os.environ.get("USERUP_TEST_GROUP", "attributes")
FIELD = os.environ.get("USERUP_TEST_FIELD", "user_type")
VALUE = os.environ.get("USERUP_TEST_VALUE", "admin")
ORDER_BY = os.environ.get("USERUP_TEST_ORDERBY") or None
LIMIT = int(os.environ.get("USERUP_TEST_LIMIT", "10"))


async def main() -> None:
    print("Calling MCP task: query_users()")
    print(f"Filter:   {GROUP}.{FIELD} = {VALUE!r}")
    print(f"Order by: {ORDER_BY!r}")
    print(f"Limit:    {LIMIT}")

    result: Dict[str, Any] = await query_users(
        filters={GROUP: {FIELD: VALUE}},
        order_by=[ORDER_BY] if ORDER_BY else None,
        limit=LIMIT,
    )

    users: List[Dict[str, Any]] = result.get("users", []) or []
    print("\nQuery sent:", result.get("meta", {}).get("query"))
    print("Users returned:", len(users))

    if not users:
        print("\nNo users matched – check the filter group and field.")
        return

    for u in users:
        print(f"- {u['username']} ({u['id']}): {u['attributes']}")


if __name__ == "__main__":
    asyncio.run(main())
