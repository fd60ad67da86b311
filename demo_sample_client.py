# demo_sample_client.py
# Version: v1

r"""
Demo: walk through the core client calls end to end.

Creates a user, logs a "user created" event, reads the user back, adds an
alias attribute and finds the user again through a join query.

Usage:

  # Against a local development server (plaintext):
  export USERUP_ADDRESS=localhost:9000
  export USERUP_USE_TLS=0
  python demo_sample_client.py

  # Without a server, against the in-memory service:
  USERUP_MOCK_MODE=1 python demo_sample_client.py
"""

from __future__ import annotations

import asyncio
import os

from userup.client import UserServiceClient
from userup.config import UserupConfig
from userup.events import EventLogger, new_logger_config
from userup.mock import MockUserService
from userup.models import User
from userup.query import new_query
from userup.rpc import HttpTransport

USERNAME = os.environ.get("USERUP_DEMO_USERNAME", "jdoe2")


async def run(client: UserServiceClient) -> None:
    events = EventLogger(new_logger_config("https://userup.io/sample-client", client))

    user = await client.add_user(
        User(
            username=USERNAME,
            attributes={
                "user_type": "admin",
                "email": "jdoe@localhost.com",
                "ranking": 5,
            },
        )
    )
    print("User ID:", user.id)

    await events.log_data(
        user.id, "io.userup.user.created", "user", str(user.id), {"username": user.username}
    )

    fetched = await client.get_user(user.id)
    print("Fetched:", fetched)

    await client.add_attribute(user.id, "alias", "dumbledore")
    query = new_query().with_join(
        "attributes",
        "users.id = attributes.user_id",
        {"attribute": {"alias": "dumbledore"}},
    )

    print("\nQuery results:")
    for u in await client.query_users(query):
        print(" ", u)


async def main() -> None:
    cfg = UserupConfig.from_env()
    print(f"Target: {cfg.base_url} (mock_mode={cfg.mock_mode})")

    if cfg.mock_mode:
        async with MockUserService() as transport:
            await run(UserServiceClient(cfg, transport))
        return

    async with HttpTransport(cfg) as transport:
        await run(UserServiceClient(cfg, transport))


if __name__ == "__main__":
    asyncio.run(main())
