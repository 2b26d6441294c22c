#!/usr/bin/env python3
"""Script to register a tenant with its agent and gateway channel.

Usage:
    python scripts/seed_tenant.py tenant.json

Expected format:
{
    "tenant": {"id": "acme", "name": "Acme", "profile": {"business_hours_start": "08:00", ...}},
    "agent": {"id": "acme-agent", "name": "Ana", "prompt": {"role": "..."}, "enable_audio": true},
    "channel": {"id": "acme-main", "name": "acme", "token": "<instance api key>"}
}
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from zapdesk.core.config import settings
from zapdesk.models import Agent, Channel, Tenant
from zapdesk.storage.firestore import FirestoreStorage


async def seed(data: dict, storage: FirestoreStorage) -> None:
    tenant = Tenant.model_validate(data["tenant"])
    await storage.save_tenant(tenant)
    print(f"Saved tenant '{tenant.id}'")

    agent_id = None
    if "agent" in data:
        agent = Agent.model_validate({"tenant_id": tenant.id, **data["agent"]})
        await storage.save_agent(agent)
        agent_id = agent.id
        print(f"Saved agent '{agent.id}' (audio={agent.enable_audio}, image={agent.enable_image})")

    if "channel" in data:
        channel = Channel.model_validate({"tenant_id": tenant.id, "agent_id": agent_id, **data["channel"]})
        existing = await storage.get_channel_by_name(channel.name)
        if existing and existing.id != channel.id:
            print(f"Error: channel name '{channel.name}' already belongs to tenant '{existing.tenant_id}'")
            sys.exit(1)
        await storage.save_channel(channel)
        print(f"Saved channel '{channel.name}'")


async def main():
    parser = argparse.ArgumentParser(description="Register a tenant, agent and channel")
    parser.add_argument("path", help="JSON file describing the tenant")
    parser.add_argument("--project", default=settings.gcp_project_id, help="GCP project ID")

    args = parser.parse_args()

    path = Path(args.path)
    if not path.exists():
        print(f"Error: Path does not exist: {path}")
        sys.exit(1)

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if "tenant" not in data:
        print("Error: JSON must contain a 'tenant' object")
        sys.exit(1)

    storage = FirestoreStorage(project_id=args.project or None)
    await seed(data, storage)


if __name__ == "__main__":
    asyncio.run(main())
