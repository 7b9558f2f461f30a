#!/usr/bin/env python3
"""HubSpot sync command line entry point."""

import argparse
import asyncio
import logging
import sys

from hubspot_sync import (
    FileSecretStore,
    HubSpotClient,
    HubSpotSyncError,
    OAuthConfig,
    OAuthSession,
    TokenStore,
    setup_logging,
)
from hubspot_sync.config import get_optional_env

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_FILE = ".hubspot_tokens.json"


def build_session() -> OAuthSession:
    token_file = get_optional_env("HUBSPOT_TOKEN_FILE", DEFAULT_TOKEN_FILE)
    tokens = TokenStore(FileSecretStore(token_file))
    return OAuthSession(OAuthConfig.from_env(), tokens)


async def connect(session: OAuthSession) -> int:
    request = session.begin_authorization()
    print("Open this URL in a browser and authorize the app:")
    print(request.url)
    callback_url = input("Paste the callback URL: ").strip()
    if not await session.handle_callback(callback_url):
        print("Not a HubSpot callback URL", file=sys.stderr)
        return 1
    print("Connected to HubSpot")
    return 0


async def status(session: OAuthSession) -> int:
    print("connected" if session.refresh_connection_state() else "disconnected")
    return 0


async def disconnect(session: OAuthSession) -> int:
    session.disconnect()
    print("Disconnected from HubSpot")
    return 0


async def deals(session: OAuthSession, query: str | None, limit: int) -> int:
    async with HubSpotClient(session.ensure_access_token) as client:
        if query:
            summaries = await client.search_deal_summaries(query, limit)
        else:
            summaries = await client.fetch_deal_summaries(limit)
    for summary in summaries:
        print(f"{summary.id}\t{summary.name}")
    return 0


async def company(session: OAuthSession, deal_id: str) -> int:
    async with HubSpotClient(session.ensure_access_token) as client:
        details = await client.fetch_company_details_for_deal(deal_id)
    if details is None:
        print(f"Deal {deal_id} has no associated company")
        return 1
    print(details.model_dump_json(indent=2))
    return 0


async def run(args: argparse.Namespace) -> int:
    session = build_session()
    try:
        if args.command == "connect":
            return await connect(session)
        if args.command == "status":
            return await status(session)
        if args.command == "disconnect":
            return await disconnect(session)
        if args.command == "deals":
            return await deals(session, args.query, args.limit)
        return await company(session, args.deal_id)
    finally:
        await session.close()


def main() -> None:
    parser = argparse.ArgumentParser(description="HubSpot deal sync")
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("connect", help="Authorize access to a HubSpot portal")
    subparsers.add_parser("status", help="Show whether tokens are stored")
    subparsers.add_parser("disconnect", help="Forget stored tokens")
    deals_parser = subparsers.add_parser("deals", help="List or search deals")
    deals_parser.add_argument("--query", default=None, help="Free-text deal search")
    deals_parser.add_argument("--limit", type=int, default=50, help="Maximum results")
    company_parser = subparsers.add_parser(
        "company", help="Show the company associated with a deal"
    )
    company_parser.add_argument("deal_id", help="HubSpot deal id")
    args = parser.parse_args()

    setup_logging()
    try:
        sys.exit(asyncio.run(run(args)))
    except HubSpotSyncError as e:
        logger.error("%s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
