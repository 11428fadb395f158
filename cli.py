#!/usr/bin/env python3
"""Simple CLI for exercising the crowdfund trail locally"""

import argparse
import asyncio
import sys
from typing import Optional

from crowdfund.config import settings
from crowdfund.core.execution import PhaseTransition, TransactionSubmitter
from crowdfund.core.trail import LAST_STEP, StepDeriver, StepStatus, step_name
from crowdfund.logging_config import setup_logging
from crowdfund.providers.trails import get_trails_provider
from crowdfund.providers.wallet import JsonRpcWalletProvider
from crowdfund.services.address import InvalidAddressError, normalize_address, short_address, short_hash
from crowdfund.services.crowdfund import CrowdfundService
from crowdfund.services.flow import StepFlow

STATUS_ICONS = {
    StepStatus.COMPLETED: "✅",
    StepStatus.CURRENT: "👉",
    StepStatus.PENDING: "⏳",
    StepStatus.DISABLED: "🔒",
}


async def cli_step(address: str):
    """Show which step a wallet is on"""
    print(f"🔍 Deriving current step for {address}...")
    deriver = StepDeriver(get_trails_provider())
    state = await deriver.refresh(address)

    if state.error:
        print(f"⚠️  Could not load history, showing step 1: {state.error}")

    print("\n🐶 Crowdfund Trail")
    print("=" * 50)
    for n in range(1, LAST_STEP + 1):
        status = state.step_status(n)
        print(f"{STATUS_ICONS[status]} {n}. {step_name(n):<14} {status.value}")

    if state.all_completed:
        print("\n🎉 All steps completed")
    else:
        print(f"\nNext: step {state.display_step} ({step_name(state.display_step)})")
    if state.latest_execution_id:
        print(f"Execution: {state.latest_execution_id}")


async def cli_history(address: str):
    """Print every execution recorded for a wallet"""
    print(f"📜 Fetching execution history for {address}...")
    entries = await CrowdfundService(get_trails_provider()).get_user_history(address)

    if not entries:
        print("No executions yet")
        return

    for entry in entries:
        print(f"\nExecution {entry.execution_id} ({entry.created_at or 'unknown time'})")
        print("-" * 50)
        for step in entry.steps:
            tx = short_hash(step.tx_hash) if step.tx_hash else "-"
            print(f"  {step.step_number}. {step.name:<14} {step.status:<10} {tx}")


async def cli_progress():
    """Campaign progress"""
    progress = await CrowdfundService(get_trails_provider()).get_progress()

    print("\n📊 Crowdfund Progress")
    print("=" * 50)
    print(f"Raised:   {progress.total_raised:,.2f} / {progress.goal:,.2f} USDC ({progress.progress_percentage:.1f}%)")
    print(f"Donors:   {progress.donor_count}")
    print(f"Time left: {progress.time_left()}")
    if progress.cancelled:
        print("⚠️  Crowdfund was cancelled")
    elif progress.is_successful:
        print("🎉 Goal reached")


async def cli_feed(limit: int):
    """Recent donations"""
    donations = await CrowdfundService(get_trails_provider()).get_community_feed()

    if not donations:
        print("No donations yet")
        return

    print(f"\n💙 Latest donations ({min(limit, len(donations))} of {len(donations)})")
    print("-" * 50)
    for donation in donations[:limit]:
        who = f"@{donation.username}" if donation.username else short_address(donation.wallet_address)
        print(f"{who:<20} {donation.amount:>10} USDC  {donation.explorer_url}")


async def cli_stats():
    """Participation per step"""
    stats = await CrowdfundService(get_trails_provider()).get_step_stats()

    print("\n📈 Step Stats")
    print("-" * 50)
    for stat in stats:
        bar = "█" * int(stat.percentage / 5)
        print(f"{stat.step_number}. {stat.name:<14} {stat.wallets:>5} wallets {stat.transactions:>5} txs  {bar}")


def print_transition(transition: PhaseTransition):
    suffix = f" ({short_hash(transition.tx_hash)})" if transition.tx_hash else ""
    print(f"   {transition.from_phase.value} → {transition.to_phase.value}{suffix}")


async def cli_execute(step_number: int, amount: Optional[str], rpc_url: Optional[str], account: Optional[str]):
    """Sign and submit one step through a JSON-RPC wallet"""
    wallet = JsonRpcWalletProvider(rpc_url, account=account)
    submitter = TransactionSubmitter(wallet, on_transition=print_transition)
    flow = StepFlow(get_trails_provider(), submitter=submitter)

    print(f"🚀 Executing step {step_number} ({step_name(step_number)}) on {settings.target_chain_name}...")
    try:
        outcome = await flow.execute_step(step_number, amount)
    finally:
        await wallet.close()

    if outcome.error:
        print(f"❌ {outcome.error}")
        if outcome.explorer_url:
            print(f"   {outcome.explorer_url}")
        return 1

    print(f"✅ {outcome.message}")
    print(f"   {outcome.explorer_url}")
    if not outcome.recorded:
        print("⚠️  Recording failed; run `history` again later")
    elif outcome.step_state:
        if outcome.step_state.all_completed:
            print("🎉 All steps completed")
        else:
            print(f"Next: step {outcome.step_state.display_step}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Brooklyn ACC Dog Crowdfund CLI")
    subparsers = parser.add_subparsers(dest="command")

    step_parser = subparsers.add_parser("step", help="Show the current step for a wallet")
    step_parser.add_argument("address", help="Wallet address")

    history_parser = subparsers.add_parser("history", help="List executions for a wallet")
    history_parser.add_argument("address", help="Wallet address")

    subparsers.add_parser("progress", help="Show crowdfund progress")

    feed_parser = subparsers.add_parser("feed", help="Show recent donations")
    feed_parser.add_argument("--limit", type=int, default=10, help="Number of donations to show")

    subparsers.add_parser("stats", help="Show per-step participation")

    execute_parser = subparsers.add_parser("execute", help="Sign and submit a step")
    execute_parser.add_argument("step", type=int, choices=range(1, LAST_STEP + 1), help="Step number")
    execute_parser.add_argument("--amount", help="USDC amount for approve/donate")
    execute_parser.add_argument("--rpc-url", help=f"Wallet JSON-RPC url (default: {settings.wallet_rpc_url})")
    execute_parser.add_argument("--account", help="Signing account (default: first eth_accounts entry)")

    parser.add_argument("--log-level", default="WARNING", help="Log level (default: WARNING)")
    return parser


def _address(raw: str) -> str:
    try:
        return normalize_address(raw)
    except InvalidAddressError as exc:
        raise SystemExit(f"❌ {exc}")


async def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    setup_logging(args.log_level, stream=sys.stderr)

    if not args.command:
        parser.print_help()
        return 0

    command = args.command.lower()

    try:
        if command == "step":
            await cli_step(_address(args.address))

        elif command == "history":
            await cli_history(_address(args.address))

        elif command == "progress":
            await cli_progress()

        elif command == "feed":
            if args.limit <= 0:
                raise ValueError("Limit must be positive")
            await cli_feed(args.limit)

        elif command == "stats":
            await cli_stats()

        elif command == "execute":
            return await cli_execute(args.step, args.amount, args.rpc_url, args.account)

        else:
            print(f"❌ Unknown command: {command}")
            parser.print_help()
            return 1
    except Exception as e:
        print(f"❌ Error: {e}")
        return 1

    return 0


def _run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    _run()
