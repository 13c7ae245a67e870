#!/usr/bin/env python3
"""Simulate batched deposits and withdrawals across risk tiers.

This script builds the router, tier vaults and venues from a YAML file,
lets a population of random users queue requests every batch window and
runs the keeper after each window.

Usage:
    python scripts/simulate_vaults.py tiers
    python scripts/simulate_vaults.py run --windows 48 --users 20
    python scripts/simulate_vaults.py run --config config/default.yaml --seed 7 --events
    python scripts/simulate_vaults.py keep --interval 60
"""

import sys
import time
from pathlib import Path
from typing import Dict, Optional

import click
import numpy as np
from rich.console import Console
from rich.table import Table

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from yieldvault.api.engine_api import EngineAPI
from yieldvault.monitoring.performance_tracker import VaultPerformanceTracker
from yieldvault.orchestration.scheduler import KeeperScheduler
from yieldvault.orchestration.workflows import KeeperWorkflow
from yieldvault.utils.clock import ManualClock, SystemClock
from yieldvault.utils.config import load_config
from yieldvault.utils.logging import setup_logging_from_config
from yieldvault.utils.logging_enhanced import VaultEventLogger


console = Console()


def format_units(amount: int, decimals: int) -> str:
    """Render smallest units as a decimal string."""
    return f"{amount / 10 ** decimals:,.2f}"


def create_tier_table(api: EngineAPI) -> Table:
    """Create the per-tier summary table."""
    decimals = api.asset.decimals
    table = Table(title="Tier Vaults", show_header=True, header_style="bold magenta")
    table.add_column("Tier", style="cyan", no_wrap=True)
    table.add_column("Total Assets", justify="right", style="green")
    table.add_column("Shares", justify="right")
    table.add_column("Share Price", justify="right", style="yellow")
    table.add_column("Idle", justify="right")
    table.add_column("Pending In", justify="right")
    table.add_column("Pending Out", justify="right")

    for tier, row in api.snapshot().iterrows():
        table.add_row(
            str(tier),
            format_units(int(row["total_assets"]), decimals),
            format_units(int(row["total_shares"]), decimals),
            f"{row['share_price']:.6f}",
            format_units(int(row["idle"]), decimals),
            format_units(int(row["pending_deposits"]), decimals),
            format_units(int(row["pending_withdraws"]), decimals),
        )
    return table


def create_venue_table(api: EngineAPI) -> Table:
    """Create the venue allocation table."""
    decimals = api.asset.decimals
    table = Table(title="Venues", show_header=True, header_style="bold magenta")
    table.add_column("Venue", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("APY", justify="right", style="yellow")
    table.add_column("Position", justify="right", style="green")
    table.add_column("Liquid", justify="right")

    for name, venue in api.venues.items():
        bridge = api.bridges[name]
        table.add_row(
            name,
            venue.kind,
            f"{venue.get_apy() / 100:.2f}%",
            format_units(bridge.balance_of(), decimals),
            format_units(bridge.available_liquidity(), decimals),
        )
    return table


def create_performance_table(trackers: Dict[str, VaultPerformanceTracker]) -> Table:
    """Create the realized performance table."""
    table = Table(title="Performance", show_header=True, header_style="bold magenta")
    table.add_column("Tier", style="cyan", no_wrap=True)
    table.add_column("Total Return", justify="right", style="green")
    table.add_column("Realized APY", justify="right", style="yellow")
    table.add_column("Max Drawdown", justify="right", style="red")
    table.add_column("Compounds", justify="right")
    table.add_column("Fee Shares", justify="right")

    for tier, tracker in trackers.items():
        metrics = tracker.get_performance_metrics()
        fees = tracker.fee_summary()
        table.add_row(
            tier,
            f"{metrics['total_return']:.4%}",
            f"{metrics['realized_apy']:.2%}",
            f"{metrics['max_drawdown']:.4%}",
            str(fees["compounds"]),
            str(fees["fee_shares"]),
        )
    return table


@click.group()
def cli():
    """YieldVault Simulation Tool"""
    pass


@cli.command()
@click.option("--config", "config_path", type=click.Path(exists=True), help="YAML config file")
def tiers(config_path: Optional[str]):
    """Show configured tiers and venues."""
    config = load_config(config_path)
    setup_logging_from_config(config)

    api = EngineAPI(config)
    console.print(create_tier_table(api))
    console.print(create_venue_table(api))


@cli.command()
@click.option("--config", "config_path", type=click.Path(exists=True), help="YAML config file")
@click.option("--windows", type=int, default=24, help="Number of batch windows to simulate")
@click.option("--users", type=int, default=10, help="Number of simulated users")
@click.option("--funding", type=int, default=10_000, help="Starting balance per user (whole units)")
@click.option("--seed", type=int, default=42, help="Random seed")
@click.option("--events", is_flag=True, help="Write JSON event logs to logging.log_dir")
def run(
    config_path: Optional[str],
    windows: int,
    users: int,
    funding: int,
    seed: int,
    events: bool,
):
    """Simulate users queueing requests over several batch windows."""
    config = load_config(config_path)
    setup_logging_from_config(config)

    clock = ManualClock(start=config.get("simulation.start_time", 0))
    event_logger = None
    if events:
        event_logger = VaultEventLogger(
            log_dir=config.get("logging.log_dir", "logs"),
            clock=clock,
            enable_console=config.get("logging.events_to_console", False),
        )
    api = EngineAPI(config, clock=clock, event_logger=event_logger)

    keeper = KeeperWorkflow(
        api.router,
        compound=config.get("keeper.compound", True),
        rebalance=config.get("keeper.rebalance", True),
    )
    trackers = {tier: VaultPerformanceTracker(vault) for tier, vault in api.vaults.items()}

    rng = np.random.default_rng(seed)
    unit = 10 ** api.asset.decimals
    accounts = [f"user-{i:03d}" for i in range(users)]
    for account in accounts:
        api.fund(account, funding * unit)

    tier_names = list(api.vaults)
    interval = api.router.batch_interval
    batches = failed = 0

    console.print(
        f"[bold]Simulating {windows} windows of {interval}s, "
        f"{users} users, tiers {', '.join(tier_names)}[/bold]"
    )
    for tracker in trackers.values():
        tracker.record_snapshot()

    for _ in range(windows):
        for account in accounts:
            tier = tier_names[rng.integers(len(tier_names))]
            action = rng.random()
            if action < 0.4:
                balance = api.asset.balance_of(account)
                amount = int(balance * rng.uniform(0.05, 0.3))
                if amount > 0:
                    api.queue_deposit(account, amount, tier)
            elif action < 0.55:
                shares = api.vaults[tier].balance_of(account) // 2
                if shares > 0:
                    api.queue_withdraw(account, shares, tier)

        api.warp(interval)
        api.top_up_venues()
        report = keeper.run_cycle()
        batches += len(report.batches)
        failed += len(report.failed)

        for account in accounts:
            for tier in tier_names:
                api.router.claim_deposit_shares(account, tier)
                api.router.claim_withdraw_assets(account, tier)

        for tracker in trackers.values():
            tracker.record_snapshot()

    console.print(create_tier_table(api))
    console.print(create_venue_table(api))
    console.print(create_performance_table(trackers))
    console.print(f"Batches settled: [green]{batches}[/green]  failed: [red]{failed}[/red]")

    if event_logger is not None:
        console.print(f"{len(event_logger.events)} events written to {event_logger.log_dir}")
        event_logger.close()


@cli.command()
@click.option("--config", "config_path", type=click.Path(exists=True), help="YAML config file")
@click.option("--interval", type=int, help="Keeper (or settle job) interval in seconds")
def keep(config_path: Optional[str], interval: Optional[int]):
    """Run the keeper on wall-clock time until interrupted."""
    config = load_config(config_path)
    setup_logging_from_config(config)

    api = EngineAPI(config, clock=SystemClock())
    keeper = KeeperWorkflow(
        api.router,
        compound=config.get("keeper.compound", True),
        rebalance=config.get("keeper.rebalance", True),
    )
    scheduler = KeeperScheduler(config.section("keeper"))
    jobs = config.section("keeper.jobs")
    if jobs:
        scheduler.register_keeper_jobs(
            keeper,
            settle_seconds=interval or jobs.get("settle_seconds", 300),
            compound_seconds=jobs.get("compound_seconds"),
            rebalance_seconds=jobs.get("rebalance_seconds"),
        )
    else:
        scheduler.register_keeper(keeper, interval or config.get("keeper.interval_seconds", 300))
    scheduler.start()

    console.print("[bold green]Keeper running[/bold green] (Ctrl+C to stop)")
    try:
        while scheduler.is_running():
            time.sleep(1)
    except KeyboardInterrupt:
        console.print("\nStopping keeper...")
    finally:
        scheduler.stop()


if __name__ == "__main__":
    cli()
