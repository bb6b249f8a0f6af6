#!/usr/bin/env python3
"""
TidyAI - CLI Entry Point
========================

Usage:
    python -m tidyai ~/Downloads
    python -m tidyai ~/Downloads --dry-run
    python -m tidyai ~/Downloads --provider groq --model llama-3.1-70b-versatile
    python -m tidyai ~/Downloads --provider azure --api-base https://my.openai.azure.com --model my-deployment
"""

import argparse
import sys
from pathlib import Path

from rich.table import Table

from .config import PipelineSettings, RunContext, load_provider_config
from .exceptions import TidyAIError, UndoRecordError
from .executor import ApplyReport, apply_grouping
from .llm import ClassifierGateway, PROVIDER_PRESETS
from .models import name_key
from .planning import OrganizationPipeline
from .scanner import snapshot_directory
from .undo import UndoManager
from .utils import (
    ask_choice,
    console,
    print_error,
    print_grouping_tree,
    print_header,
    print_info,
    print_success,
    print_warning,
)

YES_NO = {"yes": ["y", "yes"], "no": ["n", "no"]}


def provider_overrides(args) -> dict:
    """CLI flags that override environment and preset values."""
    return {
        "provider": args.provider,
        "api_base": args.api_base,
        "api_path": args.api_path,
        "model": args.model,
        "api_key": args.api_key,
        "api_key_env": args.api_key_env,
        "auth_header": args.auth_header,
        "auth_scheme": args.auth_scheme,
        "azure_api_version": args.azure_api_version,
        "timeout": args.timeout,
    }


def pipeline_settings(args) -> PipelineSettings:
    settings = PipelineSettings()
    if args.batch_size is not None:
        settings.batch_size = args.batch_size
    if args.single_batch_threshold is not None:
        settings.single_batch_threshold = args.single_batch_threshold
    if args.retry_delay is not None:
        settings.retry_delay = args.retry_delay
    return settings


def handle_existing_record(manager: UndoManager, context: RunContext) -> int | None:
    """
    Offer to undo a previous organization.

    Returns:
        An exit code if the run should stop here, else None.
    """
    record = manager.load_record()
    console.print(f"\n[bold cyan]A previous organization from {record.timestamp} was found.[/bold cyan]")

    if context.dry_run:
        print_info("Dry run: leaving the existing undo record in place")
        return None

    answer = ask_choice(
        "[Y] Undo it and restore the original structure / [N] Continue and reorganize",
        {"undo": ["y", "yes", "u"], "continue": ["n", "no", "c"]},
        default="cancel",
    )
    if answer == "cancel":
        print_warning("Undo record present; run interactively to undo or continue.")
        return 0
    if answer == "undo":
        report = manager.restore()
        return 0 if report.complete else 1

    manager.discard()
    print_info("Previous undo record discarded")
    return None


def confirm_apply(context: RunContext) -> bool:
    if context.assume_yes:
        return True
    return ask_choice("Apply this organization? [Y/N]", YES_NO, default="no") == "yes"


def print_apply_summary(report: ApplyReport) -> None:
    table = Table(title="Organization Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="magenta")
    table.add_row("Moved", f"{report.moved_count}/{report.total}")
    table.add_row("Folders created", str(len(report.created_folders)))
    table.add_row("Skipped (not found)", str(len(report.skipped)))
    table.add_row("Failed", str(len(report.failures)))
    console.print(table)

    for failure in report.failures[:10]:
        console.print(f"  [red]-[/red] {failure.name}: {failure.error}")
    if len(report.failures) > 10:
        console.print(f"  ... and {len(report.failures) - 10} more")


def apply_with_confirmation(grouping, context: RunContext) -> ApplyReport | None:
    """Apply, offering to go on without undo if the record cannot be written."""
    try:
        return apply_grouping(grouping, context)
    except UndoRecordError as e:
        print_warning(str(e))
        if ask_choice("Continue without undo capability? [Y/N]", YES_NO, default="no") != "yes":
            print_warning("Organization cancelled.")
            return None
        return apply_grouping(grouping, context, save_record=False)


def run(args) -> int:
    target = args.folder.expanduser().resolve()
    print_header("TidyAI", f"Target: {target}")

    provider = load_provider_config(provider_overrides(args))
    settings = pipeline_settings(args)
    context = RunContext(target, provider, settings, dry_run=args.dry_run, assume_yes=args.yes)
    manager = UndoManager(target)

    if target.is_dir() and manager.has_record():
        code = handle_existing_record(manager, context)
        if code is not None:
            return code

    provider.validate()
    print_info(f"Provider: {provider.provider} | Model: {provider.model}")

    console.print("\n[bold cyan][STEP 1] Scanning folder...[/bold cyan]")
    with console.status("[bold green]Scanning...[/bold green]"):
        entries = snapshot_directory(target)
    if not entries:
        print_info("Folder is empty - nothing to organize.")
        return 0
    print_info(f"Found {len(entries)} items")

    console.print("\n[bold cyan][STEP 2] Classifying...[/bold cyan]")
    gateway = ClassifierGateway(provider, settings)
    result = OrganizationPipeline(gateway, settings).run(entries)

    console.print("\n[bold cyan][STEP 3] Proposed organization[/bold cyan]")
    folder_names = {name_key(e.name) for e in entries if e.is_folder}
    print_grouping_tree(result.grouping, folder_names)
    if not result.grouping:
        return 0
    if result.report.unorganized:
        print_warning(f"{result.report.unorganized} item(s) placed in the catch-all folder")

    if context.dry_run:
        apply_grouping(result.grouping, context)
        print_warning("This was a DRY-RUN. No files were actually moved.")
        return 0

    if not confirm_apply(context):
        print_warning("Organization cancelled. Nothing was changed.")
        return 0

    console.print("\n[bold cyan][STEP 4] Applying...[/bold cyan]")
    report = apply_with_confirmation(result.grouping, context)
    if report is None:
        return 0
    print_apply_summary(report)
    print_success("Organization complete!")

    if report.record_saved and not context.assume_yes:
        answer = ask_choice(
            "How does it look? [K] Keep it / [U] Undo - put everything back",
            {"keep": ["k", "keep"], "undo": ["u", "undo"]},
            default="keep",
        )
        if answer == "undo":
            restore = manager.restore()
            return 0 if restore.complete else 1
        print_success("Keeping the new organization. Undo data remains available.")

    return 0


# =============================================================================
# Main
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tidyai",
        description="TidyAI - Organize a folder into named subfolders with LLM assistance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("folder", type=Path, help="Folder to organize (top level only)")

    provider = parser.add_argument_group("provider")
    provider.add_argument("--provider",
                          help=f"Provider preset: {', '.join(sorted(PROVIDER_PRESETS))}. "
                               "Other names are treated as generic OpenAI-compatible (default: openai)")
    provider.add_argument("--api-base", help="API base URL (overrides preset)")
    provider.add_argument("--api-path", help="API path (overrides preset)")
    provider.add_argument("--model", help="Model or Azure deployment name (default: gpt-4o-mini)")
    provider.add_argument("--api-key", help="API key (prefer TIDYAI_API_KEY)")
    provider.add_argument("--api-key-env", metavar="VAR", help="Read the API key from this environment variable")
    provider.add_argument("--auth-header", help="Auth header name (default: Authorization)")
    provider.add_argument("--auth-scheme", help="Auth scheme; pass '' for none (default: Bearer)")
    provider.add_argument("--azure-api-version", help="Azure API version (default: 2024-02-15-preview)")
    provider.add_argument("--timeout", type=float, help="Request timeout in seconds (default: 120)")

    run_opts = parser.add_argument_group("run")
    run_opts.add_argument("--dry-run", action="store_true",
                          help="Classify and preview without moving anything")
    run_opts.add_argument("--yes", "-y", action="store_true",
                          help="Apply without asking for confirmation")
    run_opts.add_argument("--batch-size", type=int, help="Items per request for large folders (default: 75)")
    run_opts.add_argument("--single-batch-threshold", type=int,
                          help="Send folders up to this size in one request (default: 75)")
    run_opts.add_argument("--retry-delay", type=float, help="Seconds to wait before a retry (default: 5)")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return run(args)
    except TidyAIError as e:
        print_error(str(e))
        return 1
    except KeyboardInterrupt:
        console.print("\n[ABORT] Operation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
