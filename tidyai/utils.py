"""
Utility functions for TidyAI.

Includes:
- Console output helpers (rich)
- Grouping preview (tree + summary table)
- Interactive prompts
- JSON save/load helpers
- macOS bundle detection
"""

import json
import os
import sys
from pathlib import Path
from typing import Any
from rich.console import Console
from rich.table import Table
from rich.tree import Tree
from rich.panel import Panel

# Global console instance
console = Console()


def print_header(title: str, subtitle: str = ""):
    """Print a styled header."""
    console.print(Panel(f"[bold blue]{title}[/bold blue]\n[italic]{subtitle}[/italic]", expand=False))


def print_error(msg: str):
    console.print(f"[bold red]ERROR:[/bold red] {msg}")


def print_warning(msg: str):
    console.print(f"[bold yellow]WARNING:[/bold yellow] {msg}")


def print_success(msg: str):
    console.print(f"[bold green]SUCCESS:[/bold green] {msg}")


def print_info(msg: str):
    console.print(f"[cyan]INFO:[/cyan] {msg}")


# -----------------------------------------------------------------------------
# Grouping preview
# -----------------------------------------------------------------------------

# ASCII tags rather than emoji for terminal compatibility
FILE_TAGS = {
    ".txt": "[TXT]",
    ".doc": "[DOC]", ".docx": "[DOC]",
    ".pdf": "[PDF]",
    ".jpg": "[IMG]", ".jpeg": "[IMG]", ".png": "[IMG]", ".gif": "[IMG]",
    ".mp4": "[VID]", ".avi": "[VID]", ".mkv": "[VID]",
    ".mp3": "[AUD]", ".wav": "[AUD]",
    ".zip": "[ZIP]", ".rar": "[ZIP]",
    ".exe": "[EXE]", ".msi": "[EXE]",
    ".lnk": "[LNK]",
    ".cmd": "[CMD]",
    ".py": "[PY]",
    ".js": "[JS]",
    ".html": "[HTM]",
    ".css": "[CSS]",
    ".json": "[JSN]",
    ".xml": "[XML]",
    ".csv": "[CSV]",
    ".xlsx": "[XLS]", ".xls": "[XLS]",
}


def file_extension(name: str) -> str:
    """
    Extension of an entry name, including the dot.

    Dotfiles such as ".env" have no extension.
    """
    base = name.rsplit("/", 1)[-1]
    if base.startswith(".") and base.count(".") == 1:
        return ""
    if "." in base:
        return "." + base.rsplit(".", 1)[-1]
    return ""


def file_tag(name: str, is_folder: bool = False) -> str:
    if is_folder:
        return "[DIR]"
    return FILE_TAGS.get(file_extension(name).lower(), "[FILE]")


def print_grouping_tree(grouping, folder_names: set[str] | None = None, max_items: int = 25):
    """
    Print the proposed organization as a tree.

    Args:
        grouping: A MasterGrouping.
        folder_names: Name keys of entries that are folders (for tagging).
        max_items: Items shown per group before eliding.
    """
    folder_names = folder_names or set()

    if not grouping:
        console.print("[green]+-- No reorganization suggested - folder is already well organized![/green]")
        return

    tree = Tree("[bold blue]Proposed Organization Structure[/bold blue]")
    for group in grouping:
        branch = tree.add(f"[bold blue][DIR] {group.name}[/bold blue] ({len(group)} items)")
        for name in group.items[:max_items]:
            tag = file_tag(name, name.casefold() in folder_names)
            branch.add(f"[cyan]{tag}[/cyan] {name}")
        if len(group) > max_items:
            branch.add(f"[italic]... and {len(group) - max_items} more[/italic]")
    console.print(tree)

    table = Table(title="Plan Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="magenta")
    table.add_row("Folders", str(len(grouping)))
    table.add_row("Items", str(grouping.item_count()))
    console.print(table)


# -----------------------------------------------------------------------------
# Prompts
# -----------------------------------------------------------------------------

def ask_choice(question: str, choices: dict[str, list[str]], default: str) -> str:
    """
    Ask the user to pick one of several answers.

    Args:
        question: Prompt text.
        choices: Map of answer key -> accepted inputs (lower case).
        default: Answer used for non-interactive sessions. Empty input is
            not accepted, so destructive answers need an explicit key press.

    Returns:
        The chosen answer key.
    """
    console.print(f"\n[bold yellow]{question}[/bold yellow]")

    if not sys.stdin.isatty():
        print_warning(f"Non-interactive mode detected. Using default answer '{default}'.")
        return default

    accepted = ", ".join(v[0] for v in choices.values())
    while True:
        try:
            answer = input("Choice: ").strip().lower()
        except EOFError:
            return default
        for key, values in choices.items():
            if answer in values:
                return key
        console.print(f"Invalid choice. Enter one of: {accepted}")


# -----------------------------------------------------------------------------
# macOS Bundle Extensions
# -----------------------------------------------------------------------------

MACOS_BUNDLE_EXTENSIONS = {
    # Application bundles
    ".app", ".bundle", ".plugin", ".kext", ".prefpane",
    ".qlgenerator", ".mdimporter", ".xpc", ".appex",
    # Apple Pro Apps project bundles
    ".dvdproj",          # iDVD
    ".imovieproject",    # iMovie (old format)
    ".fcpproject",       # Final Cut Pro X
    ".fcpbundle",        # Final Cut Pro X bundle
    ".fcp",              # Final Cut Pro 7
    ".dspproj",          # DVD Studio Pro
    ".prproj",           # Adobe Premiere Pro (treat as bundle)
    # Photo libraries
    ".photoslibrary",    # Photos app
    ".aplibrary",        # Aperture
}

# Known folder names that should be treated as bundles (atomic units)
BUNDLE_FOLDERS = {
    'VIDEO_TS', 'AUDIO_TS', 'HVDVD_TS', 'BDMV', 'CERTIFICATE',
    'DCIM', 'PRIVATE', 'AVCHD', 'MP_ROOT', 'Capture Scratch', 'Render Files',
    'Waveform Cache Files', 'Thumbnail Cache Files', 'Final Cut Pro Documents'
}


def is_bundle(name: str) -> bool:
    """
    Check if a folder name is an opaque bundle (macOS package or disc structure).

    Bundles are moved as one unit and never sampled for classifier context.
    """
    lower = name.lower()
    return name in BUNDLE_FOLDERS or any(lower.endswith(ext) for ext in MACOS_BUNDLE_EXTENSIONS)


# -----------------------------------------------------------------------------
# JSON helpers
# -----------------------------------------------------------------------------

def save_json(data: Any, path: Path) -> None:
    """
    Save data to a JSON file with pretty formatting.

    The file is written next to its final location and swapped in, so a
    crash never leaves a half-written file behind.

    Args:
        data: The data to serialize.
        path: The output file path.
    """
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, path)


def load_json(path: Path) -> Any:
    """
    Load data from a JSON file.

    Args:
        path: The input file path.

    Returns:
        The deserialized data.
    """
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)
