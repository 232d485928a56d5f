#!/usr/bin/env python3
"""
BMO - Bookmark Organizer

Command-line interface over the organizer: browse and filter the catalog,
manage personal bookmarks and settings, export and import user data.
"""
import sys
import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import List

from rich.console import Console
from rich.table import Table

from bmo import constants
from bmo.config import coerce_value, get_config, init_config, user_config_path
from bmo.exporters import ExportSelection
from bmo.filters import SectionView
from bmo.importers import ConflictPolicy
from bmo.organizer import Organizer
from bmo.recent import time_ago
from bmo.storage import get_storage
from bmo.store import NEW_CATEGORY, BookmarkValidationError

logger = logging.getLogger(__name__)


console = Console()


def get_organizer(args) -> Organizer:
    """Open the organizer for the storage and catalog selected on the command line."""
    storage = get_storage(getattr(args, "db", None))
    return Organizer.open(
        catalog_path=getattr(args, "catalog", None),
        seed_path=getattr(args, "seed", None),
        storage=storage,
    )


def split_tags(value: str) -> List[str]:
    return [t.strip() for t in (value or "").split(",") if t.strip()]


def section_to_dict(section: SectionView) -> dict:
    return {
        "id": section.key,
        "title": section.title,
        "count": section.badge,
        "collapsed": section.collapsed,
        "bookmarks": [
            {
                "name": item.name,
                "url": item.url,
                "description": item.description,
                "tags": list(item.tags),
            }
            for item in section.visible_items
        ],
    }


def output_sections(sections: List[SectionView], format: str = "table", favorites=()):
    """Output display sections in the specified format."""
    config = get_config()
    shown = [s for s in sections if not s.hidden]

    if format == "json":
        data = [section_to_dict(s) for s in shown]
        print(json.dumps(data, indent=2 if config.export_pretty else None, ensure_ascii=False))
    elif format == "plain":
        for section in shown:
            print(f"{section.title} ({section.badge})")
            if section.collapsed:
                continue
            for item in section.visible_items:
                print(f"    {item.name}\n        {item.url}")
    else:  # table
        favorites = set(favorites)
        for section in shown:
            if section.collapsed:
                console.print(f"[dim]▸ {section.title} ({section.badge})[/dim]")
                continue

            table = Table(title=f"{section.title} ({section.badge})", title_justify="left")
            table.add_column("★", style="red")
            table.add_column("Name", style="green")
            table.add_column("URL", style="blue")
            table.add_column("Tags", style="yellow")

            for item in section.visible_items:
                star = "★" if item.url in favorites else ""
                table.add_row(star, item.name[:50], item.url[:60], ", ".join(item.tags)[:30])

            console.print(table)


def cmd_list(args):
    """Show the catalog, filtered by the saved tags and an optional category."""
    organizer = get_organizer(args)
    sections = organizer.view()
    if args.category:
        sections = [s for s in sections if s.key == args.category]
        if not sections:
            console.print(f"[red]Unknown category: {args.category}[/red]")
            sys.exit(1)
    output_sections(sections, args.output, organizer.state.favorites)


def cmd_search(args):
    """Search bookmarks by name, description, url and tags."""
    organizer = get_organizer(args)
    sections = organizer.search(args.query)
    # Collapsed sections still show their matches when searching
    for section in sections:
        section.collapsed = False
    output_sections(sections, args.output, organizer.state.favorites)

    if not any(not s.hidden and s.visible_items for s in sections) and not args.quiet:
        console.print(f"[yellow]No bookmarks match '{args.query}'[/yellow]")


def cmd_suggest(args):
    """Show autocomplete suggestions for a partial query."""
    organizer = get_organizer(args)
    suggestions = organizer.suggestions(args.query)

    if args.output == "json":
        print(json.dumps([asdict(s) for s in suggestions], indent=2))
    else:
        for suggestion in suggestions:
            print(f"{suggestion.text}\t{suggestion.type}")


def cmd_tags(args):
    """List tags with their bookmark counts."""
    organizer = get_organizer(args)
    counts = organizer.tag_counts()
    active = organizer.state.active_tags

    if args.output == "json":
        data = [{"tag": tag, "count": count, "active": tag in active}
                for tag, count in sorted(counts.items())]
        print(json.dumps(data, indent=2))
    else:
        table = Table(title="Tags")
        table.add_column("Tag", style="cyan")
        table.add_column("Count", style="green")
        table.add_column("Active", style="yellow")

        for tag, count in sorted(counts.items()):
            table.add_row(tag, str(count), "✓" if tag in active else "")

        console.print(table)


def cmd_tag_toggle(args):
    """Toggle tags in the active tag filter."""
    organizer = get_organizer(args)
    for tag in args.tags:
        active = organizer.toggle_tag(tag)
        if not args.quiet:
            state = "[green]on[/green]" if active else "[yellow]off[/yellow]"
            console.print(f"Tag filter {tag}: {state}")


def cmd_tag_clear(args):
    """Clear the active tag filter."""
    organizer = get_organizer(args)
    organizer.clear_tags()
    if not args.quiet:
        console.print("[green]Cleared tag filter[/green]")


def cmd_add(args):
    """Add a personal bookmark."""
    organizer = get_organizer(args)

    try:
        bookmark = organizer.add_bookmark(
            args.name,
            args.url,
            args.category,
            description=args.description or "",
            tags=split_tags(args.tags),
            logo=args.logo or "",
            support_type=args.support_type,
            type=args.type,
            new_category_name=args.new_category,
            new_category_color=args.color or "",
        )
    except BookmarkValidationError as e:
        for field, message in e.errors.items():
            console.print(f"[red]{field}: {message}[/red]")
        sys.exit(1)

    if args.favorite:
        organizer.toggle_favorite(bookmark.url)

    if not args.quiet:
        console.print(f"[green]✓ Added bookmark: {bookmark.name}[/green]")


def cmd_category_create(args):
    """Create an empty personal category."""
    organizer = get_organizer(args)
    try:
        category = organizer.create_category(args.name, args.color or "")
    except BookmarkValidationError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if args.output == "json":
        print(json.dumps(category.to_dict(), indent=2))
    elif not args.quiet:
        console.print(f"[green]✓ Created category {category.name} ({category.id})[/green]")


def cmd_category_list(args):
    """List catalog and personal categories."""
    organizer = get_organizer(args)
    categories = organizer.store.category_choices()

    if args.output == "json":
        data = [{"id": c.id, "name": c.name, "bookmarks": len(c.bookmarks),
                 "userCreated": c.is_user_created} for c in categories]
        print(json.dumps(data, indent=2))
    else:
        table = Table(title="Categories")
        table.add_column("ID", style="cyan")
        table.add_column("Name", style="green")
        table.add_column("Bookmarks", style="magenta")
        table.add_column("Custom", style="yellow")

        for category in categories:
            table.add_row(category.id, category.name, str(len(category.bookmarks)),
                          "✓" if category.is_user_created else "")

        console.print(table)


def cmd_category_toggle(args):
    """Collapse or expand a section."""
    organizer = get_organizer(args)
    collapsed = organizer.toggle_category(args.id)
    if not args.quiet:
        console.print(f"{args.id}: {'collapsed' if collapsed else 'expanded'}")


def cmd_favorite(args):
    """Toggle favorite bookmarks."""
    organizer = get_organizer(args)
    for url in args.urls:
        favorite = organizer.toggle_favorite(url)
        if not args.quiet:
            mark = "[red]★[/red] Added to" if favorite else "Removed from"
            console.print(f"{mark} favorites: {url}")


def cmd_visit(args):
    """Record a visit to a bookmark."""
    organizer = get_organizer(args)
    try:
        organizer.track_visit(args.url)
    except KeyError:
        console.print(f"[red]No bookmark with url {args.url}[/red]")
        sys.exit(1)
    if not args.quiet:
        console.print(f"[green]Visited {args.url}[/green]")


def cmd_recent(args):
    """Show recently visited bookmarks."""
    organizer = get_organizer(args)
    visits = organizer.recent_visits()

    if args.output == "json":
        print(json.dumps([v.to_dict() for v in visits], indent=2))
    elif args.output == "plain":
        for visit in visits:
            print(f"{visit.name}\t{visit.url}\t{visit.count}\t{time_ago(visit.last_visited)}")
    else:
        table = Table(title="Recently Visited")
        table.add_column("Name", style="green")
        table.add_column("URL", style="blue")
        table.add_column("Visits", style="magenta")
        table.add_column("Last", style="cyan")

        for visit in visits:
            table.add_row(visit.name[:50], visit.url[:60], str(visit.count),
                          time_ago(visit.last_visited))

        console.print(table)


def cmd_help(args):
    """Show which help flow applies to a bookmark."""
    organizer = get_organizer(args)
    support = organizer.dispatch_help(args.url)
    if support is None:
        console.print(f"[red]No bookmark with url {args.url}[/red]")
        sys.exit(1)
    print(support.value)


def cmd_theme(args):
    """Show or change the theme."""
    organizer = get_organizer(args)
    if args.name:
        organizer.change_theme(args.name)
        if not args.quiet:
            console.print(f"[green]Theme set to {args.name}[/green]")
    else:
        print(organizer.state.theme)


def cmd_export(args):
    """Export personal bookmarks and settings."""
    organizer = get_organizer(args)

    selection = None
    if args.type == "selective":
        selection = ExportSelection(
            categories=args.categories or [],
            existing_categories=args.existing or [],
            settings=args.settings or [],
        )

    if args.file == "-":
        data = organizer.export(args.type, selection)
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return

    path = organizer.write_export(args.file, args.type, selection)
    if not args.quiet:
        console.print(f"[green]Exported to {path}[/green]")


def cmd_import(args):
    """Import an export file."""
    organizer = get_organizer(args)

    document, conflicts = organizer.preview_import(args.file)

    if conflicts and not args.quiet:
        console.print(f"[yellow]{len(conflicts)} conflict(s) found, "
                      f"resolving with '{args.policy}':[/yellow]")
        for conflict in conflicts:
            console.print(f"  • {conflict}")

    if args.dry_run:
        return

    result = organizer.import_document(document, args.policy)

    if args.output == "json":
        print(json.dumps(asdict(result), indent=2))
    elif not args.quiet:
        console.print(f"[green]Imported {result.bookmarks_imported} bookmarks, "
                      f"{result.categories_imported} categories[/green]")
        skipped = result.bookmarks_skipped + result.categories_skipped
        if skipped:
            console.print(f"[yellow]Skipped {skipped} conflicting item(s)[/yellow]")


def cmd_clear(args):
    """Remove all personal bookmarks and settings."""
    if not args.yes:
        answer = console.input("[yellow]Delete all personal bookmarks and settings? [y/N][/yellow] ")
        if answer.strip().lower() not in ("y", "yes"):
            console.print("Cancelled")
            return

    organizer = get_organizer(args)
    organizer.clear_all_data()
    if not args.quiet:
        console.print("[green]All user data cleared[/green]")


def cmd_config(args):
    """Manage configuration."""
    config = get_config()

    if args.action == "show":
        if args.key:
            if not hasattr(config, args.key):
                console.print(f"[red]Unknown config key: {args.key}[/red]")
                sys.exit(1)
            print(getattr(config, args.key))
        else:
            print(json.dumps(asdict(config), indent=2))

    elif args.action == "set":
        if not args.key or args.value is None:
            console.print("[red]Usage: bmo config set KEY VALUE[/red]")
            sys.exit(1)
        if not hasattr(config, args.key):
            console.print(f"[red]Unknown config key: {args.key}[/red]")
            sys.exit(1)
        setattr(config, args.key, coerce_value(getattr(config, args.key), args.value))
        config.save()
        if not args.quiet:
            console.print(f"[green]Set {args.key} = {args.value}[/green]")

    elif args.action == "init":
        config_path = config.save(user_config_path())
        console.print(f"[green]Created config at {config_path}[/green]")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="BMO - Bookmark Organizer: a curated catalog plus your own bookmarks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Browse and filter
  bmo list
  bmo search "lenovo"
  bmo tag toggle drivers support
  bmo tags

  # Personal bookmarks
  bmo add "Docs" https://example.com/docs --category tools --tags docs,help
  bmo add "Wiki" https://wiki.example.com --category new --new-category "Team"
  bmo favorite https://example.com/docs
  bmo visit https://example.com/docs

  # Export / import
  bmo export                       # bookmarks-export-<date>.json
  bmo export - --type settings
  bmo import backup.json --policy rename

Configuration:
  Default database: ./bmo.db or from config
  Config file: ~/.config/bmo/config.toml
  Environment: BMO_DATABASE, BMO_CATALOG_PATH, BMO_OUTPUT_FORMAT
        """
    )

    # Global options
    parser.add_argument("--db", help="Database file (default: bmo.db)")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("--catalog", help="Catalog file (default: bookmarks.json)")
    parser.add_argument("--seed", help="Pre-seed user bookmarks file")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal output")
    parser.add_argument("-o", "--output", choices=["table", "json", "plain"],
                        help="Output format")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    list_parser = subparsers.add_parser("list", help="Show bookmarks by section")
    list_parser.add_argument("--category", help="Only this category (or 'favorites', 'recent-visits')")
    list_parser.set_defaults(func=cmd_list)

    search_parser = subparsers.add_parser("search", help="Search bookmarks")
    search_parser.add_argument("query", help="Search term")
    search_parser.set_defaults(func=cmd_search)

    suggest_parser = subparsers.add_parser("suggest", help="Autocomplete suggestions")
    suggest_parser.add_argument("query", help="Partial search term")
    suggest_parser.set_defaults(func=cmd_suggest)

    tags_parser = subparsers.add_parser("tags", help="List tags")
    tags_parser.set_defaults(func=cmd_tags)

    # =================
    # TAG GROUP
    # =================
    tag_parser = subparsers.add_parser("tag", help="Tag filter")
    tag_subparsers = tag_parser.add_subparsers(dest="tag_command", required=True)

    tag_toggle = tag_subparsers.add_parser("toggle", help="Toggle tag(s) in the filter")
    tag_toggle.add_argument("tags", nargs="+", help="Tag names")
    tag_toggle.set_defaults(func=cmd_tag_toggle)

    tag_clear = tag_subparsers.add_parser("clear", help="Clear the tag filter")
    tag_clear.set_defaults(func=cmd_tag_clear)

    add_parser = subparsers.add_parser("add", help="Add a bookmark")
    add_parser.add_argument("name", help="Bookmark name")
    add_parser.add_argument("url", help="Bookmark URL")
    add_parser.add_argument("--category", "-c", required=True,
                            help=f"Category id, or '{NEW_CATEGORY}' to create one")
    add_parser.add_argument("--new-category", help="Name of the category to create")
    add_parser.add_argument("--color", help="Color of the new category")
    add_parser.add_argument("--description", help="Description")
    add_parser.add_argument("--tags", help="Comma-separated tags")
    add_parser.add_argument("--logo", help="Logo URL")
    add_parser.add_argument("--support-type", default="help",
                            choices=["help", "split-help", "approval-process"],
                            help="Help flow (default: help)")
    add_parser.add_argument("--type", default="web", choices=["web", "desktop"],
                            help="Bookmark type")
    add_parser.add_argument("--favorite", action="store_true", help="Also mark as favorite")
    add_parser.set_defaults(func=cmd_add)

    # =================
    # CATEGORY GROUP
    # =================
    category_parser = subparsers.add_parser("category", help="Category operations")
    category_subparsers = category_parser.add_subparsers(dest="category_command", required=True)

    category_create = category_subparsers.add_parser("create", help="Create a category")
    category_create.add_argument("name", help="Category name")
    category_create.add_argument("--color", help="Category color")
    category_create.set_defaults(func=cmd_category_create)

    category_list = category_subparsers.add_parser("list", help="List categories")
    category_list.set_defaults(func=cmd_category_list)

    category_toggle = category_subparsers.add_parser("toggle", help="Collapse or expand a section")
    category_toggle.add_argument("id", help="Category or section id")
    category_toggle.set_defaults(func=cmd_category_toggle)

    favorite_parser = subparsers.add_parser("favorite", help="Toggle favorites")
    favorite_parser.add_argument("urls", nargs="+", help="Bookmark URLs")
    favorite_parser.set_defaults(func=cmd_favorite)

    visit_parser = subparsers.add_parser("visit", help="Record a visit")
    visit_parser.add_argument("url", help="Bookmark URL")
    visit_parser.set_defaults(func=cmd_visit)

    recent_parser = subparsers.add_parser("recent", help="Recently visited bookmarks")
    recent_parser.set_defaults(func=cmd_recent)

    help_parser = subparsers.add_parser("help", help="Help flow of a bookmark")
    help_parser.add_argument("url", help="Bookmark URL")
    help_parser.set_defaults(func=cmd_help)

    theme_parser = subparsers.add_parser("theme", help="Show or set the theme")
    theme_parser.add_argument("name", nargs="?", help="Theme name")
    theme_parser.set_defaults(func=cmd_theme)

    export_parser = subparsers.add_parser("export", help="Export user data")
    export_parser.add_argument("file", nargs="?", help="Output file, '-' for stdout")
    export_parser.add_argument("--type", default="full",
                               choices=["full", "bookmarks", "settings", "selective"],
                               help="What to export (default: full)")
    export_parser.add_argument("--categories", nargs="*", help="User category ids (selective)")
    export_parser.add_argument("--existing", nargs="*",
                               help="Catalog category ids with added bookmarks (selective)")
    export_parser.add_argument("--settings", nargs="*",
                               choices=constants.SETTING_GROUPS,
                               help="Setting groups (selective)")
    export_parser.set_defaults(func=cmd_export)

    import_parser = subparsers.add_parser("import", help="Import an export file")
    import_parser.add_argument("file", help="JSON export file")
    import_parser.add_argument("--policy", default=ConflictPolicy.SKIP.value,
                               choices=[p.value for p in ConflictPolicy],
                               help="Conflict resolution (default: skip)")
    import_parser.add_argument("--dry-run", action="store_true", help="Only show conflicts")
    import_parser.set_defaults(func=cmd_import)

    clear_parser = subparsers.add_parser("clear", help="Delete all user data")
    clear_parser.add_argument("--yes", "-y", action="store_true", help="Do not ask for confirmation")
    clear_parser.set_defaults(func=cmd_clear)

    # =================
    # CONFIG GROUP
    # =================
    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_parser.add_argument("action", choices=["show", "set", "init"],
                               help="Config action")
    config_parser.add_argument("key", nargs="?", help="Config key")
    config_parser.add_argument("value", nargs="?", help="Config value (for set)")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv=None):
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Initialize configuration with CLI overrides
    config = init_config(
        database=args.db,
        config_file=Path(args.config) if args.config else None,
        output_format=args.output,
        catalog_path=args.catalog,
        seed_path=args.seed,
    )

    console.no_color = not config.color_output

    logging.basicConfig(
        level=getattr(logging, str(config.log_level).upper(), logging.INFO),
        format="%(levelname)s: %(message)s",
    )

    # Set default output format if not specified
    if not args.output:
        args.output = config.output_format

    # Execute command
    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
