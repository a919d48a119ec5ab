"""
Main CLI entry point for Bazaar.

Provides the command-line interface using Click, mirroring the host's
/plugin surface:

    bazaar marketplace add|remove|update|list|show|search|sync
    bazaar plugin install|uninstall|enable|disable|update|list|show|validate
    bazaar content list|render
    bazaar lint PATH
    bazaar config show|path
"""

import contextlib as _contextlib
import json as _json
import logging as _logging
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import click as _click

import bazaar
import bazaar.config as config
import bazaar.constants as constants
import bazaar.install as install
import bazaar.lint as lint
import bazaar.marketplace as marketplace
import bazaar.plugins as plugins

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}

# Errors reported as "Error: ..." with exit code 1
_DOMAIN_ERRORS: tuple[type[Exception], ...] = (
    FileNotFoundError,
    ValueError,
    marketplace.MarketplaceError,
    marketplace.SourceFetchError,
    install.InvalidTransitionError,
    install.ConflictError,
    install.InstallError,
)


def _fail(message: str, json_output: bool = False) -> _typing.NoReturn:
    """Report an error and exit with status 1."""
    if json_output:
        _click.echo(_json.dumps({"error": message}))
    else:
        _click.echo(f"Error: {message}", err=True)
    raise SystemExit(1)


@_contextlib.contextmanager
def _reporting_errors(json_output: bool = False) -> _typing.Iterator[None]:
    """Turn domain errors raised inside the block into CLI errors."""
    try:
        yield
    except _DOMAIN_ERRORS as e:
        _fail(str(e), json_output)


def _echo_json(data: _typing.Any) -> None:
    _click.echo(_json.dumps(data, indent=2))


def _settings(ctx: _click.Context) -> config.Settings:
    settings: config.Settings = ctx.obj["settings"]
    return settings


def _manager(ctx: _click.Context) -> marketplace.MarketplaceManager:
    return marketplace.MarketplaceManager.from_settings(_settings(ctx))


def _installer(ctx: _click.Context, scope: str | None = None) -> install.PluginInstaller:
    return install.PluginInstaller.from_settings(_settings(ctx), scope)


def _configure_logging(verbose: bool) -> None:
    """Log warnings to stderr, and debug detail too when --verbose is given."""
    _logging.basicConfig(
        level=_logging.DEBUG if verbose else _logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=_sys.stderr,
    )
    if verbose:
        _logging.getLogger("bazaar").setLevel(_logging.DEBUG)


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(bazaar.__version__, "-V", "--version", prog_name="bazaar")
@_click.option(
    "--scope",
    type=_click.Choice(list(constants.SCOPES)),
    default=None,
    help="Installation scope (default: from config, else user)",
)
@_click.option(
    "--project",
    "project_root",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Project root for project-scoped installs",
)
@_click.option(
    "-v",
    "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
@_click.pass_context
def cli(
    ctx: _click.Context,
    scope: str | None,
    project_root: _pathlib.Path | None,
    verbose: bool,
) -> None:
    """
    Bazaar - plugin marketplace registry and installer.

    Manages marketplaces of plugins bundling agents, skills and slash
    commands for AI coding assistants.

    \b
    Examples:
        bazaar marketplace add acme/claude-plugins
        bazaar plugin install reviewer@team-tools
        bazaar plugin list
        bazaar lint ./my-marketplace
    """
    overrides: dict[str, _typing.Any] = {}
    if project_root is not None:
        overrides["project_root"] = project_root.resolve()

    try:
        settings = config.Settings(**overrides)
    except (config.ConfigFileError, ValueError) as e:
        _fail(str(e))

    if scope:
        settings.scope = scope  # type: ignore[assignment]
    if verbose:
        settings.verbose = verbose

    _configure_logging(settings.verbose)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# =============================================================================
# Marketplace Commands
# =============================================================================


@cli.group(name="marketplace")
def marketplace_group() -> None:
    """Marketplace management commands."""
    pass


@marketplace_group.command(name="add")
@_click.argument("location")
@_click.option("--ref", default=None, help="Branch or tag to check out (git sources)")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def marketplace_add(
    ctx: _click.Context,
    location: str,
    ref: str | None,
    json_output: bool,
) -> None:
    """Add a marketplace from a directory, owner/repo or git URL.

    \b
    Examples:
        bazaar marketplace add ./my-marketplace
        bazaar marketplace add acme/claude-plugins
        bazaar marketplace add https://git.example.com/team/plugins.git --ref v2
    """
    with _reporting_errors(json_output):
        added = _manager(ctx).add(location, ref)

    if json_output:
        _echo_json(added.to_dict())
    else:
        _click.echo(f"✓ Added marketplace '{added.name}' ({len(added.plugins)} plugins)")


@marketplace_group.command(name="remove")
@_click.argument("name")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def marketplace_remove(ctx: _click.Context, name: str, json_output: bool) -> None:
    """Remove a marketplace and uninstall its plugins from every scope."""
    manager = _manager(ctx)
    if name not in manager.store:
        _fail(f"Marketplace '{name}' not found", json_output)

    uninstalled: list[str] = []
    with _reporting_errors(json_output):
        for scope in constants.SCOPES:
            uninstalled.extend(_installer(ctx, scope).uninstall_marketplace(name))
        manager.remove(name)

    if json_output:
        _echo_json({"removed": name, "uninstalled": uninstalled})
    else:
        _click.echo(f"✓ Removed marketplace '{name}'")
        for ref in uninstalled:
            _click.echo(f"  Uninstalled {ref}")


@marketplace_group.command(name="update")
@_click.argument("name", required=False)
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def marketplace_update(ctx: _click.Context, name: str | None, json_output: bool) -> None:
    """Refresh one marketplace (or all) from its source."""
    with _reporting_errors(json_output):
        updated = _manager(ctx).update(name)

    if json_output:
        _echo_json({"updated": updated})
    elif not updated:
        _click.echo("No marketplaces to update.")
    else:
        for updated_name in updated:
            _click.echo(f"✓ Updated {updated_name}")


@marketplace_group.command(name="list")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def marketplace_list(ctx: _click.Context, json_output: bool) -> None:
    """List known marketplaces."""
    manager = _manager(ctx)
    loaded = {m.name: m for m in manager.list()}
    records = manager.store.list()

    if json_output:
        data = []
        for record in records:
            entry = record.to_dict()
            shown = loaded.get(record.name)
            entry["plugins"] = shown.manifest.plugin_names() if shown else None
            data.append(entry)
        _echo_json({"marketplaces": data})
        return

    if not records:
        _click.echo("No marketplaces added.")
        _click.echo("Add one with: bazaar marketplace add <location>")
        return

    _click.echo(f"Marketplaces ({len(records)}):")
    _click.echo(f"{'Name':<25} {'Plugins':<8} {'Source'}")
    _click.echo("-" * 70)
    for record in records:
        count = str(len(loaded[record.name].plugins)) if record.name in loaded else "✗"
        _click.echo(f"{record.name:<25} {count:<8} {record.source}")


@marketplace_group.command(name="show")
@_click.argument("name")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def marketplace_show(ctx: _click.Context, name: str, json_output: bool) -> None:
    """Show details for a marketplace."""
    manager = _manager(ctx)
    with _reporting_errors(json_output):
        shown = manager.get(name)
    record = manager.store.get(name)

    if json_output:
        data = shown.to_dict()
        data["plugins"] = [entry.to_dict() for entry in shown.plugins]
        data["source"] = record.source.model_dump() if record else None
        data["last_updated"] = record.last_updated if record else None
        _echo_json(data)
        return

    _click.echo(f"Marketplace: {shown.name}")
    _click.echo(f"  Description: {shown.manifest.description or '(none)'}")
    _click.echo(f"  Owner: {shown.manifest.owner or '(none)'}")
    if record:
        _click.echo(f"  Source: {record.source}")
        _click.echo(f"  Last updated: {record.last_updated}")
    _click.echo(f"  Path: {shown.path}")
    _click.echo()
    _click.echo(f"Plugins ({len(shown.plugins)}):")
    for entry in shown.plugins:
        version = entry.version or "-"
        _click.echo(f"  {entry.name:<25} {version:<10} {entry.description}")


@marketplace_group.command(name="search")
@_click.argument("query")
@_click.option("--limit", default=10, show_default=True, help="Maximum results")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def marketplace_search(ctx: _click.Context, query: str, limit: int, json_output: bool) -> None:
    """Search plugins in all known marketplaces."""
    results = _manager(ctx).search(query, max_results=limit)

    if json_output:
        _echo_json({"query": query, "results": [r.to_dict() for r in results]})
        return

    if not results:
        _click.echo(f"No plugins match '{query}'.")
        return

    for result in results:
        _click.echo(f"{result.ref}")
        if result.entry.description:
            _click.echo(f"    {result.entry.description}")


@marketplace_group.command(name="sync")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def marketplace_sync(ctx: _click.Context, json_output: bool) -> None:
    """Add the marketplaces declared in configuration."""
    settings = _settings(ctx)
    with _reporting_errors(json_output):
        added = _manager(ctx).sync_declared(settings.marketplaces)

    if json_output:
        _echo_json({"added": added})
    elif not added:
        _click.echo("All declared marketplaces are already added.")
    else:
        for name in added:
            _click.echo(f"✓ Added marketplace '{name}'")


# =============================================================================
# Plugin Commands
# =============================================================================


@cli.group(name="plugin")
def plugin_group() -> None:
    """Plugin management commands."""
    pass


def _echo_result(result: install.InstallResult, done: str, noop: str) -> None:
    """Print the outcome of a lifecycle operation."""
    if result.changed:
        _click.echo(done)
    else:
        _click.echo(noop)
    for warning in result.warnings:
        _click.echo(f"  Warning: {warning}")


@plugin_group.command(name="install")
@_click.argument("ref")
@_click.option("--force", is_flag=True, help="Install despite name conflicts")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def plugin_install(ctx: _click.Context, ref: str, force: bool, json_output: bool) -> None:
    """Install a plugin (name or plugin@marketplace)."""
    installer = _installer(ctx)
    with _reporting_errors(json_output):
        result = installer.install(ref, force=force)

    if json_output:
        _echo_json(result.to_dict())
        return

    assert result.record is not None
    verb = "Restored" if result.transition.action == "restore" else "Installed"
    _echo_result(
        result,
        f"✓ {verb} {result.record.ref} {result.record.version} "
        f"({installer.store.scope} scope)",
        f"Plugin '{result.record.ref}' is already installed.",
    )


@plugin_group.command(name="uninstall")
@_click.argument("ref")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def plugin_uninstall(ctx: _click.Context, ref: str, json_output: bool) -> None:
    """Uninstall a plugin."""
    with _reporting_errors(json_output):
        result = _installer(ctx).uninstall(ref)

    if json_output:
        _echo_json(result.to_dict())
    else:
        _click.echo(f"✓ Uninstalled {result.transition.ref}")


@plugin_group.command(name="enable")
@_click.argument("ref")
@_click.option("--force", is_flag=True, help="Enable despite name conflicts")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def plugin_enable(ctx: _click.Context, ref: str, force: bool, json_output: bool) -> None:
    """Enable an installed plugin."""
    with _reporting_errors(json_output):
        result = _installer(ctx).enable(ref, force=force)

    if json_output:
        _echo_json(result.to_dict())
    else:
        ref = result.transition.ref
        _echo_result(result, f"Plugin '{ref}' enabled.", f"Plugin '{ref}' is already enabled.")


@plugin_group.command(name="disable")
@_click.argument("ref")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def plugin_disable(ctx: _click.Context, ref: str, json_output: bool) -> None:
    """Disable an installed plugin."""
    with _reporting_errors(json_output):
        result = _installer(ctx).disable(ref)

    if json_output:
        _echo_json(result.to_dict())
    else:
        ref = result.transition.ref
        _echo_result(result, f"Plugin '{ref}' disabled.", f"Plugin '{ref}' is already disabled.")


@plugin_group.command(name="update")
@_click.argument("ref")
@_click.option("--force", is_flag=True, help="Update despite name conflicts")
@_click.option(
    "--refresh/--no-refresh",
    default=True,
    help="Refresh the marketplace before updating",
)
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def plugin_update(
    ctx: _click.Context,
    ref: str,
    force: bool,
    refresh: bool,
    json_output: bool,
) -> None:
    """Update an installed plugin from its marketplace."""
    with _reporting_errors(json_output):
        result = _installer(ctx).update(ref, force=force, refresh_marketplace=refresh)

    if json_output:
        _echo_json(result.to_dict())
        return

    assert result.record is not None
    _echo_result(
        result,
        f"✓ Updated {result.record.ref} to {result.record.version}",
        f"Plugin '{result.record.ref}' is up to date.",
    )


@plugin_group.command(name="list")
@_click.option("--available", is_flag=True, help="List plugins from all marketplaces")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def plugin_list(ctx: _click.Context, available: bool, json_output: bool) -> None:
    """List installed plugins (or all available ones)."""
    installer = _installer(ctx)

    if available:
        installed_refs = {r.ref for r in installer.store.list()}
        rows = [
            (f"{entry.name}@{m.name}", entry)
            for m in installer.marketplaces.list()
            for entry in m.plugins
        ]
        if json_output:
            _echo_json(
                {
                    "plugins": [
                        {"ref": ref, "installed": ref in installed_refs, **entry.to_dict()}
                        for ref, entry in rows
                    ]
                }
            )
            return
        if not rows:
            _click.echo("No plugins available. Add a marketplace first.")
            return
        _click.echo(f"Available Plugins ({len(rows)}):")
        for ref, entry in rows:
            marker = "✓" if ref in installed_refs else " "
            _click.echo(f"  {marker} {ref:<40} {entry.description}")
        return

    installed = installer.installed_plugins()
    if json_output:
        data = installer.store.to_dict()
        data["plugins"] = [p.to_dict() for p in installed]
        _echo_json(data)
        return

    if not installed:
        _click.echo(f"No plugins installed ({installer.store.scope} scope).")
        return

    _click.echo(f"Installed Plugins ({installer.store.scope} scope, {len(installed)}):")
    _click.echo(f"{'Plugin':<40} {'Version':<10} {'Enabled':<8}")
    _click.echo("-" * 70)
    for item in installed:
        enabled = "✓" if item.record.enabled else "✗"
        _click.echo(f"{item.record.ref:<40} {item.record.version:<10} {enabled:<8}")
        if item.error:
            _click.echo(f"  Error: {item.error}")


@plugin_group.command(name="show")
@_click.argument("ref")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def plugin_show(ctx: _click.Context, ref: str, json_output: bool) -> None:
    """Show details for a plugin (installed or available)."""
    installer = _installer(ctx)
    with _reporting_errors(json_output):
        record = installer.find_record(ref)
        if record is not None:
            plugin = installer.load_installed(record)
        else:
            resolved = installer.marketplaces.resolve(ref)
            plugin = plugins.PluginLoader().load(
                installer.marketplaces.plugin_path(resolved),
                fallback=None if resolved.entry.strict else resolved.entry.to_manifest(),
                marketplace=resolved.marketplace.name,
            )
            plugin.enabled = False

    if json_output:
        data = plugin.to_dict()
        data["installed"] = record is not None
        _echo_json(data)
        return

    _click.echo(f"Plugin: {plugin.ref}")
    _click.echo(f"  Version: {plugin.version}")
    _click.echo(f"  Description: {plugin.description or '(none)'}")
    _click.echo(f"  Author: {plugin.manifest.author or '(none)'}")
    _click.echo(f"  Path: {plugin.path}")
    if record is not None:
        _click.echo(f"  Installed: ✓ ({installer.store.scope} scope)")
        _click.echo(f"  Enabled: {'✓' if record.enabled else '✗'}")
    else:
        _click.echo("  Installed: ✗")
    _click.echo()
    _click.echo("Components:")
    for kind in plugins.COMPONENT_KINDS:
        names = plugin.component_names(kind)
        _click.echo(f"  {kind.capitalize()}s: {', '.join(names) if names else '(none)'}")


@plugin_group.command(name="validate")
@_click.argument("path", type=_click.Path(path_type=_pathlib.Path))
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
def plugin_validate(path: _pathlib.Path, json_output: bool) -> None:
    """Validate a plugin directory."""
    loader = plugins.PluginLoader()

    result: dict[str, _typing.Any] = {
        "path": str(path),
        "valid": False,
        "warnings": [],
        "error": None,
    }

    try:
        result["warnings"] = loader.validate(path)
        result["valid"] = True
    except (FileNotFoundError, ValueError) as e:
        result["error"] = str(e)

    if json_output:
        _echo_json(result)
    else:
        _click.echo(f"Plugin: {path}")
        if result["error"]:
            _click.echo("  Status: ✗ invalid")
            _click.echo(f"  Error: {result['error']}")
        elif result["warnings"]:
            _click.echo("  Status: ⚠ valid with warnings")
            for warning in result["warnings"]:
                _click.echo(f"  Warning: {warning}")
        else:
            _click.echo("  Status: ✓ valid")

    if result["error"]:
        raise SystemExit(1)


# =============================================================================
# Content Commands
# =============================================================================


@cli.group(name="content")
def content_group() -> None:
    """Inspect content provided by enabled plugins."""
    pass


def _enabled_plugins(ctx: _click.Context) -> list[tuple[str, plugins.Plugin]]:
    """
    Enabled plugins of every scope, as (scope, plugin) pairs.

    A plugin enabled in both scopes is listed once, under the first scope.
    """
    pairs: list[tuple[str, plugins.Plugin]] = []
    seen: set[str] = set()
    for scope in constants.SCOPES:
        for plugin in _installer(ctx, scope).enabled_plugins():
            if plugin.ref not in seen:
                seen.add(plugin.ref)
                pairs.append((scope, plugin))
    return pairs


@content_group.command(name="list")
@_click.option(
    "--kind",
    type=_click.Choice(list(plugins.COMPONENT_KINDS)),
    default=None,
    help="Only list one kind of content",
)
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def content_list(ctx: _click.Context, kind: str | None, json_output: bool) -> None:
    """List agents, skills and commands of enabled plugins."""
    kinds = [kind] if kind else list(plugins.COMPONENT_KINDS)
    rows: list[dict[str, _typing.Any]] = []
    for scope, plugin in _enabled_plugins(ctx):
        for k in kinds:
            for item in getattr(plugin, f"{k}s"):
                rows.append(
                    {
                        "kind": k,
                        "name": item.name,
                        "description": item.description,
                        "plugin": plugin.ref,
                        "scope": scope,
                        "path": str(item.path),
                    }
                )

    if json_output:
        _echo_json({"content": rows})
        return

    if not rows:
        _click.echo("No content from enabled plugins.")
        return

    _click.echo(f"{'Kind':<8} {'Name':<30} {'Plugin'}")
    _click.echo("-" * 70)
    for row in rows:
        _click.echo(f"{row['kind']:<8} {row['name']:<30} {row['plugin']}")


@content_group.command(name="render")
@_click.argument("command_name")
@_click.argument("args", nargs=-1)
@_click.pass_context
def content_render(ctx: _click.Context, command_name: str, args: tuple[str, ...]) -> None:
    """Render a slash command template with arguments.

    \b
    Examples:
        bazaar content render review src/app.py
    """
    matches = [
        (plugin, command)
        for _, plugin in _enabled_plugins(ctx)
        for command in plugin.commands
        if command.name == command_name
    ]
    if not matches:
        _fail(f"Command '{command_name}' not found in enabled plugins")
    if len(matches) > 1:
        owners = ", ".join(plugin.ref for plugin, _ in matches)
        _fail(f"Command '{command_name}' is provided by several plugins: {owners}")

    _, command = matches[0]
    _click.echo(command.render(" ".join(args)))


# =============================================================================
# Lint Command
# =============================================================================


@cli.command(name="lint")
@_click.argument(
    "path",
    type=_click.Path(exists=True, file_okay=False, path_type=_pathlib.Path),
    default=".",
)
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
def lint_cmd(path: _pathlib.Path, json_output: bool) -> None:
    """Check a marketplace (or plugin) for consistency.

    Exits with status 1 when any error is found.
    """
    issues = lint.lint_path(path)
    failed = lint.has_errors(issues)

    if json_output:
        _echo_json(
            {
                "path": str(path),
                "ok": not failed,
                "issues": [issue.to_dict() for issue in issues],
            }
        )
    else:
        for issue in issues:
            _click.echo(str(issue))
        errors = len([i for i in issues if i.is_error])
        warnings = len(issues) - errors
        mark = "✗" if failed else "✓"
        _click.echo(f"{mark} {errors} error(s), {warnings} warning(s)")

    if failed:
        raise SystemExit(1)


# =============================================================================
# Config Commands
# =============================================================================


@cli.group(name="config")
def config_group() -> None:
    """Configuration commands."""
    pass


@config_group.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option(
    "--color/--no-color",
    "use_color",
    default=None,
    help="Enable/disable syntax highlighting (default: auto-detect TTY)",
)
@_click.pass_context
def config_show(ctx: _click.Context, as_json: bool, use_color: bool | None) -> None:
    """Show effective configuration and derived paths."""
    import yaml as _yaml

    data = _settings(ctx).to_display_dict()

    if as_json:
        _echo_json(data)
        return

    color = _sys.stdout.isatty() if use_color is None else use_color
    yaml_text = _yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    _print_yaml(yaml_text, color=color, force_color=bool(use_color))


def _print_yaml(yaml_text: str, *, color: bool = True, force_color: bool = False) -> None:
    """Print YAML text, optionally with syntax highlighting."""
    if not color:
        _click.echo(yaml_text)
        return

    import rich.console as _rich_console
    import rich.syntax as _rich_syntax

    console = _rich_console.Console(
        force_terminal=force_color,
        no_color=False if force_color else None,
    )
    console.print(
        _rich_syntax.Syntax(yaml_text, "yaml", theme="monokai", background_color="default")
    )


@config_group.command(name="path")
@_click.pass_context
def config_path(ctx: _click.Context) -> None:
    """Show configuration file locations."""
    import bazaar.config.sources as sources

    settings = _settings(ctx)
    layers = [
        ("user", sources.get_user_config_path()),
        ("project", sources.get_project_config_path(settings.project_root)),
    ]
    for label, path in layers:
        exists = "✓" if path.exists() else "(not found)"
        _click.echo(f"{label + ':':<9} {path} {exists}")
    _click.echo(f"{'installs:':<9} {settings.installed_plugins_path()}")


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="bazaar")


if __name__ == "__main__":
    main()
