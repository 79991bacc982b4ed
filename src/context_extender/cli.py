"""CLI interface for context-extender."""

from __future__ import annotations

import logging
from pathlib import Path

import click

from . import __version__
from .config import DATA_DIR, LOG_DIR, USER_CONFIG_PATH, load_settings, save_settings, set_setting
from .errors import ContextExtenderError
from .logging_setup import setup_logging


def _format_dt(dt) -> str:
    return dt.astimezone().strftime("%Y-%m-%d %H:%M")


def _get_app(ctx: click.Context):
    """Build the application once per invocation."""
    if "app" not in ctx.obj:
        from .app import ContextExtender

        ctx.obj["app"] = ContextExtender(ctx.obj["settings"], data_dir=DATA_DIR)
    return ctx.obj["app"]


class _Group(click.Group):
    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except ContextExtenderError as e:
            raise click.ClickException(str(e)) from e


@click.group(cls=_Group)
@click.version_option(version=__version__, prog_name="context-extender")
@click.option("-v", "--verbose", is_flag=True, help="Log progress information")
@click.option("--debug", is_flag=True, help="Log debugging information")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool):
    """context-extender: ask Claude questions about documents larger than its context window.

    Index a file or directory once, then query it. Each question is answered by
    reading the relevant sections one at a time and refining the answer.
    """
    level = logging.DEBUG if debug else logging.INFO if verbose else None
    setup_logging(level, LOG_DIR)
    ctx.ensure_object(dict)
    if "settings" not in ctx.obj:
        ctx.obj["settings"] = load_settings()


@cli.command("index")
@click.argument("path", type=click.Path(exists=True, path_type=Path))
@click.option("-n", "--name", help="Name for the index")
@click.option("-s", "--store-content", is_flag=True, help="Store section text in the index (uses more space)")
@click.pass_context
def index_cmd(ctx: click.Context, path: Path, name: str | None, store_content: bool):
    """Create an index from a file or directory.

    Example:
        context-extender index ~/Documents/annual-report.pdf --name report
    """
    app = _get_app(ctx)

    def progress(position: int, total: int, segment) -> None:
        click.echo(f"  Summarized section {position}/{total}: {segment.id}")

    click.echo(f"Indexing {path}...")
    index_id = app.create_index(path, name=name, store_content=store_content, on_progress=progress)
    click.echo(click.style(f"Index created with ID: {index_id}", fg="green", bold=True))


def _choose_index(app) -> str | None:
    indexes = app.list_indexes()
    if not indexes:
        click.echo("No indexes found. Create one with the `index` command first.")
        return None
    for i, idx in enumerate(indexes, 1):
        click.echo(f"  {i}. {idx.name} ({idx.segment_count} sections)")
    choice = click.prompt("Select an index", type=click.IntRange(1, len(indexes)))
    return indexes[choice - 1].id


def _ask(app, index_id: str, question: str, conversation_id: str | None, single_shot: bool) -> str:
    click.echo(click.style("Processing question...", dim=True))
    result = app.answer_question(index_id, question, conversation_id, single_shot=single_shot)
    click.echo()
    click.echo(click.style("Answer:", fg="green", bold=True))
    click.echo(result.answer)
    click.echo()
    if result.relevant_segments:
        sources = ", ".join(s.id for s in result.relevant_segments)
        click.echo(click.style(f"Sources: {sources}", dim=True))
    click.echo(click.style(f"Conversation: {result.conversation_id}", dim=True))
    return result.conversation_id


@cli.command()
@click.argument("index_id", required=False)
@click.option("-q", "--question", help="Question to ask (omit for interactive mode)")
@click.option("-c", "--conversation", "conversation_id", help="Conversation ID to continue")
@click.option("--single-shot", is_flag=True, help="Answer from one combined prompt instead of section by section")
@click.pass_context
def query(
    ctx: click.Context,
    index_id: str | None,
    question: str | None,
    conversation_id: str | None,
    single_shot: bool,
):
    """Ask questions about an index."""
    app = _get_app(ctx)

    if not index_id:
        index_id = _choose_index(app)
        if index_id is None:
            return

    if conversation_id:
        conversation = app.get_conversation_info(conversation_id)
        if conversation is None:
            click.echo(f"Conversation not found: {conversation_id}. Starting a new one.")
            conversation_id = None
        elif conversation.index_id != index_id:
            click.echo(
                f"Conversation {conversation_id} belongs to a different index ({conversation.index_id})."
            )
            if not click.confirm("Continue with this conversation anyway?", default=False):
                conversation_id = None

    if question:
        _ask(app, index_id, question, conversation_id, single_shot)
        return

    click.echo(f"Interactive mode for index: {index_id}")
    click.echo('Type "exit" or "quit" to end the session.\n')
    while True:
        question = click.prompt("Ask a question").strip()
        if question.lower() in ("exit", "quit"):
            click.echo("Exiting interactive mode.")
            return
        if not question:
            continue
        try:
            conversation_id = _ask(app, index_id, question, conversation_id, single_shot)
        except ContextExtenderError as e:
            click.echo(click.style(f"Error: {e}", fg="red"), err=True)


@cli.command("list")
@click.pass_context
def list_cmd(ctx: click.Context):
    """List all indexes."""
    indexes = _get_app(ctx).list_indexes()
    if not indexes:
        click.echo("No indexes found. Create one with the `index` command.")
        return

    click.echo(click.style(f"Found {len(indexes)} indexes:", bold=True))
    for idx in indexes:
        click.echo(
            f"  {click.style(idx.id, fg='green')}: {idx.name} "
            f"({idx.segment_count} sections, created {_format_dt(idx.created_at)})"
        )


@cli.command()
@click.argument("index_id")
@click.pass_context
def info(ctx: click.Context, index_id: str):
    """Show information about an index."""
    index_info = _get_app(ctx).get_index_info(index_id)
    if index_info is None:
        click.echo(f"Index not found: {index_id}")
        return

    keywords = index_info.keywords[:10]
    more = "..." if len(index_info.keywords) > 10 else ""

    click.echo()
    click.echo(click.style(f"Index: {index_info.id}", bold=True))
    click.echo(f"  Name:      {index_info.name}")
    click.echo(f"  Created:   {_format_dt(index_info.created_at)}")
    click.echo(f"  Updated:   {_format_dt(index_info.updated_at)}")
    click.echo(f"  Sections:  {index_info.segment_count}")
    click.echo(f"  Keywords:  {', '.join(keywords) + more if keywords else 'None'}")
    click.echo()
    click.echo(click.style("Overall summary:", bold=True))
    click.echo(index_info.overall_summary or "No summary available")
    click.echo()


@cli.command()
@click.argument("index_id")
@click.confirmation_option(prompt="Are you sure you want to delete this index?")
@click.pass_context
def delete(ctx: click.Context, index_id: str):
    """Delete an index."""
    if _get_app(ctx).delete_index(index_id):
        click.echo(f"Deleted index {index_id}")
    else:
        click.echo(f"Index not found: {index_id}")


@cli.command()
@click.argument("index_id", required=False)
@click.pass_context
def conversations(ctx: click.Context, index_id: str | None):
    """List conversations, optionally for one index."""
    found = _get_app(ctx).list_conversations(index_id)
    suffix = f" for index {index_id}" if index_id else ""
    click.echo(click.style(f"Found {len(found)} conversations{suffix}:", bold=True))
    for conv in found:
        click.echo(
            f"  {click.style(conv.id, fg='green')}: index {conv.index_id} "
            f"({conv.exchange_count} exchanges, updated {_format_dt(conv.updated_at)})"
        )


@cli.command()
@click.argument("conversation_id")
@click.pass_context
def conversation(ctx: click.Context, conversation_id: str):
    """Show a conversation's summary and recent exchanges."""
    conv = _get_app(ctx).get_conversation_info(conversation_id)
    if conv is None:
        click.echo(f"Conversation not found: {conversation_id}")
        return

    click.echo()
    click.echo(click.style(f"Conversation: {conv.id}", bold=True))
    click.echo(f"  Index:      {conv.index_id}")
    click.echo(f"  Exchanges:  {conv.exchange_count}")
    click.echo(f"  Updated:    {_format_dt(conv.updated_at)}")
    if conv.history_summary:
        click.echo()
        click.echo(click.style("Summary of earlier exchanges:", bold=True))
        click.echo(conv.history_summary)
    for exchange in conv.recent_exchanges:
        click.echo()
        click.echo(click.style(f"User ({_format_dt(exchange.timestamp)}):", bold=True))
        click.echo(exchange.question)
        click.echo(click.style("Answer:", bold=True))
        click.echo(exchange.answer)
    click.echo()


@cli.command("delete-conversation")
@click.argument("conversation_id")
@click.confirmation_option(prompt="Are you sure you want to delete this conversation?")
@click.pass_context
def delete_conversation(ctx: click.Context, conversation_id: str):
    """Delete a conversation."""
    if _get_app(ctx).delete_conversation(conversation_id):
        click.echo(f"Deleted conversation {conversation_id}")
    else:
        click.echo(f"Conversation not found: {conversation_id}")


@cli.command()
@click.pass_context
def config(ctx: click.Context):
    """Print the effective configuration."""
    click.echo(ctx.obj["settings"].model_dump_json(indent=2))
    click.echo()
    click.echo(f"User config file: {USER_CONFIG_PATH}")


@cli.command("config-set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str):
    """Change one setting, e.g. `config-set conversation.merge_frequency 4`."""
    settings = set_setting(ctx.obj["settings"], key, value)
    path = save_settings(settings)
    ctx.obj["settings"] = settings
    click.echo(f"Updated {key} in {path}")


@cli.command()
def serve():
    """Start the MCP server (stdio transport)."""
    from .server import mcp

    mcp.run(transport="stdio")
