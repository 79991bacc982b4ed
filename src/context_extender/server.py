"""FastMCP server exposing indexes and question answering as tools."""

from __future__ import annotations

import logging
import sys

from mcp.server.fastmcp import FastMCP

from .app import ContextExtender
from .config import DATA_DIR, load_settings
from .errors import ContextExtenderError

# Logging to stderr only, stdout is the MCP JSON-RPC transport
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)

mcp = FastMCP(
    "context-extender",
    instructions=(
        "Answer questions about large documents that have been indexed with context-extender. "
        "Use list_indexes to see what is available and get_index_info for an overview of one. "
        "Use ask_question to get an answer built from the relevant sections; pass the returned "
        "conversation_id back to continue the same conversation."
    ),
)

# Singleton app, reused across tool calls
_app: ContextExtender | None = None


def _get_app() -> ContextExtender:
    global _app
    if _app is None:
        _app = ContextExtender(load_settings(), data_dir=DATA_DIR)
    return _app


@mcp.tool()
def list_indexes() -> str:
    """List all document indexes."""
    indexes = _get_app().list_indexes()
    if not indexes:
        return "No indexes found. Create one with: context-extender index <path>"

    lines = [f"Found {len(indexes)} indexes:\n"]
    for i, idx in enumerate(indexes, 1):
        lines.append(f"{i}. **{idx.name}**")
        lines.append(f"   ID: `{idx.id}` | {idx.segment_count} sections | Updated: {idx.updated_at:%Y-%m-%d %H:%M}")
    return "\n".join(lines)


@mcp.tool()
def get_index_info(index_id: str) -> str:
    """Describe an index: its overall summary and its sections.

    Args:
        index_id: The index ID (from list_indexes)
    """
    info = _get_app().get_index_info(index_id)
    if info is None:
        return f"Index not found: {index_id}"

    lines = [
        f"# {info.name}",
        f"- **ID**: `{info.id}`",
        f"- **Sections**: {info.segment_count}",
        f"- **Keywords**: {', '.join(info.keywords[:20]) or 'None'}",
        "",
        "## Overall summary",
        info.overall_summary or "No summary available.",
        "",
        "## Sections",
    ]
    for segment in info.segments:
        lines.append(f"- `{segment.id}`: {segment.summary[:200]}")
    return "\n".join(lines)


@mcp.tool()
def ask_question(index_id: str, question: str, conversation_id: str | None = None) -> str:
    """Answer a question using the relevant sections of an indexed document.

    Args:
        index_id: The index to answer from
        question: The question, in natural language
        conversation_id: Optional conversation to continue (from a previous answer)
    """
    try:
        result = _get_app().answer_question(index_id, question, conversation_id)
    except ContextExtenderError as e:
        return f"Could not answer: {e}"

    sources = ", ".join(f"`{s.id}`" for s in result.relevant_segments) or "none"
    return (
        f"{result.answer}\n\n---\n"
        f"Sources: {sources}\n"
        f"Conversation ID: `{result.conversation_id}`"
    )


@mcp.tool()
def list_conversations(index_id: str | None = None) -> str:
    """List conversations, optionally only those about one index.

    Args:
        index_id: Optional index ID to filter by
    """
    found = _get_app().list_conversations(index_id)
    if not found:
        return "No conversations found."

    lines = [f"Found {len(found)} conversations:\n"]
    for conv in found:
        lines.append(
            f"- `{conv.id}` | index `{conv.index_id}` | {conv.exchange_count} exchanges | "
            f"Updated: {conv.updated_at:%Y-%m-%d %H:%M}"
        )
    return "\n".join(lines)


@mcp.tool()
def get_conversation(conversation_id: str) -> str:
    """Show a conversation's summary and recent exchanges.

    Args:
        conversation_id: The conversation ID
    """
    conv = _get_app().get_conversation_info(conversation_id)
    if conv is None:
        return f"Conversation not found: {conversation_id}"

    lines = [f"# Conversation `{conv.id}`", f"Index: `{conv.index_id}` | Exchanges: {conv.exchange_count}", ""]
    if conv.history_summary:
        lines.extend(["## Summary of earlier exchanges", conv.history_summary, ""])
    for exchange in conv.recent_exchanges:
        lines.append(f"**User**: {exchange.question}")
        lines.append(f"**Answer**: {exchange.answer}")
        lines.append("")
    return "\n".join(lines)
