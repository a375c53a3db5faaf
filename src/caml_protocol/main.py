"""
CAML MCP Server
Import, export, inspect and validate CAML adventure modules over FastMCP.
"""

import logging
from typing import Annotated, Literal

from dotenv import load_dotenv
from fastmcp import FastMCP
from pydantic import Field

from . import tools
from .config import CamlSettings

logger = logging.getLogger("caml-protocol")

if not load_dotenv():
    logger.warning("❌ .env file invalid or not found! Using CAML_* environment variables and defaults.")

settings = CamlSettings.from_env()

logging.basicConfig(
    level=settings.log_level,
    )
logger.debug(f"⚙️ Settings: {settings.model_dump()}")

mcp = FastMCP(
    name="caml-protocol"
)

logger.debug("✅ Server initialized, registering tools")


# ----------------------------------------------------------------------
# Tools
# ----------------------------------------------------------------------

@mcp.tool
def parse_caml_document(
    content: Annotated[str, Field(description="CAML document text (JSON or YAML)")],
    fmt: Annotated[Literal["json", "yaml"] | None, Field(description="Document format. Defaults to CAML_DEFAULT_FORMAT")] = None,
) -> str:
    """Parse a CAML adventure and summarize its contents.

    Accepts a bare module, an exported ``{adventure, entities}`` pack, or a
    loose document with a title and entity arrays.
    """
    return tools.parse_caml_document(content, fmt, settings)


@mcp.tool
def get_adventure_graph(
    content: Annotated[str, Field(description="CAML document text (JSON or YAML)")],
    fmt: Annotated[Literal["json", "yaml"] | None, Field(description="Document format. Defaults to CAML_DEFAULT_FORMAT")] = None,
) -> str:
    """Build the node/edge graph of a CAML adventure as JSON.

    Edges cover explicit links, location connections, encounters and NPCs
    placed in locations, quest givers and gate prerequisites.
    """
    return tools.get_adventure_graph(content, fmt, settings)


@mcp.tool
def import_caml_adventure(
    content: Annotated[str, Field(description="CAML document text (JSON or YAML)")],
    fmt: Annotated[Literal["json", "yaml"] | None, Field(description="Document format. Defaults to CAML_DEFAULT_FORMAT")] = None,
) -> str:
    """Convert a CAML adventure into campaign rows (NPCs, locations, encounters, quests, items)."""
    return tools.import_caml_adventure(content, fmt, settings)


@mcp.tool
def export_campaign_caml(
    campaign: Annotated[str, Field(description="Campaign row as a JSON object (id, title, description, setting)")],
    sessions: Annotated[str, Field(description="Session rows as a JSON array, oldest first")] = "[]",
    participants: Annotated[str, Field(description="Participant rows as a JSON array")] = "[]",
    npcs: Annotated[str, Field(description="NPC rows as a JSON array")] = "[]",
    quests: Annotated[str, Field(description="Quest rows as a JSON array")] = "[]",
    fmt: Annotated[Literal["json", "yaml"] | None, Field(description="Output format. Defaults to CAML_DEFAULT_FORMAT")] = None,
) -> str:
    """Export a campaign as a CAML adventure pack.

    Locations are inferred from the latest session's journey log and the
    current combat becomes an encounter.
    """
    try:
        return tools.export_campaign_caml(
            campaign, sessions, participants, npcs, quests, fmt, settings
        )
    except ValueError as e:
        return f"Error: {e}"


@mcp.tool
def validate_caml_document(
    content: Annotated[str, Field(description="CAML document text (JSON or YAML)")],
    fmt: Annotated[Literal["json", "yaml"] | None, Field(description="Document format. Defaults to CAML_DEFAULT_FORMAT")] = None,
) -> str:
    """Check a CAML adventure for dangling references, reused ids and malformed gates."""
    return tools.validate_caml_document(content, fmt, settings)


logger.debug("✅ All tools successfully registered. CAML Protocol server running! 📜")

def main() -> None:
    """Main entry point for the CAML MCP Server."""
    mcp.run()

if __name__ == "__main__":
    main()
