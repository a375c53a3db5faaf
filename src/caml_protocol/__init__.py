"""
CAML Protocol - parse, index, graph and convert CAML adventure modules.
"""

from .models import *
from .gates import Gate, GateExpr, OutcomeStep, apply_outcome, evaluate_gate, extract_gate_references
from .index import DuplicateEntityIdError, build_entity_index
from .parser import ParseFailure, ParseFailureReason, ParseSuccess, parse_caml, parse_caml_json, parse_caml_yaml
from .graph import AdventureGraph, build_adventure_graph
from .converter import ConvertedCampaignData, convert_caml_to_campaign, convert_campaign_to_caml
from .serializers import export_to_json, export_to_yaml
from .validation import ValidationReport, validate_pack

try:
    from importlib.metadata import version as _get_version
    __version__ = _get_version("caml-protocol")
except Exception:
    __version__ = "0.1.0"  # Fallback if metadata unavailable
__all__ = [
    "AdventureModule",
    "AdventurePack",
    "Gate",
    "GateExpr",
    "OutcomeStep",
    "apply_outcome",
    "evaluate_gate",
    "extract_gate_references",
    "DuplicateEntityIdError",
    "build_entity_index",
    "ParseFailure",
    "ParseFailureReason",
    "ParseSuccess",
    "parse_caml",
    "parse_caml_json",
    "parse_caml_yaml",
    "AdventureGraph",
    "build_adventure_graph",
    "ConvertedCampaignData",
    "convert_caml_to_campaign",
    "convert_campaign_to_caml",
    "export_to_json",
    "export_to_yaml",
    "ValidationReport",
    "validate_pack",
]
