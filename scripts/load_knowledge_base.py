#!/usr/bin/env python3
"""
Medication Interaction Engine
Knowledge Base Loader - Convert an interaction spreadsheet into a JSON dataset

Usage:
    python load_knowledge_base.py /path/to/interactions.xlsx [--output interactions.json]

The spreadsheet (Excel or CSV) needs one row per interaction with the columns
drug, interacts_with, severity, description.
"""
import sys
import logging
import argparse
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from interaction_engine.core.knowledge_base import InteractionKnowledgeBase
from interaction_engine.core.ddi_engine import RuleBasedMatcher

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def load_and_export_knowledge_base(
    input_path: str,
    output_path: str = None,
    export_json: bool = True
):
    """
    Load an interaction dataset, build the knowledge base and export it.

    Args:
        input_path: Path to the Excel/CSV/JSON dataset
        output_path: Optional output path for the JSON dataset
        export_json: Whether to export the dataset to JSON
    """
    logger.info(f"Loading interactions from: {input_path}")

    dataset = InteractionKnowledgeBase.load_dataset(input_path)
    kb = InteractionKnowledgeBase(dataset).build()

    stats = kb.get_statistics()
    logger.info("Knowledge Base Statistics:")
    for key, value in stats.items():
        logger.info(f"  {key}: {value}")

    if export_json:
        if output_path is None:
            output_path = str(Path(input_path).with_suffix(".json"))
        kb.export_dataset(output_path)
        logger.info(f"Exported knowledge base to: {output_path}")

    # Sample pair lookups
    logger.info("Sample Lookups:")
    matcher = RuleBasedMatcher(kb)
    for drug in kb.drugs()[:5]:
        for edge in kb.lookup_direct(drug)[:1]:
            risk = matcher.check_pair(edge.counterpart, drug)
            logger.info(
                f"  {edge.counterpart} + {drug}: "
                f"{risk.severity.value if risk else 'not found'}"
            )

    return kb, stats


def main():
    parser = argparse.ArgumentParser(
        description="Convert a drug interaction spreadsheet into the engine's JSON dataset"
    )
    parser.add_argument(
        "input",
        help="Path to the interaction dataset (.xlsx, .xls, .csv or .json)"
    )
    parser.add_argument(
        "--output", "-o",
        help="Output path for the JSON dataset"
    )
    parser.add_argument(
        "--no-export",
        action="store_true",
        help="Only validate and print statistics"
    )

    args = parser.parse_args()

    if not Path(args.input).exists():
        logger.error(f"Input file not found: {args.input}")
        sys.exit(1)

    load_and_export_knowledge_base(args.input, args.output, export_json=not args.no_export)


if __name__ == "__main__":
    main()
