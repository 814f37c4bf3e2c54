"""
Medication Interaction Engine - Interaction Knowledge Base
Curated drug-drug interaction table with once-only construction and atomic refresh
"""
import json
import logging
import threading
from collections import defaultdict
from pathlib import Path
from types import MappingProxyType
from typing import List, Dict, Optional, Tuple, Any, Mapping

import pandas as pd

from config import settings
from interaction_engine.core.models import InteractionEdge, Severity, classify_severity
from interaction_engine.core.normalizer import normalize

logger = logging.getLogger(__name__)


# Curated interactions keyed by source drug.
# Each edge is logically symmetric; the matcher checks both directions.
CURATED_INTERACTIONS: Dict[str, List[Dict[str, str]]] = {
    # Anticoagulants
    "warfarin": [
        {"interacts_with": "aspirin", "severity": "high",
         "description": "Increased bleeding risk due to combined antiplatelet and anticoagulant effects. "
                        "Avoid combination or monitor INR closely."},
        {"interacts_with": "ibuprofen", "severity": "medium",
         "description": "NSAIDs inhibit platelet function and may cause GI bleeding; "
                        "may displace warfarin from protein binding."},
        {"interacts_with": "naproxen", "severity": "medium",
         "description": "NSAID use with warfarin increases the risk of GI hemorrhage."},
        {"interacts_with": "clopidogrel", "severity": "high",
         "description": "Additive antiplatelet and anticoagulant effects with a marked increase in bleeding risk."},
        {"interacts_with": "fluconazole", "severity": "high",
         "description": "Fluconazole inhibits CYP2C9 and CYP3A4, increasing warfarin effect. "
                        "Reduce warfarin dose and monitor INR frequently."},
        {"interacts_with": "amiodarone", "severity": "high",
         "description": "Amiodarone inhibits warfarin metabolism; INR may rise for weeks after starting."},
        {"interacts_with": "metronidazole", "severity": "medium",
         "description": "Metronidazole inhibits warfarin metabolism (CYP2C9). Monitor INR closely."},
    ],

    # Statins
    "simvastatin": [
        {"interacts_with": "clarithromycin", "severity": "high",
         "description": "CYP3A4 inhibition raises simvastatin exposure with a risk of myopathy and "
                        "rhabdomyolysis. Use an alternative statin or antibiotic."},
        {"interacts_with": "itraconazole", "severity": "high",
         "description": "Severe myopathy and rhabdomyolysis risk from CYP3A4 inhibition. Contraindicated."},
        {"interacts_with": "cyclosporine", "severity": "high",
         "description": "Cyclosporine markedly increases simvastatin levels; risk of myopathy."},
    ],
    "atorvastatin": [
        {"interacts_with": "clarithromycin", "severity": "medium",
         "description": "Increased statin exposure. Limit atorvastatin dose and monitor for myopathy."},
    ],

    # ACE inhibitors
    "lisinopril": [
        {"interacts_with": "spironolactone", "severity": "medium",
         "description": "Additive hyperkalemia risk, especially in renal impairment. Monitor potassium."},
        {"interacts_with": "potassium supplements", "severity": "medium",
         "description": "Risk of hyperkalemia. Monitor serum potassium closely."},
    ],

    # Cardiac glycosides
    "digoxin": [
        {"interacts_with": "amiodarone", "severity": "medium",
         "description": "Amiodarone increases digoxin levels by 70-100%. Reduce digoxin dose and monitor levels."},
        {"interacts_with": "verapamil", "severity": "medium",
         "description": "Verapamil increases digoxin levels and has additive AV node effects."},
        {"interacts_with": "clarithromycin", "severity": "medium",
         "description": "Macrolides increase digoxin levels via P-glycoprotein inhibition."},
    ],

    # Antidiabetics
    "metformin": [
        {"interacts_with": "contrast media", "severity": "medium",
         "description": "Risk of lactic acidosis. Hold metformin around iodinated contrast administration."},
        {"interacts_with": "alcohol", "severity": "medium",
         "description": "Alcohol potentiates the effect of metformin on lactate metabolism."},
    ],

    # Thyroid
    "levothyroxine": [
        {"interacts_with": "calcium supplements", "severity": "medium",
         "description": "Calcium reduces levothyroxine absorption. Separate doses by at least 4 hours."},
        {"interacts_with": "iron supplements", "severity": "medium",
         "description": "Iron reduces levothyroxine absorption. Separate doses by at least 4 hours."},
    ],

    # Respiratory
    "theophylline": [
        {"interacts_with": "ciprofloxacin", "severity": "high",
         "description": "Ciprofloxacin inhibits theophylline metabolism. Reduce theophylline dose and monitor levels."},
    ],

    # Mood stabilizers
    "lithium": [
        {"interacts_with": "ibuprofen", "severity": "high",
         "description": "NSAIDs reduce lithium clearance, causing toxicity."},
    ],

    # Serotonergic drugs
    "sertraline": [
        {"interacts_with": "tramadol", "severity": "high",
         "description": "Serotonin syndrome risk due to combined serotonergic activity."},
    ],

    # Antifolates
    "methotrexate": [
        {"interacts_with": "trimethoprim", "severity": "high",
         "description": "Additive antifolate effects and reduced methotrexate clearance. Monitor blood counts."},
    ],

    # Antibiotics
    "ciprofloxacin": [
        {"interacts_with": "antacids", "severity": "low",
         "description": "Polyvalent cations reduce ciprofloxacin absorption. Separate administration."},
    ],
}


Table = Mapping[str, Tuple[InteractionEdge, ...]]


def build_table(dataset: Mapping[str, List[Dict[str, Any]]]) -> Table:
    """
    Build a read-only lookup table from a dataset.

    Drug names and counterparts are normalized; repeated (drug, counterpart)
    entries collapse into one edge, so building the same dataset twice never
    yields duplicate edges.
    """
    table: Dict[str, List[InteractionEdge]] = defaultdict(list)
    seen = set()

    for drug, entries in dataset.items():
        source = normalize(drug)
        if not source:
            logger.warning(f"Skipping knowledge base entry with empty drug name: {drug!r}")
            continue

        for entry in entries or []:
            counterpart = normalize(entry.get("interacts_with"))
            if not counterpart or counterpart == source:
                logger.warning(f"Skipping invalid interaction for {source}: {entry!r}")
                continue
            if (source, counterpart) in seen:
                continue
            seen.add((source, counterpart))

            severity = entry.get("severity")
            table[source].append(InteractionEdge(
                counterpart=counterpart,
                severity=severity if isinstance(severity, Severity) else classify_severity(severity),
                description=str(entry.get("description") or "").strip()
                or f"Known interaction between {source} and {counterpart}",
            ))

    return MappingProxyType({drug: tuple(edges) for drug, edges in table.items()})


class InteractionKnowledgeBase:
    """Directed, read-only lookup table of known drug-drug interactions"""

    def __init__(self, dataset: Optional[Mapping[str, List[Dict[str, Any]]]] = None):
        self.dataset = dataset if dataset is not None else CURATED_INTERACTIONS
        self._table: Table = MappingProxyType({})
        self._built = False
        self._lock = threading.Lock()

    @property
    def is_built(self) -> bool:
        return self._built

    def build(self) -> "InteractionKnowledgeBase":
        """Populate the table once. Repeated or concurrent calls are no-ops."""
        if self._built:
            return self

        with self._lock:
            if self._built:
                return self
            self._table = build_table(self.dataset)
            self._built = True

        logger.info(
            f"Interaction knowledge base built with {len(self._table)} drugs "
            f"and {self.edge_count} interactions"
        )
        return self

    def update(self, dataset: Mapping[str, List[Dict[str, Any]]]) -> int:
        """Replace the whole table. Readers see either the old or the new table."""
        new_table = build_table(dataset)
        with self._lock:
            self.dataset = dataset
            self._table = new_table
            self._built = True

        logger.info(f"Interaction knowledge base replaced: {len(new_table)} drugs")
        return self.edge_count

    def reload_from_file(self, filepath: str) -> int:
        """Atomically refresh the table from a JSON, CSV or Excel dataset"""
        return self.update(self.load_dataset(filepath))

    @property
    def table(self) -> Table:
        if not self._built:
            self.build()
        return self._table

    @property
    def edge_count(self) -> int:
        return sum(len(edges) for edges in self._table.values())

    def lookup_direct(self, key: str) -> Tuple[InteractionEdge, ...]:
        """Edges stored under ``key`` (empty if absent)"""
        return self.table.get(key, ())

    def lookup_reverse(self, key: str) -> List[Tuple[str, InteractionEdge]]:
        """All (source_drug, edge) pairs whose edge points at ``key``"""
        table = self.table
        return [
            (source, edge)
            for source, edges in table.items()
            for edge in edges
            if edge.counterpart == key
        ]

    def drugs(self) -> List[str]:
        return sorted(self.table.keys())

    @staticmethod
    def load_dataset(filepath: str) -> Dict[str, List[Dict[str, Any]]]:
        """
        Load an interaction dataset from disk.

        JSON files use the same shape as CURATED_INTERACTIONS. CSV and Excel
        files need the columns drug, interacts_with, severity, description.
        """
        path = Path(filepath)
        logger.info(f"Loading interaction dataset from {path}")

        if path.suffix.lower() == ".json":
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError(f"Expected a JSON object of drug -> interactions in {path}")
            return data

        if path.suffix.lower() in (".xlsx", ".xls"):
            df = pd.read_excel(path)
        elif path.suffix.lower() == ".csv":
            df = pd.read_csv(path)
        else:
            raise ValueError(f"Unsupported dataset format: {path.suffix}")

        return dataset_from_dataframe(df)

    def export_dataset(self, output_path: str) -> None:
        """Export the current table to JSON in dataset format"""
        data = {
            drug: [
                {
                    "interacts_with": edge.counterpart,
                    "severity": edge.severity.value,
                    "description": edge.description,
                }
                for edge in edges
            ]
            for drug, edges in self.table.items()
        }
        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

        logger.info(f"Exported {self.edge_count} interactions to {output_path}")

    def get_statistics(self) -> Dict[str, Any]:
        """Get knowledge base statistics"""
        severity_counts = defaultdict(int)
        for edges in self.table.values():
            for edge in edges:
                severity_counts[edge.severity.value] += 1

        return {
            "built": self._built,
            "drugs": len(self._table),
            "interactions": self.edge_count,
            "severity_distribution": dict(severity_counts),
        }


REQUIRED_COLUMNS = ("drug", "interacts_with", "severity", "description")


def dataset_from_dataframe(df: pd.DataFrame) -> Dict[str, List[Dict[str, Any]]]:
    """Convert a one-row-per-interaction DataFrame into dataset shape"""
    df = df.rename(columns=lambda c: str(c).strip().lower().replace(" ", "_"))
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Dataset is missing columns: {', '.join(missing)}")

    df = df.dropna(subset=["drug", "interacts_with"]).fillna("")
    dataset: Dict[str, List[Dict[str, Any]]] = defaultdict(list)

    for _, row in df.iterrows():
        dataset[str(row["drug"]).strip()].append({
            "interacts_with": str(row["interacts_with"]).strip(),
            "severity": str(row["severity"]).strip(),
            "description": str(row["description"]).strip(),
        })

    return dict(dataset)


# Shared instance, assigned once under the lock
_knowledge_base: Optional[InteractionKnowledgeBase] = None
_knowledge_base_lock = threading.Lock()


def get_knowledge_base() -> InteractionKnowledgeBase:
    """Get or create the process-wide knowledge base"""
    global _knowledge_base
    if _knowledge_base is None:
        with _knowledge_base_lock:
            if _knowledge_base is None:
                dataset = None
                if settings.KNOWLEDGE_BASE_PATH:
                    try:
                        dataset = InteractionKnowledgeBase.load_dataset(settings.KNOWLEDGE_BASE_PATH)
                    except Exception as e:
                        logger.error(
                            f"Failed to load knowledge base from {settings.KNOWLEDGE_BASE_PATH}: {e}; "
                            "using curated interactions"
                        )
                _knowledge_base = InteractionKnowledgeBase(dataset).build()
    return _knowledge_base
