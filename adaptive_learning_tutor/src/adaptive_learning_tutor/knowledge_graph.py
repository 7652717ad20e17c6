"""
Concept Library

Concept metadata with prerequisite relationships and fuzzy lookup by id
or display name.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

DEFAULT_CONCEPTS = [
    "javascript-basics",
    "react-fundamentals",
    "typescript-intro",
    "node-js-basics",
    "database-design",
]

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def normalize(text: str) -> str:
    return _NON_ALNUM.sub("", text.lower())


def display_name(concept_id: str) -> str:
    """'node-js-basics' -> 'Node Js Basics'"""
    return " ".join(part.capitalize() for part in concept_id.split("-") if part)


@dataclass
class Concept:
    """A learnable concept with metadata."""
    id: str
    name: str
    description: str = ""
    prerequisites: List[str] = field(default_factory=list)
    difficulty: str = "intermediate"
    keywords: List[str] = field(default_factory=list)

    def __hash__(self):
        return hash(self.id)

    def __eq__(self, other):
        if isinstance(other, Concept):
            return self.id == other.id
        return False


class ConceptLibrary:
    """
    In-process concept catalogue.

    Features:
    - Concept metadata keyed by id
    - Prerequisite and dependent lookups
    - Fuzzy matching of free text against ids and display names
    """

    def __init__(self, concepts: Optional[Iterable[Concept]] = None):
        # Concept storage: id -> Concept
        self.concepts: Dict[str, Concept] = {}

        # Reverse: prerequisite -> concepts that require it
        self.dependents: Dict[str, Set[str]] = {}

        if concepts is None:
            self._initialize_default_concepts()
        else:
            for concept in concepts:
                self.add_concept(concept)

    def _initialize_default_concepts(self):
        for concept_id in DEFAULT_CONCEPTS:
            self.add_concept(Concept(
                id=concept_id,
                name=display_name(concept_id),
                description=f"Learn about {concept_id}",
            ))

    def add_concept(self, concept: Concept):
        self.concepts[concept.id] = concept
        for prerequisite in concept.prerequisites:
            self.dependents.setdefault(prerequisite, set()).add(concept.id)

    def get(self, concept_id: str) -> Optional[Concept]:
        return self.concepts.get(concept_id)

    def __contains__(self, concept_id: str) -> bool:
        return concept_id in self.concepts

    def get_prerequisites(self, concept_id: str) -> List[str]:
        concept = self.concepts.get(concept_id)
        return list(concept.prerequisites) if concept else []

    def get_dependents(self, concept_id: str) -> List[str]:
        return sorted(self.dependents.get(concept_id, set()))

    def find_concept(self, term: str) -> Optional[str]:
        """
        Resolve free text to a concept id.

        Exact id or display-name matches win; otherwise the first concept
        whose normalized id or name contains the normalized term (or whose
        id is contained in the term) is returned.

        Args:
            term: Text such as "React" or "node.js basics"

        Returns:
            Concept id, or None when nothing matches
        """
        term = term.strip()
        term_norm = normalize(term)
        if not term_norm:
            return None

        for concept_id, concept in self.concepts.items():
            if concept_id == term or concept.name.lower() == term.lower():
                return concept_id

        for concept_id, concept in self.concepts.items():
            id_norm = normalize(concept_id)
            name_norm = normalize(concept.name)
            if term_norm in id_norm or term_norm in name_norm or id_norm in term_norm:
                return concept_id

        return None

    def names(self) -> List[str]:
        return [concept.name for concept in self.concepts.values()]
