"""
Level-Appropriate Content Generation

Builds summaries, code examples, analogies, diagrams and step lists for a
(concept, difficulty) pair. Summaries and analogies are picked from
per-level phrasing pools through an injected random source; examples and
diagrams are deterministic templates.
"""

import random
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass(frozen=True)
class CodeExample:
    language: str
    code: str
    explanation: str
    runnable: bool = True
    expected_output: Optional[str] = None


@dataclass(frozen=True)
class DiagramData:
    type: str  # "flowchart", "architecture", "sequence", "class", "network"
    title: str
    data: str  # Mermaid source
    description: str = ""


SUMMARY_TEMPLATES: Dict[str, List[str]] = {
    "beginner": [
        "{concept} is a fundamental building block in this domain. Think of it as a starting point.",
        "At its core, {concept} handles basic operations essential for beginners.",
        "{concept} introduces the primary syntax and structure you need to get started.",
    ],
    "intermediate": [
        "{concept} connects multiple basic ideas to form more complex workflows.",
        "With {concept}, you can handle more specific cases and error states.",
        "{concept} bridges the gap between simple scripts and structured applications.",
    ],
    "advanced": [
        "{concept} allows for performance optimization and custom architectural patterns.",
        "In advanced scenarios, {concept} manages scalability and asynchronous complexity.",
        "A deep understanding of {concept} unlocks meta-programming and internal customization.",
    ],
    "expert": [
        "{concept} at an expert level involves runtime internals and memory behaviour.",
        "Mastery of {concept} lets you contribute to core libraries and define standards.",
        "{concept} becomes critical in high-throughput, low-latency systems.",
    ],
}

ANALOGY_TEMPLATES: Dict[str, List[str]] = {
    "beginner": [
        "Think of {concept} like a recipe: follow the steps in order and you get the dish.",
        "{concept} is like a labelled box where you keep something to use later.",
    ],
    "intermediate": [
        "{concept} acts like a traffic controller directing data where it needs to go.",
        "Imagine {concept} as a library catalogue that organizes books by category.",
    ],
    "advanced": [
        "Think of {concept} like a car's transmission, trading speed for torque as conditions change.",
        "{concept} is like a factory assembly line where each station can be retooled independently.",
    ],
    "expert": [
        "{concept} is like city planning: local choices add up to emergent, system-wide behaviour.",
        "Treat {concept} like an orchestra conductor balancing many sections under tight timing.",
    ],
}

STEP_TEMPLATES: Dict[str, List[str]] = {
    "beginner": [
        "Step 1: Understand what {concept} is and why it exists",
        "Step 2: Walk through a minimal example",
        "Step 3: Change one thing and observe the result",
    ],
    "intermediate": [
        "Step 1: Review the basics of {concept}",
        "Step 2: Practice with realistic examples and edge cases",
        "Step 3: Apply {concept} to a small project",
    ],
    "advanced": [
        "Step 1: Compare alternative designs that use {concept}",
        "Step 2: Profile and optimize a {concept}-heavy workload",
        "Step 3: Integrate {concept} into a larger system",
    ],
    "expert": [
        "Step 1: Read the reference implementation of {concept}",
        "Step 2: Identify the trade-offs baked into its design",
        "Step 3: Extend or teach {concept} to others",
    ],
}

READ_TIME_MINUTES = {
    "beginner": 5,
    "intermediate": 8,
    "advanced": 12,
    "expert": 15,
}


def _identifier(concept: str) -> str:
    return "".join(ch if ch.isalnum() else "_" for ch in concept.lower()).strip("_") or "concept"


def _class_name(concept: str) -> str:
    return "".join(part.capitalize() for part in _identifier(concept).split("_") if part) or "Concept"


class ContentGenerator:
    """Stateless content generation with an injectable random source."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def _pick(self, pool: Dict[str, List[str]], concept: str, level: str) -> str:
        options = pool.get(level, pool["beginner"])
        return self.rng.choice(options).format(concept=concept)

    def generate_summary(self, concept: str, level: str) -> str:
        return self._pick(SUMMARY_TEMPLATES, concept, level)

    def generate_analogy(self, concept: str, level: str) -> str:
        return self._pick(ANALOGY_TEMPLATES, concept, level)

    def generate_detailed(self, concept: str, level: str) -> str:
        return f"Detailed explanation of {concept} at {level} level."

    def generate_example(self, concept: str, level: str) -> CodeExample:
        name = _identifier(concept)
        cls = _class_name(concept)

        if level == "beginner":
            code = f"# Basic usage of {concept}\nresult = {name}(basic_input)\nprint(result)"
            explanation = f"A simple example showing the default behaviour of {concept}."
        elif level == "intermediate":
            code = (
                f"# Error handling with {concept}\n"
                f"try:\n    data = {name}(user_input)\n"
                f"except ValueError as e:\n    print('Failed:', e)"
            )
            explanation = f"Handling common edge cases and errors when using {concept}."
        elif level == "advanced":
            code = (
                f"# Async pipeline with {concept}\n"
                f"pipeline = {cls}Pipeline()\n"
                f"await pipeline.use(middleware).process(data)"
            )
            explanation = f"Integrating {concept} into a larger asynchronous processing pipeline."
        else:
            code = (
                f"# Custom implementation of {concept}\n"
                f"class Optimized{cls}(Base{cls}):\n"
                f"    def __init__(self, **opts):\n        super().__init__(**opts)"
            )
            explanation = f"Extending the core behaviour of {concept} for performance."

        return CodeExample(language="python", code=code, explanation=explanation)

    def generate_diagram(self, concept: str, level: str) -> DiagramData:
        node = _class_name(concept)
        return DiagramData(
            type="flowchart",
            title=f"{concept} Workflow ({level})",
            data=f"graph TD;\n  Start --> {node};\n  {node} --> End;",
            description=f"A visual flow of how {concept} processes data at the {level} level.",
        )

    def generate_step_by_step(self, concept: str, level: str) -> List[str]:
        steps = STEP_TEMPLATES.get(level, STEP_TEMPLATES["beginner"])
        return [step.format(concept=concept) for step in steps]

    def generate_next_steps(self, concept: str, mastery: float) -> List[str]:
        if mastery < 0.5:
            return [f"Practice more {concept} exercises", "Review prerequisite concepts"]
        if mastery < 0.8:
            return [f"Explore advanced {concept} topics", f"Apply {concept} to projects"]
        return [f"Teach {concept} to others", f"Contribute to the {concept} community"]

    def estimate_read_time(self, level: str) -> int:
        return READ_TIME_MINUTES.get(level, READ_TIME_MINUTES["intermediate"])
