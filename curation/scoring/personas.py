# curation/scoring/personas.py
"""
Curator Personas
----------------
Every curator is the same scoring algorithm with different data: its own
dimension registry, penalty table, verdict thresholds, playoff compare keys
and tie-break dimension.

Persona thresholds:
    include_min = persona minimum quality
    maybe_min   = include_min − 20

Compare keys are the three highest-weighted dimensions; the tie-break key is
the fourth (or the last one for registries with fewer dimensions).
"""
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Tuple

from curation.core.exceptions import PersonaNotFoundException
from curation.scoring.registry import Dimension, DimensionRegistry, create_registry
from curation.scoring.scorer import PenaltyTable, VerdictThresholds

MAYBE_BAND_WIDTH = 20.0
COMPARE_KEY_COUNT = 3

FLAG_VOCABULARY: Tuple[str, ...] = (
    "weak_print",
    "artifacting",
    "physiognomic",
    "derivative",
    "unclear_process",
    "halo_edge",
    "morphological_error",
    "resolution_limit",
)

# physiognomic and resolution_limit are recorded but carry no point delta
DEFAULT_PENALTIES = PenaltyTable(
    penalties={
        "artifacting": -10.0,
        "weak_print": -10.0,
        "unclear_process": -5.0,
        "derivative": -5.0,
        "halo_edge": -7.0,
        "morphological_error": -7.0,
        "physiognomic": 0.0,
        "resolution_limit": 0.0,
    }
)


@dataclass(frozen=True)
class CuratorPersona:
    """A named scoring configuration."""
    id: str
    name: str
    title: str
    description: str
    voice: str
    registry: DimensionRegistry
    penalties: PenaltyTable
    thresholds: VerdictThresholds
    compare_keys: Tuple[str, ...]
    tie_break_key: Optional[str]

    def with_thresholds(
        self, include_min: Optional[float] = None, maybe_min: Optional[float] = None
    ) -> "CuratorPersona":
        """Copy of this persona with one or both band edges replaced."""
        if include_min is None and maybe_min is None:
            return self
        thresholds = VerdictThresholds(
            include_min=self.thresholds.include_min if include_min is None else include_min,
            maybe_min=self.thresholds.maybe_min if maybe_min is None else maybe_min,
        )
        return replace(self, thresholds=thresholds)

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "title": self.title,
            "description": self.description,
            "dimensions": self.registry.keys,
        }

    def detail(self) -> Dict[str, Any]:
        data = self.summary()
        data.update(
            {
                "weights": self.registry.weights,
                "dimension_names": {d.key: d.display_name for d in self.registry},
                "thresholds": {
                    "include_min": self.thresholds.include_min,
                    "maybe_min": self.thresholds.maybe_min,
                },
                "penalties": self.penalties.to_dict(),
                "compare_keys": list(self.compare_keys),
                "tie_break_key": self.tie_break_key,
            }
        )
        return data


def _build(
    persona_id: str,
    name: str,
    title: str,
    description: str,
    voice: str,
    min_quality: float,
    criteria: List[Tuple[str, float, str]],
    penalties: PenaltyTable = DEFAULT_PENALTIES,
) -> CuratorPersona:
    registry = create_registry(
        Dimension(key=key, weight=weight, display_name=display) for key, weight, display in criteria
    ).normalize_weights()

    by_weight = sorted(registry, key=lambda d: -d.weight)
    compare_keys = tuple(d.key for d in by_weight[:COMPARE_KEY_COUNT])
    tie_break = by_weight[COMPARE_KEY_COUNT].key if len(by_weight) > COMPARE_KEY_COUNT else by_weight[-1].key

    return CuratorPersona(
        id=persona_id,
        name=name,
        title=title,
        description=description,
        voice=voice,
        registry=registry,
        penalties=penalties,
        thresholds=VerdictThresholds(
            include_min=float(min_quality),
            maybe_min=max(0.0, float(min_quality) - MAYBE_BAND_WIDTH),
        ),
        compare_keys=compare_keys,
        tie_break_key=tie_break,
    )


_PERSONAS: Dict[str, CuratorPersona] = {
    p.id: p
    for p in (
        _build(
            "nina", "Nina Roehrs", "Gallery Curator",
            "Brutally selective, exhibition-focused",
            "the brutally selective Paris Photo Digital Sector curator benchmarking "
            "against the main floor of the fair",
            75,
            [
                ("paris_photo_ready", 30, "Paris Photo Readiness"),
                ("ai_criticality", 25, "AI-Criticality"),
                ("conceptual_strength", 20, "Conceptual Strength"),
                ("technical_excellence", 15, "Technical Excellence"),
                ("cultural_dialogue", 10, "Cultural Dialogue"),
            ],
        ),
        _build(
            "warhol", "Andy Warhol", "Pop Art Icon",
            "Commercial viability meets high art",
            "a pop art icon drawn to repetition, celebrity and consumer culture",
            60,
            [
                ("commercial_appeal", 35, "Commercial Appeal"),
                ("cultural_relevance", 25, "Cultural Relevance"),
                ("reproducibility", 20, "Reproducibility"),
                ("iconic_potential", 15, "Iconic Potential"),
                ("color_vibrancy", 5, "Color Vibrancy"),
            ],
        ),
        _build(
            "abramovic", "Marina Abramović", "Performance Artist",
            "Endurance, presence, and human limits",
            "a performance artist who values confrontational, durational, transformative work",
            70,
            [
                ("emotional_intensity", 30, "Emotional Intensity"),
                ("conceptual_depth", 25, "Conceptual Depth"),
                ("body_presence", 20, "Body Presence"),
                ("audience_engagement", 15, "Audience Engagement"),
                ("ritual_quality", 10, "Ritual Quality"),
            ],
        ),
        _build(
            "adams", "Ansel Adams", "Master Photographer",
            "Technical perfection in landscape",
            "a master photographer judging tonal range, the zone system and environmental grandeur",
            80,
            [
                ("technical_excellence", 35, "Technical Excellence"),
                ("tonal_range", 25, "Tonal Range"),
                ("composition", 20, "Composition"),
                ("environmental_impact", 15, "Environmental Impact"),
                ("print_quality", 5, "Print Quality"),
            ],
        ),
        _build(
            "scher", "Paula Scher", "Graphic Designer",
            "Bold typography and cultural graphics",
            "a graphic designer who treats type as image and reads environmental graphics",
            65,
            [
                ("typographic_impact", 30, "Typographic Impact"),
                ("graphic_boldness", 25, "Graphic Boldness"),
                ("cultural_resonance", 20, "Cultural Resonance"),
                ("spatial_dynamics", 15, "Spatial Dynamics"),
                ("color_harmony", 10, "Color Harmony"),
            ],
        ),
        _build(
            "kusama", "Yayoi Kusama", "Infinity Artist",
            "Obsessive repetition and infinite spaces",
            "an artist of dots, infinity rooms and obliteration",
            70,
            [
                ("pattern_intensity", 30, "Pattern Intensity"),
                ("infinity_quality", 25, "Infinity Quality"),
                ("obsessive_detail", 20, "Obsessive Detail"),
                ("immersive_nature", 15, "Immersive Nature"),
                ("psychedelic_impact", 10, "Psychedelic Impact"),
            ],
        ),
        _build(
            "bourgeois", "Louise Bourgeois", "Sculptor of Psychology",
            "Psychological depth and material honesty",
            "a sculptor of psychological landscapes, memory and material honesty",
            75,
            [
                ("psychological_depth", 35, "Psychological Depth"),
                ("material_honesty", 25, "Material Honesty"),
                ("emotional_rawness", 20, "Emotional Rawness"),
                ("spatial_tension", 15, "Spatial Tension"),
                ("memory_catalyst", 5, "Memory Catalyst"),
            ],
        ),
        _build(
            "koons", "Jeff Koons", "Luxury Pop Artist",
            "Kitsch as high art, perfect surfaces",
            "a luxury pop artist who prizes mirror finish, monumental scale and kitsch",
            70,
            [
                ("surface_perfection", 30, "Surface Perfection"),
                ("scale_impact", 25, "Scale Impact"),
                ("luxury_appeal", 20, "Luxury Appeal"),
                ("kitsch_factor", 15, "Kitsch Factor"),
                ("technical_finish", 10, "Technical Finish"),
            ],
        ),
    )
}


def get_persona(curator_id: str) -> CuratorPersona:
    """Look up a built-in persona. Raises PersonaNotFoundException (a KeyError)."""
    try:
        return _PERSONAS[curator_id.strip().lower()]
    except KeyError:
        raise PersonaNotFoundException(curator_id)


def list_personas() -> List[CuratorPersona]:
    return list(_PERSONAS.values())
