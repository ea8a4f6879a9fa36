from enum import Enum

class Verdict(str, Enum):
    INCLUDE = "INCLUDE"    # Exhibition candidate
    MAYBE = "MAYBE"        # Borderline, revisit
    EXCLUDE = "EXCLUDE"    # Reject

class EthicsProcess(str, Enum):
    PRESENT = "present"
    VISIBLE = "visible"
    TODO = "todo"
    UNCLEAR = "unclear"
    MISSING = "missing"    # Hard gate failure

class EvaluationSource(str, Enum):
    ANTHROPIC = "anthropic"
    SYNTHETIC = "synthetic"
    FALLBACK = "fallback"

class GoldStandard(str, Enum):
    HIGH_QUALITY = "high_quality"
    MEDIUM_QUALITY = "medium_quality"
    LOW_QUALITY = "low_quality"
