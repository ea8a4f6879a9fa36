"""
scoring/ - Curation Scoring Engine

Modules:
    utils.py        - Numeric helpers (clamp, mean, population std, z mapping)
    registry.py     - Dimension Registry and weight normalization
    scorer.py       - Single-Item Scorer (composite, flags, gates, verdicts)
    normalizer.py   - Batch Normalizer and percentile verdict override
    tournament.py   - Tournament Ranker (pairwise playoff)
    personas.py     - Built-in curator personas
    calibration.py  - Gold-standard drift checks
"""
