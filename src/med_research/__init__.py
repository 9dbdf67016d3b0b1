"""
Medical Research Pipeline

Multi-source medical literature retrieval and ranking: one question is
fanned out to ten bibliographic databases, and the results are deduplicated,
scored for relevance, graded by evidence tier and cut to a short citation
list for answer synthesis.

Usage:
    from med_research.container import create_container

    pipeline = create_container().pipeline()
    result = await pipeline.research("migraine treatment")
    result.to_dict()  # {"citations": [...], "degradedSources": [...], "lowConfidence": False}
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
