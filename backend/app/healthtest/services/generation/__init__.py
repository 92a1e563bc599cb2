from .extraction import analyze_requirements, extract_requirements
from .testcases import OrphanPolicy, find_non_gherkin_steps, find_orphans, generate_test_cases

__all__ = [
    "OrphanPolicy",
    "analyze_requirements",
    "extract_requirements",
    "find_non_gherkin_steps",
    "find_orphans",
    "generate_test_cases",
]
