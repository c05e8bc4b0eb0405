"""
Core Package.

Contains the rewriting machinery shared by every filter:
- Node primitive, s-expression interchange and the generic walker
- Await coloring and the metadata-collection passes
- Cross-unit metadata bus and the filter registry
- Rewrite Engine
"""
