"""Family Studies - pedigree conversion, family membership and edit locks.

Converts pedigree diagrams into per-individual patient records, keeps family
documents and their members' back-references consistent, and arbitrates
concurrent edit access to family documents.
"""

__version__ = "0.1.0"


# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    if name == "pedigree":
        from family_studies import pedigree
        return pedigree
    if name == "family":
        from family_studies import family
        return family
    if name == "locks":
        from family_studies import locks
        return locks
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
