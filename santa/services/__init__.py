from santa.services.assignment import (
    ExclusionRule,
    Failure,
    Pairing,
    Success,
    compute_mapping,
    shuffle,
)

__all__ = ["ExclusionRule", "Failure", "Pairing", "Success", "compute_mapping", "shuffle"]
