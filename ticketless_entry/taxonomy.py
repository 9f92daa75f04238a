"""
Ticket Taxonomy for Ticketless Entry

Maps the ticket-type labels found in order exports (legacy price codes,
historical free-text labels) onto canonical ticket types, and each
canonical type onto its reception time window. The mapping is total:
unknown labels pass through unchanged and get the default window.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from .exceptions import DataValidationException

VIP_PASS = "VIP Pass"
PRIORITY_PASS = "PriorityPass"
STANDARD_PASS = "StandardPass"
CONFERENCE_PASS = "ConferencePass"
GUEST_PASS = "GuestPass"
FREE_PASS = "FreePass"

# Ordered: the first alias equal to the label wins
DEFAULT_ALIASES: Tuple[Tuple[str, str], ...] = (
    ("15400", PRIORITY_PASS),
    ("11000", STANDARD_PASS),
    ("8800", STANDARD_PASS),
    ("5500", GUEST_PASS),
    ("0", FREE_PASS),
    ("役員招待枠", VIP_PASS),
    ("VIP", VIP_PASS),
    ("優先入場", PRIORITY_PASS),
    ("一般", STANDARD_PASS),
    ("カンファレンス", CONFERENCE_PASS),
    ("同伴者", GUEST_PASS),
    ("招待", FREE_PASS),
)

DEFAULT_WINDOWS: Dict[str, str] = {
    VIP_PASS: "18:30-19:00",
    PRIORITY_PASS: "18:30-19:00",
    CONFERENCE_PASS: "17:00-18:30",
    STANDARD_PASS: "19:00-19:30",
    GUEST_PASS: "19:00-19:30",
    FREE_PASS: "19:30-20:00",
}

DEFAULT_WINDOW = "19:00-"


@dataclass(frozen=True)
class TaxonomyConfig:
    """
    Immutable ticket taxonomy configuration

    Built once at startup and injected into TicketTaxonomy.
    """
    aliases: Tuple[Tuple[str, str], ...] = DEFAULT_ALIASES
    windows: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_WINDOWS)))
    default_window: str = DEFAULT_WINDOW
    guest_type: str = GUEST_PASS
    guest_suffix: str = " (Guest)"
    guest_note: str = "同伴者 / Guest"

    @classmethod
    def from_dict(cls, data: Dict) -> 'TaxonomyConfig':
        """
        Create TaxonomyConfig from a JSON document

        Expected keys (all optional): ``aliases`` as a list of
        ``[alias, canonical]`` pairs, ``windows`` as an object,
        ``default_window``, ``guest_type``, ``guest_suffix``,
        ``guest_note``.

        Raises:
            DataValidationException: If the document is malformed
        """
        defaults = cls()
        try:
            aliases = tuple(
                (str(alias).strip(), str(canonical).strip())
                for alias, canonical in data.get("aliases", defaults.aliases)
            )
        except (TypeError, ValueError) as e:
            raise DataValidationException("aliases", f"expected [alias, canonical] pairs: {str(e)}")

        windows = data.get("windows", defaults.windows)
        if not isinstance(windows, Mapping):
            raise DataValidationException("windows", "expected an object of type -> window")

        return cls(
            aliases=aliases,
            windows=MappingProxyType({str(k): str(v) for k, v in windows.items()}),
            default_window=str(data.get("default_window", defaults.default_window)),
            guest_type=str(data.get("guest_type", defaults.guest_type)),
            guest_suffix=str(data.get("guest_suffix", defaults.guest_suffix)),
            guest_note=str(data.get("guest_note", defaults.guest_note)),
        )


class TicketTaxonomy:
    """Normalizes ticket-type labels and looks up reception windows"""

    def __init__(self, config: TaxonomyConfig = None):
        self.config = config or TaxonomyConfig()

    def normalize(self, raw_label) -> str:
        """
        Normalize a raw ticket-type label to its canonical type

        Args:
            raw_label: Label as found in the order export; price codes
                may arrive as numbers

        Returns:
            Canonical type, or the stripped label itself when unknown
        """
        label = "" if raw_label is None else str(raw_label).strip()
        for alias, canonical in self.config.aliases:
            if label == alias:
                return canonical
        return label

    def reception_window(self, canonical_type: str) -> str:
        """
        Get the reception time window of a canonical type

        Args:
            canonical_type: Canonical ticket type

        Returns:
            Window string such as "18:30-19:00"; the default window for
            unknown types
        """
        return self.config.windows.get(canonical_type, self.config.default_window)

    def is_guest(self, canonical_type: str) -> bool:
        return canonical_type == self.config.guest_type
