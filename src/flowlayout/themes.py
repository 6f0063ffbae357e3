"""Theme records and the built-in flower palettes."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, List, Mapping, Tuple


@dataclass(frozen=True)
class Theme:
    bg_color: str
    title_fill: str
    phase_fill: str
    step_fill: str
    decision_fill: str
    end_fill: str
    font_color: str
    edge_color: str

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> "Theme":
        missing = [name for name in cls.__dataclass_fields__ if name not in data]
        if missing:
            raise KeyError(f"theme is missing colors: {', '.join(missing)}")
        return cls(**{name: str(data[name]) for name in cls.__dataclass_fields__})

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


MODES = ("light", "dark")

# name -> (light, dark)
PALETTES: Dict[str, Tuple[Theme, Theme]] = {
    "Sakura": (
        Theme("#FFF7FB", "#F78FB3", "#FADDE1", "#FFFFFF", "#FFE4EE", "#FFD1DC", "#333333", "#F78FB3"),
        Theme("#2B1B2D", "#F78FB3", "#5A2B4D", "#3A223A", "#6A3058", "#C65B7C", "#FCE4EC", "#F78FB3"),
    ),
    "Rose": (
        Theme("#FFF5F7", "#E63946", "#FFC8D8", "#FFFFFF", "#FFB3C6", "#FFE0E9", "#2B2626", "#E63946"),
        Theme("#2B1B1D", "#E63946", "#5B2227", "#3C2224", "#7A2931", "#F28482", "#FFECEC", "#F1A7B3"),
    ),
    "Lotus": (
        Theme("#F6FFF7", "#2A9D8F", "#C9F2E9", "#FFFFFF", "#B5EAD7", "#E8F8F5", "#1B2B2B", "#2A9D8F"),
        Theme("#0B1C19", "#2A9D8F", "#17453F", "#102825", "#1E5C52", "#3AAFA9", "#E0F7F4", "#2A9D8F"),
    ),
    "Sunflower": (
        Theme("#FFFBEB", "#F59E0B", "#FDE68A", "#FFFFFF", "#FBBF24", "#FEF3C7", "#3F2A1C", "#D97706"),
        Theme("#1F170C", "#F59E0B", "#78350F", "#3B2F1C", "#C47F1A", "#FBBF24", "#FEF9C3", "#FBBF24"),
    ),
    "Lavender": (
        Theme("#F9F5FF", "#7C3AED", "#DDD6FE", "#FFFFFF", "#C4B5FD", "#EDE9FE", "#312E81", "#7C3AED"),
        Theme("#18122B", "#7C3AED", "#44337A", "#251C49", "#553C9A", "#A78BFA", "#EDE9FE", "#A78BFA"),
    ),
    "Orchid": (
        Theme("#FFF7FF", "#C026D3", "#F5D0FE", "#FFFFFF", "#E9D5FF", "#FAE8FF", "#3B0764", "#C026D3"),
        Theme("#24002F", "#C026D3", "#581C87", "#3B0764", "#6B21A8", "#E879F9", "#FCE7F3", "#E879F9"),
    ),
    "Hydrangea": (
        Theme("#F3F8FF", "#2563EB", "#BFDBFE", "#FFFFFF", "#93C5FD", "#DBEAFE", "#1E293B", "#2563EB"),
        Theme("#0B1220", "#2563EB", "#1E3A8A", "#111827", "#1D4ED8", "#60A5FA", "#E5E7EB", "#60A5FA"),
    ),
    "Tulip": (
        Theme("#FFF7ED", "#EA580C", "#FED7AA", "#FFFFFF", "#FDBA74", "#FFEDD5", "#4B2E1A", "#EA580C"),
        Theme("#26160C", "#EA580C", "#7C2D12", "#3F2010", "#9A3412", "#FDBA74", "#FFE7D6", "#FDBA74"),
    ),
}

DEFAULT_PALETTE = "Sakura"


def get_theme(name: str = DEFAULT_PALETTE, mode: str = "light") -> Theme:
    if mode not in MODES:
        raise KeyError(f"unknown theme mode {mode!r} (expected light or dark)")
    for palette, pair in PALETTES.items():
        if palette.lower() == name.lower():
            return pair[MODES.index(mode)]
    raise KeyError(f"unknown theme {name!r}")


def palette_names() -> List[str]:
    return list(PALETTES)


DEFAULT_THEME = get_theme()

__all__ = ["Theme", "PALETTES", "DEFAULT_PALETTE", "DEFAULT_THEME", "MODES", "get_theme", "palette_names"]
