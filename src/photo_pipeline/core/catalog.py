"""Static gear and location reference data used for fake metadata."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class ProfileKind(str, Enum):
    """Kinds of capture devices a fake record can imitate."""

    CAMERA = "camera"
    PHONE = "phone"
    ACTION = "action"
    DRONE = "drone"
    SCANNER = "scanner"


@dataclass(frozen=True)
class DeviceProfile:
    """Makes, models and lenses known for one device kind.

    A profile either carries per-make lens lists (``lenses_by_make``) or a
    single lens list shared by every make (``lenses``).
    """

    kind: ProfileKind
    makes: Tuple[str, ...]
    models_by_make: Dict[str, Tuple[str, ...]]
    lenses_by_make: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    lenses: Tuple[str, ...] = ()

    def models_for(self, make: str) -> Tuple[str, ...]:
        return self.models_by_make.get(make, ())

    def lenses_for(self, make: str) -> Tuple[str, ...]:
        if self.lenses_by_make:
            return self.lenses_by_make.get(make, ())
        return self.lenses if make in self.makes else ()

    def make_for(self, model: str = "", lens: str = "") -> Optional[str]:
        """Return the first make owning ``model`` (and ``lens`` if given)."""
        for make in self.makes:
            if model and model not in self.models_for(make):
                continue
            if lens and lens not in self.lenses_for(make):
                continue
            return make
        return None


@dataclass(frozen=True)
class LocationPreset:
    """A named place used to fill GPS and address fields."""

    id: str
    label: str
    latitude: float
    longitude: float
    altitude: float
    city: str
    state: str
    country: str


GEAR_PROFILES: Dict[ProfileKind, DeviceProfile] = {
    ProfileKind.CAMERA: DeviceProfile(
        kind=ProfileKind.CAMERA,
        makes=("Canon", "Nikon", "Sony", "Fujifilm", "Panasonic"),
        models_by_make={
            "Canon": ("EOS R5", "EOS 5D Mark IV", "EOS 90D", "EOS R6 Mark II"),
            "Nikon": ("Z7 II", "D850", "Z6", "Z8"),
            "Sony": ("Alpha A7 IV", "Alpha A7R III", "Alpha A6400", "Alpha A1"),
            "Fujifilm": ("X-T5", "X-S10", "X100V", "GFX 50S"),
            "Panasonic": ("Lumix S5 II", "Lumix GH6", "Lumix G9"),
        },
        lenses_by_make={
            "Canon": (
                "RF 24-70mm f/2.8L",
                "EF 50mm f/1.8 STM",
                "RF 70-200mm f/2.8L",
                "RF 35mm f/1.8",
            ),
            "Nikon": (
                "Z 24-70mm f/2.8",
                "AF-S 50mm f/1.8G",
                "Z 70-200mm f/2.8",
                "Z 35mm f/1.8",
            ),
            "Sony": (
                "FE 24-70mm f/2.8 GM",
                "FE 50mm f/1.8",
                "FE 85mm f/1.8",
                "FE 35mm f/1.8",
            ),
            "Fujifilm": (
                "XF 23mm f/1.4",
                "XF 18-55mm f/2.8-4",
                "XF 56mm f/1.2",
                "XF 35mm f/1.4",
            ),
            "Panasonic": (
                "LUMIX S 24-105mm f/4",
                "LEICA 12-60mm f/2.8-4",
                "LUMIX G 25mm f/1.7",
            ),
        },
    ),
    ProfileKind.PHONE: DeviceProfile(
        kind=ProfileKind.PHONE,
        makes=("Apple", "Samsung", "Xiaomi", "Google", "Huawei"),
        models_by_make={
            "Apple": ("iPhone 15 Pro", "iPhone 14 Pro", "iPhone 13"),
            "Samsung": ("Galaxy S24", "Galaxy S23", "Galaxy Note 20"),
            "Xiaomi": ("Mi 13", "Mi 11", "Redmi Note 12"),
            "Google": ("Pixel 8 Pro", "Pixel 7", "Pixel 6a"),
            "Huawei": ("P60 Pro", "P50", "Mate 40"),
        },
        lenses=("Wide 26mm f/1.9", "UltraWide 13mm f/2.2", "Tele 77mm f/2.8"),
    ),
    ProfileKind.ACTION: DeviceProfile(
        kind=ProfileKind.ACTION,
        makes=("GoPro", "Insta360", "DJI"),
        models_by_make={
            "GoPro": ("HERO 12 Black", "HERO 11", "HERO 10"),
            "Insta360": ("X3", "ONE R", "GO 3"),
            "DJI": ("Osmo Action 4", "Osmo Action 3"),
        },
        lenses=("UltraWide", "Wide"),
    ),
    ProfileKind.DRONE: DeviceProfile(
        kind=ProfileKind.DRONE,
        makes=("DJI", "Autel", "Parrot"),
        models_by_make={
            "DJI": ("Mavic 3", "Air 2S", "Mini 3 Pro"),
            "Autel": ("EVO Lite+", "EVO II"),
            "Parrot": ("Anafi",),
        },
        lenses=("24mm f/2.8", "22mm f/2.8"),
    ),
    ProfileKind.SCANNER: DeviceProfile(
        kind=ProfileKind.SCANNER,
        makes=("Epson", "Canon", "Plustek"),
        models_by_make={
            "Epson": ("Perfection V600", "Perfection V850"),
            "Canon": ("CanoScan 9000F", "LiDE 400"),
            "Plustek": ("OpticFilm 8200i", "ePhoto Z300"),
        },
        lenses=("CCD", "CIS"),
    ),
}

ISO_PRESETS: Tuple[int, ...] = (
    50, 64, 80, 100, 125, 160, 200, 250, 320, 400, 500, 640,
    800, 1000, 1250, 1600, 2000, 2500, 3200, 4000, 5000, 6400,
)

EXPOSURE_TIMES: Tuple[str, ...] = (
    "1/8000", "1/4000", "1/2000", "1/1000", "1/500", "1/250", "1/200",
    "1/160", "1/125", "1/80", "1/60", "1/30", "1/15", "1/8", "1/4", "1/2",
    "1", "2", "5", "10",
)

F_NUMBERS: Tuple[float, ...] = (
    1.2, 1.4, 1.8, 2.0, 2.2, 2.8, 3.5, 4.0, 5.6, 8.0, 11.0, 16.0, 22.0,
)

FOCAL_LENGTHS: Tuple[float, ...] = (
    12, 14, 16, 18, 20, 24, 28, 30, 35, 40, 50, 55, 70, 85, 105, 135, 200,
)

# EXIF codes mapped to display labels.
EXPOSURE_PROGRAMS: Dict[int, str] = {
    1: "Manual",
    2: "Program AE",
    3: "Aperture priority",
    4: "Shutter priority",
    5: "Creative",
    6: "Action",
    7: "Portrait",
    8: "Landscape",
}

METERING_MODES: Dict[int, str] = {
    0: "Unknown",
    1: "Average",
    2: "Center-weighted average",
    3: "Spot",
    4: "Multi-spot",
    5: "Multi-segment",
    6: "Partial",
    255: "Other",
}

FLASH_MODES: Dict[int, str] = {
    0: "No flash",
    1: "Fired",
    5: "Fired, return not detected",
    7: "Fired, return detected",
    9: "On, fired",
    16: "Off, did not fire",
}

WHITE_BALANCES: Dict[int, str] = {
    0: "Auto",
    1: "Manual",
}

COLOR_SPACES: Tuple[str, ...] = ("sRGB", "AdobeRGB", "Display P3", "ProPhoto RGB")

RATINGS: Tuple[int, ...] = (0, 1, 2, 3, 4, 5)

LOCATION_PRESETS: Dict[str, LocationPreset] = {
    preset.id: preset
    for preset in (
        LocationPreset("kyiv", "Kyiv, Ukraine", 50.4501, 30.5234, 179, "Kyiv", "Kyiv", "Ukraine"),
        LocationPreset("warsaw", "Warsaw, Poland", 52.2297, 21.0122, 100, "Warsaw", "Mazovia", "Poland"),
        LocationPreset("berlin", "Berlin, Germany", 52.52, 13.405, 34, "Berlin", "Berlin", "Germany"),
        LocationPreset("london", "London, United Kingdom", 51.5074, -0.1278, 35, "London", "England", "United Kingdom"),
    )
}


def get_profile(kind: "ProfileKind | str") -> DeviceProfile:
    """Look up the device profile for ``kind``."""
    return GEAR_PROFILES[ProfileKind(kind)]


def get_location_preset(preset_id: str) -> LocationPreset:
    """Look up a location preset, raising ``KeyError`` for unknown ids."""
    try:
        return LOCATION_PRESETS[preset_id]
    except KeyError:
        raise KeyError(f"Unknown location preset: {preset_id}") from None


def check_gear(profile: DeviceProfile, make: str = "", model: str = "", lens: str = "") -> None:
    """
    Validate that explicit make/model/lens values agree with the catalog.

    Empty values are ignored. Without a make, the model and lens must at
    least share one make in the profile.

    Raises:
        ValueError: If a value is unknown or belongs to a different make.
    """
    if make:
        if make not in profile.makes:
            raise ValueError(f"Make '{make}' is not known for profile '{profile.kind.value}'")
        if model and model not in profile.models_for(make):
            raise ValueError(f"Model '{model}' does not belong to make '{make}'")
        if lens and lens not in profile.lenses_for(make):
            raise ValueError(f"Lens '{lens}' does not belong to make '{make}'")
    elif (model or lens) and profile.make_for(model, lens) is None:
        raise ValueError(
            f"No '{profile.kind.value}' make offers model '{model}' with lens '{lens}'"
        )
