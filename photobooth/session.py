"""
Per-run session data and the catalog of selectable choices.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

# Choice screens in the order the kiosk shows them, with the number of items on each
CHOICE_CATEGORIES: Dict[str, int] = {
    "weapon": 4,
    "land": 4,
    "companion": 4,
}
ICON_SIZE: Tuple[int, int] = (150, 150)


def choice_keys(categories: Dict[str, int] = CHOICE_CATEGORIES) -> List[str]:
    """All identifiers of the closed choice enumeration, e.g. ``weapon1`` .. ``companion4``."""
    return [f"{name}{i}" for name, count in categories.items() for i in range(1, count + 1)]


class ChoiceCatalog(Mapping):
    """
    Immutable mapping of choice identifier -> pre-scaled icon.

    Only identifiers from ``choice_keys()`` can appear, and only those whose
    image actually loaded.
    """

    def __init__(self, images: Dict[str, Image.Image]):
        known = set(choice_keys())
        unknown = sorted(set(images) - known)
        if unknown:
            raise ValueError(f"Unknown choice identifiers: {unknown}")
        self._images = MappingProxyType(dict(images))

    @classmethod
    def load(cls, directory: Path, icon_size: Tuple[int, int] = ICON_SIZE) -> "ChoiceCatalog":
        """
        Load ``<directory>/<key>.jpg`` for every known key, scaled to fit ``icon_size``.

        Images that are missing or cannot be decoded are logged and skipped.
        """
        directory = Path(directory)
        images = {}
        for key in choice_keys():
            image_path = directory / f"{key}.jpg"
            try:
                with Image.open(image_path) as img:
                    icon = img.convert("RGB")
                icon.thumbnail(icon_size, Image.Resampling.LANCZOS)
                images[key] = icon
                logger.debug(f"Loaded choice image {image_path} as key {key}")
            except (OSError, UnidentifiedImageError) as e:
                logger.warning(f"Failed to load choice image {image_path} for key {key}: {e}")
        logger.info(f"Choice catalog loaded {len(images)}/{len(choice_keys())} images from {directory}")
        return cls(images)

    def category(self, name: str) -> List[str]:
        """Loaded identifiers of one category, in display order."""
        if name not in CHOICE_CATEGORIES:
            raise ValueError(f"Unknown choice category: {name}")
        return [key for key in choice_keys({name: CHOICE_CATEGORIES[name]}) if key in self._images]

    def __getitem__(self, key: str) -> Image.Image:
        return self._images[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._images)

    def __len__(self) -> int:
        return len(self._images)


@dataclass
class SessionRecord:
    """
    Choices, name and resulting photo of one run through the booth.

    ``start_time`` is fixed when the record is created. Choice identifiers
    can only be set through ``choose``, which checks them against the catalog.
    """
    catalog: ChoiceCatalog = field(repr=False, compare=False)
    start_time: datetime = field(default_factory=datetime.now, init=False)
    user_name: str = ""
    chosen_weapon_id: Optional[str] = field(default=None, init=False)
    chosen_land_id: Optional[str] = field(default=None, init=False)
    chosen_companion_id: Optional[str] = field(default=None, init=False)
    captured_photo_path: Optional[str] = field(default=None, init=False)

    def __post_init__(self):
        logger.debug(f"Session record created at {self.start_time.isoformat()}")

    def __setattr__(self, name, value):
        if name == "start_time" and "start_time" in self.__dict__:
            raise AttributeError("start_time is assigned once, at construction")
        super().__setattr__(name, value)

    def choose(self, category: str, choice_id: str) -> None:
        if category not in CHOICE_CATEGORIES:
            raise ValueError(f"Unknown choice category: {category}")
        if choice_id not in self.catalog or not choice_id.startswith(category):
            raise ValueError(f"'{choice_id}' is not a known {category} choice")
        setattr(self, f"chosen_{category}_id", choice_id)

    def choice(self, category: str) -> Optional[str]:
        if category not in CHOICE_CATEGORIES:
            raise ValueError(f"Unknown choice category: {category}")
        return getattr(self, f"chosen_{category}_id")

    def summary(self) -> str:
        return (
            f"user={self.user_name or '[NoName]'} "
            f"weapon={self.chosen_weapon_id} land={self.chosen_land_id} "
            f"companion={self.chosen_companion_id} "
            f"photo={self.captured_photo_path or '[None]'}"
        )

    def to_dict(self) -> dict:
        return {
            "start_time": self.start_time.isoformat(),
            "user_name": self.user_name,
            "chosen_weapon_id": self.chosen_weapon_id,
            "chosen_land_id": self.chosen_land_id,
            "chosen_companion_id": self.chosen_companion_id,
            "captured_photo_path": self.captured_photo_path,
        }
