"""Mood categories and the normalized mood vector.

A :class:`MoodVector` is the only input the rest of the pipeline accepts: a
closed :class:`MoodCategory` plus five continuous descriptors in ``[0, 1]``.
Loosely-typed analysis output is validated by
:class:`moodsynth.analyzer.MoodAnalysis` before it becomes a vector.
"""

import dataclasses
import enum
import typing


class MoodCategory (str, enum.Enum):

	"""The five moods the mapper and composer know how to voice."""

	HAPPY = "happy"
	SAD = "sad"
	CALM = "calm"
	ENERGETIC = "energetic"
	ANGRY = "angry"


DEFAULT_CATEGORY = MoodCategory.CALM

# Field defaults used when an analysis result omits a value or sends garbage.
FIELD_DEFAULTS: typing.Dict[str, float] = {
	"intensity": 0.5,
	"brightness": 0.5,
	"speed": 0.5,
	"texture": 0.5,
	"tension": 0.3,
}


@dataclasses.dataclass (frozen=True)
class MoodVector:

	"""
	Normalized emotional descriptor.

	Attributes:
		category: The primary emotional category.
		intensity: How strong the emotion is (0 = subtle, 1 = very strong).
		brightness: How positive or light the mood is (0 = dark, 1 = bright).
		speed: Energy or urgency (0 = slow, 1 = fast).
		texture: Emotional complexity (0 = simple, 1 = layered).
		tension: Psychological tension (0 = relaxed, 1 = tense).
	"""

	category: MoodCategory
	intensity: float
	brightness: float
	speed: float
	texture: float
	tension: float

	def __post_init__ (self) -> None:

		"""Coerce the category and clamp every field into range.

		Raises ``ValueError`` for a category name that is not a :class:`MoodCategory`.
		"""

		object.__setattr__(self, "category", MoodCategory(self.category))

		for name in FIELD_DEFAULTS:
			object.__setattr__(self, name, max(0.0, min(1.0, float(getattr(self, name)))))


	def as_dict (self) -> typing.Dict[str, typing.Any]:

		"""Return a plain dict, with the category as its string value."""

		data = dataclasses.asdict(self)
		data["category"] = self.category.value

		return data
