"""Mood analysis: free text in, :class:`~moodsynth.mood.MoodVector` out.

The real analysis is delegated to a pluggable *backend* - any callable that
takes the user's text and returns either a JSON string or a mapping shaped
like :data:`ANALYSIS_PROMPT` describes.  moodsynth does not ship a network
client; wire your own language-model call in as the backend.

Whatever the backend does, :meth:`MoodAnalyzer.analyze` always returns a
well-formed vector: bad fields are clamped or defaulted, and a failing or
missing backend falls back to deterministic keyword detection.

Example::

	analyzer = moodsynth.analyzer.MoodAnalyzer()
	mood = analyzer.analyze("I am so happy today")
	mood.category    # MoodCategory.HAPPY
"""

import logging
import math
import re
import typing

import pydantic

import moodsynth.mood


logger = logging.getLogger(__name__)


BackendType = typing.Callable[[str], typing.Union[str, typing.Mapping[str, typing.Any]]]


ANALYSIS_PROMPT = """You are a mood analyzer. Analyze the user's mood from their text and return ONLY a JSON object with this exact format:
{
  "mood": "happy" | "sad" | "calm" | "energetic" | "angry",
  "intensity": 0.0-1.0,
  "brightness": 0.0-1.0,
  "speed": 0.0-1.0,
  "texture": 0.0-1.0,
  "tension": 0.0-1.0
}

Definitions:
- mood: The primary emotional category
- intensity: How strong the emotion is (0=subtle, 1=very strong)
- brightness: How positive/light the mood is (0=dark, 1=bright)
- speed: How much energy/urgency (0=slow/calm, 1=fast/urgent)
- texture: Emotional complexity (0=simple/pure emotion, 1=complex/layered/mixed feelings)
- tension: Psychological tension/dissonance (0=relaxed/harmonious, 1=tense/anxious/restless)

Return ONLY the JSON, no additional text."""


# Checked in order; the first category with a matching keyword wins.
FALLBACK_KEYWORDS: typing.Tuple[typing.Tuple[moodsynth.mood.MoodCategory, typing.Tuple[str, ...]], ...] = (
	(moodsynth.mood.MoodCategory.HAPPY, ("행복", "기쁘", "좋아", "happy", "joy")),
	(moodsynth.mood.MoodCategory.SAD, ("슬프", "우울", "sad", "depressed")),
	(moodsynth.mood.MoodCategory.ANGRY, ("화", "짜증", "angry", "frustrated")),
	(moodsynth.mood.MoodCategory.ENERGETIC, ("신나", "흥분", "energetic", "excited")),
)

FALLBACK_VECTORS: typing.Dict[moodsynth.mood.MoodCategory, moodsynth.mood.MoodVector] = {
	moodsynth.mood.MoodCategory.HAPPY: moodsynth.mood.MoodVector(moodsynth.mood.MoodCategory.HAPPY, 0.8, 0.9, 0.6, 0.3, 0.2),
	moodsynth.mood.MoodCategory.SAD: moodsynth.mood.MoodVector(moodsynth.mood.MoodCategory.SAD, 0.7, 0.2, 0.3, 0.6, 0.5),
	moodsynth.mood.MoodCategory.ANGRY: moodsynth.mood.MoodVector(moodsynth.mood.MoodCategory.ANGRY, 0.8, 0.3, 0.9, 0.2, 0.9),
	moodsynth.mood.MoodCategory.ENERGETIC: moodsynth.mood.MoodVector(moodsynth.mood.MoodCategory.ENERGETIC, 0.9, 0.8, 0.95, 0.4, 0.3),
	moodsynth.mood.MoodCategory.CALM: moodsynth.mood.MoodVector(moodsynth.mood.MoodCategory.CALM, 0.5, 0.6, 0.4, 0.5, 0.1),
}

_CODE_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


class MoodAnalysis (pydantic.BaseModel):

	"""
	Validated analysis payload, as a backend returns it.

	Accepts ``mood`` or ``category`` as the category key and ignores unknown
	keys.  Nothing here raises for bad values: an unknown category becomes
	calm, missing or non-numeric fields take their defaults (0.5, tension
	0.3), and numeric fields are clamped to ``[0, 1]``.  Only content that
	is not an object at all fails validation.
	"""

	model_config = pydantic.ConfigDict(extra="ignore", populate_by_name=True)

	category: moodsynth.mood.MoodCategory = pydantic.Field(
		default = moodsynth.mood.DEFAULT_CATEGORY,
		validation_alias = pydantic.AliasChoices("category", "mood")
	)
	intensity: float = moodsynth.mood.FIELD_DEFAULTS["intensity"]
	brightness: float = moodsynth.mood.FIELD_DEFAULTS["brightness"]
	speed: float = moodsynth.mood.FIELD_DEFAULTS["speed"]
	texture: float = moodsynth.mood.FIELD_DEFAULTS["texture"]
	tension: float = moodsynth.mood.FIELD_DEFAULTS["tension"]

	@pydantic.field_validator("category", mode="before")
	@classmethod
	def _known_category (cls, value: typing.Any) -> moodsynth.mood.MoodCategory:

		if isinstance(value, str):
			try:
				return moodsynth.mood.MoodCategory(value.strip().lower())
			except ValueError:
				pass

		logger.warning(f"Unknown mood category {value!r}, using {moodsynth.mood.DEFAULT_CATEGORY.value!r}")

		return moodsynth.mood.DEFAULT_CATEGORY


	@pydantic.field_validator("intensity", "brightness", "speed", "texture", "tension", mode="before")
	@classmethod
	def _unit_interval (cls, value: typing.Any, info: pydantic.ValidationInfo) -> float:

		fallback = moodsynth.mood.FIELD_DEFAULTS[info.field_name]

		# bool is an int subclass but never a meaningful level.
		if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
			logger.warning(f"Invalid {info.field_name} {value!r}, using {fallback}")
			return fallback

		return max(0.0, min(1.0, float(value)))


	def to_mood (self) -> moodsynth.mood.MoodVector:

		"""Freeze the payload into a :class:`~moodsynth.mood.MoodVector`."""

		return moodsynth.mood.MoodVector(
			category = self.category,
			intensity = self.intensity,
			brightness = self.brightness,
			speed = self.speed,
			texture = self.texture,
			tension = self.tension
		)


def keyword_analysis (text: str) -> moodsynth.mood.MoodVector:

	"""
	Deterministic keyword-based analysis used when no backend is available.
	"""

	lowered = text.lower()

	for category, keywords in FALLBACK_KEYWORDS:
		if any(keyword in lowered for keyword in keywords):
			return FALLBACK_VECTORS[category]

	return FALLBACK_VECTORS[moodsynth.mood.MoodCategory.CALM]


def parse_analysis (content: typing.Union[str, typing.Mapping[str, typing.Any]]) -> moodsynth.mood.MoodVector:

	"""
	Turn a backend response into a sanitized mood vector.

	Strings are validated as JSON (a surrounding Markdown code fence is
	tolerated), mappings directly.  Raises :class:`pydantic.ValidationError`
	when the content is not a JSON object.
	"""

	if isinstance(content, str):
		analysis = MoodAnalysis.model_validate_json(_CODE_FENCE.sub("", content.strip()))
	elif isinstance(content, typing.Mapping):
		analysis = MoodAnalysis.model_validate(dict(content))
	else:
		analysis = MoodAnalysis.model_validate(content)

	return analysis.to_mood()


class MoodAnalyzer:

	"""
	Analyze free text into a mood vector with a keyword fallback.
	"""

	def __init__ (self, backend: typing.Optional[BackendType] = None) -> None:

		"""
		Parameters:
			backend: Optional callable producing the raw analysis (JSON string
				or mapping).  When omitted, only keyword analysis is used.
		"""

		self.backend = backend


	def analyze (self, text: str) -> moodsynth.mood.MoodVector:

		"""
		Analyze ``text``.  Never raises for backend failures.
		"""

		if self.backend is None:
			logger.info("No analysis backend configured, using keyword analysis")
			return keyword_analysis(text)

		try:
			mood = parse_analysis(self.backend(text))

		except Exception as exc:
			logger.warning(f"Mood analysis backend failed ({exc}), using keyword analysis")
			return keyword_analysis(text)

		logger.info(f"Analyzed mood: {mood.category.value} (intensity {mood.intensity:.2f})")

		return mood
