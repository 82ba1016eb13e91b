import random
import unittest

import moodsynth.markov_chain


class MarkovChainTests (unittest.TestCase):

	"""
	Tests for the weighted Markov chain utility.
	"""

	def test_single_transition (self) -> None:

		"""
		A single transition should always be selected.
		"""

		transitions = {"A": [("B", 1)]}
		chain = moodsynth.markov_chain.MarkovChain(transitions=transitions, initial_state="A", fallback_state="A", rng=random.Random(1))

		self.assertEqual(chain.step(), "B")
		self.assertEqual(chain.get_state(), "B")


	def test_missing_row_uses_fallback (self) -> None:

		"""
		A state with no outgoing row draws from the fallback row.
		"""

		transitions = {"A": [("C", 1)]}
		chain = moodsynth.markov_chain.MarkovChain(transitions=transitions, initial_state="B", fallback_state="A", rng=random.Random(1))

		self.assertEqual(chain.step(), "C")


	def test_choose_does_not_move_the_chain (self) -> None:

		transitions = {"A": [("B", 1)], "B": [("A", 1)]}
		chain = moodsynth.markov_chain.MarkovChain(transitions=transitions, initial_state="A", rng=random.Random(1))

		self.assertEqual(chain.choose("A"), "B")
		self.assertEqual(chain.get_state(), "A")


	def test_invalid_fallback_raises (self) -> None:

		with self.assertRaises(ValueError):
			moodsynth.markov_chain.MarkovChain(transitions={"A": [("A", 1)]}, fallback_state="Z")


	def test_empty_transitions_raise (self) -> None:

		with self.assertRaises(ValueError):
			moodsynth.markov_chain.MarkovChain(transitions={})


	def test_invalid_weight_raises (self) -> None:

		"""
		Invalid weights should raise in choose_weighted.
		"""

		with self.assertRaises(ValueError):
			moodsynth.markov_chain.choose_weighted([("A", 0)], random.Random(1))

		with self.assertRaises(ValueError):
			moodsynth.markov_chain.choose_weighted([], random.Random(1))


	def test_cumulative_selection_order (self) -> None:

		"""
		The first option whose cumulative weight reaches the roll is returned.
		"""

		class FixedRandom (random.Random):

			def __init__ (self, value: float) -> None:
				super().__init__()
				self.value = value

			def random (self) -> float:
				return self.value

		options = [("low", 0.3), ("mid", 0.3), ("high", 0.4)]

		self.assertEqual(moodsynth.markov_chain.choose_weighted(options, FixedRandom(0.1)), "low")
		self.assertEqual(moodsynth.markov_chain.choose_weighted(options, FixedRandom(0.3)), "low")
		self.assertEqual(moodsynth.markov_chain.choose_weighted(options, FixedRandom(0.45)), "mid")
		self.assertEqual(moodsynth.markov_chain.choose_weighted(options, FixedRandom(0.99)), "high")


	def test_rounding_shortfall_returns_last_option (self) -> None:

		class AlmostOne (random.Random):

			def random (self) -> float:
				return 0.9999999

		options = [("a", 0.5), ("b", 0.4999)]

		self.assertEqual(moodsynth.markov_chain.choose_weighted(options, AlmostOne()), "b")


	def test_distribution_matches_weights (self) -> None:

		rng = random.Random(7)
		options = [("a", 0.8), ("b", 0.2)]
		draws = [moodsynth.markov_chain.choose_weighted(options, rng) for _ in range(5000)]

		self.assertAlmostEqual(draws.count("a") / len(draws), 0.8, delta=0.03)
