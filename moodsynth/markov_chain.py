import random
import typing


StateType = typing.TypeVar("StateType")


def choose_weighted (options: typing.Sequence[typing.Tuple[StateType, float]], rng: random.Random) -> StateType:

	"""
	Choose one item from a list of probability-weighted options.

	Draws ``u ~ Uniform(0, 1)``, accumulates weights in declaration order and
	returns the first option whose cumulative weight reaches ``u``.  Weights
	are expected to sum to 1; if rounding leaves ``u`` unreached, the last
	option is returned.
	"""

	if not options:
		raise ValueError("Options cannot be empty")

	for _, weight in options:
		if weight <= 0:
			raise ValueError("Weights must be positive")

	roll = rng.random()
	accum = 0.0

	for option, weight in options:
		accum += weight
		if roll <= accum:
			return option

	return options[-1][0]


class MarkovChain (typing.Generic[StateType]):

	"""
	A first-order Markov chain over arbitrary states.

	States without an outgoing row use the ``fallback_state`` row instead of
	getting stuck.
	"""

	def __init__ (
		self,
		transitions: typing.Mapping[StateType, typing.Sequence[typing.Tuple[StateType, float]]],
		initial_state: typing.Optional[StateType] = None,
		fallback_state: typing.Optional[StateType] = None,
		rng: typing.Optional[random.Random] = None
	) -> None:

		"""
		Initialize the chain with transitions and optional initial and fallback states.
		"""

		if not transitions:
			raise ValueError("Transitions cannot be empty")

		self.transitions = transitions
		self.rng = rng or random.Random()

		if initial_state is None:
			initial_state = next(iter(transitions))

		if fallback_state is None:
			fallback_state = next(iter(transitions))

		if fallback_state not in transitions:
			raise ValueError("Fallback state must exist in transitions")

		self.fallback_state = fallback_state
		self.state = initial_state


	def choose (self, state: StateType) -> StateType:

		"""
		Draw a successor of ``state`` without moving the chain.
		"""

		options = self.transitions.get(state)

		if not options:
			options = self.transitions[self.fallback_state]

		return choose_weighted(options, self.rng)


	def step (self) -> StateType:

		"""
		Advance to the next state and return it.
		"""

		self.state = self.choose(self.state)

		return self.state


	def get_state (self) -> StateType:

		"""
		Return the current state.
		"""

		return self.state
