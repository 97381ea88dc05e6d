from __future__ import annotations


class PracticaError(Exception):
	"""Base error carrying a message that can be shown to the learner as-is."""

	retryable: bool = True

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message


class ConfigError(PracticaError):
	# The Gemini key (or other required setting) is missing; retrying won't help
	retryable = False


class ContentGenerationError(PracticaError):
	retryable = True


class PersistenceError(PracticaError):
	"""Local state could not be read or written. Logged, never fatal."""

	retryable = False


class TransitionError(Exception):
	"""An action was invoked in a state that does not accept it."""

	def __init__(self, action: str, state: str) -> None:
		super().__init__(f"{action} not allowed in state {state}")
		self.action = action
		self.state = state
