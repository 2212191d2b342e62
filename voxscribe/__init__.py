"""voxscribe — long-form speech transcription for Voxtral-style audio LLMs."""

__version__ = "0.1.0"
